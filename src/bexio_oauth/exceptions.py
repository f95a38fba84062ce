from enum import Enum
from typing import ClassVar


class RecoveryAction(str, Enum):
    RETRY = "retry"
    REAUTHENTICATE = "reauthenticate"
    CHECK_CONNECTION = "check_connection"
    FIX_CONFIG = "fix_config"
    CONTACT_SUPPORT = "contact_support"
    NONE = "none"


class BexioAuthException(Exception):
    """Base class for every error raised by the OAuth core.

    Each subclass is classified once, where the failure is first observed,
    and carries the recovery the calling application should offer. The
    core never performs the recovery itself.
    """

    error: str = "server_error"
    status_code: ClassVar[int] = 400
    retryable: ClassVar[bool] = False
    recovery_action: ClassVar[RecoveryAction] = RecoveryAction.CONTACT_SUPPORT
    user_message: ClassVar[str] = (
        "An unexpected error occurred. Please try again or contact support."
    )

    def __init__(
        self, error_description: str | None = None, error: str | None = None
    ) -> None:
        super().__init__(error_description or error or self.error)

        if error:
            self.error = error

        self.error_description = error_description


class ConfigurationError(BexioAuthException):
    error = "configuration_error"
    status_code = 500
    recovery_action = RecoveryAction.FIX_CONFIG
    user_message = "Application is not properly configured. Please contact support."


class InvalidRequestError(BexioAuthException):
    error = "invalid_request"
    recovery_action = RecoveryAction.REAUTHENTICATE
    user_message = "The sign-in request was invalid. Please start again."


class CsrfMismatchError(BexioAuthException):
    error = "csrf_mismatch"
    status_code = 403
    recovery_action = RecoveryAction.REAUTHENTICATE
    user_message = "The sign-in could not be verified. Please start again."


class ProviderDeniedError(BexioAuthException):
    error = "access_denied"
    status_code = 401
    recovery_action = RecoveryAction.REAUTHENTICATE
    user_message = "Authentication was cancelled or denied."


class ExchangeError(BexioAuthException):
    """The token endpoint rejected the request.

    Authorization codes are single use, so the user has to restart the flow.
    """

    error = "token_exchange_failed"
    recovery_action = RecoveryAction.REAUTHENTICATE
    user_message = "Signing in to Bexio failed. Please try again."

    def __init__(
        self,
        error_description: str | None = None,
        error: str | None = None,
        *,
        status: int | None = None,
        body: str | None = None,
    ) -> None:
        super().__init__(error_description, error)

        self.status = status
        self.body = body


class RefreshError(ExchangeError):
    error = "token_refresh_failed"
    status_code = 401
    user_message = "Your session has expired. Please log in again."


class NetworkError(BexioAuthException):
    error = "network_error"
    status_code = 503
    retryable = True
    recovery_action = RecoveryAction.RETRY
    user_message = "Please check your internet connection and try again."


class SessionNotFoundError(BexioAuthException):
    error = "not_found"
    status_code = 404
    recovery_action = RecoveryAction.REAUTHENTICATE
    user_message = "The sign-in session could not be found. Please start again."


class SessionExpiredError(SessionNotFoundError):
    error = "session_expired"
    user_message = "The sign-in took too long. Please start again."


class SessionConflictError(BexioAuthException):
    error = "session_conflict"
    status_code = 409
    recovery_action = RecoveryAction.NONE


class PollingTimeoutError(BexioAuthException):
    error = "authentication_timeout"
    status_code = 408
    recovery_action = RecoveryAction.REAUTHENTICATE
    user_message = "Authentication timeout - please try again."


class DecodeError(BexioAuthException):
    error = "decode_error"
    recovery_action = RecoveryAction.NONE


class StateDecodeError(DecodeError):
    error = "invalid_state"
