import logging
from typing import Any, ClassVar, Self

import httpx
from pydantic import ValidationError

from .._config import Config
from ..exceptions import ExchangeError, NetworkError, RefreshError
from ..models.oauth_token_response import (
    OAuth2TokenEndpointResponse,
    TokenErrorResponse,
    TokenResponse,
)
from ..utils._url import add_query_params

logger = logging.getLogger(__name__)


class OAuth2Provider:
    id: ClassVar[str]
    authorization_endpoint: ClassVar[str]
    token_endpoint: ClassVar[str]
    user_info_endpoint: ClassVar[str]

    # Scopes the app registration may ask for
    allowed_scopes: ClassVar[list[str]]
    # Requested when nothing usable was asked for
    default_scopes: ClassVar[list[str]]

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        scopes: list[str] | None = None,
        timeout: float = 30.0,
    ):
        """
        Args:
            client_id: Client ID of the app registration.
            client_secret: Client secret of the app registration, only sent to
                the token endpoint.
            scopes: Scopes requested when a flow doesn't ask for specific ones.
                Filtered against ``allowed_scopes``.
            timeout: Timeout in seconds for calls to the provider.
        """
        self.client_id = client_id
        self.client_secret = client_secret
        self.scopes = self.filter_scopes(scopes or self.default_scopes)
        self.timeout = timeout

    @classmethod
    def from_config(cls, config: Config, scopes: list[str] | None = None) -> Self:
        return cls(
            client_id=config.client_id,
            client_secret=config.client_secret,
            scopes=scopes,
            timeout=config.request_timeout,
        )

    def filter_scopes(self, requested: list[str] | None) -> list[str]:
        """Keep the requested scopes the provider allows, in request order.

        Falls back to ``default_scopes`` when none of them are allowed.
        """
        if requested is None:
            return list(self.scopes)

        scopes = list(dict.fromkeys(s for s in requested if s in self.allowed_scopes))

        if not scopes:
            logger.info("No allowed scopes requested, using defaults")
            return list(self.default_scopes)

        return scopes

    def get_redirect_params(
        self,
        state: str,
        redirect_uri: str,
        scopes: list[str],
        response_type: str = "code",
        **kwargs: str,
    ) -> dict[str, str]:
        """Base query of the authorization URL, before PKCE and hints."""
        return {
            "client_id": self.client_id,
            "scope": " ".join(scopes),
            "redirect_uri": redirect_uri,
            "response_type": response_type,
            "state": state,
            **kwargs,
        }

    def build_authorization_params(
        self,
        state: str,
        redirect_uri: str,
        scopes: list[str] | None = None,
        code_challenge: str | None = None,
        code_challenge_method: str | None = None,
        login_hint: str | None = None,
    ) -> dict[str, str]:
        """Authorization query for one flow.

        Requested scopes are filtered, PKCE and ``login_hint`` are added when
        given.
        """
        params = self.get_redirect_params(
            state=state,
            redirect_uri=redirect_uri,
            scopes=self.filter_scopes(scopes),
        )

        if code_challenge:
            params["code_challenge"] = code_challenge

        if code_challenge_method:
            params["code_challenge_method"] = code_challenge_method

        if login_hint:
            params["login_hint"] = login_hint

        return params

    def build_authorization_url(
        self,
        state: str,
        redirect_uri: str,
        scopes: list[str] | None = None,
        code_challenge: str | None = None,
        code_challenge_method: str | None = None,
        login_hint: str | None = None,
    ) -> str:
        params = self.build_authorization_params(
            state=state,
            redirect_uri=redirect_uri,
            scopes=scopes,
            code_challenge=code_challenge,
            code_challenge_method=code_challenge_method,
            login_hint=login_hint,
        )

        return add_query_params(self.authorization_endpoint, params)

    def build_token_exchange_params(
        self, code: str, redirect_uri: str, code_verifier: str | None = None
    ) -> dict[str, str]:
        """Build token exchange request parameters.

        Override this method to customize token exchange parameters.
        """
        params = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": redirect_uri,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
        }

        if code_verifier:
            params["code_verifier"] = code_verifier

        return params

    def build_refresh_params(self, refresh_token: str) -> dict[str, str]:
        return {
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
        }

    async def send_token_request(self, data: dict[str, Any]) -> httpx.Response:
        """Send a request to the token endpoint.

        Override this method to customize how the request is sent.
        """
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.post(
                self.token_endpoint,
                headers={
                    "Accept": "application/json",
                    "Content-Type": "application/x-www-form-urlencoded",
                },
                data=data,
            )

    def parse_token_response(
        self, response: httpx.Response
    ) -> OAuth2TokenEndpointResponse | None:
        try:
            return OAuth2TokenEndpointResponse.model_validate_json(response.text)
        except ValidationError as e:
            logger.error(f"Failed to parse token response: {str(e)}")
            return None

    async def _request_tokens(
        self,
        params: dict[str, str],
        error_class: type[ExchangeError],
        action: str,
    ) -> TokenResponse:
        try:
            response = await self.send_token_request(params)
        except httpx.TimeoutException as e:
            logger.warning(f"Timed out during {action}")
            raise NetworkError(f"{action.capitalize()} timed out") from e
        except httpx.RequestError as e:
            logger.warning(f"Network error during {action}: {str(e)}")
            raise NetworkError(f"{action.capitalize()} failed: {str(e)}") from e

        if not response.is_success:
            logger.warning(
                f"HTTP error during {action}: {response.status_code} - {response.text}"
            )
            raise error_class(
                f"{action.capitalize()} failed with status {response.status_code}",
                status=response.status_code,
                body=response.text,
            )

        token_response = self.parse_token_response(response)

        if token_response is None:
            raise error_class(
                "Failed to parse token response",
                status=response.status_code,
                body=response.text,
            )

        if token_response.is_error():
            assert isinstance(token_response.root, TokenErrorResponse)

            logger.error(f"{action.capitalize()} failed: {token_response.root.error}")

            raise error_class(
                f"{action.capitalize()} failed: {token_response.root.error}",
                status=response.status_code,
                body=response.text,
            )

        assert isinstance(token_response.root, TokenResponse)
        return token_response.root

    async def exchange_code(
        self,
        code: str,
        redirect_uri: str,
        code_verifier: str | None = None,
    ) -> TokenResponse:
        """Exchange an authorization code for tokens.

        ``redirect_uri`` must be the value sent in the authorization request.

        Raises:
            ExchangeError: The provider rejected the request.
            NetworkError: The provider could not be reached.
        """
        params = self.build_token_exchange_params(code, redirect_uri, code_verifier)

        return await self._request_tokens(params, ExchangeError, "token exchange")

    async def refresh(self, refresh_token: str) -> TokenResponse:
        """Obtain a new access token.

        The previous refresh token is kept when the provider doesn't rotate it.
        """
        params = self.build_refresh_params(refresh_token)

        token_response = await self._request_tokens(
            params, RefreshError, "token refresh"
        )

        if token_response.refresh_token is None:
            token_response = token_response.model_copy(
                update={"refresh_token": refresh_token}
            )

        return token_response

    async def fetch_user_info(self, access_token: str) -> dict[str, Any]:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(
                    self.user_info_endpoint,
                    headers={
                        "Accept": "application/json",
                        "Authorization": f"Bearer {access_token}",
                    },
                )

            response.raise_for_status()
            user_info = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"Failed to fetch user info: {str(e)}")
            raise ExchangeError(
                "Failed to fetch user info",
                status=e.response.status_code,
                body=e.response.text,
            ) from e
        except httpx.RequestError as e:
            logger.error(f"Failed to fetch user info: {str(e)}")
            raise NetworkError("Failed to fetch user info") from e
        except ValueError as e:
            logger.error(f"Failed to fetch user info: {str(e)}")
            raise ExchangeError("User info response is not valid JSON") from e

        if not isinstance(user_info, dict):
            raise ExchangeError("User info response is not a JSON object")

        return user_info
