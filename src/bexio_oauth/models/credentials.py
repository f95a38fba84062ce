from datetime import datetime, timezone
from typing import Self

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from .oauth_token_response import TokenResponse

UNKNOWN_COMPANY_ID = "unknown"
UNKNOWN_USER_EMAIL = "OAuth User"

# Used when the provider leaves out expires_in
DEFAULT_EXPIRES_IN = 3600


class Identity(BaseModel):
    company_id: str = UNKNOWN_COMPANY_ID
    user_email: str = UNKNOWN_USER_EMAIL


class Credentials(BaseModel):
    """The credential set handed back to the initiating application.

    ``expires_at`` is an absolute timestamp in milliseconds since the epoch.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    access_token: str
    refresh_token: str | None = None
    token_type: str = "Bearer"
    scope: str | None = None
    expires_at: int
    company_id: str = UNKNOWN_COMPANY_ID
    user_email: str = UNKNOWN_USER_EMAIL

    @classmethod
    def from_token_response(
        cls,
        token_response: TokenResponse,
        identity: Identity,
        issued_at: datetime | None = None,
    ) -> Self:
        issued_at = issued_at or datetime.now(tz=timezone.utc)
        expires_in = token_response.expires_in or DEFAULT_EXPIRES_IN

        return cls(
            access_token=token_response.access_token,
            refresh_token=token_response.refresh_token,
            token_type=token_response.token_type,
            scope=token_response.scope,
            expires_at=round(issued_at.timestamp() * 1000) + expires_in * 1000,
            company_id=identity.company_id,
            user_email=identity.user_email,
        )
