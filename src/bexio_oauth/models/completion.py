from typing import Literal

from pydantic import BaseModel

from .credentials import Credentials


class OAuthSuccessPayload(BaseModel):
    type: Literal["OAUTH_SUCCESS"] = "OAUTH_SUCCESS"
    credentials: Credentials

    def to_query_params(self) -> dict[str, str]:
        credentials = self.credentials

        return {
            "access_token": credentials.access_token,
            "refresh_token": credentials.refresh_token or "",
            "token_type": credentials.token_type,
            "expires_at": str(credentials.expires_at),
            "company_id": credentials.company_id,
            "user_email": credentials.user_email,
        }


class OAuthErrorPayload(BaseModel):
    type: Literal["OAUTH_ERROR"] = "OAUTH_ERROR"
    error: str
    description: str | None = None

    def to_query_params(self) -> dict[str, str]:
        params = {"error": self.error}

        if self.description:
            params["error_description"] = self.description

        return params

