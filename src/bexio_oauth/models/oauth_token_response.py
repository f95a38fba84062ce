from pydantic import BaseModel, Field, RootModel


class TokenResponse(BaseModel):
    """Successful body of the Bexio (Keycloak) token endpoint."""

    access_token: str = Field(description="JWT used against the Bexio API")
    token_type: str = Field("Bearer", description="Always 'Bearer' for Bexio")
    expires_in: int | None = Field(
        None, description="Seconds until the access token expires"
    )
    refresh_token: str | None = Field(
        None, description="Returned when the offline_access scope was granted"
    )
    # Keycloak's name for the refresh token lifetime
    refresh_expires_in: int | None = Field(
        None, description="Seconds until the refresh token expires"
    )
    scope: str | None = Field(None, description="Granted scopes, space separated")
    id_token: str | None = Field(
        None, description="OpenID Connect ID token, present with the openid scope"
    )


class TokenErrorResponse(BaseModel):
    error: str = Field(description="Error code as per OAuth 2.0 specification")
    error_description: str | None = Field(
        None, description="Explanation sent by the token endpoint"
    )
    error_uri: str | None = None


class OAuth2TokenEndpointResponse(RootModel):
    # Error first: a body carrying "error" must never parse as a token
    root: TokenErrorResponse | TokenResponse

    def is_error(self) -> bool:
        return isinstance(self.root, TokenErrorResponse)
