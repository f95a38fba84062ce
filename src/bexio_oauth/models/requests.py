from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AuthorizeRequest(CamelModel):
    platform: str = Field("web", pattern="^(web|ios|android|mobile)$")
    popup_blocked: bool = False
    return_url: str | None = None
    scopes: list[str] | None = None
    session_id: str | None = None
    login_hint: str | None = None


class AuthorizeResponse(CamelModel):
    auth_url: str
    state: str
    session_id: str | None = None
    completion_strategy: str


class ExchangeRequest(CamelModel):
    state: str | None = None
    code: str | None = None
    error: str | None = None
    error_description: str | None = None


class RefreshRequest(CamelModel):
    refresh_token: str = Field(min_length=1)


class CreateSessionRequest(CamelModel):
    platform: str = "mobile"
