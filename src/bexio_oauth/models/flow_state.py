from datetime import datetime, timezone

from pydantic import AwareDatetime, BaseModel


class FlowState(BaseModel):
    """Server-side record of one authorization attempt.

    Stored under the state nonce when the flow starts and popped exactly
    once by the callback.
    """

    nonce: str
    code_verifier: str

    # Sent to the provider; the token request must repeat it verbatim
    redirect_uri: str

    return_url: str
    platform: str
    completion_strategy: str
    session_id: str | None = None
    expires_at: AwareDatetime

    @property
    def is_expired(self) -> bool:
        return datetime.now(tz=timezone.utc) > self.expires_at
