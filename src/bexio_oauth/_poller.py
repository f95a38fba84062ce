import asyncio
import logging
from collections.abc import Awaitable, Callable

import httpx
from pydantic import ValidationError
from typing_extensions import Protocol

from ._bridge import OAuthSession, SessionBridge
from .exceptions import (
    BexioAuthException,
    CsrfMismatchError,
    ExchangeError,
    InvalidRequestError,
    NetworkError,
    PollingTimeoutError,
    ProviderDeniedError,
    RefreshError,
    SessionExpiredError,
    SessionNotFoundError,
)
from .models.credentials import Credentials

logger = logging.getLogger(__name__)

KNOWN_ERRORS: dict[str, type[BexioAuthException]] = {
    cls.error: cls
    for cls in (
        CsrfMismatchError,
        ExchangeError,
        InvalidRequestError,
        NetworkError,
        ProviderDeniedError,
        RefreshError,
    )
}


def error_from_session(session: OAuthSession) -> BexioAuthException:
    error = session.error or "server_error"
    error_class = KNOWN_ERRORS.get(error, BexioAuthException)

    return error_class(session.error_description, error=error)


class SessionSource(Protocol):
    async def fetch(self, session_id: str) -> OAuthSession: ...

    async def delete(self, session_id: str) -> None: ...


class BridgeSessionSource:
    """Reads sessions straight from a bridge in the same process."""

    def __init__(self, bridge: SessionBridge):
        self.bridge = bridge

    async def fetch(self, session_id: str) -> OAuthSession:
        return await self.bridge.get(session_id)

    async def delete(self, session_id: str) -> None:
        await self.bridge.delete(session_id)


class HTTPSessionSource:
    """Reads sessions through the ``/sessions`` endpoints of a relay server."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.client = client

    def _url(self, session_id: str) -> str:
        return f"{self.base_url}/sessions/{session_id}"

    async def _send(self, method: str, url: str) -> httpx.Response:
        try:
            if self.client is not None:
                return await self.client.request(method, url)

            async with httpx.AsyncClient(timeout=self.timeout) as client:
                return await client.request(method, url)
        except httpx.RequestError as e:
            raise NetworkError(f"Could not reach session endpoint: {str(e)}") from e

    async def fetch(self, session_id: str) -> OAuthSession:
        response = await self._send("GET", self._url(session_id))

        if response.status_code == 404:
            try:
                error = response.json().get("error")
            except ValueError:
                error = None

            if error == SessionExpiredError.error:
                raise SessionExpiredError(f"Session {session_id} expired")

            raise SessionNotFoundError(f"Session {session_id} not found")

        if not response.is_success:
            raise NetworkError(
                f"Session endpoint returned status {response.status_code}"
            )

        try:
            return OAuthSession.model_validate_json(response.text)
        except ValidationError as e:
            raise NetworkError("Session endpoint returned an invalid session") from e

    async def delete(self, session_id: str) -> None:
        await self._send("DELETE", self._url(session_id))


class SessionPoller:
    """Waits for a server-relayed flow to finish.

    ``pending`` is not an error: the session is read again every
    ``interval`` seconds until it completes, fails, expires, or
    ``max_attempts`` reads have been made.
    """

    def __init__(
        self,
        source: SessionSource,
        interval: float = 5.0,
        max_attempts: int = 60,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.source = source
        self.interval = interval
        self.max_attempts = max_attempts
        self.sleep = sleep

    async def _release(self, session_id: str) -> None:
        try:
            await self.source.delete(session_id)
        except NetworkError as e:
            logger.warning(f"Could not delete session {session_id}: {e}")

    async def await_result(self, session_id: str) -> Credentials:
        try:
            return await self._poll(session_id)
        except asyncio.CancelledError:
            logger.info(f"Polling for session {session_id} cancelled")
            await self._release(session_id)
            raise

    async def _poll(self, session_id: str) -> Credentials:
        for attempt in range(1, self.max_attempts + 1):
            try:
                session = await self.source.fetch(session_id)
            except NetworkError as e:
                logger.warning(f"Poll {attempt} for session {session_id} failed: {e}")
            else:
                if session.status == "completed":
                    assert session.tokens is not None
                    await self._release(session_id)
                    return session.tokens

                if session.status == "failed":
                    await self._release(session_id)
                    raise error_from_session(session)

                if session.status == "expired":
                    raise SessionExpiredError(f"Session {session_id} expired")

            if attempt < self.max_attempts:
                await self.sleep(self.interval)

        logger.warning(
            f"Session {session_id} still pending after {self.max_attempts} polls"
        )
        await self._release(session_id)

        raise PollingTimeoutError(
            f"No result after {self.max_attempts} attempts",
        )
