"""Relay store for flows whose initiating application cannot receive the
provider callback itself.

The server-side callback writes the outcome under the session id, the
application polls it back out. Every session allows exactly one terminal
transition and is reported as expired once its TTL has passed.
"""

import asyncio
import logging
import secrets
import weakref
from datetime import datetime, timedelta, timezone
from typing import Literal

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from ._config import MAX_TTL, MIN_TTL
from ._storage import SecondaryStorage
from .exceptions import (
    ConfigurationError,
    SessionConflictError,
    SessionExpiredError,
    SessionNotFoundError,
)
from .models.credentials import Credentials

logger = logging.getLogger(__name__)

SessionStatus = Literal["pending", "completed", "failed", "expired"]

TERMINAL_STATUSES = ("completed", "failed")


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


class OAuthSession(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    session_id: str
    status: SessionStatus = "pending"
    platform: str = "mobile"
    created_at: AwareDatetime = Field(default_factory=_now)
    tokens: Credentials | None = None
    error: str | None = None
    error_description: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class SessionBridge:
    def __init__(self, storage: SecondaryStorage, ttl: int = 600):
        if not MIN_TTL <= ttl <= MAX_TTL:
            raise ConfigurationError(
                f"Session TTL must be between {MIN_TTL} and {MAX_TTL} seconds"
            )

        self.storage = storage
        self.ttl = ttl

        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )
        self._session_ids: set[str] = set()

    def _key(self, session_id: str) -> str:
        return f"oauth:session:{session_id}"

    def _lock(self, session_id: str) -> asyncio.Lock:
        lock = self._locks.get(session_id)

        if lock is None:
            lock = asyncio.Lock()
            self._locks[session_id] = lock

        return lock

    def _is_expired(self, session: OAuthSession) -> bool:
        return _now() - session.created_at > timedelta(seconds=self.ttl)

    def _save(self, session: OAuthSession) -> None:
        # The storage keeps entries past the TTL so reads can still tell
        # "expired" apart from "never existed"; sweep() reclaims them
        self.storage.set(
            self._key(session.session_id),
            session.model_dump_json(),
            ttl=self.ttl * 2,
        )

    def _load(self, session_id: str) -> OAuthSession:
        raw = self.storage.get(self._key(session_id))

        if raw is None:
            self._session_ids.discard(session_id)
            raise SessionNotFoundError(f"Session {session_id} not found")

        try:
            session = OAuthSession.model_validate_json(raw)
        except ValidationError as e:
            logger.error("Invalid session data", exc_info=e)
            self._remove(session_id)
            raise SessionNotFoundError(f"Session {session_id} not found") from e

        if self._is_expired(session):
            logger.info(f"Session {session_id} expired")
            self._remove(session_id)
            raise SessionExpiredError(f"Session {session_id} expired")

        return session

    def _remove(self, session_id: str) -> None:
        self.storage.delete(self._key(session_id))
        self._session_ids.discard(session_id)

    async def create(
        self, session_id: str | None = None, platform: str = "mobile"
    ) -> OAuthSession:
        session_id = session_id or secrets.token_urlsafe(24)

        async with self._lock(session_id):
            if self.storage.get(self._key(session_id)) is not None:
                raise SessionConflictError(f"Session {session_id} already exists")

            session = OAuthSession(session_id=session_id, platform=platform)

            self._save(session)
            self._session_ids.add(session_id)

        logger.info(f"Created session {session_id} for {platform}")

        return session

    async def get(self, session_id: str) -> OAuthSession:
        async with self._lock(session_id):
            return self._load(session_id)

    async def update(
        self,
        session_id: str,
        status: SessionStatus,
        tokens: Credentials | None = None,
        error: str | None = None,
        error_description: str | None = None,
    ) -> OAuthSession:
        """Move a pending session to ``completed`` or ``failed``.

        Raises SessionConflictError if the session already reached a
        terminal state; the stored outcome is left untouched.
        """
        if status == "completed" and tokens is None:
            raise ValueError("A completed session needs tokens")

        if status == "failed" and not error:
            raise ValueError("A failed session needs an error")

        if status not in TERMINAL_STATUSES:
            raise ValueError(f"Cannot update a session to {status!r}")

        async with self._lock(session_id):
            session = self._load(session_id)

            if session.is_terminal:
                raise SessionConflictError(
                    f"Session {session_id} is already {session.status}"
                )

            if status == "completed":
                session = session.model_copy(
                    update={"status": status, "tokens": tokens}
                )
            else:
                session = session.model_copy(
                    update={
                        "status": status,
                        "error": error,
                        "error_description": error_description,
                    }
                )

            self._save(session)

        logger.info(f"Session {session_id} is now {status}")

        return session

    async def complete(self, session_id: str, tokens: Credentials) -> OAuthSession:
        return await self.update(session_id, "completed", tokens=tokens)

    async def fail(
        self, session_id: str, error: str, error_description: str | None = None
    ) -> OAuthSession:
        return await self.update(
            session_id, "failed", error=error, error_description=error_description
        )

    async def delete(self, session_id: str) -> bool:
        async with self._lock(session_id):
            existed = self.storage.pop(self._key(session_id)) is not None
            self._session_ids.discard(session_id)

        return existed

    async def sweep(self) -> int:
        """Delete every expired session this bridge has created."""
        removed = 0

        for session_id in list(self._session_ids):
            try:
                await self.get(session_id)
            except SessionExpiredError:
                removed += 1
            except SessionNotFoundError:
                pass

        if removed:
            logger.info(f"Swept {removed} expired sessions")

        return removed
