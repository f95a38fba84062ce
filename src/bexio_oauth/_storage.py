from datetime import datetime, timedelta, timezone

from typing_extensions import Protocol


class SecondaryStorage(Protocol):
    """Key-value store shared by the flow store and the session bridge.

    Use an external store (Redis, a database table) when running more than
    one server instance.
    """

    def set(self, key: str, value: str, ttl: int | None = None): ...

    def get(self, key: str) -> str | None: ...

    def delete(self, key: str): ...

    def pop(self, key: str) -> str | None:
        """Atomically get and delete a key. Returns None if key doesn't exist."""
        ...


class MemoryStorage:
    """In-process storage for single-instance deployments.

    Implements SecondaryStorage protocol via duck typing.
    """

    def __init__(self):
        self.data: dict[str, tuple[str, datetime | None]] = {}

    def _is_expired(self, expires_at: datetime | None) -> bool:
        return expires_at is not None and expires_at <= datetime.now(tz=timezone.utc)

    def set(self, key: str, value: str, ttl: int | None = None):
        expires_at = (
            datetime.now(tz=timezone.utc) + timedelta(seconds=ttl) if ttl else None
        )
        self.data[key] = (value, expires_at)

    def get(self, key: str) -> str | None:
        entry = self.data.get(key)

        if entry is None:
            return None

        value, expires_at = entry

        if self._is_expired(expires_at):
            del self.data[key]
            return None

        return value

    def delete(self, key: str):
        self.data.pop(key, None)

    def pop(self, key: str) -> str | None:
        value = self.get(key)
        self.data.pop(key, None)
        return value

    def purge_expired(self) -> int:
        expired = [
            key
            for key, (_, expires_at) in self.data.items()
            if self._is_expired(expires_at)
        ]

        for key in expired:
            del self.data[key]

        return len(expired)
