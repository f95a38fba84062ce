from __future__ import annotations

from typing import TYPE_CHECKING
from urllib.parse import urlparse

from ._config import Config
from ._storage import SecondaryStorage
from .utils._is_same_host import is_same_host

if TYPE_CHECKING:
    from ._bridge import SessionBridge


class Context:
    def __init__(
        self,
        secondary_storage: SecondaryStorage,
        session_bridge: SessionBridge,
        config: Config,
        trusted_origins: list[str],
    ):
        self.secondary_storage = secondary_storage
        self.session_bridge = session_bridge
        self.config = config
        self.trusted_origins = trusted_origins

    def is_valid_redirect_uri(self, redirect_uri: str) -> bool:
        host = urlparse(redirect_uri).netloc

        for origin in self.trusted_origins:
            if is_same_host(host, origin):
                return True

        return False

    def is_valid_return_url(self, return_url: str) -> bool:
        """Check where the flow may hand its result back to.

        Native apps get their result through the configured custom scheme,
        browsers only on trusted origins.
        """
        scheme = urlparse(return_url).scheme

        if scheme == self.config.app_scheme:
            return True

        if scheme not in ("http", "https"):
            return False

        return self.is_valid_redirect_uri(return_url)
