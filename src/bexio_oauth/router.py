import logging
from itertools import chain
from urllib.parse import urlparse

from fastapi import APIRouter

from ._bridge import SessionBridge
from ._completion import CompletionHandler
from ._config import Config
from ._context import Context
from ._flow import FlowController
from ._platform import CompletionStrategy
from ._sessions import SessionManager
from ._storage import MemoryStorage, SecondaryStorage
from .providers.bexio import BexioProvider
from .providers.oauth import OAuth2Provider

logger = logging.getLogger(__name__)


class AuthRouter(APIRouter):
    _context: Context

    def __init__(
        self,
        config: Config,
        providers: list[OAuth2Provider] | None = None,
        secondary_storage: SecondaryStorage | None = None,
        trusted_origins: list[str] | None = None,
        completions: dict[CompletionStrategy, CompletionHandler] | None = None,
    ):
        super().__init__()

        config.validate()

        if secondary_storage is None:
            logger.info("No secondary storage given, using in-memory storage")
            secondary_storage = MemoryStorage()

        if trusted_origins is None:
            trusted_origins = [urlparse(config.web_redirect_uri).netloc]

        if providers is None:
            providers = [BexioProvider.from_config(config)]

        self.secondary_storage = secondary_storage
        self.session_bridge = SessionBridge(secondary_storage, ttl=config.session_ttl)

        self.flows = [FlowController(p, completions) for p in providers]
        self.session_manager = SessionManager()

        routes = list(chain.from_iterable(f.routes for f in self.flows))
        routes += self.session_manager.routes

        self._context = Context(
            secondary_storage=secondary_storage,
            session_bridge=self.session_bridge,
            config=config,
            trusted_origins=trusted_origins,
        )

        for route in routes:
            self.add_api_route(
                route.path,
                route.to_fastapi_endpoint(self._context),
                methods=route.methods,
                operation_id=route.operation_id,
                summary=route.summary,
            )

    @property
    def context(self) -> Context:
        return self._context

    async def sweep(self) -> int:
        """Drop expired sessions and, for in-memory storage, expired flows."""
        removed = await self.session_bridge.sweep()

        if isinstance(self.secondary_storage, MemoryStorage):
            removed += self.secondary_storage.purge_expired()

        return removed
