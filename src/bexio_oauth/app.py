import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator

from fastapi import FastAPI

from ._config import Config
from ._storage import SecondaryStorage
from .router import AuthRouter

logger = logging.getLogger(__name__)

SWEEP_INTERVAL = 60.0


async def _sweep_forever(router: AuthRouter, interval: float) -> None:
    while True:
        await asyncio.sleep(interval)

        try:
            await router.sweep()
        except Exception:
            logger.exception("Sweeping expired OAuth state failed")


def create_app(
    config: Config | None = None,
    secondary_storage: SecondaryStorage | None = None,
    prefix: str = "/api/bexio-oauth",
    sweep_interval: float = SWEEP_INTERVAL,
) -> FastAPI:
    """Build a FastAPI app serving the OAuth routes.

    Configuration is read from the environment when not given.
    """
    config = config or Config.from_env()
    router = AuthRouter(config, secondary_storage=secondary_storage)

    @contextlib.asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        task = asyncio.create_task(_sweep_forever(router, sweep_interval))

        try:
            yield
        finally:
            task.cancel()

            with contextlib.suppress(asyncio.CancelledError):
                await task

    app = FastAPI(lifespan=lifespan)
    app.include_router(router, prefix=prefix)
    app.state.auth_router = router

    return app
