from typing import Generator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from bexio_oauth._config import Config
from bexio_oauth._storage import MemoryStorage
from bexio_oauth.router import AuthRouter


@pytest.fixture
def auth_router(config: Config, secondary_storage: MemoryStorage) -> AuthRouter:
    return AuthRouter(config, secondary_storage=secondary_storage)


@pytest.fixture
def test_app(auth_router: AuthRouter) -> FastAPI:
    app = FastAPI()

    app.include_router(auth_router, prefix="/api/bexio-oauth")

    return app


@pytest.fixture
def client(test_app: FastAPI) -> Generator[TestClient, None, None]:
    with TestClient(test_app) as c:
        yield c
