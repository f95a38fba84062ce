import base64
import json
from collections.abc import Callable
from typing import Any

import pytest

from bexio_oauth._bridge import SessionBridge
from bexio_oauth._config import Config
from bexio_oauth._context import Context
from bexio_oauth._storage import MemoryStorage, SecondaryStorage

pytestmark = pytest.mark.asyncio


def _encode_segment(data: dict[str, Any]) -> str:
    raw = json.dumps(data).encode("utf-8")

    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


@pytest.fixture
def make_jwt() -> Callable[[dict[str, Any]], str]:
    def _make_jwt(claims: dict[str, Any]) -> str:
        header = _encode_segment({"alg": "RS256", "typ": "JWT"})

        return f"{header}.{_encode_segment(claims)}.not-a-real-signature"

    return _make_jwt


@pytest.fixture
def config() -> Config:
    return Config(
        client_id="test_client_id",
        client_secret="test_client_secret",
        server_callback_uri="https://auth.example.com/api/bexio-oauth/bexio/callback",
        web_redirect_uri="https://app.example.com/oauth/callback",
    )


@pytest.fixture
def deep_link_config(config: Config) -> Config:
    config.native_strategy = "deep-link"
    return config


@pytest.fixture
def secondary_storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def session_bridge(
    secondary_storage: SecondaryStorage, config: Config
) -> SessionBridge:
    return SessionBridge(secondary_storage, ttl=config.session_ttl)


@pytest.fixture
def context(
    secondary_storage: SecondaryStorage,
    session_bridge: SessionBridge,
    config: Config,
) -> Context:
    return Context(
        secondary_storage=secondary_storage,
        session_bridge=session_bridge,
        config=config,
        trusted_origins=["app.example.com", "*.preview.example.com"],
    )
