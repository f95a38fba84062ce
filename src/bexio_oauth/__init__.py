from ._bridge import OAuthSession, SessionBridge
from ._config import Config
from ._context import Context
from ._flow import AuthorizationStart, FlowController
from ._identity import decode_jwt_payload, extract_identity
from ._platform import (
    CompletionStrategy,
    ExecutionEnvironment,
    PlatformResolution,
    resolve_platform,
    validate_resolution,
)
from ._poller import BridgeSessionSource, HTTPSessionSource, SessionPoller
from ._storage import MemoryStorage, SecondaryStorage
from .models.credentials import Credentials, Identity
from .providers.bexio import BexioProvider
from .router import AuthRouter

__all__ = [
    "AuthRouter",
    "AuthorizationStart",
    "BexioProvider",
    "BridgeSessionSource",
    "CompletionStrategy",
    "Config",
    "Context",
    "Credentials",
    "ExecutionEnvironment",
    "FlowController",
    "HTTPSessionSource",
    "Identity",
    "MemoryStorage",
    "OAuthSession",
    "PlatformResolution",
    "SecondaryStorage",
    "SessionBridge",
    "SessionPoller",
    "decode_jwt_payload",
    "extract_identity",
    "resolve_platform",
    "validate_resolution",
]
