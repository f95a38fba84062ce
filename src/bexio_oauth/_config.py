from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Literal, cast
from urllib.parse import urlparse

from .exceptions import ConfigurationError

NativeStrategy = Literal["server-poll", "deep-link"]

MIN_TTL = 5 * 60
MAX_TTL = 10 * 60


@dataclass
class Config:
    """OAuth client configuration for one Bexio app registration."""

    client_id: str
    client_secret: str

    # Registered with Bexio, the provider redirects here with code + state
    server_callback_uri: str

    # Completion page of the web app (popup and full-redirect flows)
    web_redirect_uri: str

    # Custom-scheme URI handled by the native app
    mobile_redirect_uri: str = "bexiosyncbuddy://oauth/callback"

    # Bexio only accepts registered HTTPS redirect URIs, so native apps go
    # through the server relay unless the registration allows the app scheme
    native_strategy: NativeStrategy = "server-poll"

    flow_ttl: int = 600
    session_ttl: int = 600
    request_timeout: float = 30.0

    poll_interval: float = 5.0
    poll_max_attempts: int = 60

    popup_delivery_attempts: int = 10
    popup_delivery_interval_ms: int = 300

    @property
    def app_scheme(self) -> str:
        return urlparse(self.mobile_redirect_uri).scheme

    def validate(self) -> None:
        errors: list[str] = []

        if not self.client_id:
            errors.append("client_id is not configured")

        if not self.client_secret:
            errors.append("client_secret is not configured")

        if not self.server_callback_uri:
            errors.append("server_callback_uri is not configured")

        if not self.web_redirect_uri:
            errors.append("web_redirect_uri is not configured")

        if self.app_scheme in ("", "http", "https"):
            errors.append("mobile_redirect_uri must use the app's custom scheme")

        if self.native_strategy not in ("server-poll", "deep-link"):
            errors.append(f"Unknown native strategy: {self.native_strategy}")

        for name in ("flow_ttl", "session_ttl"):
            if not MIN_TTL <= getattr(self, name) <= MAX_TTL:
                errors.append(f"{name} must be between {MIN_TTL} and {MAX_TTL} seconds")

        if errors:
            raise ConfigurationError(
                f"OAuth configuration invalid: {', '.join(errors)}"
            )

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Config:
        env = os.environ if environ is None else environ

        config = cls(
            client_id=env.get("BEXIO_CLIENT_ID", ""),
            client_secret=env.get("BEXIO_CLIENT_SECRET", ""),
            server_callback_uri=env.get("BEXIO_SERVER_CALLBACK_URI", ""),
            web_redirect_uri=env.get("BEXIO_WEB_REDIRECT_URI", ""),
            native_strategy=cast(
                NativeStrategy, env.get("BEXIO_NATIVE_STRATEGY", "server-poll")
            ),
        )

        if mobile_redirect_uri := env.get("BEXIO_MOBILE_REDIRECT_URI"):
            config.mobile_redirect_uri = mobile_redirect_uri

        try:
            if flow_ttl := env.get("BEXIO_OAUTH_FLOW_TTL"):
                config.flow_ttl = int(flow_ttl)

            if session_ttl := env.get("BEXIO_OAUTH_SESSION_TTL"):
                config.session_ttl = int(session_ttl)

            if request_timeout := env.get("BEXIO_OAUTH_REQUEST_TIMEOUT"):
                config.request_timeout = float(request_timeout)
        except ValueError as e:
            raise ConfigurationError(f"Invalid numeric OAuth setting: {e}") from e

        return config
