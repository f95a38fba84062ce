"""Decides, per execution environment, where the provider sends the user
back to and how the result reaches the initiating application."""

from dataclasses import dataclass
from enum import Enum
from ipaddress import ip_address
from typing import Literal
from urllib.parse import urlparse

from ._config import Config
from .exceptions import ConfigurationError

Platform = Literal["web", "ios", "android", "mobile"]

NATIVE_PLATFORMS = ("ios", "android", "mobile")


class CompletionStrategy(str, Enum):
    POPUP = "popup"
    FULL_REDIRECT = "full-redirect"
    DEEP_LINK = "deep-link"
    SERVER_POLL = "server-poll"


@dataclass(frozen=True)
class ExecutionEnvironment:
    platform: Platform = "web"
    popup_blocked: bool = False

    @property
    def is_native(self) -> bool:
        return self.platform in NATIVE_PLATFORMS


@dataclass(frozen=True)
class PlatformResolution:
    # Sent to the provider as redirect_uri
    redirect_uri: str

    # Where the result is finally delivered
    callback_uri: str

    completion_strategy: CompletionStrategy


def resolve_platform(
    environment: ExecutionEnvironment, config: Config
) -> PlatformResolution:
    if not environment.is_native:
        return PlatformResolution(
            redirect_uri=config.server_callback_uri,
            callback_uri=config.web_redirect_uri,
            completion_strategy=(
                CompletionStrategy.FULL_REDIRECT
                if environment.popup_blocked
                else CompletionStrategy.POPUP
            ),
        )

    if config.native_strategy == "deep-link":
        return PlatformResolution(
            redirect_uri=config.mobile_redirect_uri,
            callback_uri=config.mobile_redirect_uri,
            completion_strategy=CompletionStrategy.DEEP_LINK,
        )

    return PlatformResolution(
        redirect_uri=config.server_callback_uri,
        callback_uri=config.mobile_redirect_uri,
        completion_strategy=CompletionStrategy.SERVER_POLL,
    )


def _is_loopback(host: str | None) -> bool:
    if not host:
        return False

    if host == "localhost":
        return True

    try:
        return ip_address(host).is_loopback
    except ValueError:
        return False


def _check_http_uri(name: str, uri: str, errors: list[str]) -> None:
    parsed = urlparse(uri)

    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        errors.append(f"{name} must be an absolute http(s) URL: {uri!r}")
    elif parsed.scheme == "http" and not _is_loopback(parsed.hostname):
        errors.append(f"{name} must use https: {uri!r}")


def validate_resolution(resolution: PlatformResolution, config: Config) -> None:
    errors: list[str] = []

    if resolution.completion_strategy == CompletionStrategy.DEEP_LINK:
        for name, uri in (
            ("redirect_uri", resolution.redirect_uri),
            ("callback_uri", resolution.callback_uri),
        ):
            if urlparse(uri).scheme != config.app_scheme:
                errors.append(
                    f"{name} must use the app scheme {config.app_scheme!r}: {uri!r}"
                )
    else:
        _check_http_uri("redirect_uri", resolution.redirect_uri, errors)

        if resolution.completion_strategy == CompletionStrategy.SERVER_POLL:
            if urlparse(resolution.callback_uri).scheme != config.app_scheme:
                errors.append(
                    f"callback_uri must use the app scheme {config.app_scheme!r}"
                )
        else:
            _check_http_uri("callback_uri", resolution.callback_uri, errors)

    if errors:
        raise ConfigurationError(
            f"Redirect configuration invalid for "
            f"{resolution.completion_strategy.value}: {', '.join(errors)}"
        )
