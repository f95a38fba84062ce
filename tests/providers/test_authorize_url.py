from urllib.parse import parse_qsl, urlsplit

from inline_snapshot import snapshot

from bexio_oauth._config import Config
from bexio_oauth.providers.bexio import BexioProvider


def test_default_scopes(oauth_provider: BexioProvider):
    assert oauth_provider.scopes == ["openid", "profile", "email", "offline_access"]
    assert oauth_provider.filter_scopes(None) == oauth_provider.scopes


def test_filters_unknown_scopes_and_keeps_order(oauth_provider: BexioProvider):
    assert oauth_provider.filter_scopes(
        ["contact_show", "admin", "openid", "contact_show", "accounting"]
    ) == ["contact_show", "openid", "accounting"]


def test_falls_back_to_defaults_when_nothing_is_allowed(oauth_provider: BexioProvider):
    assert oauth_provider.filter_scopes(["admin", "root"]) == [
        "openid",
        "profile",
        "email",
        "offline_access",
    ]
    assert oauth_provider.filter_scopes([]) == oauth_provider.default_scopes


def test_configured_scopes_are_filtered_too():
    provider = BexioProvider(
        client_id="id", client_secret="secret", scopes=["openid", "everything"]
    )

    assert provider.scopes == ["openid"]


def test_from_config(config: Config):
    config.request_timeout = 12.0

    provider = BexioProvider.from_config(config, scopes=["openid", "accounting"])

    assert provider.client_id == "test_client_id"
    assert provider.client_secret == "test_client_secret"
    assert provider.timeout == 12.0
    assert provider.scopes == ["openid", "accounting"]


def test_builds_authorization_url(oauth_provider: BexioProvider):
    url = oauth_provider.build_authorization_url(
        state="test_state",
        redirect_uri="https://auth.example.com/callback",
        code_challenge="challenge",
        code_challenge_method="S256",
    )

    assert url == snapshot(
        "https://auth.bexio.com/realms/bexio/protocol/openid-connect/auth?client_id=test_client_id&scope=openid+profile+email+offline_access&redirect_uri=https%3A%2F%2Fauth.example.com%2Fcallback&response_type=code&state=test_state&code_challenge=challenge&code_challenge_method=S256"
    )


def test_parameter_order_is_stable(oauth_provider: BexioProvider):
    params = oauth_provider.build_authorization_params(
        state="s",
        redirect_uri="https://auth.example.com/callback",
        scopes=["accounting"],
        code_challenge="c",
        code_challenge_method="S256",
        login_hint="user@example.com",
    )

    assert list(params) == [
        "client_id",
        "scope",
        "redirect_uri",
        "response_type",
        "state",
        "code_challenge",
        "code_challenge_method",
        "login_hint",
    ]
    assert params["scope"] == "accounting"


def test_omits_pkce_parameters_when_not_given(oauth_provider: BexioProvider):
    url = oauth_provider.build_authorization_url(
        state="s", redirect_uri="https://auth.example.com/callback"
    )

    query = dict(parse_qsl(urlsplit(url).query))

    assert "code_challenge" not in query
    assert "code_challenge_method" not in query
    assert query["response_type"] == "code"
