from urllib.parse import parse_qsl

import httpx
import pytest
from respx import MockRouter

from bexio_oauth.exceptions import NetworkError, RefreshError
from bexio_oauth.providers.bexio import BexioProvider

pytestmark = pytest.mark.asyncio


async def test_refreshes_tokens(oauth_provider: BexioProvider, respx_mock: MockRouter):
    token_route = respx_mock.post(oauth_provider.token_endpoint).mock(
        return_value=httpx.Response(
            200,
            json={
                "access_token": "new-access",
                "refresh_token": "new-refresh",
                "expires_in": 3600,
            },
        )
    )

    token_response = await oauth_provider.refresh("old-refresh")

    assert token_response.access_token == "new-access"
    assert token_response.refresh_token == "new-refresh"
    assert dict(parse_qsl(token_route.calls[0].request.content.decode())) == {
        "grant_type": "refresh_token",
        "refresh_token": "old-refresh",
        "client_id": "test_client_id",
        "client_secret": "test_client_secret",
    }


async def test_keeps_refresh_token_when_not_rotated(
    oauth_provider: BexioProvider, respx_mock: MockRouter
):
    respx_mock.post(oauth_provider.token_endpoint).mock(
        return_value=httpx.Response(
            200, json={"access_token": "new-access", "expires_in": 3600}
        )
    )

    token_response = await oauth_provider.refresh("old-refresh")

    assert token_response.refresh_token == "old-refresh"


async def test_rejected_refresh(oauth_provider: BexioProvider, respx_mock: MockRouter):
    respx_mock.post(oauth_provider.token_endpoint).mock(
        return_value=httpx.Response(
            400,
            json={"error": "invalid_grant", "error_description": "Token is not active"},
        )
    )

    with pytest.raises(RefreshError) as exc_info:
        await oauth_provider.refresh("old-refresh")

    assert exc_info.value.error == "token_refresh_failed"
    assert exc_info.value.status == 400
    assert exc_info.value.status_code == 401
    assert exc_info.value.user_message == (
        "Your session has expired. Please log in again."
    )


async def test_refresh_timeout(oauth_provider: BexioProvider, respx_mock: MockRouter):
    respx_mock.post(oauth_provider.token_endpoint).mock(
        side_effect=httpx.ReadTimeout
    )

    with pytest.raises(NetworkError):
        await oauth_provider.refresh("old-refresh")
