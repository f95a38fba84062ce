import pytest

from bexio_oauth.providers.bexio import BexioProvider

pytestmark = pytest.mark.asyncio


@pytest.fixture
def oauth_provider() -> BexioProvider:
    return BexioProvider(
        client_id="test_client_id", client_secret="test_client_secret", timeout=5.0
    )
