import datetime

import pytest
import time_machine
from cross_web import AsyncHTTPRequest, TestingRequestAdapter
from inline_snapshot import snapshot

from bexio_oauth._bridge import SessionBridge
from bexio_oauth._context import Context
from bexio_oauth._sessions import SessionManager
from bexio_oauth.models.credentials import Credentials

pytestmark = pytest.mark.asyncio

SESSIONS_URL = "https://auth.example.com/api/bexio-oauth/sessions"

NOW = datetime.datetime(2025, 3, 1, 9, 0, tzinfo=datetime.timezone.utc)


@pytest.fixture
def session_manager() -> SessionManager:
    return SessionManager()


def session_request(method: str, session_id: str) -> AsyncHTTPRequest:
    return AsyncHTTPRequest(
        TestingRequestAdapter(method=method, url=f"{SESSIONS_URL}/{session_id}")
    )


async def test_create_session(
    session_manager: SessionManager, context: Context, session_bridge: SessionBridge
):
    response = await session_manager.create_session(
        AsyncHTTPRequest(
            TestingRequestAdapter(
                method="POST", url=SESSIONS_URL, json={"platform": "ios"}
            )
        ),
        context,
    )

    assert response.status_code == 200

    body = response.json()

    assert body["status"] == "pending"
    assert (await session_bridge.get(body["sessionId"])).platform == "ios"


async def test_create_session_rejects_invalid_body(
    session_manager: SessionManager, context: Context
):
    response = await session_manager.create_session(
        AsyncHTTPRequest(
            TestingRequestAdapter(method="POST", url=SESSIONS_URL, json={"platform": 1})
        ),
        context,
    )

    assert response.status_code == 400
    assert response.json()["error"] == "invalid_request"


@time_machine.travel(NOW, tick=False)
async def test_get_pending_session(
    session_manager: SessionManager, context: Context, session_bridge: SessionBridge
):
    await session_bridge.create("session-1", platform="android")

    response = await session_manager.get_session(
        session_request("GET", "session-1"), context
    )

    assert response.status_code == 200
    assert response.json() == snapshot(
        {
            "sessionId": "session-1",
            "status": "pending",
            "platform": "android",
            "createdAt": "2025-03-01T09:00:00Z",
        }
    )


async def test_get_completed_session(
    session_manager: SessionManager, context: Context, session_bridge: SessionBridge
):
    await session_bridge.create("session-1")
    await session_bridge.complete(
        "session-1",
        Credentials(
            access_token="access",
            refresh_token="refresh",
            expires_at=1740823200000,
            company_id="company-1",
            user_email="user@example.com",
        ),
    )

    response = await session_manager.get_session(
        session_request("GET", "session-1"), context
    )

    body = response.json()

    assert body["status"] == "completed"
    assert body["tokens"] == {
        "accessToken": "access",
        "refreshToken": "refresh",
        "tokenType": "Bearer",
        "expiresAt": 1740823200000,
        "companyId": "company-1",
        "userEmail": "user@example.com",
    }


async def test_get_failed_session(
    session_manager: SessionManager, context: Context, session_bridge: SessionBridge
):
    await session_bridge.create("session-1")
    await session_bridge.fail("session-1", "token_exchange_failed", "Rejected")

    response = await session_manager.get_session(
        session_request("GET", "session-1"), context
    )

    body = response.json()

    assert body["status"] == "failed"
    assert body["error"] == "token_exchange_failed"
    assert body["errorDescription"] == "Rejected"
    assert "tokens" not in body


async def test_get_expired_session(
    session_manager: SessionManager, context: Context, session_bridge: SessionBridge
):
    with time_machine.travel(NOW, tick=False) as traveller:
        await session_bridge.create("session-1")

        traveller.shift(datetime.timedelta(minutes=11))

        response = await session_manager.get_session(
            session_request("GET", "session-1"), context
        )

    assert response.status_code == 404
    assert response.json() == snapshot(
        {"sessionId": "session-1", "status": "expired", "error": "session_expired"}
    )


async def test_get_missing_session(session_manager: SessionManager, context: Context):
    response = await session_manager.get_session(
        session_request("GET", "missing"), context
    )

    assert response.status_code == 404
    assert response.json() == snapshot({"error": "not_found"})


async def test_delete_session_is_idempotent(
    session_manager: SessionManager, context: Context, session_bridge: SessionBridge
):
    await session_bridge.create("session-1")

    response = await session_manager.delete_session(
        session_request("DELETE", "session-1"), context
    )

    assert response.status_code == 200
    assert response.json() == {"sessionId": "session-1", "deleted": True}

    response = await session_manager.delete_session(
        session_request("DELETE", "session-1"), context
    )

    assert response.status_code == 200
    assert response.json() == {"sessionId": "session-1", "deleted": False}
