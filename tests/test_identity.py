import logging
from collections.abc import Callable
from typing import Any

import pytest

from bexio_oauth._identity import decode_jwt_payload, extract_identity
from bexio_oauth.exceptions import DecodeError, NetworkError
from bexio_oauth.models.credentials import Identity
from bexio_oauth.models.oauth_token_response import TokenResponse

pytestmark = pytest.mark.asyncio

MakeJWT = Callable[[dict[str, Any]], str]


def test_decodes_payload(make_jwt: MakeJWT):
    assert decode_jwt_payload(make_jwt({"company_id": "abc", "n": 1})) == {
        "company_id": "abc",
        "n": 1,
    }


@pytest.mark.parametrize(
    "token",
    [
        "not-a-jwt",
        "a.b",
        "a.b.c.d",
        "header.!!!.signature",
        "header.bm90IGpzb24.signature",
        "header.WzEsIDJd.signature",
    ],
)
def test_rejects_malformed_tokens(token: str):
    with pytest.raises(DecodeError):
        decode_jwt_payload(token)


async def test_reads_company_from_access_token_and_email_from_id_token(
    make_jwt: MakeJWT,
):
    token_response = TokenResponse(
        access_token=make_jwt({"company_id": "company-1", "email": "a@example.com"}),
        id_token=make_jwt({"email": "id@example.com"}),
    )

    assert await extract_identity(token_response) == Identity(
        company_id="company-1", user_email="id@example.com"
    )


@pytest.mark.parametrize(
    "claims, expected",
    [
        ({"companyId": "camel"}, "camel"),
        ({"user_id": 42}, "42"),
        ({"company_id": "first", "companyId": "second", "user_id": 3}, "first"),
    ],
)
async def test_company_id_claim_fallbacks(
    make_jwt: MakeJWT, claims: dict[str, Any], expected: str
):
    identity = await extract_identity(TokenResponse(access_token=make_jwt(claims)))

    assert identity.company_id == expected


async def test_email_falls_back_to_login_id(make_jwt: MakeJWT):
    identity = await extract_identity(
        TokenResponse(access_token=make_jwt({"login_id": "login@example.com"}))
    )

    assert identity.user_email == "login@example.com"


async def test_opaque_tokens_degrade_to_placeholders(
    caplog: pytest.LogCaptureFixture,
):
    caplog.set_level(logging.WARNING)

    identity = await extract_identity(TokenResponse(access_token="opaque-token"))

    assert identity == Identity(company_id="unknown", user_email="OAuth User")
    assert "Could not decode access token" in caplog.text


async def test_uses_user_info_for_missing_fields(make_jwt: MakeJWT):
    calls: list[str] = []

    async def fetch_user_info(access_token: str) -> dict[str, Any]:
        calls.append(access_token)
        return {"id": 1, "email": "me@example.com"}

    access_token = make_jwt({"company_id": "company-1"})

    identity = await extract_identity(
        TokenResponse(access_token=access_token), fetch_user_info
    )

    assert identity == Identity(company_id="company-1", user_email="me@example.com")
    assert calls == [access_token]


async def test_does_not_fetch_user_info_when_tokens_are_enough(make_jwt: MakeJWT):
    async def fetch_user_info(access_token: str) -> dict[str, Any]:
        raise AssertionError("should not be called")

    identity = await extract_identity(
        TokenResponse(
            access_token=make_jwt({"company_id": "c", "email": "e@example.com"})
        ),
        fetch_user_info,
    )

    assert identity == Identity(company_id="c", user_email="e@example.com")


async def test_user_info_failure_degrades_to_placeholders():
    async def fetch_user_info(access_token: str) -> dict[str, Any]:
        raise NetworkError("Failed to fetch user info")

    identity = await extract_identity(
        TokenResponse(access_token="opaque"), fetch_user_info
    )

    assert identity == Identity()
