import base64
import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from .exceptions import BexioAuthException, DecodeError
from .models.credentials import UNKNOWN_COMPANY_ID, UNKNOWN_USER_EMAIL, Identity
from .models.oauth_token_response import TokenResponse

logger = logging.getLogger(__name__)

UserInfoFetcher = Callable[[str], Awaitable[dict[str, Any]]]

COMPANY_ID_CLAIMS = ("company_id", "companyId", "user_id")
ACCESS_TOKEN_EMAIL_CLAIMS = ("email", "login_id")


def decode_jwt_payload(token: str) -> dict[str, Any]:
    """Read the claims of a JWT without verifying its signature.

    Only use this on tokens received directly from the provider's token
    endpoint.
    """
    parts = token.split(".")

    if len(parts) != 3:
        raise DecodeError("Token is not a JWT")

    payload = parts[1]
    payload += "=" * (-len(payload) % 4)

    try:
        claims = json.loads(base64.urlsafe_b64decode(payload))
    except ValueError as e:
        raise DecodeError("Token payload is not valid JSON") from e

    if not isinstance(claims, dict):
        raise DecodeError("Token payload is not a JSON object")

    return claims


def _first_claim(claims: dict[str, Any], names: tuple[str, ...]) -> str | None:
    for name in names:
        value = claims.get(name)

        if value not in (None, ""):
            return str(value)

    return None


def _claims_or_empty(token: str | None, name: str) -> dict[str, Any]:
    if not token:
        return {}

    try:
        return decode_jwt_payload(token)
    except DecodeError as e:
        logger.warning(f"Could not decode {name}: {e}")
        return {}


async def extract_identity(
    token_response: TokenResponse,
    fetch_user_info: UserInfoFetcher | None = None,
) -> Identity:
    """Derive company id and email from a successful token response.

    Never raises: anything that cannot be determined is reported with the
    ``unknown`` / ``OAuth User`` placeholders.
    """
    id_claims = _claims_or_empty(token_response.id_token, "id token")
    access_claims = _claims_or_empty(token_response.access_token, "access token")

    company_id = _first_claim(access_claims, COMPANY_ID_CLAIMS)
    user_email = _first_claim(id_claims, ("email",)) or _first_claim(
        access_claims, ACCESS_TOKEN_EMAIL_CLAIMS
    )

    if (company_id is None or user_email is None) and fetch_user_info is not None:
        try:
            user_info = await fetch_user_info(token_response.access_token)
        except BexioAuthException as e:
            logger.warning(f"Could not fetch user info: {e}")
        else:
            company_id = company_id or _first_claim(
                user_info, ("company_id", "companyId")
            )
            user_email = user_email or _first_claim(user_info, ("email",))

    if company_id is None:
        logger.warning("No company id found in tokens, using placeholder")

    if user_email is None:
        logger.warning("No email found in tokens, using placeholder")

    return Identity(
        company_id=company_id or UNKNOWN_COMPANY_ID,
        user_email=user_email or UNKNOWN_USER_EMAIL,
    )
