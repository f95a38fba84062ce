import base64
import hashlib
import logging
import os
import random
import string
from typing import Literal

logger = logging.getLogger(__name__)

CodeChallengeMethod = Literal["S256", "plain"]

VERIFIER_ALPHABET = string.ascii_letters + string.digits + "-._~"
MIN_VERIFIER_LENGTH = 43
MAX_VERIFIER_LENGTH = 128


def _random_source() -> random.Random:
    try:
        os.urandom(1)
    except NotImplementedError:
        logger.warning(
            "No secure random source available, "
            "PKCE code verifier is generated with reduced security"
        )
        return random.Random()

    return random.SystemRandom()


def generate_code_verifier(length: int = 64) -> str:
    """Generate a PKCE code verifier (43-128 unreserved characters)."""
    if not MIN_VERIFIER_LENGTH <= length <= MAX_VERIFIER_LENGTH:
        raise ValueError(
            f"Code verifier length must be between {MIN_VERIFIER_LENGTH} "
            f"and {MAX_VERIFIER_LENGTH}"
        )

    rng = _random_source()

    return "".join(rng.choice(VERIFIER_ALPHABET) for _ in range(length))


def calculate_s256_challenge(verifier: str) -> str:
    sha256_digest = hashlib.sha256(verifier.encode("utf-8")).digest()

    challenge = base64.urlsafe_b64encode(sha256_digest).rstrip(b"=").decode("ascii")

    return challenge


def create_code_challenge(
    verifier: str, method: CodeChallengeMethod = "S256"
) -> str:
    # "plain" must be negotiated explicitly, S256 never degrades to it
    if method == "S256":
        return calculate_s256_challenge(verifier)

    if method == "plain":
        return verifier

    raise ValueError(f"Unsupported code challenge method: {method}")
