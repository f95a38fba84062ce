"""Packing of auxiliary flow data into the OAuth ``state`` parameter.

The packed value travels through the provider and comes back verbatim on
the callback. Only the nonce is a security token; the remaining fields are
routing hints.
"""

import base64
import logging

from pydantic import BaseModel, ConfigDict, Field

from ..exceptions import StateDecodeError

logger = logging.getLogger(__name__)


class PackedState(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    nonce: str = Field(alias="s")
    code_verifier: str | None = Field(default=None, alias="cv")
    return_url: str | None = Field(default=None, alias="ru")
    session_id: str | None = Field(default=None, alias="sid")
    platform: str | None = None

    # Set when the value was not produced by pack_state
    is_legacy: bool = Field(default=False, exclude=True)


def _b64decode(value: str) -> bytes:
    normalized = value.replace("+", "-").replace("/", "_").rstrip("=")
    padded = normalized + "=" * (-len(normalized) % 4)

    return base64.urlsafe_b64decode(padded)


def pack_state(state: PackedState) -> str:
    raw = state.model_dump_json(by_alias=True, exclude_none=True)

    return base64.urlsafe_b64encode(raw.encode("utf-8")).rstrip(b"=").decode("ascii")


def unpack_state(value: str, strict: bool = False) -> PackedState:
    """Decode a ``state`` value produced by :func:`pack_state`.

    Foreign or legacy values are returned as a raw nonce without auxiliary
    fields, unless ``strict`` is set, in which case ``StateDecodeError`` is
    raised.
    """
    try:
        return PackedState.model_validate_json(_b64decode(value))
    except ValueError as e:
        # binascii.Error and pydantic's ValidationError are both ValueErrors
        if strict:
            raise StateDecodeError("State is not a packed flow state") from e

        logger.debug("State is not a packed flow state, treating it as raw")

        return PackedState(nonce=value, is_legacy=True)
