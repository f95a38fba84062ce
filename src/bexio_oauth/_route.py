import json
from collections.abc import Awaitable, Callable
from typing import Any

from cross_web import AsyncHTTPRequest, Response

from ._context import Context
from .exceptions import InvalidRequestError

Handler = Callable[[AsyncHTTPRequest, Context], Awaitable[Response]]


class Route:
    """A framework independent endpoint, mounted by AuthRouter."""

    def __init__(
        self,
        path: str,
        methods: list[str],
        handler: Handler,
        operation_id: str | None = None,
        summary: str | None = None,
    ):
        self.path = path
        self.methods = methods
        self.handler = handler
        self.operation_id = operation_id
        self.summary = summary

    def to_fastapi_endpoint(self, context: Context) -> Callable[..., Any]:
        from fastapi import Request as FastAPIRequest
        from fastapi import Response as FastAPIResponse

        async def endpoint(request: FastAPIRequest) -> FastAPIResponse:
            response = await self.handler(
                AsyncHTTPRequest.from_fastapi(request), context
            )

            return response.to_fastapi()

        return endpoint


async def read_json_body(request: AsyncHTTPRequest) -> dict[str, Any]:
    """Return the JSON object sent as request body, ``{}`` when there is none.

    Raises InvalidRequestError for anything else.
    """
    body = await request.get_body()

    if not body:
        return {}

    try:
        data = json.loads(body)
    except ValueError as e:
        raise InvalidRequestError("Request body is not valid JSON") from e

    if not isinstance(data, dict):
        raise InvalidRequestError("Request body must be a JSON object")

    return data
