"""Session bridge endpoints used by native apps on the server-relay path.

- POST /sessions - Create a pending session
- GET /sessions/{session_id} - Read the session status (polled)
- DELETE /sessions/{session_id} - Cancel or release a session
"""

import logging

from cross_web import AsyncHTTPRequest
from pydantic import ValidationError

from ._context import Context
from ._route import Route, read_json_body
from .exceptions import (
    BexioAuthException,
    SessionExpiredError,
    SessionNotFoundError,
)
from .models.requests import CreateSessionRequest
from .utils._response import Response
from .utils._url import last_path_segment

logger = logging.getLogger(__name__)


class SessionManager:
    async def create_session(
        self, request: AsyncHTTPRequest, context: Context
    ) -> Response:
        try:
            create_request = CreateSessionRequest.model_validate(
                await read_json_body(request)
            )
        except ValidationError:
            return Response.error("invalid_request", "Invalid session request")
        except BexioAuthException as e:
            return Response.from_exception(e)

        session = await context.session_bridge.create(platform=create_request.platform)

        return Response.json_body(
            {"sessionId": session.session_id, "status": session.status}
        )

    async def get_session(
        self, request: AsyncHTTPRequest, context: Context
    ) -> Response:
        # Path format: /sessions/{session_id}
        session_id = last_path_segment(str(request.url))

        try:
            session = await context.session_bridge.get(session_id)
        except SessionExpiredError as e:
            return Response.json_body(
                {
                    "sessionId": session_id,
                    "status": "expired",
                    "error": e.error,
                },
                status_code=404,
            )
        except SessionNotFoundError as e:
            return Response.json_body({"error": e.error}, status_code=404)

        return Response.json_body(
            session.model_dump(mode="json", by_alias=True, exclude_none=True)
        )

    async def delete_session(
        self, request: AsyncHTTPRequest, context: Context
    ) -> Response:
        session_id = last_path_segment(str(request.url))

        deleted = await context.session_bridge.delete(session_id)

        if deleted:
            logger.info(f"Session {session_id} deleted")

        return Response.json_body({"sessionId": session_id, "deleted": deleted})

    @property
    def routes(self) -> list[Route]:
        return [
            Route(
                path="/sessions",
                methods=["POST"],
                handler=self.create_session,
                operation_id="create_session",
                summary="Create a pending OAuth session",
            ),
            Route(
                path="/sessions/{session_id}",
                methods=["GET"],
                handler=self.get_session,
                operation_id="get_session",
                summary="Get the status of an OAuth session",
            ),
            Route(
                path="/sessions/{session_id}",
                methods=["DELETE"],
                handler=self.delete_session,
                operation_id="delete_session",
                summary="Delete an OAuth session",
            ),
        ]
