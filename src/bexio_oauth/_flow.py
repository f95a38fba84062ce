"""Authorization Code + PKCE flow against the provider.

One controller serves every platform; what differs per platform is where
the provider redirects to (see ``_platform``) and how the outcome reaches
the application (see ``_completion``).
"""

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import cast

from cross_web import AsyncHTTPRequest
from pydantic import ValidationError

from ._completion import (
    CompletionHandler,
    PopupCompletion,
    RedirectCompletion,
    ServerPollCompletion,
    error_page,
)
from ._context import Context
from ._identity import extract_identity
from ._platform import (
    CompletionStrategy,
    ExecutionEnvironment,
    Platform,
    resolve_platform,
    validate_resolution,
)
from ._route import Route, read_json_body
from .exceptions import (
    BexioAuthException,
    CsrfMismatchError,
    InvalidRequestError,
    ProviderDeniedError,
    SessionConflictError,
    SessionExpiredError,
    SessionNotFoundError,
)
from .models.credentials import Credentials
from .models.flow_state import FlowState
from .models.requests import (
    AuthorizeRequest,
    AuthorizeResponse,
    ExchangeRequest,
    RefreshRequest,
)
from .providers.oauth import OAuth2Provider
from .utils._pkce import create_code_challenge, generate_code_verifier
from .utils._response import Response
from .utils._state import PackedState, pack_state, unpack_state

logger = logging.getLogger(__name__)


@dataclass
class AuthorizationStart:
    auth_url: str
    state: str
    nonce: str
    completion_strategy: CompletionStrategy
    session_id: str | None = None


def default_completions() -> dict[CompletionStrategy, CompletionHandler]:
    redirect = RedirectCompletion()

    return {
        CompletionStrategy.POPUP: PopupCompletion(),
        CompletionStrategy.FULL_REDIRECT: redirect,
        CompletionStrategy.DEEP_LINK: redirect,
        CompletionStrategy.SERVER_POLL: ServerPollCompletion(),
    }


class FlowController:
    def __init__(
        self,
        provider: OAuth2Provider,
        completions: dict[CompletionStrategy, CompletionHandler] | None = None,
    ):
        self.provider = provider
        self.completions = completions or default_completions()

        self._validated: set[CompletionStrategy] = set()

    def _flow_key(self, nonce: str) -> str:
        return f"oauth:flow:{nonce}"

    async def _prepare_session(self, context: Context, session_id: str) -> None:
        try:
            session = await context.session_bridge.get(session_id)
        except SessionExpiredError:
            raise
        except SessionNotFoundError:
            await context.session_bridge.create(session_id)
            return

        if session.is_terminal:
            raise SessionConflictError(
                f"Session {session_id} is already {session.status}"
            )

    async def start(
        self,
        context: Context,
        environment: ExecutionEnvironment,
        return_url: str | None = None,
        scopes: list[str] | None = None,
        session_id: str | None = None,
        login_hint: str | None = None,
    ) -> AuthorizationStart:
        resolution = resolve_platform(environment, context.config)
        strategy = resolution.completion_strategy

        if strategy not in self._validated:
            validate_resolution(resolution, context.config)
            self._validated.add(strategy)

        if return_url is None:
            return_url = resolution.callback_uri
        elif not context.is_valid_return_url(return_url):
            logger.error("Invalid return URL")
            raise InvalidRequestError(
                "Invalid return URL", error="invalid_redirect_uri"
            )

        nonce = secrets.token_urlsafe(32)
        code_verifier = generate_code_verifier()
        code_challenge = create_code_challenge(code_verifier, "S256")

        if strategy == CompletionStrategy.SERVER_POLL:
            session_id = session_id or nonce
            await self._prepare_session(context, session_id)
        else:
            session_id = None

        flow = FlowState(
            nonce=nonce,
            code_verifier=code_verifier,
            redirect_uri=resolution.redirect_uri,
            return_url=return_url,
            platform=environment.platform,
            completion_strategy=strategy.value,
            session_id=session_id,
            expires_at=datetime.now(tz=timezone.utc)
            + timedelta(seconds=context.config.flow_ttl),
        )

        # Kept past expires_at so a late callback is reported as expired
        context.secondary_storage.set(
            self._flow_key(nonce),
            flow.model_dump_json(),
            ttl=context.config.flow_ttl * 2,
        )

        state = pack_state(
            PackedState(
                nonce=nonce,
                session_id=session_id,
                platform=environment.platform,
            )
        )

        auth_url = self.provider.build_authorization_url(
            state=state,
            redirect_uri=resolution.redirect_uri,
            scopes=scopes,
            code_challenge=code_challenge,
            code_challenge_method="S256",
            login_hint=login_hint,
        )

        logger.info(f"Started {strategy.value} flow for {environment.platform}")

        return AuthorizationStart(
            auth_url=auth_url,
            state=state,
            nonce=nonce,
            completion_strategy=strategy,
            session_id=session_id,
        )

    def _pop_flow(self, context: Context, state: str | None) -> FlowState:
        if not state:
            raise CsrfMismatchError("No state found in request")

        packed = unpack_state(state)

        raw_flow = context.secondary_storage.pop(self._flow_key(packed.nonce))

        if raw_flow is None:
            logger.error("No flow found for state")
            raise CsrfMismatchError("Unknown or already used state")

        try:
            flow = FlowState.model_validate_json(raw_flow)
        except ValidationError as e:
            logger.error("Invalid flow data", exc_info=e)
            raise CsrfMismatchError("Invalid flow data") from e

        if not secrets.compare_digest(flow.nonce, packed.nonce):
            raise CsrfMismatchError("State does not match")

        if packed.session_id is not None and packed.session_id != flow.session_id:
            logger.error("Session id in state does not match the flow")
            raise CsrfMismatchError("State does not match")

        return flow

    def _ensure_not_expired(self, flow: FlowState) -> None:
        if flow.is_expired:
            raise SessionExpiredError("Authorization request expired")

    def consume_flow(self, context: Context, state: str | None) -> FlowState:
        """Look up and remove the flow a callback belongs to.

        A flow can be consumed once, so an authorization code is never
        exchanged twice.
        """
        flow = self._pop_flow(context, state)
        self._ensure_not_expired(flow)

        return flow

    async def finish(
        self,
        flow: FlowState,
        code: str | None,
        error: str | None = None,
        error_description: str | None = None,
    ) -> Credentials:
        if error:
            logger.info(f"Provider returned error: {error}")
            raise ProviderDeniedError(error_description, error=error)

        if not code:
            raise InvalidRequestError("No authorization code received in callback")

        issued_at = datetime.now(tz=timezone.utc)

        token_response = await self.provider.exchange_code(
            code, flow.redirect_uri, flow.code_verifier
        )

        identity = await extract_identity(
            token_response, self.provider.fetch_user_info
        )

        return Credentials.from_token_response(token_response, identity, issued_at)

    async def _start_from_request(
        self, data: dict, context: Context
    ) -> AuthorizationStart:
        try:
            authorize_request = AuthorizeRequest.model_validate(data)
        except ValidationError as e:
            raise InvalidRequestError("Invalid authorization request") from e

        environment = ExecutionEnvironment(
            platform=cast(Platform, authorize_request.platform),
            popup_blocked=authorize_request.popup_blocked,
        )

        return await self.start(
            context,
            environment,
            return_url=authorize_request.return_url,
            scopes=authorize_request.scopes,
            session_id=authorize_request.session_id,
            login_hint=authorize_request.login_hint,
        )

    async def authorize(self, request: AsyncHTTPRequest, context: Context) -> Response:
        """Redirect the browser to the provider's authorization page."""
        query = request.query_params
        data: dict = {
            key: value
            for key, value in (
                ("platform", query.get("platform")),
                ("popup_blocked", query.get("popup_blocked")),
                ("return_url", query.get("return_url")),
                ("session_id", query.get("session_id")),
                ("login_hint", query.get("login_hint")),
            )
            if value is not None
        }

        if scope := query.get("scope"):
            data["scopes"] = scope.split()

        try:
            start = await self._start_from_request(data, context)
        except BexioAuthException as e:
            return Response.from_exception(e)

        return Response.redirect_to(start.auth_url)

    async def authorize_json(
        self, request: AsyncHTTPRequest, context: Context
    ) -> Response:
        """Start a flow and hand the authorization URL to the caller."""
        try:
            start = await self._start_from_request(
                await read_json_body(request), context
            )
        except BexioAuthException as e:
            return Response.from_exception(e)

        body = AuthorizeResponse(
            auth_url=start.auth_url,
            state=start.state,
            session_id=start.session_id,
            completion_strategy=start.completion_strategy.value,
        )

        return Response.json_body(body.model_dump(mode="json", by_alias=True))

    async def callback(self, request: AsyncHTTPRequest, context: Context) -> Response:
        """Receives the provider redirect, exchanges the code and completes
        the flow the way its platform needs."""
        query = request.query_params

        try:
            flow = self._pop_flow(context, query.get("state"))
        except BexioAuthException as e:
            logger.warning(f"Callback rejected: {e.error}")
            return error_page(e)

        completion = self.completions[CompletionStrategy(flow.completion_strategy)]

        try:
            self._ensure_not_expired(flow)
            credentials = await self.finish(
                flow,
                code=query.get("code"),
                error=query.get("error"),
                error_description=query.get("error_description"),
            )
        except BexioAuthException as e:
            logger.warning(f"Flow failed: {e.error}")
            return await completion.fail(flow, e, context)

        return await completion.succeed(flow, credentials, context)

    async def exchange(self, request: AsyncHTTPRequest, context: Context) -> Response:
        """Finish a deep-link flow with the code and state the app received."""
        try:
            exchange_request = ExchangeRequest.model_validate(
                await read_json_body(request)
            )
        except ValidationError:
            return Response.error("invalid_request", "Invalid exchange request")
        except BexioAuthException as e:
            return Response.from_exception(e)

        try:
            flow = self.consume_flow(context, exchange_request.state)
            credentials = await self.finish(
                flow,
                code=exchange_request.code,
                error=exchange_request.error,
                error_description=exchange_request.error_description,
            )
        except BexioAuthException as e:
            return Response.from_exception(e)

        return Response.json_body(credentials.model_dump(mode="json", by_alias=True))

    async def refresh(self, request: AsyncHTTPRequest, context: Context) -> Response:
        try:
            refresh_request = RefreshRequest.model_validate(
                await read_json_body(request)
            )
        except ValidationError:
            return Response.error("invalid_request", "No refresh token provided")
        except BexioAuthException as e:
            return Response.from_exception(e)

        try:
            issued_at = datetime.now(tz=timezone.utc)
            token_response = await self.provider.refresh(refresh_request.refresh_token)
            identity = await extract_identity(token_response)
        except BexioAuthException as e:
            return Response.from_exception(e)

        credentials = Credentials.from_token_response(
            token_response, identity, issued_at
        )

        return Response.json_body(credentials.model_dump(mode="json", by_alias=True))

    @property
    def routes(self) -> list[Route]:
        provider_id = self.provider.id

        return [
            Route(
                path=f"/{provider_id}/authorize",
                methods=["GET"],
                handler=self.authorize,
                operation_id=f"{provider_id}_authorize",
                summary="Redirect to the provider's authorization page",
            ),
            Route(
                path=f"/{provider_id}/authorize",
                methods=["POST"],
                handler=self.authorize_json,
                operation_id=f"{provider_id}_authorize_json",
                summary="Start an authorization flow",
            ),
            Route(
                path=f"/{provider_id}/callback",
                methods=["GET"],
                handler=self.callback,
                operation_id=f"{provider_id}_callback",
                summary="Provider redirect target",
            ),
            Route(
                path=f"/{provider_id}/exchange",
                methods=["POST"],
                handler=self.exchange,
                operation_id=f"{provider_id}_exchange",
                summary="Exchange a code received through a deep link",
            ),
            Route(
                path=f"/{provider_id}/refresh",
                methods=["POST"],
                handler=self.refresh,
                operation_id=f"{provider_id}_refresh",
                summary="Refresh an access token",
            ),
        ]
