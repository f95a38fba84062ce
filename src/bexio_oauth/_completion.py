"""Hands the outcome of a finished flow back to the application that
started it, one handler per completion strategy."""

import html
import json
import logging
from string import Template

from typing_extensions import Protocol

from ._context import Context
from .exceptions import (
    BexioAuthException,
    ProviderDeniedError,
    SessionConflictError,
    SessionNotFoundError,
)
from .models.completion import OAuthErrorPayload, OAuthSuccessPayload
from .models.credentials import Credentials
from .models.flow_state import FlowState
from .utils._response import Response
from .utils._url import add_query_params, origin_of

logger = logging.getLogger(__name__)


def error_payload(error: BexioAuthException) -> OAuthErrorPayload:
    return OAuthErrorPayload(
        error=error.error,
        description=error.error_description or error.user_message,
    )


def _script_json(value: object) -> str:
    # Keeps "</script>" inside string values from closing the tag
    return json.dumps(value).replace("<", "\\u003c")


PAGE_TEMPLATE = Template("""<!DOCTYPE html>
<html lang="en">
  <head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1">
    <title>$title</title>
  </head>
  <body>
    <p id="message">$message</p>
    $extra
  </body>
</html>
""")

POPUP_SCRIPT = Template("""<script>
(function () {
  var payload = $payload;
  var targetOrigin = $target_origin;
  var maxAttempts = $max_attempts;
  var attempts = 0;
  var timer = null;

  try {
    window.name = "oauth:" + JSON.stringify(payload);
  } catch (e) {}

  function done() {
    clearInterval(timer);
    window.close();
  }

  window.addEventListener("message", function (event) {
    if (event.origin === targetOrigin && event.data && event.data.type === "OAUTH_ACK") {
      done();
    }
  });

  function deliver() {
    attempts += 1;

    if (window.opener && !window.opener.closed) {
      window.opener.postMessage(payload, targetOrigin);
    }

    if (attempts >= maxAttempts) {
      done();
    }
  }

  timer = setInterval(deliver, $interval);
  deliver();
})();
</script>""")

DEEP_LINK_SCRIPT = Template("""<p><a id="open-app" href="$href">Return to the app</a></p>
<script>
  window.location.href = $location;
</script>""")

CLOSE_SCRIPT = Template("""<script>
  setTimeout(function () { window.close(); }, $delay);
</script>""")


def render_page(title: str, message: str, extra: str = "") -> str:
    return PAGE_TEMPLATE.substitute(
        title=html.escape(title),
        message=html.escape(message),
        extra=extra,
    )


def error_page(error: BexioAuthException, close_after_ms: int = 3000) -> Response:
    """Page for callbacks that can't be tied to a flow.

    There is no opener origin or return URL to report to, so the page only
    shows the message and closes itself.
    """
    extra = CLOSE_SCRIPT.substitute(delay=close_after_ms)

    return Response.html(
        render_page("Bexio sign-in", error.user_message, extra),
        status_code=error.status_code,
    )


class CompletionHandler(Protocol):
    async def succeed(
        self, flow: FlowState, credentials: Credentials, context: Context
    ) -> Response: ...

    async def fail(
        self, flow: FlowState, error: BexioAuthException, context: Context
    ) -> Response: ...


class PopupCompletion:
    """Posts the result to the window that opened the popup.

    The payload is also left in ``window.name`` for openers that lost their
    reference to the popup.
    """

    def render(
        self,
        payload: OAuthSuccessPayload | OAuthErrorPayload,
        target_origin: str,
        context: Context,
        message: str,
    ) -> Response:
        script = POPUP_SCRIPT.substitute(
            payload=_script_json(payload.model_dump(mode="json", by_alias=True)),
            target_origin=_script_json(target_origin),
            max_attempts=context.config.popup_delivery_attempts,
            interval=context.config.popup_delivery_interval_ms,
        )

        return Response.html(render_page("Bexio sign-in", message, script))

    async def succeed(
        self, flow: FlowState, credentials: Credentials, context: Context
    ) -> Response:
        return self.render(
            OAuthSuccessPayload(credentials=credentials),
            origin_of(flow.return_url),
            context,
            "Signed in. You can close this window.",
        )

    async def fail(
        self, flow: FlowState, error: BexioAuthException, context: Context
    ) -> Response:
        return self.render(
            error_payload(error),
            origin_of(flow.return_url),
            context,
            error.user_message,
        )


class RedirectCompletion:
    """Sends the browser or the app to the return URL with the result in the
    query string. Used for full-page redirects and native deep links."""

    async def succeed(
        self, flow: FlowState, credentials: Credentials, context: Context
    ) -> Response:
        payload = OAuthSuccessPayload(credentials=credentials)

        return Response.redirect_to(flow.return_url, payload.to_query_params())

    async def fail(
        self, flow: FlowState, error: BexioAuthException, context: Context
    ) -> Response:
        return Response.redirect_to(
            flow.return_url, error_payload(error).to_query_params()
        )


class ServerPollCompletion:
    """Stores the result in the session bridge for the polling app, then
    sends the user back to the app."""

    def render(self, deep_link: str, message: str) -> Response:
        extra = DEEP_LINK_SCRIPT.substitute(
            href=html.escape(deep_link),
            location=_script_json(deep_link),
        )

        return Response.html(render_page("Bexio sign-in", message, extra))

    def _session_id(self, flow: FlowState) -> str:
        assert flow.session_id is not None, "server-poll flows always have a session"
        return flow.session_id

    async def succeed(
        self, flow: FlowState, credentials: Credentials, context: Context
    ) -> Response:
        session_id = self._session_id(flow)

        try:
            await context.session_bridge.complete(session_id, credentials)
        except SessionConflictError:
            logger.warning(f"Ignoring duplicate result for session {session_id}")
        except SessionNotFoundError as e:
            logger.error(f"Session {session_id} is gone, result dropped")

            return self.render(
                add_query_params(flow.return_url, error_payload(e).to_query_params()),
                e.user_message,
            )

        return self.render(
            add_query_params(flow.return_url, {"sessionId": session_id}),
            "Signed in. Return to the app to continue.",
        )

    async def fail(
        self, flow: FlowState, error: BexioAuthException, context: Context
    ) -> Response:
        session_id = self._session_id(flow)

        # A denied consent is reported to the app directly; the session stays
        # pending until the app cancels it or it expires
        if not isinstance(error, ProviderDeniedError):
            try:
                await context.session_bridge.fail(
                    session_id, error.error, error.error_description
                )
            except SessionConflictError:
                logger.warning(f"Ignoring duplicate result for session {session_id}")
            except SessionNotFoundError:
                logger.warning(f"Session {session_id} is gone, error not stored")

        query_params = {
            "sessionId": session_id,
            **error_payload(error).to_query_params(),
        }

        return self.render(
            add_query_params(flow.return_url, query_params),
            error.user_message,
        )
