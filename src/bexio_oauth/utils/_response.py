import json
from typing import Self

from cross_web import Response as DuckResponse

from ..exceptions import BexioAuthException
from ._url import add_query_params

NO_STORE_HEADERS = {
    "Cache-Control": "no-store",
    "Pragma": "no-cache",
}


class Response(DuckResponse):
    @classmethod
    def error(
        cls,
        error: str,
        error_description: str | None = None,
        error_uri: str | None = None,
        status_code: int = 400,
    ) -> Self:
        body = {"error": error}

        if error_description:
            body["error_description"] = error_description

        if error_uri:
            body["error_uri"] = error_uri

        return cls(
            status_code=status_code,
            body=json.dumps(body),
            headers={"Content-Type": "application/json"},
        )

    @classmethod
    def json_body(cls, data: dict, status_code: int = 200) -> Self:
        return cls(
            status_code=status_code,
            body=json.dumps(data),
            headers={"Content-Type": "application/json", **NO_STORE_HEADERS},
        )

    @classmethod
    def html(cls, body: str, status_code: int = 200) -> Self:
        return cls(
            status_code=status_code,
            body=body,
            headers={"Content-Type": "text/html; charset=utf-8", **NO_STORE_HEADERS},
        )

    @classmethod
    def redirect_to(
        cls, url: str, query_params: dict[str, str] | None = None
    ) -> Self:
        location = add_query_params(url, query_params) if query_params else url

        return cls(
            status_code=302,
            body="",
            headers={"Location": location, **NO_STORE_HEADERS},
        )

    @classmethod
    def from_exception(cls, exception: BexioAuthException) -> Self:
        return cls.error(
            exception.error,
            error_description=exception.error_description,
            status_code=exception.status_code,
        )
