from urllib.parse import parse_qsl, urlencode, urlparse, urlsplit, urlunsplit


def add_query_params(url: str, query_params: dict[str, str]) -> str:
    """Append query parameters to a URL, keeping the ones already present.

    Works for custom schemes (``myapp://oauth/callback``) as well as http(s).
    """
    parts = urlsplit(url)
    query = parse_qsl(parts.query, keep_blank_values=True)
    query.extend(query_params.items())

    return urlunsplit(parts._replace(query=urlencode(query)))


def last_path_segment(url: str) -> str:
    return urlparse(url).path.rstrip("/").split("/")[-1]


def origin_of(url: str) -> str:
    parsed = urlparse(url)

    return f"{parsed.scheme}://{parsed.netloc}"
