def is_same_host(host: str, pattern: str) -> bool:
    """Match a ``netloc`` against a trusted origin.

    ``*.example.com`` matches every subdomain of example.com, but not
    example.com itself. Host names are compared case-insensitively.
    """
    host = host.lower()
    pattern = pattern.lower()

    if pattern.startswith("*."):
        return host.endswith(pattern[1:])

    return host == pattern
