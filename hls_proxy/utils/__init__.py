from urllib.parse import urlsplit, urlunsplit


def redact_url(url: str) -> str:
    """Drop the query string from a URL so signed tokens never reach the logs."""
    if not url:
        return url
    try:
        parts = urlsplit(url)
    except ValueError:
        return "<unparsable url>"
    if not parts.query:
        return url
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "***", ""))
