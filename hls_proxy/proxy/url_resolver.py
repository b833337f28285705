"""
Pure URL helpers used while rewriting manifests.

Neither function performs I/O. ``absolutize`` deliberately does not normalize
``.``/``..`` segments: origins receive the reference exactly as the manifest
spelled it, joined onto the manifest's directory.
"""

from urllib.parse import quote, urlsplit

from hls_proxy.models import ParsedOrigin
from hls_proxy.proxy.validator import HTTP_URL_PATTERN


def base_directory(base_url: str) -> str:
    """Return ``base_url`` without its query and without anything after the final ``/``."""
    parts = urlsplit(base_url)
    without_query = parts._replace(query="", fragment="").geturl()
    if not parts.path:
        return without_query + "/"
    return without_query[: without_query.rfind("/") + 1]


def absolutize(reference: str, base_url: str) -> str:
    """Resolve a manifest reference against the URL of the manifest that contains it."""
    if HTTP_URL_PATTERN.match(reference):
        return reference

    origin = ParsedOrigin.from_url(base_url)
    if reference.startswith("//"):
        return f"{origin.scheme}:{reference}"
    if reference.startswith("/"):
        return origin.origin + reference
    return base_directory(base_url) + reference


def to_proxy_url(absolute_url: str, proxy_base: str) -> str:
    """
    Route an absolute upstream URL back through the proxy endpoint at ``proxy_base``.

    Callers must pass upstream URLs only; feeding an already proxied URL back
    in nests the proxy inside itself.
    """
    # Undecodable manifest bytes arrive as surrogates and go out as their original %XX
    encoded = quote(absolute_url, safe="", errors="surrogateescape")
    return f"{proxy_base}?url={encoded}"
