import re
from typing import Dict

from fastapi.responses import PlainTextResponse

from hls_proxy.proxy.errors import ProxyError

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "*",
    "Access-Control-Allow-Methods": "GET, HEAD, OPTIONS",
    "Access-Control-Expose-Headers": (
        "Content-Type, Content-Length, Accept-Ranges, Content-Range, X-Proxy-Error"
    ),
}

# Upstream headers relayed on the passthrough path, in the order they are emitted
PASSTHROUGH_HEADERS = (
    "content-type",
    "accept-ranges",
    "content-range",
    "content-length",
    "cache-control",
)

MANIFEST_MEDIA_TYPE = "application/vnd.apple.mpegurl; charset=utf-8"
ERROR_HEADER_MAX_LENGTH = 220


def with_cors(headers: Dict[str, str] = None) -> Dict[str, str]:
    merged = dict(CORS_HEADERS)
    if headers:
        merged.update(headers)
    return merged


def error_header_value(message: str) -> str:
    """Single-line, ASCII-only, length-capped copy of a diagnostic for ``X-Proxy-Error``."""
    safe = re.sub(r"[\r\n]+", " ", message or "")
    safe = safe.encode("ascii", "replace").decode("ascii")
    return safe[:ERROR_HEADER_MAX_LENGTH]


def proxy_error_response(exc: ProxyError) -> PlainTextResponse:
    headers = {}
    header_value = error_header_value(exc.message)
    if header_value:
        headers["X-Proxy-Error"] = header_value
    return PlainTextResponse(
        exc.message,
        status_code=exc.status_code,
        headers=with_cors(headers),
    )
