"""
HLS manifest rewriting.

Every URI-bearing line of a playlist is pointed back at the proxy so the
player never issues a cross-origin request for a child resource:

    #EXTM3U                              ->  #EXTM3U
    #EXT-X-KEY:METHOD=AES-128,URI="k"    ->  #EXT-X-KEY:METHOD=AES-128,URI="<proxy>?url=<abs k>"
    #EXTINF:6.0,                         ->  #EXTINF:6.0,
    seg1.ts                              ->  <proxy>?url=<abs seg1.ts>

The rewrite is line-preserving: the output has exactly as many lines as the
input, and blank and comment lines are copied byte for byte.
"""

import logging
import re

import httpx
from fastapi.responses import Response

from hls_proxy.models import (
    Blank,
    Comment,
    KeyDirective,
    ManifestLine,
    ProxyRequest,
    ResourceReference,
    UpstreamResponse,
)
from hls_proxy.proxy.responses import MANIFEST_MEDIA_TYPE, with_cors
from hls_proxy.proxy.upstream import UpstreamFetcher
from hls_proxy.proxy.url_resolver import absolutize, to_proxy_url
from hls_proxy.utils import redact_url

logger = logging.getLogger("uvicorn.error")

MANIFEST_URL_PATTERN = re.compile(r"\.m3u8(\?|$)", re.IGNORECASE)
KEY_DIRECTIVE_TAG = "#EXT-X-KEY:"
KEY_URI_PATTERN = re.compile(r'URI="([^"]+)"', re.IGNORECASE)
LINE_BREAK_PATTERN = re.compile(r"\r?\n")

MANIFEST_CONTENT_TYPES = {
    "application/vnd.apple.mpegurl",
    "application/x-mpegurl",
    "audio/mpegurl",
    "audio/x-mpegurl",
}

# Keeps undecodable bytes intact through decode/encode
TEXT_ERRORS = "surrogateescape"


def is_manifest_url(url: str) -> bool:
    return MANIFEST_URL_PATTERN.search(url) is not None


def is_manifest_content_type(content_type: str) -> bool:
    return (content_type or "").split(";")[0].strip().lower() in MANIFEST_CONTENT_TYPES


def classify_line(line: str) -> ManifestLine:
    stripped = line.strip().lstrip("\ufeff")
    if not stripped:
        return Blank(line)
    if stripped[: len(KEY_DIRECTIVE_TAG)].upper() == KEY_DIRECTIVE_TAG:
        match = KEY_URI_PATTERN.search(line)
        if match:
            return KeyDirective(
                prefix=line[: match.start(1)],
                key_uri=match.group(1),
                suffix=line[match.end(1) :],
            )
    if stripped.startswith("#"):
        return Comment(line)
    return ResourceReference(stripped)


def rewrite_line(line: ManifestLine, base_url: str, proxy_base: str) -> str:
    if isinstance(line, KeyDirective):
        proxied = to_proxy_url(absolutize(line.key_uri, base_url), proxy_base)
        return f"{line.prefix}{proxied}{line.suffix}"
    if isinstance(line, ResourceReference):
        return to_proxy_url(absolutize(line.uri, base_url), proxy_base)
    return line.text


def rewrite_manifest(text: str, base_url: str, proxy_base: str) -> str:
    """Rewrite every resource reference in ``text`` (fetched from ``base_url``) through the proxy."""
    return "\n".join(
        rewrite_line(classify_line(line), base_url, proxy_base)
        for line in LINE_BREAK_PATTERN.split(text)
    )


def build_manifest_response(
    upstream: UpstreamResponse, proxy_request: ProxyRequest
) -> Response:
    """
    Turn a buffered upstream manifest into the outbound response.

    Error statuses from the origin are relayed with their own body untouched;
    only successful playlists are rewritten.
    """
    headers = {}
    if "cache-control" in upstream.headers:
        headers["Cache-Control"] = upstream.headers["cache-control"]

    if not 200 <= upstream.status < 300:
        logger.warning(
            f"[Manifest] Upstream answered {upstream.status} for "
            f"{redact_url(proxy_request.target_url)}, relaying as-is"
        )
        return Response(
            content=upstream.body,
            status_code=upstream.status,
            headers=with_cors(headers),
            media_type=upstream.content_type or "text/plain; charset=utf-8",
        )

    # Relative references resolve against where the manifest was finally served from
    base_url = upstream.url or proxy_request.target_url
    text = upstream.body.decode("utf-8", TEXT_ERRORS)
    rewritten = rewrite_manifest(text, base_url, proxy_request.proxy_base)
    logger.debug(f"[Manifest] Rewrote manifest from {redact_url(base_url)}")
    return Response(
        content=rewritten.encode("utf-8", TEXT_ERRORS),
        status_code=upstream.status,
        headers=with_cors(headers),
        media_type=MANIFEST_MEDIA_TYPE,
    )


async def serve_manifest(
    proxy_request: ProxyRequest, client: httpx.AsyncClient
) -> Response:
    """Fetch the manifest in full, rewrite it and close the outbound client."""
    try:
        upstream = await UpstreamFetcher(client).fetch(proxy_request.target_url)
    finally:
        await client.aclose()
    return build_manifest_response(upstream, proxy_request)
