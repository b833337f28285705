"""
Streaming relay for everything that is not a manifest.

The outbound status and headers are only finalized once the first body chunk
has arrived (or the body turned out to be empty). Until then a failed transfer
can still be answered with a clean 502; afterwards the only option left is to
drop the connection.
"""

import logging
from typing import AsyncIterator

import httpx
from fastapi.responses import Response, StreamingResponse

from hls_proxy.models import ProxyRequest, UpstreamResponse
from hls_proxy.proxy.errors import ProxyError
from hls_proxy.proxy.manifest import build_manifest_response, is_manifest_content_type
from hls_proxy.proxy.responses import with_cors
from hls_proxy.proxy.upstream import RelayState, UpstreamFetcher
from hls_proxy.utils import redact_url
from hls_proxy.utils.exception_logging import log_exception_with_details
from hls_proxy.vars import DETECT_MANIFEST_CONTENT_TYPE

logger = logging.getLogger("uvicorn.error")


async def _close_upstream(response: httpx.Response, client: httpx.AsyncClient) -> None:
    if response is not None:
        await response.aclose()
    await client.aclose()


async def stream_passthrough(
    proxy_request: ProxyRequest,
    client: httpx.AsyncClient,
    detect_manifest: bool = DETECT_MANIFEST_CONTENT_TYPE,
) -> Response:
    """
    Relay the upstream response for ``proxy_request`` without buffering its body.

    Ownership of ``client`` passes to this function: it is closed here on
    failure, or by the returned response's body iterator once streaming ends
    (including when the downstream client disconnects).
    """
    fetcher = UpstreamFetcher(client)
    state = RelayState()
    response = None
    try:
        response = await fetcher.open(
            proxy_request.target_url,
            method=proxy_request.method,
            range_header=proxy_request.range_header,
            state=state,
        )

        if (
            detect_manifest
            and proxy_request.method == "GET"
            and is_manifest_content_type(state.headers.get("content-type"))
        ):
            logger.debug(
                f"[Passthrough] {redact_url(proxy_request.target_url)} is a manifest "
                f"by content-type, rewriting"
            )
            body = await fetcher.read_body(response)
            await client.aclose()
            upstream = UpstreamResponse(
                status=state.status,
                headers=dict(state.headers),
                body=body,
                url=str(response.url),
            )
            return build_manifest_response(upstream, proxy_request)

        chunks = fetcher.iter_body(response)
        try:
            first_chunk = await chunks.__anext__()
        except StopAsyncIteration:
            first_chunk = None
    except BaseException:
        await _close_upstream(response, client)
        raise

    headers = state.commit()
    logger.debug(
        f"[Passthrough] Relaying {state.status} for {redact_url(proxy_request.target_url)}"
    )

    async def relay() -> AsyncIterator[bytes]:
        try:
            if first_chunk is None:
                return
            yield first_chunk
            async for chunk in chunks:
                yield chunk
        except ProxyError as e:
            # Headers are on the wire already; the server drops the connection
            log_exception_with_details(logger, "[Passthrough] Transfer aborted:", e)
            raise
        finally:
            await chunks.aclose()
            await _close_upstream(response, client)

    return StreamingResponse(
        relay(),
        status_code=state.status,
        headers=with_cors(headers),
    )
