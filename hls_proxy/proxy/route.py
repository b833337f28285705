import logging

from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse, Response
from opentelemetry import trace
from prometheus_client import Counter

from hls_proxy.models import ProxyRequest
from hls_proxy.proxy.errors import ProxyError
from hls_proxy.proxy.manifest import is_manifest_url, serve_manifest
from hls_proxy.proxy.passthrough import stream_passthrough
from hls_proxy.proxy.responses import CORS_HEADERS
from hls_proxy.proxy.upstream import build_upstream_client
from hls_proxy.proxy.validator import validate_target
from hls_proxy.utils import redact_url
from hls_proxy.utils.exception_logging import log_exception_with_details
from hls_proxy.utils.traced_requests import traced_request
from hls_proxy.vars import PROXY_PATH, PUBLIC_URL

router = APIRouter()
tracer = trace.get_tracer(__name__)
logger = logging.getLogger("uvicorn.error")

PROXY_REQUESTS = Counter(
    "hls_proxy_requests_total",
    "Proxied requests by route and outcome",
    ["route", "outcome"],
)


def proxy_base_url(request: Request) -> str:
    """The proxy endpoint's own URL, used as the prefix of every rewritten reference."""
    if PUBLIC_URL:
        return f"{PUBLIC_URL}{request.url.path}"
    return f"{request.url.scheme}://{request.url.netloc}{request.url.path}"


def build_proxy_request(request: Request) -> ProxyRequest:
    """Validate the inbound request and capture everything the pipeline needs from it."""
    target_url = validate_target(request.query_params.get("url"))
    return ProxyRequest(
        target_url=target_url,
        proxy_base=proxy_base_url(request),
        method=request.method,
        range_header=request.headers.get("range"),
    )


def _log_level_for(error: ProxyError) -> int:
    return logging.WARNING if error.status_code < 500 else logging.ERROR


async def forward(proxy_request: ProxyRequest) -> Response:
    """Dispatch a validated request to the manifest rewriter or the stream passthrough."""
    route = "manifest" if is_manifest_url(proxy_request.target_url) else "passthrough"

    with traced_request(
        tracer,
        operation="proxy_request",
        target_url=proxy_request.target_url,
        method=proxy_request.method,
        start_message=(
            f"[Proxy] {proxy_request.method} {redact_url(proxy_request.target_url)} "
            f"via {route}"
        ),
        extra_attrs={"proxy.route": route},
    ) as span:
        try:
            client = build_upstream_client()
            if route == "manifest":
                response = await serve_manifest(proxy_request, client)
            else:
                response = await stream_passthrough(proxy_request, client)
        except ProxyError as e:
            span.set_attribute("proxy.error", e.message)
            span.set_attribute("proxy.status_code", e.status_code)
            PROXY_REQUESTS.labels(route=route, outcome="error").inc()
            log_exception_with_details(
                logger, f"[Proxy] {route} failed:", e, level=_log_level_for(e)
            )
            raise

        span.set_attribute("proxy.status_code", response.status_code)
        PROXY_REQUESTS.labels(route=route, outcome="relayed").inc()
        return response


@router.get("/")
async def health() -> PlainTextResponse:
    return PlainTextResponse("OK - HLS proxy running")


@router.options(PROXY_PATH)
async def proxy_preflight() -> Response:
    return Response(status_code=204, headers=CORS_HEADERS)


@router.api_route(PROXY_PATH, methods=["GET", "HEAD"])
async def proxy(request: Request) -> Response:
    """Proxy ``?url=<absolute http(s) URL>``, rewriting HLS manifests on the way."""
    try:
        proxy_request = build_proxy_request(request)
    except ProxyError as e:
        PROXY_REQUESTS.labels(route="validation", outcome="rejected").inc()
        log_exception_with_details(
            logger, "[Proxy] Rejected request:", e, level=_log_level_for(e)
        )
        raise
    return await forward(proxy_request)
