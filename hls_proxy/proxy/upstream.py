"""
Upstream fetcher shared by the manifest rewriter and the stream passthrough.

Redirects are followed by hand rather than by httpx so that every hop is
observed by a ``RelayState``: each new status line resets the captured
headers, which keeps headers of intermediate redirect responses out of the
response relayed to the client. Every hop is also re-validated against the
private-host guard.
"""

import asyncio
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Dict, Optional
from urllib.parse import urljoin

import httpx

from hls_proxy.models import UpstreamResponse
from hls_proxy.proxy.errors import (
    InvalidURL,
    ProxyMisconfigured,
    UnsupportedScheme,
    UpstreamTimeout,
    UpstreamUnavailable,
)
from hls_proxy.proxy.responses import PASSTHROUGH_HEADERS
from hls_proxy.proxy.validator import ensure_resolved_host_allowed, validate_target
from hls_proxy.utils import redact_url
from hls_proxy.utils.exception_logging import format_exception_message
from hls_proxy.vars import (
    MANIFEST_FETCH_TIMEOUT,
    RESOLVE_HOSTS_BEFORE_CONNECT,
    STREAM_CHUNK_SIZE,
    UPSTREAM_ALLOW_UNSAFE_CERT,
    UPSTREAM_CONNECT_TIMEOUT,
    UPSTREAM_MAX_REDIRECTS,
    UPSTREAM_PROXY,
    UPSTREAM_READ_TIMEOUT,
    UPSTREAM_USER_AGENT,
)

logger = logging.getLogger("uvicorn.error")


def build_upstream_client() -> httpx.AsyncClient:
    """Create the per-request outbound client; one client serves exactly one inbound request."""
    try:
        return httpx.AsyncClient(
            timeout=httpx.Timeout(
                UPSTREAM_READ_TIMEOUT, connect=UPSTREAM_CONNECT_TIMEOUT
            ),
            follow_redirects=False,
            verify=not UPSTREAM_ALLOW_UNSAFE_CERT,
            proxy=UPSTREAM_PROXY or None,
        )
    except Exception as e:
        logger.error(f"[Upstream] Cannot create outbound HTTP client: {e}")
        raise ProxyMisconfigured(f"Outbound HTTP client is unavailable: {e}") from e


def upstream_request_headers(range_header: Optional[str] = None) -> Dict[str, str]:
    headers = {
        "User-Agent": UPSTREAM_USER_AGENT,
        "Accept": "*/*",
        # Bodies are relayed byte for byte, so ask origins not to compress them
        "Accept-Encoding": "identity",
    }
    if range_header:
        headers["Range"] = range_header
    return headers


@contextmanager
def translate_transport_errors(url: str):
    """Map httpx transport failures onto the proxy's upstream error types."""
    try:
        yield
    except httpx.TimeoutException as e:
        raise UpstreamTimeout(
            f"Upstream timed out for {redact_url(url)}: {format_exception_message(e)}"
        ) from e
    except httpx.RequestError as e:
        raise UpstreamUnavailable(
            f"Cannot reach upstream {redact_url(url)}: {format_exception_message(e)}"
        ) from e
    except httpx.InvalidURL as e:
        raise InvalidURL(f"Invalid upstream URL: {e}") from e


@dataclass
class RelayState:
    """
    Response-construction state for one upstream exchange.

    ``begin_response`` is called for every status line received (one per
    redirect hop plus the final response) and discards previously captured
    headers. ``commit`` freezes the state once the outbound response starts.
    """

    status: int = 200
    headers: Dict[str, str] = field(default_factory=dict)
    headers_committed: bool = False

    def begin_response(self, status: int) -> None:
        if self.headers_committed:
            raise RuntimeError("Response headers were already committed")
        self.status = status
        self.headers = {}

    def capture_header(self, name: str, value: str) -> None:
        key = name.strip().lower()
        if key:
            self.headers[key] = value.strip()

    def commit(self) -> Dict[str, str]:
        """Mark headers as sent and return the allow-listed subset to relay."""
        self.headers_committed = True
        return {
            name: self.headers[name]
            for name in PASSTHROUGH_HEADERS
            if name in self.headers
        }


def redirect_target(response_url: str, location: str) -> str:
    """Resolve and validate a redirect ``Location`` sent by the origin."""
    try:
        return validate_target(urljoin(response_url, location))
    except ValueError as e:
        raise UpstreamUnavailable(f"Upstream redirected to an unusable URL: {e}") from e
    except (UnsupportedScheme, InvalidURL) as e:
        raise UpstreamUnavailable(
            f"Upstream redirected to an unusable URL: {e.message}"
        ) from e


class UpstreamFetcher:
    def __init__(
        self,
        client: httpx.AsyncClient,
        max_redirects: int = UPSTREAM_MAX_REDIRECTS,
        resolve_hosts: bool = RESOLVE_HOSTS_BEFORE_CONNECT,
        chunk_size: int = STREAM_CHUNK_SIZE,
    ):
        self.client = client
        self.max_redirects = max_redirects
        self.resolve_hosts = resolve_hosts
        self.chunk_size = chunk_size

    async def open(
        self,
        url: str,
        method: str = "GET",
        range_header: Optional[str] = None,
        state: Optional[RelayState] = None,
    ) -> httpx.Response:
        """
        Send the request and follow redirects until a final response arrives.

        The returned response is open in streaming mode; the caller must close
        it. ``state`` ends up holding the final status and headers.
        """
        state = state if state is not None else RelayState()
        headers = upstream_request_headers(range_header)
        current_url = url

        for hop in range(self.max_redirects + 1):
            if self.resolve_hosts:
                await ensure_resolved_host_allowed(current_url)

            with translate_transport_errors(current_url):
                request = self.client.build_request(
                    method, current_url, headers=headers
                )
                response = await self.client.send(request, stream=True)

            state.begin_response(response.status_code)
            for name, value in response.headers.multi_items():
                state.capture_header(name, value)

            location = response.headers.get("location")
            if not (response.is_redirect and location):
                return response

            await response.aclose()
            next_url = redirect_target(str(response.url), location)
            logger.debug(
                f"[Upstream] Redirect {hop + 1} ({response.status_code}) "
                f"{redact_url(current_url)} -> {redact_url(next_url)}"
            )
            current_url = next_url

        raise UpstreamUnavailable(
            f"Too many redirects (more than {self.max_redirects}) for {redact_url(url)}"
        )

    async def iter_body(self, response: httpx.Response) -> AsyncIterator[bytes]:
        """Yield the raw body as it arrives, splitting reads larger than ``chunk_size``."""
        with translate_transport_errors(str(response.url)):
            async for chunk in response.aiter_raw():
                for offset in range(0, len(chunk), self.chunk_size):
                    yield chunk[offset : offset + self.chunk_size]

    async def read_body(
        self, response: httpx.Response, timeout: float = MANIFEST_FETCH_TIMEOUT
    ) -> bytes:
        """Read a whole body within ``timeout`` seconds and close the response."""
        url = str(response.url)
        try:
            with translate_transport_errors(url):
                return await asyncio.wait_for(response.aread(), timeout=timeout)
        except asyncio.TimeoutError as e:
            raise UpstreamTimeout(
                f"Upstream timed out after {timeout:g}s for {redact_url(url)}"
            ) from e
        finally:
            await response.aclose()

    async def fetch(
        self, url: str, timeout: float = MANIFEST_FETCH_TIMEOUT
    ) -> UpstreamResponse:
        """Fetch ``url`` completely into memory, following redirects.

        ``timeout`` bounds the whole exchange: every redirect hop plus the body.
        """
        state = RelayState()
        response = None

        async def open_and_read() -> bytes:
            nonlocal response
            response = await self.open(url, "GET", state=state)
            with translate_transport_errors(str(response.url)):
                return await response.aread()

        try:
            body = await asyncio.wait_for(open_and_read(), timeout=timeout)
        except asyncio.TimeoutError as e:
            raise UpstreamTimeout(
                f"Upstream timed out after {timeout:g}s for {redact_url(url)}"
            ) from e
        finally:
            if response is not None:
                await response.aclose()
        return UpstreamResponse(
            status=state.status,
            headers=dict(state.headers),
            body=body,
            url=str(response.url),
        )
