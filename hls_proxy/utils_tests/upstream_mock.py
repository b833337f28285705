import asyncio
from typing import Callable, List, Optional

import httpx


class TrackingStream(httpx.AsyncByteStream):
    """
    Upstream body that records how far it was read and whether it was closed.

    Mocks for the passthrough path must use this instead of ``content=``: httpx
    reads a ``content=`` body eagerly, and ``aiter_raw`` then refuses to stream it.
    """

    def __init__(
        self,
        chunks: List[bytes],
        fail_after: Optional[int] = None,
        delay: float = 0.0,
    ):
        self.chunks = chunks
        self.fail_after = fail_after
        self.delay = delay
        self.sent = 0
        self.closed = False

    async def __aiter__(self):
        for index, chunk in enumerate(self.chunks):
            if self.fail_after is not None and index >= self.fail_after:
                raise httpx.ReadError("connection reset by peer")
            if self.delay:
                await asyncio.sleep(self.delay)
            self.sent += 1
            yield chunk
        if self.fail_after is not None and self.fail_after >= len(self.chunks):
            raise httpx.ReadError("connection reset by peer")

    async def aclose(self) -> None:
        self.closed = True


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it served."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]):
        self.requests: List[httpx.Request] = []

        def _record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(_record)


def mock_upstream_client(transport: httpx.MockTransport) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=transport, follow_redirects=False)
