# Ensure tests import the service package from this directory first, so
# `import hls_proxy` works without installing the project.
import os
import sys

import pytest

SERVICE_ROOT = os.path.dirname(__file__)

if SERVICE_ROOT not in sys.path:
    sys.path.insert(0, SERVICE_ROOT)

from hls_proxy.utils_tests.upstream_mock import (  # noqa: E402
    RecordingTransport,
    mock_upstream_client,
)


@pytest.fixture
def mock_upstream(monkeypatch):
    """
    Route every outbound request of the proxy endpoint to ``handler``.

    Returns an installer: ``transport = mock_upstream(handler)``. The returned
    transport records the requests the proxy sent upstream.
    """

    def _install(handler):
        transport = RecordingTransport(handler)
        monkeypatch.setattr(
            "hls_proxy.proxy.route.build_upstream_client",
            lambda: mock_upstream_client(transport),
        )
        return transport

    return _install
