class ProxyError(Exception):
    """Base class for failures that end a proxied request with a diagnostic response."""

    status_code = 500
    default_message = "Proxy request failed"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class MissingTarget(ProxyError):
    status_code = 400
    default_message = "Missing ?url= parameter"


class UnsupportedScheme(ProxyError):
    status_code = 400
    default_message = "Only http/https allowed"


class InvalidURL(ProxyError):
    status_code = 400
    default_message = "Invalid URL"


class BlockedHost(ProxyError):
    status_code = 403
    default_message = "Blocked host"


class UpstreamUnavailable(ProxyError):
    status_code = 502
    default_message = "Upstream unavailable"


class UpstreamTimeout(ProxyError):
    status_code = 502
    default_message = "Upstream timed out"


class ProxyMisconfigured(ProxyError):
    status_code = 500
    default_message = "Outbound HTTP client is unavailable"
