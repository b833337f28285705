from .errors import (
    BlockedHost,
    InvalidURL,
    MissingTarget,
    ProxyError,
    ProxyMisconfigured,
    UnsupportedScheme,
    UpstreamTimeout,
    UpstreamUnavailable,
)
from .manifest import rewrite_manifest
from .url_resolver import absolutize, to_proxy_url
from .validator import validate_target

__all__ = [
    "BlockedHost",
    "InvalidURL",
    "MissingTarget",
    "ProxyError",
    "ProxyMisconfigured",
    "UnsupportedScheme",
    "UpstreamTimeout",
    "UpstreamUnavailable",
    "absolutize",
    "rewrite_manifest",
    "to_proxy_url",
    "validate_target",
]
