from dataclasses import dataclass, field
from typing import AsyncIterator, Dict, Optional, Union
from urllib.parse import urlsplit


@dataclass(frozen=True)
class ProxyRequest:
    """One inbound proxy call, carried explicitly through the pipeline."""

    target_url: str
    proxy_base: str
    method: str = "GET"
    range_header: Optional[str] = None


@dataclass(frozen=True)
class ParsedOrigin:
    scheme: str
    host: str
    port: Optional[int]
    path: str

    @classmethod
    def from_url(cls, url: str) -> "ParsedOrigin":
        parts = urlsplit(url)
        try:
            port = parts.port
        except ValueError:
            port = None
        return cls(
            scheme=parts.scheme or "http",
            host=parts.hostname or "",
            port=port,
            path=parts.path,
        )

    @property
    def origin(self) -> str:
        host = f"[{self.host}]" if ":" in self.host else self.host
        port = f":{self.port}" if self.port is not None else ""
        return f"{self.scheme}://{host}{port}"


# Manifest lines: a closed set of variants, one rewrite rule each.


@dataclass(frozen=True)
class Blank:
    text: str = ""


@dataclass(frozen=True)
class Comment:
    text: str


@dataclass(frozen=True)
class KeyDirective:
    """``#EXT-X-KEY`` line split around the value of its ``URI`` attribute."""

    prefix: str
    key_uri: str
    suffix: str


@dataclass(frozen=True)
class ResourceReference:
    uri: str


ManifestLine = Union[Blank, Comment, KeyDirective, ResourceReference]


@dataclass
class UpstreamResponse:
    status: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: Union[bytes, AsyncIterator[bytes]] = b""
    url: str = ""

    @property
    def content_type(self) -> str:
        return self.headers.get("content-type", "")
