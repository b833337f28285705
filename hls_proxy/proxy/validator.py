import asyncio
import ipaddress
import logging
import re
import socket
from typing import List, Optional
from urllib.parse import urlsplit

from hls_proxy.proxy.errors import (
    BlockedHost,
    InvalidURL,
    MissingTarget,
    UnsupportedScheme,
)

logger = logging.getLogger("uvicorn.error")

HTTP_URL_PATTERN = re.compile(r"^https?://", re.IGNORECASE)

BLOCKED_NETWORKS = tuple(
    ipaddress.ip_network(net)
    for net in (
        "10.0.0.0/8",
        "127.0.0.0/8",
        "169.254.0.0/16",
        "192.168.0.0/16",
        "172.16.0.0/12",
    )
)


def is_blocked_address(address: str) -> bool:
    """True when ``address`` is a literal IPv4 address inside a private/internal range."""
    try:
        ip = ipaddress.ip_address(address)
    except ValueError:
        return False
    if ip.version != 4:
        return False
    return any(ip in network for network in BLOCKED_NETWORKS)


def extract_host(url: str) -> str:
    try:
        host = urlsplit(url).hostname
    except ValueError as e:
        raise InvalidURL(f"Invalid URL: {e}")
    if not host:
        raise InvalidURL()
    return host


def validate_target(raw: Optional[str]) -> str:
    """
    Validate the raw ``url`` query value and return the target URL.

    Runs before any network I/O. Only literal IPv4 hosts are checked against
    the blocked ranges; hostnames are accepted as-is here (see
    ``ensure_resolved_host_allowed`` for the resolve-then-check variant).

    Raises:
        MissingTarget: value absent or blank
        UnsupportedScheme: not an http/https URL
        InvalidURL: no host could be extracted
        BlockedHost: literal private/loopback/link-local IPv4 host
    """
    url = (raw or "").strip()
    if not url:
        raise MissingTarget()
    if not HTTP_URL_PATTERN.match(url):
        raise UnsupportedScheme()

    host = extract_host(url)
    if is_blocked_address(host):
        raise BlockedHost(f"Blocked host: {host}")
    return url


async def resolve_host(host: str) -> List[str]:
    loop = asyncio.get_running_loop()
    infos = await loop.getaddrinfo(host, None, type=socket.SOCK_STREAM)
    return [info[4][0] for info in infos]


async def ensure_resolved_host_allowed(url: str) -> None:
    """Resolve the target host and reject it when any address is in a blocked range."""
    host = extract_host(url)
    if is_blocked_address(host):
        raise BlockedHost(f"Blocked host: {host}")

    try:
        addresses = await resolve_host(host)
    except socket.gaierror as e:
        raise InvalidURL(f"Cannot resolve host {host}: {e}")

    for address in addresses:
        if is_blocked_address(address):
            logger.warning(f"[Validator] {host} resolves to blocked address {address}")
            raise BlockedHost(f"Blocked host: {host}")
