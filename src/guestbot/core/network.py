"""Address rules for outbound requests to owner-supplied URLs."""

from __future__ import annotations

import ipaddress
import re
from typing import Final
from urllib.parse import urlsplit

import httpx

from guestbot.core.errors import BlockedPrivateAddress, BlockedProtocol

ALLOWED_SCHEMES: Final[frozenset[str]] = frozenset({"http", "https"})

BLOCKED_HOSTNAMES: Final[frozenset[str]] = frozenset(
    {
        "localhost",
        "metadata.google.internal",
    }
)
BLOCKED_HOST_SUFFIXES: Final[tuple[str, ...]] = (".local", ".internal", ".localhost")

BLOCKED_NETWORKS: Final[tuple[ipaddress.IPv4Network | ipaddress.IPv6Network, ...]] = (
    ipaddress.ip_network("0.0.0.0/8"),  # Unspecified / "this network"
    ipaddress.ip_network("10.0.0.0/8"),  # Private Class A
    ipaddress.ip_network("100.64.0.0/10"),  # Carrier-grade NAT
    ipaddress.ip_network("127.0.0.0/8"),  # Loopback
    ipaddress.ip_network("169.254.0.0/16"),  # Link-local / cloud metadata
    ipaddress.ip_network("172.16.0.0/12"),  # Private Class B
    ipaddress.ip_network("192.168.0.0/16"),  # Private Class C
    ipaddress.ip_network("::/96"),  # IPv6 unspecified and IPv4-compatible
    ipaddress.ip_network("::1/128"),  # IPv6 loopback
    ipaddress.ip_network("::ffff:0:0/96"),  # IPv4-mapped IPv6
    ipaddress.ip_network("64:ff9b::/96"),  # NAT64
    ipaddress.ip_network("2002::/16"),  # 6to4
    ipaddress.ip_network("fc00::/7"),  # IPv6 unique-local
    ipaddress.ip_network("fe80::/10"),  # IPv6 link-local
)


def is_blocked_address(address: ipaddress.IPv4Address | ipaddress.IPv6Address) -> bool:
    """Return True if ``address`` falls in any private/internal range."""
    return any(address in network for network in BLOCKED_NETWORKS)


def parse_address(value: str) -> ipaddress.IPv4Address | ipaddress.IPv6Address | None:
    """Return ``value`` as an IP address, or None when it is a hostname."""
    try:
        return ipaddress.ip_address(value.strip("[]").split("%", 1)[0])
    except ValueError:
        return None


def is_blocked_hostname(hostname: str) -> bool:
    """Apply literal hostname rules; no DNS is performed."""
    host = hostname.lower().rstrip(".")
    if not host or host in BLOCKED_HOSTNAMES or host.endswith(BLOCKED_HOST_SUFFIXES):
        return True
    address = parse_address(host)
    return address is not None and is_blocked_address(address)


CONTROL_CHARACTERS: Final[re.Pattern[str]] = re.compile(r"[\x00-\x1f\x7f]")
HOST_DELIMITERS: Final[frozenset[str]] = frozenset("[]@\\/ ")


def validate_url(url: str) -> httpx.URL:
    """Check ``url`` before any network activity.

    The URL is parsed the way the HTTP client will parse it when it
    connects, and the host it would connect to is the one checked.

    Raises:
        BlockedProtocol: if the scheme is not http or https, or the URL
            cannot be parsed.
        BlockedPrivateAddress: if the host is missing, internal or private.
    """
    if not isinstance(url, str) or not url:
        raise BlockedProtocol("missing url")
    if CONTROL_CHARACTERS.search(url):
        raise BlockedProtocol("control characters in url")
    try:
        # urlsplit range-checks the port when it is read; httpx does not.
        _ = urlsplit(url).port
        parsed = httpx.URL(url)
        hostname = parsed.raw_host.decode("ascii")
    except (ValueError, httpx.InvalidURL) as exc:
        raise BlockedProtocol("unparsable url") from exc

    if parsed.scheme not in ALLOWED_SCHEMES:
        raise BlockedProtocol(f"scheme {parsed.scheme!r} not allowed")
    if HOST_DELIMITERS.intersection(hostname):
        raise BlockedProtocol("malformed host")
    if not hostname or is_blocked_hostname(hostname):
        raise BlockedPrivateAddress("hostname is internal or private")
    return parsed
