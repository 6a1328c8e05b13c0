"""SSRF-safe HTTP fetching for owner-supplied calendar URLs.

Every URL in a redirect chain goes through the same gauntlet before any
connection is opened to it:

1. literal checks (scheme, hostname, IP literal ranges)
2. DNS resolution, then the same range checks on every resolved address
   (a public-looking name that resolves to a private address is blocked)
3. the request itself, with transport-level redirects disabled

This is a security boundary, so infrastructure failures fail *closed*:
a DNS error blocks the fetch instead of letting it through.
"""

from __future__ import annotations

import asyncio
import logging
import socket
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Final

import httpx

from guestbot.core.errors import (
    BlockedPrivateAddress,
    BlockedProtocol,
    FailurePolicy,
    FetchTimeout,
    InvalidRedirect,
    SecurityBlocked,
    SizeExceeded,
    TooManyRedirects,
    UpstreamError,
)
from guestbot.core.network import (
    CONTROL_CHARACTERS,
    is_blocked_address,
    parse_address,
    validate_url,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS: Final[float] = 30.0
DEFAULT_MAX_BODY_BYTES: Final[int] = 5 * 1024 * 1024
DEFAULT_MAX_REDIRECTS: Final[int] = 3
REDIRECT_STATUSES: Final[frozenset[int]] = frozenset({301, 302, 303, 307, 308})

Resolver = Callable[[str], Awaitable[list[str]]]


async def resolve_host(hostname: str) -> list[str]:
    """Resolve ``hostname`` to every address the system resolver returns."""
    loop = asyncio.get_running_loop()
    infos = await loop.getaddrinfo(hostname, None, type=socket.SOCK_STREAM)
    return [str(info[4][0]) for info in infos]


@dataclass(frozen=True)
class FetchResult:
    url: str
    status_code: int
    content: bytes
    headers: Mapping[str, str] = field(default_factory=dict)
    redirects: int = 0

    @property
    def text(self) -> str:
        return self.content.decode("utf-8", errors="replace")


class SafeFetcher:
    """Bounded, redirect-validating HTTP GET."""

    # Fixed: DNS and redirect validation never fail open.
    failure_policy: Final[FailurePolicy] = FailurePolicy.CLOSED

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        resolver: Resolver | None = None,
        *,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        max_body_bytes: int = DEFAULT_MAX_BODY_BYTES,
        max_redirects: int = DEFAULT_MAX_REDIRECTS,
    ) -> None:
        self._client = client
        self._resolver = resolver or resolve_host
        self.timeout_seconds = timeout_seconds
        self.max_body_bytes = max_body_bytes
        self.max_redirects = max_redirects

    async def ensure_public(self, url: str) -> None:
        """Run literal and DNS checks for ``url``; raise if it is not public."""
        hostname = validate_url(url).raw_host.decode("ascii")
        if parse_address(hostname) is not None:
            # IP literal already checked; nothing to resolve.
            return

        try:
            addresses = await self._resolver(hostname)
        except (OSError, UnicodeError) as exc:
            logger.warning("DNS resolution failed for calendar host; blocking fetch")
            raise BlockedPrivateAddress("dns resolution failed") from exc

        if not addresses:
            raise BlockedPrivateAddress("hostname did not resolve")
        for raw in addresses:
            address = parse_address(raw)
            if address is None or is_blocked_address(address):
                logger.warning("Calendar host resolved to a blocked address")
                raise BlockedPrivateAddress("hostname resolves to a private address")

    async def fetch(self, url: str, headers: Mapping[str, str] | None = None) -> FetchResult:
        """GET ``url``, validating every hop and bounding time and size."""
        try:
            async with asyncio.timeout(self.timeout_seconds):
                if self._client is not None:
                    return await self._follow(self._client, url, headers)
                async with httpx.AsyncClient(
                    timeout=httpx.Timeout(self.timeout_seconds),
                    follow_redirects=False,
                ) as client:
                    return await self._follow(client, url, headers)
        except TimeoutError as exc:
            raise FetchTimeout("fetch exceeded wall-clock budget") from exc
        except SecurityBlocked as exc:
            logger.warning("Blocked outbound fetch: %s", exc.kind)
            raise

    async def _follow(
        self,
        client: httpx.AsyncClient,
        url: str,
        headers: Mapping[str, str] | None,
    ) -> FetchResult:
        current = url
        for hop in range(self.max_redirects + 1):
            await self.ensure_public(current)
            try:
                async with client.stream(
                    "GET",
                    current,
                    headers=dict(headers or {}),
                    follow_redirects=False,
                ) as response:
                    if response.status_code in REDIRECT_STATUSES:
                        location = response.headers.get("location")
                        current = self._redirect_target(current, location)
                        continue

                    content = await self._read_bounded(response)
                    return FetchResult(
                        url=current,
                        status_code=response.status_code,
                        content=content,
                        headers=dict(response.headers),
                        redirects=hop,
                    )
            except httpx.InvalidURL as exc:
                raise BlockedProtocol("unparsable url") from exc
            except httpx.TimeoutException as exc:
                raise FetchTimeout("upstream timed out") from exc
            except httpx.HTTPError as exc:
                raise UpstreamError(f"fetch failed: {type(exc).__name__}") from exc
        raise TooManyRedirects(f"more than {self.max_redirects} redirects")

    @staticmethod
    def _redirect_target(current: str, location: str | None) -> str:
        if not location:
            raise InvalidRedirect("redirect without Location header")
        if CONTROL_CHARACTERS.search(location):
            raise InvalidRedirect("control characters in Location header")
        try:
            return str(httpx.URL(current).join(location))
        except httpx.InvalidURL as exc:
            raise InvalidRedirect("unparsable Location header") from exc

    async def _read_bounded(self, response: httpx.Response) -> bytes:
        declared = response.headers.get("content-length")
        if declared is not None:
            try:
                if int(declared) > self.max_body_bytes:
                    raise SizeExceeded("declared content-length over budget")
            except ValueError:
                pass  # unusable header; the byte count below still applies

        chunks: list[bytes] = []
        received = 0
        async for chunk in response.aiter_bytes():
            received += len(chunk)
            if received > self.max_body_bytes:
                raise SizeExceeded("body over budget")
            chunks.append(chunk)
        return b"".join(chunks)
