"""LLM client used by the guest chat pipeline.

The model is a black box behind one HTTP endpoint. The request carries the
system instruction, the turn list and a temperature; the response carries
text. Streaming responses are newline-delimited JSON objects with a
``text`` field. This client owns no retry logic: a failure surfaces once,
as ``UpstreamError``.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any, Protocol

import httpx

from guestbot.core.errors import UpstreamError
from guestbot.core.settings import settings

logger = logging.getLogger(__name__)


class LLMService(Protocol):
    """Text generation interface consumed by the chat pipeline."""

    async def generate(
        self,
        system_instruction: str,
        contents: list[dict[str, Any]],
        temperature: float,
    ) -> str: ...

    def stream(
        self,
        system_instruction: str,
        contents: list[dict[str, Any]],
        temperature: float,
    ) -> AsyncIterator[str]: ...


@dataclass(frozen=True)
class LLMConfig:
    endpoint_url: str | None
    api_key: str | None
    timeout_seconds: float


def load_llm_config() -> LLMConfig:
    """Build configuration object from global settings."""
    return LLMConfig(
        endpoint_url=settings.llm_endpoint_url,
        api_key=settings.llm_api_key,
        timeout_seconds=settings.llm_timeout_seconds,
    )


class HttpLLMService:
    """JSON-over-HTTP client for the generation endpoint."""

    def __init__(
        self,
        config: LLMConfig | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.config = config or load_llm_config()
        self._client = client
        self._client_lock = asyncio.Lock()

    @property
    def enabled(self) -> bool:
        return bool(self.config.endpoint_url)

    async def _ensure_client(self) -> httpx.AsyncClient:
        if not self.enabled:
            raise UpstreamError("LLM endpoint is not configured")
        async with self._client_lock:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    timeout=httpx.Timeout(self.config.timeout_seconds),
                )
        return self._client

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"
        return headers

    @staticmethod
    def _payload(
        system_instruction: str,
        contents: list[dict[str, Any]],
        temperature: float,
        *,
        stream: bool,
    ) -> dict[str, Any]:
        return {
            "systemInstruction": system_instruction,
            "contents": contents,
            "generationConfig": {"temperature": temperature},
            "stream": stream,
        }

    async def generate(
        self,
        system_instruction: str,
        contents: list[dict[str, Any]],
        temperature: float,
    ) -> str:
        client = await self._ensure_client()
        try:
            response = await client.post(
                self.config.endpoint_url or "",
                json=self._payload(system_instruction, contents, temperature, stream=False),
                headers=self._headers(),
            )
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("LLM request failed: %s", type(exc).__name__)
            raise UpstreamError("llm request failed") from exc

        text = body.get("text") if isinstance(body, dict) else None
        return text if isinstance(text, str) else ""

    async def stream(
        self,
        system_instruction: str,
        contents: list[dict[str, Any]],
        temperature: float,
    ) -> AsyncIterator[str]:
        client = await self._ensure_client()
        try:
            async with client.stream(
                "POST",
                self.config.endpoint_url or "",
                json=self._payload(system_instruction, contents, temperature, stream=True),
                headers=self._headers(),
            ) as response:
                response.raise_for_status()
                async for line in response.aiter_lines():
                    if not line.strip():
                        continue
                    chunk = json.loads(line)
                    text = chunk.get("text") if isinstance(chunk, dict) else None
                    if isinstance(text, str) and text:
                        yield text
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("LLM stream failed: %s", type(exc).__name__)
            raise UpstreamError("llm stream failed") from exc

    async def close(self) -> None:
        """Release the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
