"""Guest chat pipeline.

Order matters: every request is counted before any work is done, and the
model output passes both the output filter and the hallucination
validator before it leaves the service.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from guestbot.core.errors import (
    InjectionDetected,
    InvalidInput,
    RateLimited,
    ResourceNotFound,
    UpstreamError,
)
from guestbot.core.hallucination import validate_response
from guestbot.core.output_filter import filter_output
from guestbot.core.sanitizer import sanitize_question
from guestbot.core.settings import settings
from guestbot.core.tokens import guest_property_id
from guestbot.repositories.property_repo import PropertyRepository
from guestbot.services.llm import LLMService
from guestbot.services.prompt import build_prompt
from guestbot.services.rate_limiter import TieredRateLimiter
from guestbot.services.sensitive_data import SensitiveDataGate

logger = logging.getLogger(__name__)

ASK_ENDPOINT = "askGuestBot"


@dataclass(frozen=True)
class ChatAnswer:
    answer: str
    context: str
    context_source: str
    filter_reason: str | None = None
    hallucination_count: int = 0


class GuestChatService:
    """Answers one guest question about one property."""

    def __init__(
        self,
        limiter: TieredRateLimiter,
        properties: PropertyRepository,
        llm: LLMService,
        gate: SensitiveDataGate,
        llm_timeout_seconds: float | None = None,
    ) -> None:
        self._limiter = limiter
        self._properties = properties
        self._llm = llm
        self._gate = gate
        self._llm_timeout = llm_timeout_seconds or settings.llm_timeout_seconds

    async def ask(
        self,
        property_id: str,
        question: object,
        default_context: str | None,
        identifier: str,
        history: Sequence[Any] | None = None,
    ) -> ChatAnswer:
        """Run ``question`` through the full pipeline and return a safe answer.

        Raises:
            RateLimited: the caller exceeded the endpoint budget.
            InjectionDetected: the question matched an injection signature.
            InvalidInput: the question was empty or not text.
            ResourceNotFound: no such property.
            UpstreamError: the model failed or timed out.
        """
        self._check_budget(identifier)
        return await self._answer(property_id, question, default_context, identifier, history)

    async def ask_with_session(
        self,
        session_token: str | None,
        question: object,
        default_context: str | None,
        identifier: str,
        history: Sequence[Any] | None = None,
    ) -> ChatAnswer:
        """Like ``ask``, with the property taken from a guest session token.

        The request is counted before the token is looked at, so callers
        with missing or forged sessions still spend their budget.

        Raises:
            AuthenticationRequired: the session token is missing or invalid.
        """
        self._check_budget(identifier)
        property_id = guest_property_id(session_token)
        return await self._answer(property_id, question, default_context, identifier, history)

    def _check_budget(self, identifier: str) -> None:
        if not self._limiter.allow(ASK_ENDPOINT, identifier).allowed:
            raise RateLimited(ASK_ENDPOINT)

    async def _answer(
        self,
        property_id: str,
        question: object,
        default_context: str | None,
        identifier: str,
        history: Sequence[Any] | None,
    ) -> ChatAnswer:
        sanitized = sanitize_question(question)
        if sanitized.injection_detected:
            logger.warning(
                "Prompt injection rejected for property %s: %s",
                property_id,
                ", ".join(sanitized.flagged_patterns),
            )
            raise InjectionDetected(",".join(sanitized.flagged_patterns))
        if sanitized.rejected:
            raise InvalidInput("empty question")

        record = self._properties.get(property_id)
        if record is None:
            raise ResourceNotFound(f"property {property_id}")

        prompt = build_prompt(
            record,
            sanitized.sanitized,
            default_context,
            f"{identifier}:{property_id}",
            history,
            self._gate,
        )
        logger.debug(
            "Prompt built: context=%s source=%s temperature=%.1f sensitive=%s",
            prompt.context,
            prompt.context_source,
            prompt.temperature,
            prompt.sensitive_included,
        )

        try:
            async with asyncio.timeout(self._llm_timeout):
                raw = await self._llm.generate(
                    prompt.system_instruction, prompt.contents, prompt.temperature
                )
        except TimeoutError as exc:
            logger.error("LLM call exceeded %.0fs", self._llm_timeout)
            raise UpstreamError("llm timeout") from exc

        screened = filter_output(raw)
        if screened.was_filtered:
            logger.warning("Model output filtered: %s", screened.reason)

        outcome = validate_response(screened.filtered, record)
        if outcome.hallucinations:
            logger.warning(
                "Redacted %d hallucinated value(s): %s",
                len(outcome.hallucinations),
                ", ".join(sorted({h.type for h in outcome.hallucinations})),
            )

        return ChatAnswer(
            answer=outcome.validated,
            context=prompt.context,
            context_source=prompt.context_source,
            filter_reason=screened.reason,
            hallucination_count=len(outcome.hallucinations),
        )
