"""Shared API dependencies: service wiring, client identity and bearer tokens.

Services are process-wide singletons. The volatile rate-limit tier and the
sensitive-lookup limiter keep their counters in memory, so a fresh
instance per request would never deny anything.
"""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from guestbot.core.clock import system_clock
from guestbot.core.errors import AuthenticationRequired
from guestbot.core.settings import settings
from guestbot.core.tokens import decode_token
from guestbot.repositories.property_repo import PropertyRepository
from guestbot.services.brute_force import BruteForceGuard
from guestbot.services.calendar_sync import CalendarSyncService
from guestbot.services.chat import GuestChatService
from guestbot.services.documents import DocumentStore, build_document_store
from guestbot.services.llm import HttpLLMService, LLMService
from guestbot.services.rate_limiter import TieredRateLimiter, build_rate_limiter
from guestbot.services.safe_fetch import SafeFetcher
from guestbot.services.sensitive_data import SensitiveDataGate
from guestbot.services.verification import GuestVerificationService

# HTTP Bearer scheme; missing credentials are reported through our own error type
bearer_scheme = HTTPBearer(auto_error=False)

UNKNOWN_CLIENT = "unknown"


@lru_cache
def get_document_store() -> DocumentStore:
    return build_document_store()


@lru_cache
def get_rate_limiter() -> TieredRateLimiter:
    return build_rate_limiter(get_document_store(), system_clock)


@lru_cache
def get_llm_service() -> LLMService:
    return HttpLLMService()


@lru_cache
def get_sensitive_gate() -> SensitiveDataGate:
    return SensitiveDataGate()


def get_property_repository(
    store: Annotated[DocumentStore, Depends(get_document_store)],
) -> PropertyRepository:
    return PropertyRepository(store)


def get_brute_force_guard(
    store: Annotated[DocumentStore, Depends(get_document_store)],
) -> BruteForceGuard:
    return BruteForceGuard(store)


def get_safe_fetcher() -> SafeFetcher:
    return SafeFetcher()


async def close_services() -> None:
    """Release connection pools held by cached services."""
    if get_llm_service.cache_info().currsize:
        llm = get_llm_service()
        if isinstance(llm, HttpLLMService):
            await llm.close()
        get_llm_service.cache_clear()


RateLimiterDep = Annotated[TieredRateLimiter, Depends(get_rate_limiter)]
PropertyRepositoryDep = Annotated[PropertyRepository, Depends(get_property_repository)]


def get_chat_service(
    limiter: RateLimiterDep,
    properties: PropertyRepositoryDep,
    llm: Annotated[LLMService, Depends(get_llm_service)],
    gate: Annotated[SensitiveDataGate, Depends(get_sensitive_gate)],
) -> GuestChatService:
    return GuestChatService(limiter, properties, llm, gate)


def get_verification_service(
    limiter: RateLimiterDep,
    guard: Annotated[BruteForceGuard, Depends(get_brute_force_guard)],
    properties: PropertyRepositoryDep,
) -> GuestVerificationService:
    return GuestVerificationService(limiter, guard, properties)


def get_calendar_service(
    limiter: RateLimiterDep,
    properties: PropertyRepositoryDep,
    fetcher: Annotated[SafeFetcher, Depends(get_safe_fetcher)],
) -> CalendarSyncService:
    return CalendarSyncService(limiter, properties, fetcher)


def get_client_id(request: Request) -> str:
    """Return the caller address used for rate limits and lockouts.

    Without trusted proxies this is the socket peer; ``X-Forwarded-For`` is
    written by the client and ignored. Behind ``trusted_proxy_hops`` proxies
    the caller is the entry that many hops from the right, the one the
    outermost proxy appended. A header shorter than that did not pass
    through the proxy chain, so the peer is used.
    """
    hops = settings.trusted_proxy_hops
    if hops:
        forwarded = [
            hop.strip() for hop in request.headers.get("x-forwarded-for", "").split(",")
        ]
        if len(forwarded) >= hops and forwarded[-hops]:
            return forwarded[-hops]
    if request.client is not None and request.client.host:
        return request.client.host
    return UNKNOWN_CLIENT


def _bearer_token(credentials: HTTPAuthorizationCredentials | None) -> str:
    if credentials is None or not credentials.credentials:
        raise AuthenticationRequired("missing bearer token")
    return credentials.credentials


def get_owner_id(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> str:
    """Return the owner account named by an owner token."""
    payload = decode_token(_bearer_token(credentials), "owner")
    return str(payload["sub"])


ClientIdDep = Annotated[str, Depends(get_client_id)]
BearerCredentialsDep = Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)]
OwnerIdDep = Annotated[str, Depends(get_owner_id)]
ChatServiceDep = Annotated[GuestChatService, Depends(get_chat_service)]
VerificationServiceDep = Annotated[GuestVerificationService, Depends(get_verification_service)]
CalendarServiceDep = Annotated[CalendarSyncService, Depends(get_calendar_service)]
