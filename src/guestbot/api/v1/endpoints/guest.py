"""Guest verification and chat endpoints."""

from __future__ import annotations

from fastapi import APIRouter

from guestbot.api.v1.dependencies import (
    BearerCredentialsDep,
    ChatServiceDep,
    ClientIdDep,
    VerificationServiceDep,
)
from guestbot.schemas.guest import AskRequest, AskResponse, VerifiedGuest, VerifyRequest, VerifyResponse

router = APIRouter(prefix="/guest", tags=["guest"])


@router.post("/verify", response_model=VerifyResponse, response_model_by_alias=True)
async def verify_guest(
    payload: VerifyRequest,
    client_id: ClientIdDep,
    service: VerificationServiceDep,
) -> VerifyResponse:
    """Match the caller to an active booking and issue a guest session.

    A miss and a lockout return the same body, so the response never
    reveals which check failed.
    """
    result = service.verify(payload.property_id, payload.phone_last_four, client_id)
    if not result.verified or result.session_token is None:
        return VerifyResponse(verified=False, message=result.message)
    return VerifyResponse(
        verified=True,
        data=VerifiedGuest(
            guest_name=result.guest_name,
            property_name=result.property_name,
            session_token=result.session_token,
        ),
    )


@router.post("/ask", response_model=AskResponse, response_model_by_alias=True)
async def ask_guestbot(
    payload: AskRequest,
    credentials: BearerCredentialsDep,
    client_id: ClientIdDep,
    service: ChatServiceDep,
) -> AskResponse:
    """Answer a guest question about the property their session is bound to.

    The session token is checked inside the pipeline, after the request has
    been counted against the caller's budget.
    """
    answer = await service.ask_with_session(
        credentials.credentials if credentials is not None else None,
        payload.question,
        payload.context,
        client_id,
        [message.model_dump() for message in payload.history],
    )
    return AskResponse(
        answer=answer.answer,
        context=answer.context,
        context_source=answer.context_source,
    )
