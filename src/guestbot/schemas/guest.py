"""Guest-facing request and response schemas."""

from typing import Literal

from pydantic import BaseModel, Field


class VerifyRequest(BaseModel):
    """Guest identity check against a property's bookings."""

    property_id: str = Field(..., min_length=1, max_length=128, alias="propertyId")
    phone_last_four: str = Field(
        ...,
        pattern=r"^\d{4}$",
        alias="phoneLastFour",
        description="Last four digits of the phone number on the booking",
    )

    model_config = {"populate_by_name": True}


class VerifiedGuest(BaseModel):
    guest_name: str | None = Field(None, alias="guestName")
    property_name: str | None = Field(None, alias="propertyName")
    session_token: str = Field(..., alias="sessionToken")

    model_config = {"populate_by_name": True}


class VerifyResponse(BaseModel):
    """Identical shape for a miss and for either lockout."""

    success: bool = True
    verified: bool
    message: str | None = None
    data: VerifiedGuest | None = None


class HistoryMessage(BaseModel):
    role: str
    text: str


class AskRequest(BaseModel):
    """A guest question with optional QR context and recent history."""

    # Over-length questions are truncated by the sanitizer; this only bounds the body.
    question: str = Field(..., max_length=10_000, description="Free-text guest question")
    context: str | None = Field(
        None,
        max_length=32,
        description="Context supplied by the QR code the guest scanned",
    )
    history: list[HistoryMessage] = Field(default_factory=list, max_length=50)


class AskResponse(BaseModel):
    success: bool = True
    answer: str
    context: str
    context_source: Literal["detected", "fallback"] = Field(
        ..., alias="contextSource"
    )

    model_config = {"populate_by_name": True}
