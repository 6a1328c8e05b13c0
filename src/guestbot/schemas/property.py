"""Property and booking records read by the security pipeline."""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

SECRET_FIELDS = (
    "wifi_name",
    "wifi_password",
    "door_code",
    "gate_code",
    "garage_code",
    "lockbox_code",
    "lockbox_location",
)


class PropertyRecord(BaseModel):
    """A rental property as configured by its owner.

    Secret fields are either unset or non-empty; they are the only ground
    truth the hallucination validator compares against.
    """

    id: str = Field(..., description="Property identifier")
    owner_id: str | None = Field(None, description="Account that owns the property")
    name: str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None

    wifi_name: str | None = None
    wifi_password: str | None = None
    door_code: str | None = None
    gate_code: str | None = None
    garage_code: str | None = None
    lockbox_code: str | None = None
    lockbox_location: str | None = None

    check_in_time: str | None = None
    check_out_time: str | None = None
    house_rules: str | None = None
    custom_info: str | None = None
    local_tips: str | None = None
    ical_url: str | None = None

    model_config = ConfigDict(extra="ignore")

    @field_validator(
        "name",
        "address",
        "city",
        "state",
        *SECRET_FIELDS,
        "check_in_time",
        "check_out_time",
        "house_rules",
        "custom_info",
        "local_tips",
        "ical_url",
        mode="before",
    )
    @classmethod
    def _blank_to_none(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def location(self) -> str:
        """City and state for prompts, or a neutral fallback."""
        if self.city and self.state:
            return f"{self.city}, {self.state}"
        return self.city or self.state or "the area"


class Booking(BaseModel):
    """One guest stay, matched on the last four digits of the guest's phone."""

    guest_name: str | None = None
    guest_phone: str = ""
    check_in: datetime
    check_out: datetime

    model_config = ConfigDict(extra="ignore")

    @field_validator("guest_phone", mode="before")
    @classmethod
    def _phone_as_text(cls, value: object) -> str:
        return "" if value is None else str(value)

    @field_validator("check_in", "check_out")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        # Stored stays without an offset are UTC.
        return value if value.tzinfo is not None else value.replace(tzinfo=UTC)

    def matches_phone(self, last_four: str) -> bool:
        return len(self.guest_phone) >= 4 and self.guest_phone[-4:] == last_four

    def is_active(self, now: datetime) -> bool:
        return self.check_in <= now <= self.check_out
