# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Callable, Iterator
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

os.environ.setdefault("DOCUMENT_STORE_BACKEND", "memory")

from guestbot.api.v1 import dependencies as deps
from guestbot.core.errors import StoreError
from guestbot.core.tokens import create_token
from guestbot.main import app as fastapi_app
from guestbot.repositories.property_repo import PropertyRepository
from guestbot.schemas.property import Booking, PropertyRecord
from guestbot.services.brute_force import BruteForceGuard
from guestbot.services.documents import Document, InMemoryDocumentStore, Transaction
from guestbot.services.rate_limiter import build_rate_limiter
from guestbot.services.safe_fetch import SafeFetcher
from guestbot.services.sensitive_data import SensitiveDataGate
from guestbot.services.verification import GuestVerificationService

START_TIME = 1_700_000_000.0
PROPERTY_ID = "beach-house"
OWNER_ID = "owner-1"
GUEST_PHONE = "+1 555 123 4567"


class FakeClock:
    """Manually advanced epoch clock."""

    def __init__(self, start: float = START_TIME) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FailingStore:
    """Document store whose every operation fails like an unreachable backend."""

    def __init__(self) -> None:
        self.calls = 0

    def get_doc(self, key: str) -> Document | None:
        self.calls += 1
        raise StoreError(f"unreachable: {key}")

    def set_doc(self, key: str, value: Document, merge: bool = False) -> None:
        self.calls += 1
        raise StoreError(f"unreachable: {key}")

    def run_transaction(self, fn: Callable[[Transaction], Any]) -> Any:
        self.calls += 1
        raise StoreError("unreachable")


class FakeLLM:
    """LLM double returning a canned answer and recording each call."""

    def __init__(self, answer: str = "Happy to help!") -> None:
        self.answer = answer
        self.calls: list[dict[str, Any]] = []

    async def generate(
        self, system_instruction: str, contents: list[dict[str, Any]], temperature: float
    ) -> str:
        self.calls.append(
            {
                "system_instruction": system_instruction,
                "contents": contents,
                "temperature": temperature,
            }
        )
        return self.answer

    async def stream(
        self, system_instruction: str, contents: list[dict[str, Any]], temperature: float
    ):
        yield self.answer


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture()
def failing_store() -> FailingStore:
    return FailingStore()


@pytest.fixture()
def property_record() -> PropertyRecord:
    return PropertyRecord(
        id=PROPERTY_ID,
        owner_id=OWNER_ID,
        name="Beach House",
        address="1 Ocean Ave",
        city="Santa Cruz",
        state="CA",
        wifi_name="BeachNet",
        wifi_password="surf123",
        door_code="4567",
        gate_code="1111",
        lockbox_code="9012",
        lockbox_location="left of the front door",
        check_in_time="4:00 PM",
        check_out_time="11:00 AM",
        house_rules="No parties.",
        local_tips="Try the taqueria on Pacific Ave.",
    )


@pytest.fixture()
def repository(
    store: InMemoryDocumentStore, property_record: PropertyRecord, clock: FakeClock
) -> PropertyRepository:
    repo = PropertyRepository(store)
    repo.save(property_record)
    now = datetime.fromtimestamp(clock(), UTC)
    repo.save_bookings(
        PROPERTY_ID,
        [
            Booking(
                guest_name="Dana",
                guest_phone=GUEST_PHONE,
                check_in=now - timedelta(days=1),
                check_out=now + timedelta(days=2),
            ),
            Booking(
                guest_name="Past Guest",
                guest_phone="+1 555 000 9999",
                check_in=now - timedelta(days=30),
                check_out=now - timedelta(days=27),
            ),
        ],
    )
    return repo


@pytest.fixture()
def fake_llm() -> FakeLLM:
    return FakeLLM()


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture()
def override_services(
    app: FastAPI,
    store: InMemoryDocumentStore,
    repository: PropertyRepository,
    clock: FakeClock,
    fake_llm: FakeLLM,
) -> Iterator[dict[str, Any]]:
    """Point every API dependency at isolated in-memory doubles."""
    limiter = build_rate_limiter(store, clock)
    gate = SensitiveDataGate(clock=clock)
    fetcher = SafeFetcher()
    app.dependency_overrides[deps.get_document_store] = lambda: store
    app.dependency_overrides[deps.get_rate_limiter] = lambda: limiter
    app.dependency_overrides[deps.get_llm_service] = lambda: fake_llm
    app.dependency_overrides[deps.get_sensitive_gate] = lambda: gate
    app.dependency_overrides[deps.get_safe_fetcher] = lambda: fetcher
    app.dependency_overrides[deps.get_verification_service] = lambda: GuestVerificationService(
        limiter, BruteForceGuard(store, clock), repository, clock
    )
    try:
        yield {"store": store, "limiter": limiter, "llm": fake_llm, "fetcher": fetcher}
    finally:
        app.dependency_overrides.clear()


@pytest.fixture()
def client(app: FastAPI, override_services: dict[str, Any]) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def guest_token() -> str:
    return create_token(f"guest:{PROPERTY_ID}", "guest", extra_claims={"pid": PROPERTY_ID})


@pytest.fixture()
def owner_token() -> str:
    return create_token(OWNER_ID, "owner")
