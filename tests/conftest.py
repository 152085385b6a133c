"""Pytest configuration and fixtures."""

from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from buyer_leads.models import Bhk, BuyerRecord, City, PropertyType, Purpose, Source, Status
from buyer_leads.service import BuyerService
from buyer_leads.store import InMemoryBuyerStore

T0 = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    """Deterministic clock that only moves when told to."""

    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: int = 1) -> datetime:
        self.now += timedelta(seconds=seconds)
        return self.now


class RecordingSink:
    """Sink that keeps every published event."""

    def __init__(self) -> None:
        self.events: list = []

    def publish(self, event: Any) -> None:
        self.events.append(event)


@pytest.fixture
def seed() -> int:
    """Fixed seed for reproducible tests."""
    return 42


@pytest.fixture
def owner_id() -> str:
    """Agent owning the test buyers."""
    return "user-owner-001"


@pytest.fixture
def other_user_id() -> str:
    """Agent who owns nothing."""
    return "user-other-002"


@pytest.fixture
def valid_candidate() -> dict[str, Any]:
    """Complete, valid buyer candidate."""
    return {
        "full_name": "Asha Verma",
        "email": "asha@example.com",
        "phone": "9876543210",
        "city": "Mohali",
        "property_type": "Apartment",
        "bhk": "2",
        "purpose": "Buy",
        "budget_min": 5_000_000,
        "budget_max": 7_500_000,
        "timeline": "0-3m",
        "source": "Website",
        "notes": "Prefers east facing",
        "tags": ["hot", "investor"],
    }


@pytest.fixture
def sample_record(owner_id: str) -> BuyerRecord:
    """Stored buyer record."""
    return BuyerRecord(
        id="buyer-001",
        owner_id=owner_id,
        full_name="Asha Verma",
        phone="9876543210",
        city=City.MOHALI,
        purpose=Purpose.BUY,
        source=Source.WEBSITE,
        email="asha@example.com",
        property_type=PropertyType.APARTMENT,
        bhk=Bhk.TWO,
        budget_min=5_000_000,
        budget_max=7_500_000,
        status=Status.NEW,
        tags=["hot", "investor"],
        created_at=T0,
        updated_at=T0,
    )


@pytest.fixture
def clock() -> FakeClock:
    """Clock starting at 2024-01-01 09:00 UTC."""
    return FakeClock()


@pytest.fixture
def store() -> InMemoryBuyerStore:
    """Create a fresh store for each test."""
    return InMemoryBuyerStore()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def service(store: InMemoryBuyerStore, clock: FakeClock, sink: RecordingSink) -> BuyerService:
    """Service over the in-memory store with a recording sink."""
    return BuyerService(store, sinks=[sink], clock=clock)
