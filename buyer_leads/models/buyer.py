"""Buyer lead and audit history models."""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from buyer_leads.models.enums import Bhk, City, PropertyType, Purpose, Source, Status, Timeline

logger = logging.getLogger(__name__)

# Fields a caller may set, in display order
EDITABLE_FIELDS = (
    "full_name",
    "email",
    "phone",
    "city",
    "property_type",
    "bhk",
    "purpose",
    "budget_min",
    "budget_max",
    "timeline",
    "source",
    "status",
    "notes",
    "tags",
)

READ_ONLY_FIELDS = ("id", "owner_id", "created_at", "updated_at")

SORTABLE_FIELDS = ("updated_at", "created_at", "full_name", "budget_min", "budget_max", "status")


@dataclass
class BuyerRecord:
    """Prospective property buyer owned by one agent."""

    id: str
    owner_id: str
    full_name: str
    phone: str
    city: City
    purpose: Purpose
    source: Source
    email: str | None = None
    property_type: PropertyType | None = None
    bhk: Bhk | None = None
    budget_min: int | None = None
    budget_max: int | None = None
    timeline: Timeline | None = None
    status: Status = Status.NEW
    notes: str | None = None
    tags: list[str] = field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "BuyerRecord":
        """Build a record from a storage row holding plain enum values."""

        def _opt(enum_cls: type, value: Any) -> Any:
            return enum_cls(value) if value not in (None, "") else None

        return cls(
            id=row["id"],
            owner_id=row["owner_id"],
            full_name=row["full_name"],
            phone=row["phone"],
            city=City(row["city"]),
            purpose=Purpose(row["purpose"]),
            source=Source(row["source"]),
            email=row.get("email") or None,
            property_type=_opt(PropertyType, row.get("property_type")),
            bhk=_opt(Bhk, row.get("bhk")),
            budget_min=row.get("budget_min"),
            budget_max=row.get("budget_max"),
            timeline=_opt(Timeline, row.get("timeline")),
            status=Status(row.get("status") or Status.NEW),
            notes=row.get("notes"),
            tags=decode_tags(row.get("tags")),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )

    def editable_values(self) -> dict[str, Any]:
        """Return the caller-editable fields as a mapping."""
        return {name: getattr(self, name) for name in EDITABLE_FIELDS}


@dataclass
class HistoryEntry:
    """Immutable audit record of one mutation to a buyer."""

    entry_id: str
    buyer_id: str
    changed_by: str
    diff: dict[str, Any]
    changed_at: datetime

    @property
    def action(self) -> str:
        """``created`` for the creation snapshot, ``updated`` otherwise."""
        return "created" if self.diff.get("action") == "created" else "updated"

    @property
    def changed_fields(self) -> list[str]:
        if self.action == "created":
            return []
        return list(self.diff)


@dataclass
class BuyerDetail:
    """A buyer together with its most recent history entries."""

    record: BuyerRecord
    recent_history: list[HistoryEntry] = field(default_factory=list)


@dataclass
class BuyerFilter:
    """Listing query over buyers."""

    search: str | None = None
    city: str | None = None
    property_type: str | None = None
    status: str | None = None
    timeline: str | None = None
    owner_id: str | None = None
    sort_by: str = "updated_at"
    descending: bool = True
    limit: int | None = None
    offset: int = 0

    def matches(self, record: BuyerRecord) -> bool:
        """Check a record against the search text and equality filters."""
        if self.search:
            needle = self.search.lower()
            haystacks = (record.full_name.lower(), (record.email or "").lower())
            if not any(needle in h for h in haystacks) and self.search not in record.phone:
                return False
        for name in ("city", "property_type", "status", "timeline", "owner_id"):
            wanted = getattr(self, name)
            if wanted is not None and getattr(record, name) != wanted:
                return False
        return True


def encode_tags(tags: list[str]) -> str:
    """Serialize tags for storage as a JSON array string."""
    return json.dumps(list(tags), ensure_ascii=False)


def decode_tags(value: str | list[str] | tuple[str, ...] | None) -> list[str]:
    """Decode stored tags into a list, preserving order.

    Accepts the JSON array string form, an already decoded sequence, or
    ``None``. Malformed JSON decodes to an empty list.
    """
    if value is None or value == "":
        return []
    if isinstance(value, str):
        try:
            decoded = json.loads(value)
        except ValueError:
            logger.warning("Failed to parse stored tags: %r", value)
            return []
        if not isinstance(decoded, list):
            logger.warning("Stored tags are not an array: %r", value)
            return []
        return [str(tag) for tag in decoded]
    return [str(tag) for tag in value]
