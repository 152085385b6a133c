"""Field-level diffing and history entry construction."""

import uuid
from datetime import datetime
from typing import Any, Mapping

from buyer_leads.models import BuyerRecord, HistoryEntry, decode_tags
from buyer_leads.sinks.serialization import serialize_value

CREATED_ACTION = "created"

ChangeSet = dict[str, dict[str, Any]]


def diff_records(previous: BuyerRecord | Mapping[str, Any], candidate: Mapping[str, Any]) -> ChangeSet:
    """Compute the minimal change set from ``previous`` to ``candidate``.

    Only fields present in ``candidate`` are compared. Values are compared
    after serialization, so an enum member equals its plain value. Tags are
    compared as decoded, ordered lists.

    Parameters
    ----------
    previous : BuyerRecord | Mapping[str, Any]
        Persisted record (or its field mapping).
    candidate : Mapping[str, Any]
        Validated fields being written.

    Returns
    -------
    ChangeSet
        ``{field: {"old": ..., "new": ...}}`` for each differing field.
    """
    old_values = previous.editable_values() if isinstance(previous, BuyerRecord) else previous
    changes: ChangeSet = {}

    for name, new in candidate.items():
        old = old_values.get(name)
        if name == "tags":
            old, new = decode_tags(old), decode_tags(new)
        old, new = serialize_value(old), serialize_value(new)
        if old != new:
            changes[name] = {"old": old, "new": new}

    return changes


def should_record_history(change_set: ChangeSet) -> bool:
    """An update is audited only when at least one field differs."""
    return bool(change_set)


def creation_diff(record: BuyerRecord) -> dict[str, Any]:
    """History payload for a newly created buyer: action marker plus snapshot."""
    return {"action": CREATED_ACTION, "data": serialize_value(record.editable_values())}


def build_history_entry(
    buyer_id: str,
    changed_by: str,
    diff: dict[str, Any],
    changed_at: datetime,
) -> HistoryEntry:
    """Create a new history entry with a fresh identifier."""
    return HistoryEntry(
        entry_id=uuid.uuid4().hex,
        buyer_id=buyer_id,
        changed_by=changed_by,
        diff=diff,
        changed_at=changed_at,
    )
