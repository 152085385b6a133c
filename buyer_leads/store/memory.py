"""In-memory buyer store with transactional rollback."""

import copy
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Iterator

from buyer_leads.exceptions import EntityNotFoundError, PersistenceError
from buyer_leads.models import BuyerFilter, BuyerRecord, HistoryEntry
from buyer_leads.store.base import BuyerStore, BuyerTransaction


def _sort_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, str):
        return value.lower()
    return value


@dataclass
class InMemoryBuyerStore(BuyerStore):
    """In-memory store for buyers with history tracking.

    Transactions are serialized with a re-entrant lock. State is
    snapshotted when a transaction opens and restored if it raises.
    """

    buyers: dict[str, BuyerRecord] = field(default_factory=dict)

    # Relationship index
    _buyer_history: dict[str, list[HistoryEntry]] = field(default_factory=dict)

    _lock: threading.RLock = field(default_factory=threading.RLock, repr=False)

    @contextmanager
    def transaction(self) -> Iterator["MemoryTransaction"]:
        with self._lock:
            snapshot = copy.deepcopy((self.buyers, self._buyer_history))
            try:
                yield MemoryTransaction(self)
            except BaseException:
                self.buyers, self._buyer_history = snapshot
                raise

    def get(self, buyer_id: str) -> BuyerRecord | None:
        with self._lock:
            record = self.buyers.get(buyer_id)
            return copy.deepcopy(record)

    def list_buyers(self, filters: BuyerFilter) -> list[BuyerRecord]:
        with self._lock:
            matched = [r for r in self.buyers.values() if filters.matches(r)]

        # NULLs sort last in both directions
        present = [r for r in matched if getattr(r, filters.sort_by) is not None]
        missing = [r for r in matched if getattr(r, filters.sort_by) is None]
        present.sort(key=lambda r: _sort_value(getattr(r, filters.sort_by)), reverse=filters.descending)

        ordered = present + missing
        end = None if filters.limit is None else filters.offset + filters.limit
        return [copy.deepcopy(r) for r in ordered[filters.offset:end]]

    def list_history(self, buyer_id: str, limit: int | None = None) -> list[HistoryEntry]:
        with self._lock:
            entries = list(reversed(self._buyer_history.get(buyer_id, [])))
        if limit is not None:
            entries = entries[:limit]
        return copy.deepcopy(entries)

    def summary(self) -> dict[str, int]:
        """Return summary counts of stored entities."""
        return {
            "buyers": len(self.buyers),
            "history_entries": sum(len(v) for v in self._buyer_history.values()),
        }


class MemoryTransaction(BuyerTransaction):
    """Transaction handle over an :class:`InMemoryBuyerStore`."""

    def __init__(self, store: InMemoryBuyerStore) -> None:
        self._store = store

    def get_for_update(self, buyer_id: str) -> BuyerRecord | None:
        return copy.deepcopy(self._store.buyers.get(buyer_id))

    def insert(self, record: BuyerRecord) -> BuyerRecord:
        if record.id in self._store.buyers:
            raise PersistenceError(f"Buyer {record.id} already exists")
        self._store.buyers[record.id] = copy.deepcopy(record)
        self._store._buyer_history[record.id] = []
        return copy.deepcopy(record)

    def update(self, buyer_id: str, changes: dict[str, Any], updated_at: datetime) -> BuyerRecord:
        current = self._store.buyers.get(buyer_id)
        if current is None:
            raise EntityNotFoundError(f"Buyer {buyer_id} not found")
        updated = replace(current, **copy.deepcopy(changes), updated_at=updated_at)
        self._store.buyers[buyer_id] = updated
        return copy.deepcopy(updated)

    def delete(self, buyer_id: str) -> None:
        if self._store.buyers.pop(buyer_id, None) is None:
            raise EntityNotFoundError(f"Buyer {buyer_id} not found")
        self._store._buyer_history.pop(buyer_id, None)

    def append_history(self, entry: HistoryEntry) -> None:
        if entry.buyer_id not in self._store.buyers:
            raise PersistenceError(f"Buyer {entry.buyer_id} not found for history entry")
        self._store._buyer_history[entry.buyer_id].append(copy.deepcopy(entry))
