"""Persistence contract for buyers and their history."""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from datetime import datetime
from typing import Any, Callable, TypeVar

from buyer_leads.models import BuyerFilter, BuyerRecord, HistoryEntry

T = TypeVar("T")


class BuyerTransaction(ABC):
    """Read-then-write access to buyers within one transaction.

    Everything done through a transaction commits together or not at all.
    """

    @abstractmethod
    def get_for_update(self, buyer_id: str) -> BuyerRecord | None:
        """Load a buyer and hold it against concurrent writers."""

    @abstractmethod
    def insert(self, record: BuyerRecord) -> BuyerRecord:
        """Insert a new buyer. Duplicate identifiers fail."""

    @abstractmethod
    def update(self, buyer_id: str, changes: dict[str, Any], updated_at: datetime) -> BuyerRecord:
        """Apply field changes and stamp ``updated_at``."""

    @abstractmethod
    def delete(self, buyer_id: str) -> None:
        """Delete a buyer together with its history."""

    @abstractmethod
    def append_history(self, entry: HistoryEntry) -> None:
        """Append an audit entry."""


class BuyerStore(ABC):
    """Storage backend for buyer records."""

    @abstractmethod
    def transaction(self) -> AbstractContextManager[BuyerTransaction]:
        """Open a transaction; it rolls back if the block raises."""

    def transactionally(self, fn: Callable[[BuyerTransaction], T]) -> T:
        """Run ``fn`` inside a single transaction and return its result."""
        with self.transaction() as tx:
            return fn(tx)

    @abstractmethod
    def get(self, buyer_id: str) -> BuyerRecord | None:
        """Fetch a buyer without locking."""

    @abstractmethod
    def list_buyers(self, filters: BuyerFilter) -> list[BuyerRecord]:
        """List buyers matching ``filters`` in the requested order."""

    @abstractmethod
    def list_history(self, buyer_id: str, limit: int | None = None) -> list[HistoryEntry]:
        """List history entries for a buyer, newest first."""

    def close(self) -> None:
        """Release backend resources."""
