"""Buyer lifecycle operations: create, update, delete and reads.

Every mutation runs the same pipeline inside one store transaction:
ownership gate, validation, concurrency guard, diff, write plus history
append. Audit events are published to sinks only after the commit.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Sequence

from buyer_leads.audit import build_history_entry, creation_diff, diff_records, should_record_history
from buyer_leads.concurrency import check_not_modified
from buyer_leads.config import AuditConfig
from buyer_leads.exceptions import EntityNotFoundError, ForbiddenError
from buyer_leads.models import BuyerDetail, BuyerFilter, BuyerRecord, Event, HistoryEntry
from buyer_leads.sinks.serialization import to_dict
from buyer_leads.store.base import BuyerStore, BuyerTransaction
from buyer_leads.validation import canonical_keys, normalize_filter, validate_buyer, validate_merged

logger = logging.getLogger(__name__)

EVENT_SOURCE = "buyer-leads"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def authorize(record: BuyerRecord | None, buyer_id: str, user_id: str) -> BuyerRecord:
    """Ensure the buyer exists and belongs to ``user_id``.

    Raises
    ------
    EntityNotFoundError
        If there is no such buyer.
    ForbiddenError
        If the buyer is owned by someone else.
    """
    if record is None:
        raise EntityNotFoundError(f"Buyer {buyer_id} not found")
    if record.owner_id != user_id:
        raise ForbiddenError(f"Buyer {buyer_id} is not owned by user {user_id}")
    return record


class BuyerService:
    """Coordinates validation, auditing and persistence of buyers.

    Parameters
    ----------
    store : BuyerStore
        Persistence backend.
    sinks : Sequence[Any] | None
        Objects with a ``publish(event)`` method receiving committed audit
        events.
    audit : AuditConfig | None
        Audit and concurrency settings.
    clock : Callable[[], datetime] | None
        Source of timestamps (UTC ``datetime.now`` by default).
    """

    def __init__(
        self,
        store: BuyerStore,
        sinks: Sequence[Any] | None = None,
        audit: AuditConfig | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.store = store
        self.sinks = list(sinks or [])
        self.audit = audit or AuditConfig()
        self._clock = clock or utcnow

    def create_record(self, candidate: Mapping[str, Any], owner_id: str) -> BuyerRecord:
        """Validate and store a new buyer owned by ``owner_id``.

        A ``created`` history entry with a full snapshot is always written.

        Raises
        ------
        ValidationError
            If the candidate is malformed.
        """
        values = validate_buyer(candidate)
        now = self._clock()
        record = BuyerRecord(
            id=uuid.uuid4().hex,
            owner_id=owner_id,
            created_at=now,
            updated_at=now,
            **values,
        )
        entry = build_history_entry(record.id, owner_id, creation_diff(record), now)

        def _write(tx: BuyerTransaction) -> BuyerRecord:
            created = tx.insert(record)
            tx.append_history(entry)
            return created

        created = self.store.transactionally(_write)
        logger.info("Created buyer %s", created.id, extra={"buyer_id": created.id, "user_id": owner_id})
        self._publish("buyer.created", entry)
        return created

    def update_record(
        self,
        buyer_id: str,
        candidate: Mapping[str, Any],
        owner_id: str,
        observed_updated_at: Any = None,
    ) -> BuyerRecord:
        """Apply a partial update to a buyer owned by ``owner_id``.

        ``observed_updated_at`` is the caller's last known ``updated_at``. If
        it is not given, an ``updated_at`` key in the candidate is used
        instead. An update that changes nothing succeeds without writing.

        Raises
        ------
        EntityNotFoundError, ForbiddenError
            Checked before any validation.
        ValidationError
            If the supplied fields are malformed.
        ConflictError
            If the buyer changed after ``observed_updated_at``.
        """
        fields = canonical_keys(candidate)
        embedded = fields.pop("updated_at", None)
        observed = observed_updated_at if observed_updated_at is not None else embedded

        def _write(tx: BuyerTransaction) -> tuple[BuyerRecord, HistoryEntry | None]:
            previous = authorize(tx.get_for_update(buyer_id), buyer_id, owner_id)
            changes = validate_merged(previous, validate_buyer(fields, partial=True))
            check_not_modified(
                buyer_id, previous.updated_at, observed, fail_open=self.audit.fail_open_timestamps
            )

            change_set = diff_records(previous, changes)
            if not should_record_history(change_set):
                return previous, None

            now = self._clock()
            updated = tx.update(buyer_id, {name: changes[name] for name in change_set}, now)
            entry = build_history_entry(buyer_id, owner_id, change_set, now)
            tx.append_history(entry)
            return updated, entry

        record, entry = self.store.transactionally(_write)
        if entry is None:
            logger.debug("No changes for buyer %s", buyer_id)
            return record

        logger.info(
            "Updated buyer %s: %s",
            buyer_id,
            ", ".join(entry.changed_fields),
            extra={"buyer_id": buyer_id, "user_id": owner_id},
        )
        self._publish("buyer.updated", entry)
        return record

    def delete_record(self, buyer_id: str, owner_id: str) -> None:
        """Delete a buyer owned by ``owner_id`` together with its history.

        Raises
        ------
        EntityNotFoundError, ForbiddenError
        """

        def _write(tx: BuyerTransaction) -> BuyerRecord:
            record = authorize(tx.get_for_update(buyer_id), buyer_id, owner_id)
            tx.delete(buyer_id)
            return record

        deleted = self.store.transactionally(_write)
        logger.info("Deleted buyer %s", buyer_id, extra={"buyer_id": buyer_id, "user_id": owner_id})
        self._emit(
            "buyer.deleted",
            buyer_id,
            {"buyer_id": buyer_id, "deleted_by": owner_id, "data": to_dict(deleted)},
            owner_id,
        )

    def get_record(self, buyer_id: str) -> BuyerDetail:
        """Fetch a buyer with its most recent history entries."""
        record = self.store.get(buyer_id)
        if record is None:
            raise EntityNotFoundError(f"Buyer {buyer_id} not found")
        history = self.store.list_history(buyer_id, limit=self.audit.recent_history_limit)
        return BuyerDetail(record=record, recent_history=history)

    def list_records(self, filters: BuyerFilter | None = None) -> list[BuyerRecord]:
        """List buyers matching ``filters`` (all buyers, newest first, by default)."""
        return self.store.list_buyers(normalize_filter(filters or BuyerFilter()))

    def list_history(self, buyer_id: str, limit: int | None = None) -> list[HistoryEntry]:
        """List the full history of a buyer, newest first."""
        if self.store.get(buyer_id) is None:
            raise EntityNotFoundError(f"Buyer {buyer_id} not found")
        return self.store.list_history(buyer_id, limit=limit)

    def _publish(self, event_type: str, entry: HistoryEntry) -> None:
        self._emit(event_type, entry.buyer_id, to_dict(entry), entry.changed_by)

    def _emit(self, event_type: str, buyer_id: str, data: dict, user_id: str) -> None:
        if not self.sinks:
            return

        event = Event(
            event_id=uuid.uuid4().hex,
            event_type=event_type,
            event_time=self._clock(),
            source=EVENT_SOURCE,
            subject=buyer_id,
            data=data,
            metadata={"user_id": user_id},
        )
        for sink in self.sinks:
            # The write is already committed
            try:
                sink.publish(event)
            except Exception:
                logger.exception("Failed to publish %s for buyer %s", event_type, buyer_id)
