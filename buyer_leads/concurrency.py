"""Optimistic-concurrency guard based on last-updated timestamps."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from buyer_leads.exceptions import ConflictError, FieldError, ValidationError

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def parse_timestamp(value: Any) -> datetime:
    """Parse an observed timestamp.

    Accepts a ``datetime``, an ISO-8601 string (``Z`` suffix allowed) or
    epoch milliseconds.

    Raises
    ------
    ValueError
        If the value cannot be interpreted as a timestamp.
    """
    if isinstance(value, datetime):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return EPOCH + timedelta(milliseconds=value)
        except OverflowError as e:
            raise ValueError(f"Timestamp out of range: {value!r}") from e
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        return datetime.fromisoformat(text)
    raise ValueError(f"Unsupported timestamp: {value!r}")


def truncate_to_millis(value: datetime) -> datetime:
    """Drop sub-millisecond precision, the resolution clients echo back."""
    return value.replace(microsecond=value.microsecond // 1000 * 1000)


def check_not_modified(
    buyer_id: str,
    persisted_at: datetime | None,
    observed_at: Any,
    fail_open: bool = True,
) -> None:
    """Refuse a write when the record changed after the caller read it.

    Both timestamps are compared at millisecond precision.

    Parameters
    ----------
    buyer_id : str
        Record being written, for error reporting.
    persisted_at : datetime | None
        ``updated_at`` of the stored record.
    observed_at : Any
        Caller's last known ``updated_at``; ``None`` skips the check.
    fail_open : bool
        When True a malformed ``observed_at`` skips the check; otherwise it
        is rejected with a ``ValidationError`` on ``updated_at``.

    Raises
    ------
    ConflictError
        If the stored record is newer than ``observed_at``.
    """
    if observed_at is None:
        return

    try:
        observed = parse_timestamp(observed_at)
        modified = truncate_to_millis(persisted_at) > truncate_to_millis(observed)
    except (AttributeError, TypeError, ValueError) as e:
        if not fail_open:
            raise ValidationError([FieldError("updated_at", "is not a valid timestamp")]) from e
        logger.warning("Skipping concurrency check for buyer %s: %s", buyer_id, e)
        return

    if modified:
        raise ConflictError(buyer_id, persisted_at, observed)
