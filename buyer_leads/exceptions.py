"""Custom exception hierarchy for buyer-leads."""

from __future__ import annotations

from datetime import datetime
from typing import NamedTuple


class BuyerLeadsError(Exception):
    """Base exception for all buyer-leads errors."""


class FieldError(NamedTuple):
    """A single field-level validation failure."""

    field: str
    message: str


class ValidationError(BuyerLeadsError):
    """Raised when a candidate buyer record is malformed.

    Parameters
    ----------
    errors : list[FieldError]
        Every failure found, in evaluation order.
    """

    def __init__(self, errors: list[FieldError]) -> None:
        self.errors = list(errors)
        summary = "; ".join(f"{e.field}: {e.message}" for e in self.errors)
        super().__init__(f"Validation failed: {summary}")

    @property
    def fields(self) -> list[str]:
        """Field names with at least one error, in order of first failure."""
        return list(dict.fromkeys(e.field for e in self.errors))

    def as_dict(self) -> dict[str, list[str]]:
        """Group error messages by field name."""
        grouped: dict[str, list[str]] = {}
        for error in self.errors:
            grouped.setdefault(error.field, []).append(error.message)
        return grouped


class ConflictError(BuyerLeadsError):
    """Raised when a record was modified after the caller last read it."""

    def __init__(
        self,
        buyer_id: str,
        persisted_at: datetime,
        observed_at: datetime,
    ) -> None:
        self.buyer_id = buyer_id
        self.persisted_at = persisted_at
        self.observed_at = observed_at
        super().__init__(
            f"Buyer {buyer_id} modified since last read "
            f"(persisted {persisted_at.isoformat()}, observed {observed_at.isoformat()})"
        )


class EntityNotFoundError(BuyerLeadsError):
    """Raised when a referenced entity does not exist."""


NotFoundError = EntityNotFoundError


class ForbiddenError(BuyerLeadsError):
    """Raised when the caller does not own the record it tries to mutate."""


class PersistenceError(BuyerLeadsError):
    """Raised when a store transaction fails. Nothing was written."""


class ConfigurationError(BuyerLeadsError):
    """Raised when configuration is invalid or missing."""


class SinkError(BuyerLeadsError):
    """Raised when a sink operation fails."""
