"""Buyer lead management: validation, audit history and persistence."""

from buyer_leads.exceptions import (
    BuyerLeadsError,
    ConflictError,
    EntityNotFoundError,
    FieldError,
    ForbiddenError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from buyer_leads.service import BuyerService

__version__ = "0.1.0"

__all__ = [
    "BuyerLeadsError",
    "BuyerService",
    "ConflictError",
    "EntityNotFoundError",
    "FieldError",
    "ForbiddenError",
    "NotFoundError",
    "PersistenceError",
    "ValidationError",
]
