"""Domain models for buyer leads."""

from buyer_leads.models.base import Event
from buyer_leads.models.buyer import (
    EDITABLE_FIELDS,
    READ_ONLY_FIELDS,
    SORTABLE_FIELDS,
    BuyerDetail,
    BuyerFilter,
    BuyerRecord,
    HistoryEntry,
    decode_tags,
    encode_tags,
)
from buyer_leads.models.enums import (
    BHK_PROPERTY_TYPES,
    Bhk,
    City,
    PropertyType,
    Purpose,
    Source,
    Status,
    Timeline,
)

__all__ = [
    "BHK_PROPERTY_TYPES",
    "Bhk",
    "BuyerDetail",
    "BuyerFilter",
    "BuyerRecord",
    "City",
    "EDITABLE_FIELDS",
    "Event",
    "HistoryEntry",
    "PropertyType",
    "Purpose",
    "READ_ONLY_FIELDS",
    "SORTABLE_FIELDS",
    "Source",
    "Status",
    "Timeline",
    "decode_tags",
    "encode_tags",
]
