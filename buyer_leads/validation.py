"""Validation and normalization of buyer candidates.

A candidate is a plain mapping as submitted by a form or API client. It may
describe a full record (create) or only the fields being changed (update).
Field checks are declared on pydantic models and all failures are collected;
cross-field rules run only once every field is individually well-formed.
"""

from __future__ import annotations

from dataclasses import replace
from enum import Enum
from typing import Any, ClassVar, Mapping

import pydantic
from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    conint,
    constr,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticCustomError

from buyer_leads.exceptions import FieldError, ValidationError
from buyer_leads.models import (
    BHK_PROPERTY_TYPES,
    READ_ONLY_FIELDS,
    SORTABLE_FIELDS,
    Bhk,
    BuyerFilter,
    BuyerRecord,
    City,
    PropertyType,
    Purpose,
    Source,
    Status,
    Timeline,
)

FULL_NAME_MIN_LENGTH = 2
NOTES_MAX_LENGTH = 1000

# Web layer spellings mapped onto attribute names
FIELD_ALIASES = {
    "fullName": "full_name",
    "propertyType": "property_type",
    "budgetMin": "budget_min",
    "budgetMax": "budget_max",
    "purposes": "purpose",
    "ownerId": "owner_id",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
}

BHK_REQUIRED_MESSAGE = "is required for Apartment and Villa property types"
BUDGET_ORDER_MESSAGE = "must be greater than or equal to budget_min"

# pydantic error type -> message
ERROR_MESSAGES = {
    "missing": "is required",
    "string_type": "must be a string",
    "string_too_short": "must be at least {min_length} characters long",
    "string_too_long": "must not exceed {max_length} characters",
    "string_pattern_mismatch": "must be 10-15 digits",
    "int_type": "must be a whole number",
    "int_parsing": "must be a whole number",
    "int_from_float": "must be a whole number",
    "greater_than_equal": "must not be negative",
    "list_type": "must be a list of strings",
}

# Messages that replace any shape error on the field
FIELD_MESSAGES = {
    "email": "must be a valid email address",
    "tags": "must be a list of strings",
}

FullName = constr(strip_whitespace=True, min_length=FULL_NAME_MIN_LENGTH)
Phone = constr(strip_whitespace=True, pattern=r"^[0-9]{10,15}$")
Notes = constr(max_length=NOTES_MAX_LENGTH)
Amount = conint(ge=0)

CHOICE_FIELDS: dict[str, type[Enum]] = {
    "city": City,
    "property_type": PropertyType,
    "bhk": Bhk,
    "purpose": Purpose,
    "timeline": Timeline,
    "source": Source,
}


def canonical_keys(candidate: Mapping[str, Any]) -> dict[str, Any]:
    """Rename aliased keys. A canonical key wins over its alias."""
    result = {k: v for k, v in candidate.items() if k not in FIELD_ALIASES}
    for alias, name in FIELD_ALIASES.items():
        if alias in candidate and name not in result:
            result[name] = candidate[alias]
    return result


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def parse_enum(enum_cls: type[Enum], value: Any) -> Any:
    """Match ``value`` to a member of ``enum_cls`` case-insensitively.

    Raises
    ------
    ValueError
        If no member matches.
    """
    if isinstance(value, enum_cls):
        return value
    if enum_cls is Bhk and isinstance(value, int) and not isinstance(value, bool):
        value = str(value)
    if isinstance(value, str):
        lookup = {member.value.lower(): member for member in enum_cls}
        member = lookup.get(value.strip().lower())
        if member is not None:
            return member
    choices = ", ".join(member.value for member in enum_cls)
    raise ValueError(f"must be one of: {choices}")


def _required() -> PydanticCustomError:
    return PydanticCustomError("missing", "is required")


def _enum_or_error(enum_cls: type[Enum], value: Any) -> Any:
    try:
        return parse_enum(enum_cls, value)
    except ValueError as e:
        raise PydanticCustomError("enum", str(e)) from e


class BuyerCandidate(BaseModel):
    """A complete buyer as submitted for creation.

    camelCase keys from the web layer and the form's ``purposes`` key are
    accepted alongside attribute names.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        loc_by_alias=False,
        extra="ignore",
    )

    partial_update: ClassVar[bool] = False

    full_name: FullName  # type: ignore[valid-type]
    email: EmailStr | None = None
    phone: Phone  # type: ignore[valid-type]
    city: City
    property_type: PropertyType | None = None
    bhk: Bhk | None = None
    purpose: Purpose = Field(validation_alias=AliasChoices("purpose", "purposes"))
    budget_min: Amount | None = None  # type: ignore[valid-type]
    budget_max: Amount | None = None  # type: ignore[valid-type]
    timeline: Timeline | None = None
    source: Source
    status: Status = Status.NEW
    notes: Notes | None = None  # type: ignore[valid-type]
    tags: list[str] = Field(default_factory=list)

    @field_validator("full_name", "phone", mode="before")
    @classmethod
    def _require_text(cls, value: Any) -> Any:
        if _is_blank(value):
            raise _required()
        return value

    @field_validator("city", "purpose", "source", mode="before")
    @classmethod
    def _require_choice(cls, value: Any, info: pydantic.ValidationInfo) -> Any:
        if _is_blank(value):
            raise _required()
        return _enum_or_error(CHOICE_FIELDS[info.field_name], value)

    @field_validator("property_type", "bhk", "timeline", mode="before")
    @classmethod
    def _optional_choice(cls, value: Any, info: pydantic.ValidationInfo) -> Any:
        if _is_blank(value):
            return None
        return _enum_or_error(CHOICE_FIELDS[info.field_name], value)

    @field_validator("status", mode="before")
    @classmethod
    def _status(cls, value: Any) -> Any:
        if _is_blank(value):
            if cls.partial_update:
                raise _required()
            return Status.NEW
        return _enum_or_error(Status, value)

    @field_validator("email", mode="before")
    @classmethod
    def _email(cls, value: Any) -> Any:
        if _is_blank(value):
            return None
        return value.strip() if isinstance(value, str) else value

    @field_validator("budget_min", "budget_max", mode="before")
    @classmethod
    def _amount(cls, value: Any) -> Any:
        if _is_blank(value):
            return None
        if isinstance(value, bool):
            raise PydanticCustomError("int_type", "must be a whole number")
        return value

    @field_validator("notes", mode="before")
    @classmethod
    def _notes(cls, value: Any) -> Any:
        return None if _is_blank(value) else value

    @field_validator("tags", mode="before")
    @classmethod
    def _tags_present(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("tags")
    @classmethod
    def _tags_deduplicated(cls, value: list[str]) -> list[str]:
        tags: list[str] = []
        for tag in value:
            tag = tag.strip()
            if tag and tag not in tags:
                tags.append(tag)
        return tags

    @model_validator(mode="after")
    def _cross_field_rules(self) -> "BuyerCandidate":
        supplied = self.model_fields_set if self.partial_update else set(type(self).model_fields)
        errors: list[FieldError] = []

        if "property_type" in supplied:
            if self.property_type in BHK_PROPERTY_TYPES:
                # Partial updates leave this to validate_merged, which sees the stored bhk
                if self.bhk is None and not self.partial_update:
                    errors.append(FieldError("bhk", BHK_REQUIRED_MESSAGE))
            else:
                self.bhk = None

        if {"budget_min", "budget_max"} <= supplied:
            if self.budget_min is not None and self.budget_max is not None and self.budget_max < self.budget_min:
                errors.append(FieldError("budget_max", BUDGET_ORDER_MESSAGE))

        if errors:
            # Not a ValueError, so pydantic lets it through unchanged
            raise ValidationError(errors)
        return self


class BuyerChanges(BuyerCandidate):
    """A partial update: only the supplied fields are checked."""

    partial_update: ClassVar[bool] = True

    full_name: FullName | None = None  # type: ignore[valid-type]
    phone: Phone | None = None  # type: ignore[valid-type]
    city: City | None = None
    purpose: Purpose | None = Field(default=None, validation_alias=AliasChoices("purpose", "purposes"))
    source: Source | None = None
    status: Status | None = None
    tags: list[str] | None = None


def _field_error(error: Mapping[str, Any]) -> FieldError:
    loc = error["loc"]
    field = str(loc[0]) if loc else "candidate"
    if error["type"] != "missing" and field in FIELD_MESSAGES:
        return FieldError(field, FIELD_MESSAGES[field])
    template = ERROR_MESSAGES.get(error["type"])
    if template is None:
        return FieldError(field, error["msg"])
    return FieldError(field, template.format(**error.get("ctx", {})))


def validate_buyer(candidate: Mapping[str, Any], partial: bool = False) -> dict[str, Any]:
    """Validate and normalize a buyer candidate.

    Parameters
    ----------
    candidate : Mapping[str, Any]
        Submitted fields, snake_case or web-layer camelCase.
    partial : bool
        When True only the supplied fields are checked (update flows).

    Returns
    -------
    dict[str, Any]
        Normalized values keyed by attribute name. For a full candidate every
        editable field is present with defaults applied.

    Raises
    ------
    ValidationError
        Carrying every field failure found.
    """
    read_only = [
        FieldError(name, "is read-only") for name in READ_ONLY_FIELDS if name in canonical_keys(candidate)
    ]
    model_cls = BuyerChanges if partial else BuyerCandidate

    try:
        model = model_cls.model_validate(dict(candidate))
    except pydantic.ValidationError as e:
        raise ValidationError(read_only + [_field_error(error) for error in e.errors()]) from e
    except ValidationError as e:
        raise ValidationError(read_only + e.errors) from e

    if read_only:
        raise ValidationError(read_only)

    if partial:
        return model.model_dump(include=set(model.model_fields_set))
    return model.model_dump()


def validate_merged(previous: BuyerRecord, changes: Mapping[str, Any]) -> dict[str, Any]:
    """Re-check cross-field rules for ``changes`` applied over ``previous``.

    ``changes`` must already be normalized by :func:`validate_buyer`. A bhk
    supplied for a property type that takes none is dropped to ``None``.

    Returns
    -------
    dict[str, Any]
        The changes to apply.
    """
    result = dict(changes)
    merged = previous.editable_values()
    merged.update(result)
    errors: list[FieldError] = []

    if merged["property_type"] in BHK_PROPERTY_TYPES:
        if merged["bhk"] is None:
            errors.append(FieldError("bhk", BHK_REQUIRED_MESSAGE))
    elif result.get("bhk") is not None:
        result["bhk"] = None

    budget_min = merged["budget_min"]
    budget_max = merged["budget_max"]
    if budget_min is not None and budget_max is not None and budget_max < budget_min:
        errors.append(FieldError("budget_max", BUDGET_ORDER_MESSAGE))

    if errors:
        raise ValidationError(errors)
    return result


def normalize_filter(filters: BuyerFilter) -> BuyerFilter:
    """Canonicalize enum filters and check sorting and paging arguments."""
    errors: list[FieldError] = []
    values: dict[str, Any] = {}

    for name, enum_cls in (
        ("city", City),
        ("property_type", PropertyType),
        ("status", Status),
        ("timeline", Timeline),
    ):
        value = getattr(filters, name)
        if _is_blank(value):
            values[name] = None
            continue
        try:
            values[name] = parse_enum(enum_cls, value)
        except ValueError as e:
            errors.append(FieldError(name, str(e)))

    if filters.sort_by not in SORTABLE_FIELDS:
        errors.append(FieldError("sort_by", f"must be one of: {', '.join(SORTABLE_FIELDS)}"))
    if filters.limit is not None and filters.limit < 0:
        errors.append(FieldError("limit", "must not be negative"))
    if filters.offset < 0:
        errors.append(FieldError("offset", "must not be negative"))

    if errors:
        raise ValidationError(errors)

    search = filters.search.strip() if filters.search else None
    return replace(filters, search=search or None, **values)
