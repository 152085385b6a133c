"""Enumeration types for buyer records."""

from enum import Enum


class City(str, Enum):
    CHANDIGARH = "Chandigarh"
    MOHALI = "Mohali"
    ZIRAKPUR = "Zirakpur"
    PANCHKULA = "Panchkula"
    OTHER = "Other"


class PropertyType(str, Enum):
    APARTMENT = "Apartment"
    VILLA = "Villa"
    PLOT = "Plot"
    OFFICE = "Office"
    RETAIL = "Retail"


class Bhk(str, Enum):
    ONE = "1"
    TWO = "2"
    THREE = "3"
    FOUR = "4"
    STUDIO = "Studio"


class Purpose(str, Enum):
    BUY = "Buy"
    RENT = "Rent"


class Timeline(str, Enum):
    WITHIN_3_MONTHS = "0-3m"
    WITHIN_6_MONTHS = "3-6m"
    BEYOND_6_MONTHS = ">6m"
    EXPLORING = "Exploring"


class Source(str, Enum):
    WEBSITE = "Website"
    REFERRAL = "Referral"
    WALK_IN = "Walk-in"
    CALL = "Call"
    OTHER = "Other"


class Status(str, Enum):
    NEW = "New"
    QUALIFIED = "Qualified"
    CONTACTED = "Contacted"
    VISITED = "Visited"
    NEGOTIATION = "Negotiation"
    CONVERTED = "Converted"
    DROPPED = "Dropped"


# Property types for which a bedroom count is mandatory
BHK_PROPERTY_TYPES = frozenset({PropertyType.APARTMENT, PropertyType.VILLA})
