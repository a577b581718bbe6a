"""Domain enums — pure Python, no external dependencies."""

from enum import Enum


class PropertyType(str, Enum):
    SINGLE_FAMILY = "Single Family"
    CONDO = "Condo"
    TOWNHOUSE = "Townhouse"
    MULTI_FAMILY = "Multi Family"
    COMMERCIAL = "Commercial"
    LAND = "Land"


class Availability(str, Enum):
    AVAILABLE = "Available"
    BUSY = "Busy"
    OFFLINE = "Offline"


class RuleType(str, Enum):
    GEOLOCATION = "geolocation"
    CAPACITY = "capacity"
    SPECIALIZATION = "specialization"


class CapacityBand(str, Enum):
    GREEN = "green"
    YELLOW = "yellow"
    RED = "red"


class FailureReason(str, Enum):
    VALIDATION = "ValidationError"
    NOT_FOUND = "NotFound"
    NO_ELIGIBLE_AGENT = "NoEligibleAgent"
    PERSISTENCE = "PersistenceError"
