"""CSV value normalization — column names, blanks, property types."""

from __future__ import annotations

import re

from leadrouter.domain.value_objects.enums import Availability, PropertyType

# "singlefamily" -> PropertyType.SINGLE_FAMILY, etc.
_PROPERTY_TYPE_KEYS: dict[str, PropertyType] = {
    re.sub(r"[^a-z]", "", pt.value.lower()): pt for pt in PropertyType
}


def normalize_column_name(name: str) -> str:
    """Normalize a CSV column name.

    - Removes BOM characters (\\ufeff)
    - Strips leading/trailing whitespace
    - Replaces runs of spaces / non-breaking spaces with a single underscore
    - Lowercases
    - Strips anything that is not alphanumeric or underscore
    """
    name = name.replace("\ufeff", "")
    name = name.strip()
    name = re.sub(r"[\s\u00a0]+", "_", name)
    name = name.lower()
    name = re.sub(r"[^\w]", "", name, flags=re.UNICODE)
    return name


def clean_string(value: str | None) -> str | None:
    """Strip whitespace and return None for empty strings."""
    if value is None:
        return None
    value = value.strip()
    return value if value else None


def parse_property_type(raw: str | None) -> PropertyType | None:
    """'single-family', 'Single Family', 'SINGLE_FAMILY' all map to SINGLE_FAMILY."""
    if not raw:
        return None
    return _PROPERTY_TYPE_KEYS.get(re.sub(r"[^a-z]", "", raw.lower()))


def parse_specializations(raw: str | None) -> set[PropertyType]:
    """Parse 'Condo; Single Family' into property types; unknown entries are dropped.

    Separators are comma, semicolon and pipe. Whitespace is not a separator
    because several property types contain a space.
    """
    if not raw:
        return set()
    parts = re.split(r"[,;|]+", raw.strip())
    return {pt for pt in (parse_property_type(p) for p in parts) if pt is not None}


def parse_availability(raw: str | None) -> Availability:
    if not raw:
        return Availability.AVAILABLE
    for availability in Availability:
        if availability.value.lower() == raw.strip().lower():
            return availability
    return Availability.AVAILABLE
