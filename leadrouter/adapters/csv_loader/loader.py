"""CSV loader — reads and normalizes agent and lead data files."""

from __future__ import annotations

import csv
import logging
from pathlib import Path

from leadrouter.adapters.csv_loader.normalizer import (
    clean_string,
    normalize_column_name,
    parse_availability,
    parse_property_type,
    parse_specializations,
)

logger = logging.getLogger(__name__)


def _sniff_dialect(sample: str) -> type[csv.Dialect]:
    """Detect the delimiter (comma/semicolon/tab) from the header line."""
    if not sample:
        return csv.excel

    first_line = sample.splitlines()[0]
    delims = [";", ",", "\t"]
    counts = {d: first_line.count(d) for d in delims}
    best_delim = max(counts, key=counts.get)

    if counts[best_delim] > 0:
        class DynamicDialect(csv.excel):
            delimiter = best_delim
        return DynamicDialect
    return csv.excel


def _read_csv(file_path: Path, encoding: str = "utf-8-sig") -> list[dict[str, str | None]]:
    """Read a CSV file with BOM handling and column normalization.

    Args:
        file_path: path to the CSV file.
        encoding: file encoding (utf-8-sig strips BOM automatically).

    Returns:
        List of dicts with normalized column names.
    """
    with open(file_path, encoding=encoding, newline="") as f:
        sample = f.read(4096)
        f.seek(0)
        reader = csv.DictReader(f, dialect=_sniff_dialect(sample))
        if reader.fieldnames is None:
            raise ValueError(f"CSV file {file_path} has no header row")

        col_map = {col: normalize_column_name(col) for col in reader.fieldnames}
        rows = [
            {col_map[k]: clean_string(v) for k, v in raw_row.items() if k is not None}
            for raw_row in reader
        ]

    logger.info("Loaded %d rows from %s (columns: %s)", len(rows), file_path.name, list(col_map.values()))
    return rows


def load_agents(file_path: Path) -> list[dict]:
    """Load and normalize the agents CSV.

    Expected columns (after normalization):
        id, name, location, specializations, max_capacity, current_leads,
        conversion_rate, avg_response_time, closed_deals, availability
    """
    agents = []
    for row in _read_csv(file_path):
        agent_id = row.get("id") or row.get("user_id") or row.get("agent_id")
        if not agent_id:
            logger.warning("Agent row without id skipped: %s", row)
            continue
        agents.append({
            "id": agent_id,
            "name": row.get("name") or agent_id,
            "location": row.get("location"),
            "specializations": parse_specializations(row.get("specializations")),
            "max_capacity": _parse_int(row.get("max_capacity") or row.get("maxcapacity")),
            "current_lead_count": _parse_int(
                row.get("current_leads") or row.get("current_lead_count")
            ),
            "conversion_rate_pct": _parse_float(
                row.get("conversion_rate") or row.get("conversion_rate_pct")
            ) or 0.0,
            "avg_response_time_minutes": _parse_float(
                row.get("avg_response_time") or row.get("average_response_time")
            ) or 60.0,
            "closed_deals": _parse_int(row.get("closed_deals")),
            "availability": parse_availability(row.get("availability")),
        })
    logger.info("Parsed %d agents", len(agents))
    return agents


def load_leads(file_path: Path) -> list[dict]:
    """Load and normalize the leads CSV.

    Expected columns (after normalization):
        id, property_type, preferred_location, budget_min, budget_max,
        lead_score, source, assigned_user_id
    """
    leads = []
    for row in _read_csv(file_path):
        lead_id = row.get("id") or row.get("lead_id")
        if not lead_id:
            logger.warning("Lead row without id skipped: %s", row)
            continue
        raw_type = row.get("property_type")
        property_type = parse_property_type(raw_type)
        if raw_type and property_type is None:
            logger.warning("Lead %s: unknown property type '%s'", lead_id, raw_type)
        leads.append({
            "id": lead_id,
            "property_type": property_type,
            "preferred_location": row.get("preferred_location") or row.get("location"),
            "budget_min": _parse_float(row.get("budget_min")),
            "budget_max": _parse_float(row.get("budget_max")),
            "lead_score": _parse_int(row.get("lead_score")),
            "source": row.get("source") or row.get("lead_source"),
            "assigned_agent_id": row.get("assigned_user_id") or row.get("assigned_agent_id"),
        })
    logger.info("Parsed %d leads", len(leads))
    return leads


def _parse_float(value: str | None) -> float | None:
    """Parse a float, accepting decimal commas (24,5) and thousands separators ($1,200)."""
    if not value:
        return None
    cleaned = value.replace("$", "").replace("%", "").strip()
    if "," in cleaned and "." not in cleaned and cleaned.count(",") == 1 and len(cleaned.split(",")[1]) != 3:
        cleaned = cleaned.replace(",", ".")
    else:
        cleaned = cleaned.replace(",", "")
    try:
        return float(cleaned)
    except ValueError:
        return None


def _parse_int(value: str | None) -> int:
    if not value:
        return 0
    parsed = _parse_float(value)
    return int(parsed) if parsed is not None else 0
