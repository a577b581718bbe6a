"""Rule codec — converts assignment rules to and from their JSON shape.

Wire and storage format, one record per rule:

    {"id", "name", "rule_type", "rule_data", "priority", "is_active", "conditions"}

rule_data per type:
    geolocation     {"areas": [str], "agents": [agent_id]}
    capacity        {"max_leads_per_agent": int | null,
                     "capacity_thresholds": {"green", "yellow", "red"}}
    specialization  {"specializations": {PropertyType: [agent_id]}}

Keys inside rule_data that the engine does not use (e.g. "overflow_strategy")
are carried through unchanged.
"""

from __future__ import annotations

from typing import Any

from leadrouter.domain.entities.assignment_rule import (
    AssignmentRule,
    CapacityRuleData,
    GeolocationRuleData,
    RuleConditions,
    RuleData,
    RuleSet,
    SpecializationRuleData,
)
from leadrouter.domain.errors import RuleValidationError
from leadrouter.domain.value_objects.capacity_thresholds import (
    DEFAULT_THRESHOLDS,
    CapacityThresholds,
)
from leadrouter.domain.value_objects.enums import PropertyType, RuleType

GEO_KEYS = {"areas", "agents"}
CAPACITY_KEYS = {"max_leads_per_agent", "capacity_thresholds"}
SPECIALIZATION_KEYS = {"specializations"}

COLLECTION_KEYS: dict[RuleType, str] = {
    RuleType.GEOLOCATION: "geolocationRules",
    RuleType.CAPACITY: "capacityRules",
    RuleType.SPECIALIZATION: "specializationRules",
}


# ─── Helpers ─────────────────────────────────────────────────────────


def _str_list(raw: Any, field_name: str) -> tuple[str, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, list) or not all(isinstance(v, (str, int)) for v in raw):
        raise RuleValidationError(f"'{field_name}' must be a list of strings")
    return tuple(str(v).strip() for v in raw if str(v).strip())


def _number(raw: Any, field_name: str) -> float:
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise RuleValidationError(f"'{field_name}' must be a number (got {raw!r})")
    return float(raw)


def _extras(payload: dict, known: set[str]) -> dict:
    return {k: v for k, v in payload.items() if k not in known}


def _flag(raw: Any, field_name: str, default: bool) -> bool:
    if raw is None:
        return default
    if not isinstance(raw, bool):
        raise RuleValidationError(f"'{field_name}' must be true or false (got {raw!r})")
    return raw


# ─── rule_data ───────────────────────────────────────────────────────


def payload_to_data(rule_type: RuleType, payload: Any) -> RuleData:
    """Parse a rule_data dict into the payload variant for *rule_type*."""
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise RuleValidationError("'rule_data' must be an object")

    if rule_type == RuleType.GEOLOCATION:
        return GeolocationRuleData(
            coverage_areas=_str_list(payload.get("areas"), "areas"),
            eligible_agent_ids=_str_list(payload.get("agents"), "agents"),
            extra=_extras(payload, GEO_KEYS),
        )

    if rule_type == RuleType.CAPACITY:
        raw_thresholds = payload.get("capacity_thresholds")
        if raw_thresholds is None:
            thresholds = DEFAULT_THRESHOLDS
        elif isinstance(raw_thresholds, dict):
            thresholds = CapacityThresholds(
                green=_number(raw_thresholds.get("green", DEFAULT_THRESHOLDS.green), "green"),
                yellow=_number(raw_thresholds.get("yellow", DEFAULT_THRESHOLDS.yellow), "yellow"),
                red=_number(raw_thresholds.get("red", DEFAULT_THRESHOLDS.red), "red"),
            )
        else:
            raise RuleValidationError("'capacity_thresholds' must be an object")

        max_leads = payload.get("max_leads_per_agent")
        if max_leads is not None and (isinstance(max_leads, bool) or not isinstance(max_leads, int)):
            raise RuleValidationError("'max_leads_per_agent' must be an integer")
        return CapacityRuleData(
            thresholds=thresholds,
            max_leads_per_agent=max_leads,
            extra=_extras(payload, CAPACITY_KEYS),
        )

    raw_map = payload.get("specializations") or {}
    if not isinstance(raw_map, dict):
        raise RuleValidationError("'specializations' must be an object")
    mapping: dict[PropertyType, tuple[str, ...]] = {}
    for key, agent_ids in raw_map.items():
        try:
            property_type = PropertyType(key)
        except ValueError:
            raise RuleValidationError(f"unknown property type '{key}'") from None
        mapping[property_type] = _str_list(agent_ids, f"specializations.{key}")
    return SpecializationRuleData(
        specializations=mapping,
        extra=_extras(payload, SPECIALIZATION_KEYS),
    )


def data_to_payload(data: RuleData) -> dict:
    if isinstance(data, GeolocationRuleData):
        known = {"areas": list(data.coverage_areas), "agents": list(data.eligible_agent_ids)}
    elif isinstance(data, CapacityRuleData):
        known = {
            "max_leads_per_agent": data.max_leads_per_agent,
            "capacity_thresholds": {
                "green": data.thresholds.green,
                "yellow": data.thresholds.yellow,
                "red": data.thresholds.red,
            },
        }
    else:
        known = {
            "specializations": {
                pt.value: list(agent_ids) for pt, agent_ids in data.specializations.items()
            }
        }
    return {**data.extra, **known}


# ─── conditions ──────────────────────────────────────────────────────


def conditions_from_dict(raw: Any) -> RuleConditions:
    if raw is None:
        return RuleConditions()
    if not isinstance(raw, dict):
        raise RuleValidationError("'conditions' must be an object")
    sources = raw.get("lead_source")
    if isinstance(sources, str):
        sources = [sources]
    return RuleConditions(
        lead_sources=frozenset(_str_list(sources, "lead_source")),
        always_apply=_flag(raw.get("always_apply"), "always_apply", False),
    )


def conditions_to_dict(conditions: RuleConditions) -> dict:
    data: dict = {}
    if conditions.lead_sources:
        data["lead_source"] = sorted(conditions.lead_sources)
    if conditions.always_apply:
        data["always_apply"] = True
    return data


# ─── Whole rules ─────────────────────────────────────────────────────


def rule_from_dict(raw: Any, rule_type: RuleType) -> AssignmentRule:
    """Build a rule for the *rule_type* collection from its JSON record.

    Raises:
        RuleValidationError: the record is malformed for its type.
    """
    if not isinstance(raw, dict):
        raise RuleValidationError("rule must be an object")
    name = raw.get("name")
    try:
        declared = raw.get("rule_type")
        if declared is not None and RuleType(declared) != rule_type:
            raise RuleValidationError(
                f"rule_type '{declared}' in the {rule_type.value} collection"
            )
        priority = raw.get("priority", 0)
        if isinstance(priority, bool) or not isinstance(priority, int):
            raise RuleValidationError(f"priority must be an integer (got {priority!r})")
        rule = AssignmentRule(
            id=str(raw["id"]) if raw.get("id") is not None else None,
            name=name if isinstance(name, str) else "",
            priority=priority,
            data=payload_to_data(rule_type, raw.get("rule_data")),
            active=_flag(raw.get("is_active"), "is_active", True),
            conditions=conditions_from_dict(raw.get("conditions")),
        )
    except RuleValidationError as e:
        if e.rule_name is None and isinstance(name, str) and name:
            raise RuleValidationError(e.message, name) from None
        raise
    except ValueError:
        raise RuleValidationError(f"unknown rule_type {raw.get('rule_type')!r}", name) from None
    return rule


def rule_to_dict(rule: AssignmentRule) -> dict:
    return {
        "id": rule.id,
        "name": rule.name,
        "rule_type": rule.type.value,
        "rule_data": data_to_payload(rule.data),
        "priority": rule.priority,
        "is_active": rule.active,
        "conditions": conditions_to_dict(rule.conditions),
    }


def rule_set_from_dict(raw: dict) -> RuleSet:
    """Parse {geolocationRules, capacityRules, specializationRules}; missing keys are empty."""
    collections: dict[RuleType, list[AssignmentRule]] = {}
    for rule_type, key in COLLECTION_KEYS.items():
        records = raw.get(key) or []
        if not isinstance(records, list):
            raise RuleValidationError(f"'{key}' must be a list")
        collections[rule_type] = [rule_from_dict(r, rule_type) for r in records]
    rule_set = RuleSet(
        geolocation=collections[RuleType.GEOLOCATION],
        capacity=collections[RuleType.CAPACITY],
        specialization=collections[RuleType.SPECIALIZATION],
    )
    rule_set.validate()
    return rule_set


def rule_set_to_dict(rule_set: RuleSet) -> dict:
    return {
        key: [rule_to_dict(r) for r in rule_set.collection(rule_type)]
        for rule_type, key in COLLECTION_KEYS.items()
    }
