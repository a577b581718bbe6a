"""Tests for the assignment rule JSON codec."""

import pytest

from leadrouter.adapters.rule_codec import (
    rule_from_dict,
    rule_set_from_dict,
    rule_set_to_dict,
    rule_to_dict,
)
from leadrouter.domain.entities.assignment_rule import (
    CapacityRuleData,
    GeolocationRuleData,
    SpecializationRuleData,
)
from leadrouter.domain.errors import RuleValidationError
from leadrouter.domain.value_objects.enums import PropertyType, RuleType

PAYLOAD = {
    "geolocationRules": [{
        "id": "geo-1", "name": "Downtown team", "rule_type": "geolocation",
        "rule_data": {"areas": ["Downtown", "Midtown"], "agents": ["u1", "u2"]},
        "priority": 1, "is_active": True, "conditions": {"lead_source": ["Zillow"]},
    }],
    "capacityRules": [{
        "id": "cap-1", "name": "Default capacity", "rule_type": "capacity",
        "rule_data": {
            "max_leads_per_agent": 15,
            "capacity_thresholds": {"green": 0.7, "yellow": 0.9, "red": 1.0},
            "overflow_strategy": "round_robin",
        },
        "priority": 1, "is_active": True, "conditions": {"always_apply": True},
    }],
    "specializationRules": [{
        "id": "spec-1", "name": "Condo desk", "rule_type": "specialization",
        "rule_data": {"specializations": {"Condo": ["u2"], "Land": ["u3"]}},
        "priority": 2, "is_active": False, "conditions": {},
    }],
}


def test_parse_full_payload():
    rule_set = rule_set_from_dict(PAYLOAD)
    geo = rule_set.geolocation[0]
    assert isinstance(geo.data, GeolocationRuleData)
    assert geo.data.coverage_areas == ("Downtown", "Midtown")
    assert geo.conditions.lead_sources == frozenset({"Zillow"})

    cap = rule_set.capacity[0]
    assert isinstance(cap.data, CapacityRuleData)
    assert cap.data.max_leads_per_agent == 15
    assert cap.conditions.always_apply is True

    spec = rule_set.specialization[0]
    assert isinstance(spec.data, SpecializationRuleData)
    assert spec.data.agents_for(PropertyType.CONDO) == ("u2",)
    assert spec.active is False


def test_serialize_matches_input():
    assert rule_set_to_dict(rule_set_from_dict(PAYLOAD)) == PAYLOAD


def test_unknown_rule_data_keys_are_preserved():
    rule = rule_from_dict(PAYLOAD["capacityRules"][0], RuleType.CAPACITY)
    assert rule.data.extra == {"overflow_strategy": "round_robin"}
    assert rule_to_dict(rule)["rule_data"]["overflow_strategy"] == "round_robin"


def test_missing_collections_are_empty():
    rule_set = rule_set_from_dict({"capacityRules": PAYLOAD["capacityRules"]})
    assert rule_set.geolocation == [] and rule_set.specialization == []


def test_missing_thresholds_use_defaults():
    rule = rule_from_dict(
        {"name": "cap", "priority": 1, "rule_data": {"max_leads_per_agent": 3}},
        RuleType.CAPACITY,
    )
    assert (rule.data.thresholds.green, rule.data.thresholds.yellow) == (0.7, 0.9)
    assert rule.id is None


def test_single_lead_source_string_accepted():
    rule = rule_from_dict(
        {"name": "g", "priority": 1, "rule_data": {}, "conditions": {"lead_source": "Zillow"}},
        RuleType.GEOLOCATION,
    )
    assert rule.conditions.lead_sources == frozenset({"Zillow"})


@pytest.mark.parametrize("raw, message", [
    ({"name": "bad", "priority": 1, "rule_type": "capacity", "rule_data": {}}, "capacity"),
    ({"name": "bad", "priority": "1", "rule_data": {}}, "priority"),
    ({"name": "bad", "priority": 1, "rule_type": "weather", "rule_data": {}}, "weather"),
    ({"name": "bad", "priority": 1, "rule_data": {"areas": "Downtown"}}, "areas"),
    ({"name": "bad", "priority": 1, "rule_data": []}, "rule_data"),
])
def test_malformed_geolocation_rules_rejected(raw, message):
    with pytest.raises(RuleValidationError, match=message) as exc_info:
        rule_from_dict(raw, RuleType.GEOLOCATION)
    assert exc_info.value.rule_name == "bad"


def test_bad_thresholds_rejected():
    raw = {"name": "cap", "priority": 1,
           "rule_data": {"capacity_thresholds": {"green": 0.95, "yellow": 0.9, "red": 1.0}}}
    with pytest.raises(RuleValidationError, match="cap"):
        rule_from_dict(raw, RuleType.CAPACITY)


def test_unknown_property_type_rejected():
    raw = {"name": "spec", "priority": 1,
           "rule_data": {"specializations": {"Castle": ["u1"]}}}
    with pytest.raises(RuleValidationError, match="Castle"):
        rule_from_dict(raw, RuleType.SPECIALIZATION)


def test_nameless_rule_rejects_whole_payload():
    payload = {**PAYLOAD, "geolocationRules": [{"priority": 1, "rule_data": {}}]}
    with pytest.raises(RuleValidationError, match="name"):
        rule_set_from_dict(payload)


def test_collection_must_be_list():
    with pytest.raises(RuleValidationError, match="capacityRules"):
        rule_set_from_dict({"capacityRules": {"name": "x"}})


@pytest.mark.parametrize("raw, message", [
    ({"name": "bad", "priority": 1, "rule_data": {}, "is_active": "false"}, "is_active"),
    ({"name": "bad", "priority": 1, "rule_data": {}, "is_active": 0}, "is_active"),
    ({"name": "bad", "priority": 1, "rule_data": {}, "conditions": {"always_apply": "yes"}},
     "always_apply"),
])
def test_string_flags_rejected(raw, message):
    with pytest.raises(RuleValidationError, match=message):
        rule_from_dict(raw, RuleType.GEOLOCATION)


def test_missing_flags_use_defaults():
    rule = rule_from_dict({"name": "g", "priority": 1, "rule_data": {}}, RuleType.GEOLOCATION)
    assert rule.active is True
    assert rule.conditions.always_apply is False


def test_duplicate_ids_across_collections_rejected():
    dup = {**PAYLOAD["capacityRules"][0], "id": "geo-1"}
    with pytest.raises(RuleValidationError, match="duplicate rule id 'geo-1'"):
        rule_set_from_dict({**PAYLOAD, "capacityRules": [dup]})
