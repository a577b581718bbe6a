"""Tests for the ORM-to-domain mappers (no database needed)."""

import pytest

from leadrouter.adapters.persistence.models import AgentModel, AssignmentRuleModel, LeadModel
from leadrouter.adapters.persistence.repositories import (
    _agent_to_domain,
    _lead_to_domain,
    _rule_to_domain,
    _rule_to_model,
)
from leadrouter.domain.entities.assignment_rule import AssignmentRule, GeolocationRuleData
from leadrouter.domain.errors import PersistenceError
from leadrouter.domain.value_objects.enums import Availability, PropertyType, RuleType


def test_agent_model_to_domain():
    agent = _agent_to_domain(AgentModel(
        id="u1", name="Alice", location="Downtown", specializations=["Condo", "Land"],
        max_capacity=20, current_lead_count=12, conversion_rate_pct=24.5,
        avg_response_time_minutes=15.0, closed_deals=3, availability="Busy",
    ))
    assert agent.specializations == {PropertyType.CONDO, PropertyType.LAND}
    assert agent.performance.conversion_rate_pct == 24.5
    assert agent.availability == Availability.BUSY


def test_lead_model_to_domain():
    lead = _lead_to_domain(LeadModel(
        id="l1", property_type="Condo", preferred_location="Downtown",
        budget_min=100.0, budget_max=None, lead_score=50, source="Zillow",
        assigned_agent_id=None,
    ))
    assert lead.property_type == PropertyType.CONDO
    assert lead.budget.min == 100.0 and lead.budget.max is None
    assert not lead.is_assigned()


def test_rule_model_round_trip():
    rule = AssignmentRule(
        id=None, name="Downtown", priority=2,
        data=GeolocationRuleData(("Downtown",), ("u1",), extra={"note": "x"}),
    )
    model = _rule_to_model(rule, position=0)
    assert model.id
    assert model.rule_type == RuleType.GEOLOCATION.value
    assert model.rule_data == {"note": "x", "areas": ["Downtown"], "agents": ["u1"]}

    restored = _rule_to_domain(model)
    assert restored.data == rule.data
    assert restored.data.extra == {"note": "x"}
    assert restored.priority == 2


def test_corrupt_stored_rule_raises_persistence_error():
    model = AssignmentRuleModel(
        id="r1", rule_type="capacity", position=0, name="broken", priority=1,
        is_active=True, rule_data={"max_leads_per_agent": "lots"}, conditions={},
    )
    with pytest.raises(PersistenceError, match="r1"):
        _rule_to_domain(model)
