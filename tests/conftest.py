"""Pytest configuration and shared fixtures."""

import pytest

from leadrouter.domain.entities.agent import Agent, AgentPerformance
from leadrouter.domain.entities.lead import Lead
from leadrouter.domain.value_objects.enums import PropertyType


@pytest.fixture
def condo_agent():
    """Agent at 12/20 with a Condo specialization, 24.5% conversion, 15 min response."""
    return Agent(
        id="agent-a", name="Alice", location="Downtown",
        specializations={PropertyType.CONDO}, max_capacity=20, current_lead_count=12,
        performance=AgentPerformance(conversion_rate_pct=24.5, avg_response_time_minutes=15),
    )


@pytest.fixture
def condo_lead():
    return Lead(id="lead-1", property_type=PropertyType.CONDO, preferred_location="Downtown")
