"""MatchScoringPolicy — weighted 0-100 fit of an agent for a lead."""

from __future__ import annotations

import math
from dataclasses import dataclass

from leadrouter.domain.entities.agent import Agent
from leadrouter.domain.entities.lead import Lead
from leadrouter.domain.policies.capacity import capacity_score, workload_ratio

SPECIALIZATION_WEIGHT = 25.0
PERFORMANCE_WEIGHT = 25.0
RESPONSIVENESS_WEIGHT = 20.0
RESPONSE_WINDOW_MINUTES = 60.0


def _clamp(value: float, low: float, high: float) -> float:
    return min(max(value, low), high)


@dataclass(frozen=True)
class MatchBreakdown:
    """The four weighted components of a match score."""

    capacity: float
    specialization: float
    performance: float
    responsiveness: float

    @property
    def total(self) -> float:
        return self.capacity + self.specialization + self.performance + self.responsiveness

    @property
    def score(self) -> int:
        # Half-up rounding; round() would send 58.5 to 58.
        return int(_clamp(math.floor(self.total + 0.5), 0, 100))


def breakdown(lead: Lead, agent: Agent) -> MatchBreakdown:
    """Pure function: compute each weighted component for (lead, agent).

    Weights:
      capacity        30: (1 - workload ratio) * 30, clamped
      specialization  25: all or nothing on the lead's property type
      performance     25: conversion rate percentage scaled to 25
      responsiveness  20: linear from 20 at 0 minutes down to 0 at 60+
    """
    perf = agent.performance
    return MatchBreakdown(
        capacity=capacity_score(workload_ratio(agent)),
        specialization=(
            SPECIALIZATION_WEIGHT if agent.specializes_in(lead.property_type) else 0.0
        ),
        performance=_clamp(perf.conversion_rate_pct, 0.0, 100.0) / 100.0 * PERFORMANCE_WEIGHT,
        responsiveness=(
            _clamp(
                (RESPONSE_WINDOW_MINUTES - perf.avg_response_time_minutes)
                / RESPONSE_WINDOW_MINUTES,
                0.0,
                1.0,
            )
            * RESPONSIVENESS_WEIGHT
        ),
    )


def match_score(lead: Lead, agent: Agent) -> int:
    return breakdown(lead, agent).score
