"""RuleEvaluationPolicy — narrow the agent pool by rules, then rank by score."""

from __future__ import annotations

from dataclasses import dataclass, field

from leadrouter.domain.entities.agent import Agent
from leadrouter.domain.entities.assignment_rule import AssignmentRule, RuleSet
from leadrouter.domain.entities.lead import Lead
from leadrouter.domain.errors import NoEligibleAgentError
from leadrouter.domain.policies.capacity import capacity_band, workload_ratio
from leadrouter.domain.policies.match_scoring import MatchBreakdown, breakdown
from leadrouter.domain.value_objects.capacity_thresholds import (
    DEFAULT_THRESHOLDS,
    CapacityThresholds,
)
from leadrouter.domain.value_objects.enums import CapacityBand, RuleType


@dataclass(frozen=True)
class ActiveRules:
    """Active rules per type, each list already in evaluation order."""

    geolocation: list[AssignmentRule] = field(default_factory=list)
    specialization: list[AssignmentRule] = field(default_factory=list)
    capacity: list[AssignmentRule] = field(default_factory=list)

    @classmethod
    def from_rule_set(cls, rule_set: RuleSet) -> ActiveRules:
        return cls(
            geolocation=rule_set.active(RuleType.GEOLOCATION),
            specialization=rule_set.active(RuleType.SPECIALIZATION),
            capacity=rule_set.active(RuleType.CAPACITY),
        )


@dataclass(frozen=True)
class CandidateScore:
    agent: Agent
    breakdown: MatchBreakdown
    ratio: float
    band: CapacityBand

    @property
    def score(self) -> int:
        return self.breakdown.score


@dataclass(frozen=True)
class AgentSelection:
    """Result of the rule pipeline for one lead."""

    agent: Agent
    score: int
    ratio: float
    trace: dict


@dataclass
class _Filtered:
    pool: list[Agent]
    thresholds: CapacityThresholds
    trace: dict


def _rule_ref(rule: AssignmentRule) -> dict:
    return {"id": rule.id, "name": rule.name, "priority": rule.priority}


def matching_geolocation_rule(lead: Lead, rules: ActiveRules) -> AssignmentRule | None:
    """First geolocation rule, in priority order, that applies to the lead and covers its location."""
    for rule in rules.geolocation:
        if rule.applies_to(lead) and rule.data.covers(lead.preferred_location):
            return rule
    return None


def _apply_rules(lead: Lead, agents: list[Agent], rules: ActiveRules) -> _Filtered:
    """Steps 1-3 of the pipeline: geolocation, specialization, capacity.

    Each stage applies at most one rule: the first one, in priority
    order, that matches the lead. Later rules of that type are not looked at.
    """
    pool = [a for a in agents if a.is_online()]
    trace: dict = {"pool": len(pool)}

    # Step 1: geolocation restricts to the rule's eligible agents
    trace["geolocation"] = None
    geo_rule = matching_geolocation_rule(lead, rules)
    if geo_rule is not None:
        eligible = set(geo_rule.data.eligible_agent_ids)
        pool = [a for a in pool if a.id in eligible]
        trace["geolocation"] = {**_rule_ref(geo_rule), "pool": len(pool)}

    # Step 2: specialization intersects with the agents mapped to the property type
    trace["specialization"] = None
    for rule in rules.specialization:
        if not rule.applies_to(lead):
            continue
        mapped = rule.data.agents_for(lead.property_type)
        if mapped is None:
            continue
        allowed = set(mapped)
        pool = [a for a in pool if a.id in allowed]
        trace["specialization"] = {**_rule_ref(rule), "pool": len(pool)}
        break

    # Step 3: capacity drops Red-band agents and agents at the per-rule cap
    thresholds = DEFAULT_THRESHOLDS
    trace["capacity"] = None
    for rule in rules.capacity:
        if not rule.applies_to(lead):
            continue
        thresholds = rule.data.thresholds
        cap = rule.data.max_leads_per_agent
        pool = [
            a for a in pool
            if capacity_band(workload_ratio(a), thresholds) != CapacityBand.RED
            and (cap is None or a.current_lead_count < cap)
        ]
        trace["capacity"] = {**_rule_ref(rule), "pool": len(pool)}
        break

    # Auto-assignment never pushes an agent past max_capacity
    pool = [a for a in pool if a.has_room()]
    trace["eligible"] = len(pool)

    return _Filtered(pool=pool, thresholds=thresholds, trace=trace)


def _selection_key(candidate: CandidateScore) -> tuple:
    # Highest score, then lowest workload, then smallest id
    return (-candidate.score, candidate.ratio, candidate.agent.id)


def _score_pool(lead: Lead, filtered: _Filtered) -> list[CandidateScore]:
    ranked = []
    for agent in filtered.pool:
        ratio = workload_ratio(agent)
        ranked.append(
            CandidateScore(
                agent=agent,
                breakdown=breakdown(lead, agent),
                ratio=ratio,
                band=capacity_band(ratio, filtered.thresholds),
            )
        )
    ranked.sort(key=_selection_key)
    return ranked


def rank_candidates(lead: Lead, agents: list[Agent], rules: ActiveRules) -> list[CandidateScore]:
    """Score every agent that survives the rules, best first."""
    return _score_pool(lead, _apply_rules(lead, agents, rules))


def select_agent(lead: Lead, agents: list[Agent], rules: ActiveRules) -> AgentSelection:
    """Pick the single best agent for a lead.

    Raises:
        NoEligibleAgentError: if no agent survives the rule pipeline.
    """
    filtered = _apply_rules(lead, agents, rules)
    if not filtered.pool:
        raise NoEligibleAgentError(lead.id)

    best = _score_pool(lead, filtered)[0]
    return AgentSelection(
        agent=best.agent,
        score=best.score,
        ratio=best.ratio,
        trace={**filtered.trace, "score": best.score},
    )
