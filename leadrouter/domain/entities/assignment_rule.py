"""AssignmentRule entity — a priority-ordered routing rule.

The payload of a rule is a tagged variant: one dataclass per rule type,
and the rule's type is derived from the payload class, so a capacity rule
can never carry a geolocation payload.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import ClassVar

from leadrouter.domain.entities.lead import Lead
from leadrouter.domain.errors import RuleValidationError
from leadrouter.domain.value_objects.capacity_thresholds import CapacityThresholds
from leadrouter.domain.value_objects.enums import PropertyType, RuleType


def normalize_area(area: str) -> str:
    return " ".join(area.split()).lower()


@dataclass(frozen=True)
class RuleConditions:
    """Which leads a rule applies to. No sources listed means any source."""

    lead_sources: frozenset[str] = frozenset()
    always_apply: bool = False

    def matches(self, lead: Lead) -> bool:
        if self.always_apply or not self.lead_sources:
            return True
        if not lead.source:
            return False
        wanted = {s.strip().lower() for s in self.lead_sources}
        return lead.source.strip().lower() in wanted


@dataclass(frozen=True)
class GeolocationRuleData:
    rule_type: ClassVar[RuleType] = RuleType.GEOLOCATION

    coverage_areas: tuple[str, ...] = ()
    eligible_agent_ids: tuple[str, ...] = ()
    extra: dict = field(default_factory=dict, compare=False, hash=False)

    def covers(self, location: str | None) -> bool:
        if not location:
            return False
        wanted = normalize_area(location)
        return any(normalize_area(area) == wanted for area in self.coverage_areas)


@dataclass(frozen=True)
class CapacityRuleData:
    rule_type: ClassVar[RuleType] = RuleType.CAPACITY

    thresholds: CapacityThresholds = field(default_factory=CapacityThresholds)
    max_leads_per_agent: int | None = None
    extra: dict = field(default_factory=dict, compare=False, hash=False)

    def __post_init__(self) -> None:
        if self.max_leads_per_agent is not None and self.max_leads_per_agent < 0:
            raise RuleValidationError(
                f"max_leads_per_agent must be >= 0 (got {self.max_leads_per_agent})"
            )


@dataclass(frozen=True)
class SpecializationRuleData:
    rule_type: ClassVar[RuleType] = RuleType.SPECIALIZATION

    specializations: Mapping[PropertyType, tuple[str, ...]] = field(default_factory=dict)
    extra: dict = field(default_factory=dict, compare=False, hash=False)

    def agents_for(self, property_type: PropertyType | None) -> tuple[str, ...] | None:
        """Agent ids mapped to the property type, or None when unmapped."""
        if property_type is None:
            return None
        return self.specializations.get(property_type)


RuleData = GeolocationRuleData | CapacityRuleData | SpecializationRuleData


@dataclass
class AssignmentRule:
    id: str | None
    name: str
    priority: int
    data: RuleData
    active: bool = True
    conditions: RuleConditions = field(default_factory=RuleConditions)

    @property
    def type(self) -> RuleType:
        return self.data.rule_type

    def applies_to(self, lead: Lead) -> bool:
        return self.active and self.conditions.matches(lead)


def order_rules(rules: list[AssignmentRule]) -> list[AssignmentRule]:
    """Stable sort by (priority, insertion order)."""
    indexed = sorted(enumerate(rules), key=lambda pair: (pair[1].priority, pair[0]))
    return [rule for _, rule in indexed]


@dataclass
class RuleSet:
    """The three rule collections, each kept in insertion order."""

    geolocation: list[AssignmentRule] = field(default_factory=list)
    capacity: list[AssignmentRule] = field(default_factory=list)
    specialization: list[AssignmentRule] = field(default_factory=list)

    def collection(self, rule_type: RuleType) -> list[AssignmentRule]:
        return {
            RuleType.GEOLOCATION: self.geolocation,
            RuleType.CAPACITY: self.capacity,
            RuleType.SPECIALIZATION: self.specialization,
        }[rule_type]

    def active(self, rule_type: RuleType) -> list[AssignmentRule]:
        return order_rules([r for r in self.collection(rule_type) if r.active])

    def validate(self) -> None:
        """Raise RuleValidationError if any rule is malformed for its collection."""
        seen_ids: set[str] = set()
        for rule_type in RuleType:
            for rule in self.collection(rule_type):
                if not isinstance(rule.name, str) or not rule.name.strip():
                    raise RuleValidationError("rule name must not be empty")
                if isinstance(rule.priority, bool) or not isinstance(rule.priority, int):
                    raise RuleValidationError(
                        f"priority must be an integer (got {rule.priority!r})", rule.name
                    )
                if rule.type != rule_type:
                    raise RuleValidationError(
                        f"{rule.type.value} payload in the {rule_type.value} collection",
                        rule.name,
                    )
                if rule.id is not None:
                    if rule.id in seen_ids:
                        raise RuleValidationError(f"duplicate rule id '{rule.id}'", rule.name)
                    seen_ids.add(rule.id)
