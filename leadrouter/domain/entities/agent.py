"""Agent entity — a sales agent who can own leads."""

from dataclasses import dataclass, field

from leadrouter.domain.value_objects.enums import Availability, PropertyType


@dataclass(frozen=True)
class AgentPerformance:
    conversion_rate_pct: float = 0.0
    avg_response_time_minutes: float = 60.0
    closed_deals: int = 0


@dataclass
class Agent:
    id: str
    name: str
    location: str | None = None
    specializations: set[PropertyType] = field(default_factory=set)
    max_capacity: int = 0
    current_lead_count: int = 0
    performance: AgentPerformance = field(default_factory=AgentPerformance)
    availability: Availability = Availability.AVAILABLE

    def specializes_in(self, property_type: PropertyType | None) -> bool:
        return property_type is not None and property_type in self.specializations

    def is_online(self) -> bool:
        return self.availability != Availability.OFFLINE

    def has_room(self) -> bool:
        return self.current_lead_count < self.max_capacity
