"""Lead entity — an inbound prospect waiting for an agent."""

from dataclasses import dataclass, field

from leadrouter.domain.value_objects.budget import Budget
from leadrouter.domain.value_objects.enums import PropertyType


@dataclass
class Lead:
    id: str
    property_type: PropertyType | None = None
    preferred_location: str | None = None
    budget: Budget = field(default_factory=Budget)
    lead_score: int = 0
    source: str | None = None
    assigned_agent_id: str | None = None

    def is_assigned(self) -> bool:
        return self.assigned_agent_id is not None
