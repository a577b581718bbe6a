"""Port interface for lead persistence."""

from abc import ABC, abstractmethod

from leadrouter.domain.entities.lead import Lead


class LeadStore(ABC):
    @abstractmethod
    async def get(self, lead_id: str) -> Lead | None:
        ...

    @abstractmethod
    async def set_assignment(self, lead_id: str, agent_id: str | None) -> Lead:
        ...
