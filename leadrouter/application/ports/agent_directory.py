"""Port interface for the agent directory."""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from leadrouter.domain.entities.agent import Agent


@dataclass(frozen=True)
class AgentFilter:
    """Narrows list_agents to the given ids; None means every online agent."""

    agent_ids: frozenset[str] | None = None


class AgentDirectory(ABC):
    @abstractmethod
    async def list_agents(self, agent_filter: AgentFilter | None = None) -> list[Agent]:
        """Agents that are not Offline, optionally restricted by *agent_filter*."""
        ...

    @abstractmethod
    async def get_by_id(self, agent_id: str) -> Agent | None:
        ...

    @abstractmethod
    async def adjust_lead_count(
        self, agent_id: str, delta: int, enforce_capacity: bool = False
    ) -> bool:
        """Atomically add *delta* to the agent's current_lead_count.

        With enforce_capacity, an increment that would exceed max_capacity
        is refused and False is returned. The count never drops below zero.
        """
        ...
