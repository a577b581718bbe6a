"""Port interface for a transactional unit of work."""

from abc import ABC, abstractmethod

from leadrouter.application.ports.agent_directory import AgentDirectory
from leadrouter.application.ports.lead_store import LeadStore
from leadrouter.application.ports.rule_repo import RuleRepository


class UnitOfWork(ABC):
    """One transaction over the rule, agent and lead stores.

    Used as ``async with uow_factory() as uow:``. Leaving the block normally
    commits; leaving it with an exception rolls everything back.
    """

    rules: RuleRepository
    agents: AgentDirectory
    leads: LeadStore

    async def __aenter__(self) -> "UnitOfWork":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            await self.commit()
        else:
            await self.rollback()

    @abstractmethod
    async def commit(self) -> None:
        ...

    @abstractmethod
    async def rollback(self) -> None:
        ...
