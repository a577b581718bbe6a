"""SQLAlchemy unit of work: a fresh AsyncSession per transaction."""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from leadrouter.adapters.persistence.database import async_session_factory
from leadrouter.adapters.persistence.repositories import (
    SqlAgentDirectory,
    SqlLeadStore,
    SqlRuleRepository,
    storage_errors,
)
from leadrouter.application.ports.unit_of_work import UnitOfWork


class SqlUnitOfWork(UnitOfWork):
    def __init__(self, session_factory: async_sessionmaker[AsyncSession] = async_session_factory):
        self._factory = session_factory
        self._session: AsyncSession | None = None

    async def __aenter__(self) -> SqlUnitOfWork:
        self._session = self._factory()
        self.rules = SqlRuleRepository(self._session)
        self.agents = SqlAgentDirectory(self._session)
        self.leads = SqlLeadStore(self._session)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        try:
            await super().__aexit__(exc_type, exc, tb)
        finally:
            await self._session.close()

    async def commit(self) -> None:
        with storage_errors("commit"):
            await self._session.commit()

    async def rollback(self) -> None:
        # A query cancelled by a timeout can leave the connection unusable
        with storage_errors("roll back"):
            await self._session.rollback()
