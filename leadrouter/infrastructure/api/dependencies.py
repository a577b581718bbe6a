"""FastAPI dependency injection — wires adapters into use cases."""

from __future__ import annotations

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from leadrouter.adapters.persistence.database import get_session
from leadrouter.adapters.persistence.repositories import SqlRuleRepository
from leadrouter.adapters.persistence.unit_of_work import SqlUnitOfWork
from leadrouter.application.ports.rule_repo import RuleRepository
from leadrouter.application.use_cases.assign_leads import AssignmentExecutor
from leadrouter.config import settings

# Re-export session dependency
get_db_session = get_session


def get_rule_repo(session: AsyncSession = Depends(get_session)) -> RuleRepository:
    return SqlRuleRepository(session)


def get_assignment_executor() -> AssignmentExecutor:
    # Each lead gets its own session and transaction, not the request's
    return AssignmentExecutor(
        uow_factory=SqlUnitOfWork,
        timeout_seconds=settings.directory_timeout_seconds,
        concurrency=settings.auto_assign_concurrency,
        max_retries=settings.auto_assign_max_retries,
    )
