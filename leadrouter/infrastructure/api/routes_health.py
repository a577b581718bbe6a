"""Liveness endpoint: database reachability plus routing inventory."""

from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from leadrouter.adapters.persistence.models import AgentModel, AssignmentRuleModel
from leadrouter.domain.value_objects.enums import Availability
from leadrouter.infrastructure.api.dependencies import get_db_session

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(session: AsyncSession = Depends(get_db_session)):
    """Report whether rules and online agents can be read."""
    try:
        active_rules = await session.scalar(
            select(func.count(AssignmentRuleModel.id)).where(AssignmentRuleModel.is_active.is_(True))
        )
        online_agents = await session.scalar(
            select(func.count(AgentModel.id)).where(
                AgentModel.availability != Availability.OFFLINE.value
            )
        )
    except Exception as e:
        return {
            "status": "degraded",
            "database": f"error: {e}",
            "service": "Lead Assignment Engine",
        }

    return {
        "status": "ok",
        "database": "connected",
        "service": "Lead Assignment Engine",
        "activeRules": active_rules or 0,
        "onlineAgents": online_agents or 0,
    }
