"""Assignment rule endpoints — read and bulk-replace the three rule collections."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from leadrouter.adapters.rule_codec import rule_set_from_dict, rule_set_to_dict
from leadrouter.application.ports.rule_repo import RuleRepository
from leadrouter.infrastructure.api.dependencies import get_db_session, get_rule_repo

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/leads/assignment-rules", tags=["assignment-rules"])


@router.get("")
async def get_assignment_rules(repo: RuleRepository = Depends(get_rule_repo)):
    """All rules, active or not, grouped by type in insertion order."""
    rule_set = await repo.get_rule_set()
    return rule_set_to_dict(rule_set)


@router.put("")
async def replace_assignment_rules(
    payload: dict[str, Any] = Body(...),
    repo: RuleRepository = Depends(get_rule_repo),
    session: AsyncSession = Depends(get_db_session),
):
    """Replace all three collections. A malformed rule rejects the whole payload."""
    rule_set = rule_set_from_dict(payload)
    saved = await repo.replace_all(
        geolocation=rule_set.geolocation,
        capacity=rule_set.capacity,
        specialization=rule_set.specialization,
    )
    await session.commit()

    logger.info(
        "Assignment rules replaced: %d geolocation, %d capacity, %d specialization",
        len(saved.geolocation), len(saved.capacity), len(saved.specialization),
    )
    return {"success": True, "message": "Assignment rules saved"}
