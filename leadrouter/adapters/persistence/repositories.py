"""SQLAlchemy repository implementations."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from uuid import uuid4

from sqlalchemy import case, delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from leadrouter.adapters.persistence.models import AgentModel, AssignmentRuleModel, LeadModel
from leadrouter.adapters.rule_codec import (
    conditions_from_dict,
    conditions_to_dict,
    data_to_payload,
    payload_to_data,
)
from leadrouter.application.ports.agent_directory import AgentDirectory, AgentFilter
from leadrouter.application.ports.lead_store import LeadStore
from leadrouter.application.ports.rule_repo import RuleRepository
from leadrouter.domain.entities.agent import Agent, AgentPerformance
from leadrouter.domain.entities.assignment_rule import AssignmentRule, RuleSet
from leadrouter.domain.entities.lead import Lead
from leadrouter.domain.errors import NotFoundError, PersistenceError, RuleValidationError
from leadrouter.domain.value_objects.budget import Budget
from leadrouter.domain.value_objects.enums import Availability, PropertyType, RuleType


@contextmanager
def storage_errors(action: str) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as e:
        raise PersistenceError(f"Failed to {action}: {e}") from e


# ─── Mappers ─────────────────────────────────────────────────────────


def _agent_to_domain(m: AgentModel) -> Agent:
    return Agent(
        id=m.id,
        name=m.name,
        location=m.location,
        specializations={PropertyType(s) for s in m.specializations or []},
        max_capacity=m.max_capacity,
        current_lead_count=m.current_lead_count,
        performance=AgentPerformance(
            conversion_rate_pct=m.conversion_rate_pct,
            avg_response_time_minutes=m.avg_response_time_minutes,
            closed_deals=m.closed_deals,
        ),
        availability=Availability(m.availability),
    )


def _lead_to_domain(m: LeadModel) -> Lead:
    return Lead(
        id=m.id,
        property_type=PropertyType(m.property_type) if m.property_type else None,
        preferred_location=m.preferred_location,
        budget=Budget(min=m.budget_min, max=m.budget_max),
        lead_score=m.lead_score,
        source=m.source,
        assigned_agent_id=m.assigned_agent_id,
    )


def _rule_to_domain(m: AssignmentRuleModel) -> AssignmentRule:
    rule_type = RuleType(m.rule_type)
    try:
        data = payload_to_data(rule_type, m.rule_data)
        conditions = conditions_from_dict(m.conditions)
    except RuleValidationError as e:
        raise PersistenceError(f"Stored rule {m.id} is corrupt: {e.message}") from e
    return AssignmentRule(
        id=m.id,
        name=m.name,
        priority=m.priority,
        data=data,
        active=m.is_active,
        conditions=conditions,
    )


def _rule_to_model(rule: AssignmentRule, position: int) -> AssignmentRuleModel:
    return AssignmentRuleModel(
        id=rule.id or uuid4().hex,
        rule_type=rule.type.value,
        position=position,
        name=rule.name,
        priority=rule.priority,
        is_active=rule.active,
        rule_data=data_to_payload(rule.data),
        conditions=conditions_to_dict(rule.conditions),
    )


# ─── Repositories ────────────────────────────────────────────────────


class SqlRuleRepository(RuleRepository):
    def __init__(self, session: AsyncSession):
        self._s = session

    async def get_active_rules(self, rule_type: RuleType) -> list[AssignmentRule]:
        with storage_errors("load assignment rules"):
            result = await self._s.execute(
                select(AssignmentRuleModel)
                .where(
                    AssignmentRuleModel.rule_type == rule_type.value,
                    AssignmentRuleModel.is_active.is_(True),
                )
                .order_by(AssignmentRuleModel.priority, AssignmentRuleModel.position)
            )
            return [_rule_to_domain(m) for m in result.scalars()]

    async def get_rule_set(self) -> RuleSet:
        with storage_errors("load assignment rules"):
            result = await self._s.execute(
                select(AssignmentRuleModel).order_by(AssignmentRuleModel.position)
            )
            rule_set = RuleSet()
            for m in result.scalars():
                rule = _rule_to_domain(m)
                rule_set.collection(rule.type).append(rule)
            return rule_set

    async def replace_all(
        self,
        geolocation: list[AssignmentRule],
        capacity: list[AssignmentRule],
        specialization: list[AssignmentRule],
    ) -> RuleSet:
        rule_set = RuleSet(
            geolocation=list(geolocation),
            capacity=list(capacity),
            specialization=list(specialization),
        )
        rule_set.validate()

        # Runs in the caller's transaction; a failure here is undone by its rollback
        with storage_errors("save assignment rules"):
            await self._s.execute(delete(AssignmentRuleModel))
            for rule_type in RuleType:
                for position, rule in enumerate(rule_set.collection(rule_type)):
                    m = _rule_to_model(rule, position)
                    self._s.add(m)
                    rule.id = m.id
            await self._s.flush()
        return rule_set


class SqlAgentDirectory(AgentDirectory):
    def __init__(self, session: AsyncSession):
        self._s = session

    async def list_agents(self, agent_filter: AgentFilter | None = None) -> list[Agent]:
        agent_filter = agent_filter or AgentFilter()
        query = (
            select(AgentModel)
            .where(AgentModel.availability != Availability.OFFLINE.value)
            .order_by(AgentModel.id)
            .execution_options(populate_existing=True)
        )
        if agent_filter.agent_ids is not None:
            query = query.where(AgentModel.id.in_(sorted(agent_filter.agent_ids)))
        with storage_errors("list agents"):
            result = await self._s.execute(query)
            return [_agent_to_domain(m) for m in result.scalars()]

    async def get_by_id(self, agent_id: str) -> Agent | None:
        with storage_errors("load agent"):
            m = await self._s.get(AgentModel, agent_id, populate_existing=True)
            return _agent_to_domain(m) if m else None

    async def adjust_lead_count(
        self, agent_id: str, delta: int, enforce_capacity: bool = False
    ) -> bool:
        new_count = AgentModel.current_lead_count + delta
        stmt = (
            update(AgentModel)
            .where(AgentModel.id == agent_id)
            .values(current_lead_count=case((new_count < 0, 0), else_=new_count))
            .execution_options(synchronize_session=False)
        )
        if enforce_capacity and delta > 0:
            stmt = stmt.where(new_count <= AgentModel.max_capacity)
        with storage_errors("update agent lead count"):
            result = await self._s.execute(stmt)
            await self._s.flush()
        return result.rowcount > 0


class SqlLeadStore(LeadStore):
    def __init__(self, session: AsyncSession):
        self._s = session

    async def get(self, lead_id: str) -> Lead | None:
        with storage_errors("load lead"):
            m = await self._s.get(LeadModel, lead_id, populate_existing=True)
            return _lead_to_domain(m) if m else None

    async def set_assignment(self, lead_id: str, agent_id: str | None) -> Lead:
        with storage_errors("update lead assignment"):
            result = await self._s.execute(
                update(LeadModel)
                .where(LeadModel.id == lead_id)
                .values(assigned_agent_id=agent_id)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise NotFoundError("Lead", lead_id)
            await self._s.flush()
            m = await self._s.get(LeadModel, lead_id, populate_existing=True)
        return _lead_to_domain(m)
