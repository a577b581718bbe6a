"""AssignmentExecutor — manual assignment, batch auto-assignment, unassignment.

Every lead is handled in its own unit of work: its counter changes and its
owner change commit together or not at all, and a failure on one lead never
touches the transaction of another. Capacity is enforced by the directory's
guarded increment, so concurrent batches in any number of processes cannot
push an agent past max_capacity.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from typing import TypeVar

from leadrouter.application.ports.agent_directory import AgentFilter
from leadrouter.application.ports.unit_of_work import UnitOfWork
from leadrouter.domain.entities.assignment import Assignment, AssignmentResult
from leadrouter.domain.entities.lead import Lead
from leadrouter.domain.errors import (
    AssignmentError,
    NoEligibleAgentError,
    NotFoundError,
    PersistenceError,
)
from leadrouter.domain.policies.rule_evaluation import (
    ActiveRules,
    CandidateScore,
    matching_geolocation_rule,
    rank_candidates,
    select_agent,
)
from leadrouter.domain.value_objects.enums import RuleType

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AssignmentExecutor:
    """Orchestrates lead ownership changes and the agent counters behind them."""

    def __init__(
        self,
        uow_factory: Callable[[], UnitOfWork],
        timeout_seconds: float = 5.0,
        concurrency: int = 1,
        max_retries: int = 3,
    ):
        self._uow_factory = uow_factory
        self._timeout = timeout_seconds
        self._concurrency = max(1, concurrency)
        self._max_retries = max(1, max_retries)

    # ─── Public operations ──────────────────────────────────────────

    async def assign_manual(self, lead_id: str, agent_id: str) -> Lead:
        """Give a lead to a specific agent, bypassing rules and capacity.

        Raises:
            NotFoundError: unknown lead or agent.
            PersistenceError: the directory or store failed or timed out.
        """
        async with self._uow_factory() as uow:
            lead = await self._get_lead(uow, lead_id)
            agent = await self._call(uow.agents.get_by_id(agent_id))
            if agent is None:
                raise NotFoundError("Agent", agent_id)

            if lead.assigned_agent_id == agent_id:
                logger.info("Lead %s already owned by %s, nothing to do", lead_id, agent_id)
                return lead

            await self._call(uow.agents.adjust_lead_count(agent_id, 1))
            updated = await self._call(uow.leads.set_assignment(lead_id, agent_id))
            await self._release(uow, lead.assigned_agent_id)

        logger.info(
            "Lead %s manually assigned to %s (previous: %s)",
            lead_id, agent_id, lead.assigned_agent_id,
        )
        return updated

    async def unassign(self, lead_id: str) -> Lead:
        """Clear a lead's owner. Already-unassigned leads are returned unchanged."""
        async with self._uow_factory() as uow:
            lead = await self._get_lead(uow, lead_id)
            if not lead.is_assigned():
                return lead
            updated = await self._call(uow.leads.set_assignment(lead_id, None))
            await self._release(uow, lead.assigned_agent_id)

        logger.info("Lead %s unassigned from %s", lead_id, lead.assigned_agent_id)
        return updated

    async def assign_auto(
        self,
        lead_ids: Iterable[str],
        force: bool = False,
        cancel_event: asyncio.Event | None = None,
    ) -> AssignmentResult:
        """Route each lead through the rule pipeline independently.

        A lead that fails is recorded in ``failed`` and the batch moves on.
        Leads that already have an owner are skipped unless *force* is set.
        Setting *cancel_event* stops new leads from starting; the partial
        result is returned with ``cancelled=True``.

        Raises:
            PersistenceError: the rules could not be loaded.
        """
        ordered_ids = list(dict.fromkeys(lead_ids))
        result = AssignmentResult()
        if not ordered_ids:
            return result

        rules = await self._load_rules()
        semaphore = asyncio.Semaphore(self._concurrency)

        async def run(lead_id: str) -> None:
            async with semaphore:
                if cancel_event is not None and cancel_event.is_set():
                    result.cancelled = True
                    return
                await self._auto_assign_into(lead_id, rules, force, result)

        logger.info("Auto-assigning %d leads (force=%s)", len(ordered_ids), force)
        await asyncio.gather(*(run(lead_id) for lead_id in ordered_ids))

        logger.info(
            "Auto-assign complete: %d assigned, %d failed, %d skipped%s",
            len(result.assigned), len(result.failed), len(result.skipped),
            " (cancelled)" if result.cancelled else "",
        )
        return result

    async def rank_candidates(self, lead_id: str) -> list[CandidateScore]:
        """Scored candidates for a lead after rule filtering, best first."""
        rules = await self._load_rules()
        async with self._uow_factory() as uow:
            lead = await self._get_lead(uow, lead_id)
            agents = await self._call(uow.agents.list_agents(_agent_filter(lead, rules)))
        return rank_candidates(lead, agents, rules)

    # ─── Internals ──────────────────────────────────────────────────

    async def _call(self, awaitable: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self._timeout)
        except asyncio.TimeoutError as e:
            raise PersistenceError(f"Directory call timed out after {self._timeout}s") from e

    async def _get_lead(self, uow: UnitOfWork, lead_id: str) -> Lead:
        lead = await self._call(uow.leads.get(lead_id))
        if lead is None:
            raise NotFoundError("Lead", lead_id)
        return lead

    async def _load_rules(self) -> ActiveRules:
        async with self._uow_factory() as uow:
            return ActiveRules(
                geolocation=await self._call(uow.rules.get_active_rules(RuleType.GEOLOCATION)),
                specialization=await self._call(
                    uow.rules.get_active_rules(RuleType.SPECIALIZATION)
                ),
                capacity=await self._call(uow.rules.get_active_rules(RuleType.CAPACITY)),
            )

    async def _auto_assign_into(
        self, lead_id: str, rules: ActiveRules, force: bool, result: AssignmentResult
    ) -> None:
        try:
            assignment = await self._auto_assign_one(lead_id, rules, force)
        except AssignmentError as e:
            logger.warning("Lead %s not assigned: %s", lead_id, e.message)
            result.record_failure(lead_id, e.reason)
            return
        except Exception:
            logger.exception("Unexpected error auto-assigning lead %s", lead_id)
            raise

        if assignment is None:
            result.skipped.append(lead_id)
        else:
            result.record_success(assignment)

    async def _auto_assign_one(
        self, lead_id: str, rules: ActiveRules, force: bool
    ) -> Assignment | None:
        async with self._uow_factory() as uow:
            lead = await self._get_lead(uow, lead_id)
            if lead.is_assigned() and not force:
                logger.info(
                    "Lead %s already assigned to %s, skipping", lead_id, lead.assigned_agent_id
                )
                return None

            agent_filter = _agent_filter(lead, rules)
            for attempt in range(1, self._max_retries + 1):
                agents = await self._call(uow.agents.list_agents(agent_filter))
                selection = select_agent(lead, agents, rules)
                chosen = selection.agent

                assignment = Assignment(
                    lead_id=lead_id,
                    agent_id=chosen.id,
                    previous_agent_id=lead.assigned_agent_id,
                    score=selection.score,
                    rule_trace=selection.trace,
                )
                if chosen.id == lead.assigned_agent_id:
                    return assignment

                granted = await self._call(
                    uow.agents.adjust_lead_count(chosen.id, 1, enforce_capacity=True)
                )
                if granted:
                    await self._call(uow.leads.set_assignment(lead_id, chosen.id))
                    await self._release(uow, lead.assigned_agent_id)
                    logger.info(
                        "Lead %s → agent %s (score %d, attempt %d, rules %s)",
                        lead_id, chosen.id, selection.score, attempt, selection.trace,
                    )
                    return assignment

                logger.info(
                    "Agent %s filled up while assigning lead %s, retrying", chosen.id, lead_id
                )

            raise NoEligibleAgentError(lead_id)

    async def _release(self, uow: UnitOfWork, agent_id: str | None) -> None:
        if agent_id is not None:
            await self._call(uow.agents.adjust_lead_count(agent_id, -1))


def _agent_filter(lead: Lead, rules: ActiveRules) -> AgentFilter:
    """Read only the geolocation rule's agents when one applies to the lead."""
    geo_rule = matching_geolocation_rule(lead, rules)
    if geo_rule is None:
        return AgentFilter()
    return AgentFilter(agent_ids=frozenset(geo_rule.data.eligible_agent_ids))
