"""Tests for AssignmentExecutor with an in-memory, transactional unit of work."""

from __future__ import annotations

import asyncio
from dataclasses import replace

import pytest

from leadrouter.application.ports.agent_directory import AgentDirectory, AgentFilter
from leadrouter.application.ports.lead_store import LeadStore
from leadrouter.application.ports.rule_repo import RuleRepository
from leadrouter.application.ports.unit_of_work import UnitOfWork
from leadrouter.application.use_cases.assign_leads import AssignmentExecutor
from leadrouter.domain.entities.agent import Agent, AgentPerformance
from leadrouter.domain.entities.assignment_rule import (
    AssignmentRule,
    CapacityRuleData,
    GeolocationRuleData,
    RuleSet,
)
from leadrouter.domain.entities.lead import Lead
from leadrouter.domain.errors import NotFoundError, PersistenceError
from leadrouter.domain.value_objects.enums import (
    Availability,
    FailureReason,
    PropertyType,
)

# ─── In-memory fakes ────────────────────────────────────────────────


class FakeDatabase:
    """Shared rows; each FakeUnitOfWork journals its writes so rollback can undo them."""

    def __init__(self, agents: list[Agent], leads: list[Lead], rule_set: RuleSet | None = None):
        self.agents = {a.id: a for a in agents}
        self.leads = {lead.id: lead for lead in leads}
        self.rule_set = rule_set or RuleSet()
        self.row_locks: dict[str, asyncio.Lock] = {}
        self.commits = 0
        self.rollbacks = 0
        self.list_calls: list[AgentFilter | None] = []


class FakeRuleRepo(RuleRepository):
    def __init__(self, db, uow):
        self._db = db

    async def get_active_rules(self, rule_type):
        return self._db.rule_set.active(rule_type)

    async def get_rule_set(self):
        return self._db.rule_set

    async def replace_all(self, geolocation, capacity, specialization):
        rule_set = RuleSet(geolocation, capacity, specialization)
        rule_set.validate()
        self._db.rule_set = rule_set
        return rule_set


class BrokenRuleRepo(FakeRuleRepo):
    async def get_active_rules(self, rule_type):
        raise PersistenceError("rules table unavailable")


class FakeAgentDirectory(AgentDirectory):
    """Hands out copies so callers see snapshots, like rows read from a database."""

    def __init__(self, db, uow):
        self._db = db
        self._uow = uow

    async def list_agents(self, agent_filter=None):
        self._db.list_calls.append(agent_filter)
        await asyncio.sleep(0)
        ids = agent_filter.agent_ids if agent_filter else None
        return [
            replace(a) for a in self._db.agents.values()
            if a.availability != Availability.OFFLINE and (ids is None or a.id in ids)
        ]

    async def get_by_id(self, agent_id):
        agent = self._db.agents.get(agent_id)
        return replace(agent) if agent else None

    async def adjust_lead_count(self, agent_id, delta, enforce_capacity=False):
        agent = self._db.agents.get(agent_id)
        if agent is None:
            return False
        new_count = agent.current_lead_count + delta
        if enforce_capacity and delta > 0 and new_count > agent.max_capacity:
            return False
        applied = max(new_count, 0) - agent.current_lead_count
        agent.current_lead_count += applied
        self._uow.undo.append(lambda: setattr(
            agent, "current_lead_count", agent.current_lead_count - applied
        ))
        return True


class RowLockingDirectory(FakeAgentDirectory):
    """An UPDATE keeps the agent's row locked until its transaction ends."""

    async def adjust_lead_count(self, agent_id, delta, enforce_capacity=False):
        if agent_id not in self._uow.held:
            lock = self._db.row_locks.setdefault(agent_id, asyncio.Lock())
            await lock.acquire()
            self._uow.held[agent_id] = lock
        return await super().adjust_lead_count(agent_id, delta, enforce_capacity)


class FakeLeadStore(LeadStore):
    def __init__(self, db, uow):
        self._db = db
        self._uow = uow

    async def get(self, lead_id):
        lead = self._db.leads.get(lead_id)
        return replace(lead) if lead else None

    async def set_assignment(self, lead_id, agent_id):
        lead = self._db.leads.get(lead_id)
        if lead is None:
            raise NotFoundError("Lead", lead_id)
        previous = lead.assigned_agent_id
        lead.assigned_agent_id = agent_id
        self._uow.undo.append(lambda: setattr(lead, "assigned_agent_id", previous))
        await asyncio.sleep(0)
        return replace(lead)


class SlowLeadStore(FakeLeadStore):
    async def get(self, lead_id):
        if lead_id.startswith("slow"):
            await asyncio.sleep(1)
        return await super().get(lead_id)


class FailingWriteLeadStore(FakeLeadStore):
    async def set_assignment(self, lead_id, agent_id):
        if lead_id.startswith("bad"):
            raise PersistenceError("write failed")
        return await super().set_assignment(lead_id, agent_id)


class FakeUnitOfWork(UnitOfWork):
    def __init__(self, db, rules_cls=FakeRuleRepo, directory_cls=FakeAgentDirectory,
                 store_cls=FakeLeadStore):
        self._db = db
        self.undo: list = []
        self.held: dict[str, asyncio.Lock] = {}
        self.rules = rules_cls(db, self)
        self.agents = directory_cls(db, self)
        self.leads = store_cls(db, self)

    async def commit(self):
        self._db.commits += 1
        self._finish()

    async def rollback(self):
        self._db.rollbacks += 1
        for undo in reversed(self.undo):
            undo()
        self._finish()

    def _finish(self):
        self.undo.clear()
        for lock in self.held.values():
            lock.release()
        self.held.clear()


# ─── Fixtures ────────────────────────────────────────────────────────


def _agent(aid: str, current: int = 0, maximum: int = 20, conversion: float = 0.0) -> Agent:
    return Agent(
        id=aid, name=aid.upper(), specializations={PropertyType.CONDO},
        max_capacity=maximum, current_lead_count=current,
        performance=AgentPerformance(conversion_rate_pct=conversion, avg_response_time_minutes=30),
    )


def _lead(lid: str, owner: str | None = None) -> Lead:
    return Lead(
        id=lid, property_type=PropertyType.CONDO,
        preferred_location="Downtown", assigned_agent_id=owner,
    )


def _make_executor(agents=None, leads=None, rule_set=None, db=None, uow_kwargs=None, **kw):
    db = db or FakeDatabase(
        agents if agents is not None else [_agent("a", conversion=80), _agent("b", conversion=10)],
        leads if leads is not None else [_lead("l1"), _lead("l2"), _lead("l3")],
        rule_set,
    )
    uow_kwargs = uow_kwargs or {}
    executor = AssignmentExecutor(uow_factory=lambda: FakeUnitOfWork(db, **uow_kwargs), **kw)
    return executor, db


# ─── Manual assignment ───────────────────────────────────────────────


@pytest.mark.asyncio
async def test_manual_assign_sets_owner_and_increments():
    executor, db = _make_executor()
    lead = await executor.assign_manual("l1", "b")
    assert lead.assigned_agent_id == "b"
    assert db.leads["l1"].assigned_agent_id == "b"
    assert db.agents["b"].current_lead_count == 1
    assert db.commits == 1


@pytest.mark.asyncio
async def test_manual_reassign_releases_previous_owner():
    executor, db = _make_executor(
        agents=[_agent("a", current=3), _agent("b")], leads=[_lead("l1", owner="a")],
    )
    await executor.assign_manual("l1", "b")
    assert db.agents["a"].current_lead_count == 2
    assert db.agents["b"].current_lead_count == 1


@pytest.mark.asyncio
async def test_manual_assign_overrides_capacity():
    executor, db = _make_executor(agents=[_agent("full", current=5, maximum=5)])
    lead = await executor.assign_manual("l1", "full")
    assert lead.assigned_agent_id == "full"
    assert db.agents["full"].current_lead_count == 6


@pytest.mark.asyncio
async def test_manual_assign_to_current_owner_is_noop():
    executor, db = _make_executor(
        agents=[_agent("a", current=3)], leads=[_lead("l1", owner="a")],
    )
    lead = await executor.assign_manual("l1", "a")
    assert lead.assigned_agent_id == "a"
    assert db.agents["a"].current_lead_count == 3


@pytest.mark.asyncio
async def test_manual_assign_unknown_ids():
    executor, _ = _make_executor()
    with pytest.raises(NotFoundError):
        await executor.assign_manual("missing", "a")
    with pytest.raises(NotFoundError):
        await executor.assign_manual("l1", "ghost")


@pytest.mark.asyncio
async def test_failed_write_rolls_back_the_increment():
    executor, db = _make_executor(
        leads=[_lead("bad1")], uow_kwargs={"store_cls": FailingWriteLeadStore},
    )
    with pytest.raises(PersistenceError):
        await executor.assign_manual("bad1", "a")
    assert db.agents["a"].current_lead_count == 0
    assert db.rollbacks == 1


# ─── Auto assignment ─────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_auto_assign_all_to_best_agent():
    """A outscores B for every lead and has room: A gets all three."""
    executor, db = _make_executor()
    result = await executor.assign_auto(["l1", "l2", "l3"])
    assert result.assigned == {"l1": "a", "l2": "a", "l3": "a"}
    assert result.failed == {}
    assert db.agents["a"].current_lead_count == 3
    assert db.agents["b"].current_lead_count == 0
    assert all(lead.assigned_agent_id == "a" for lead in db.leads.values())


@pytest.mark.asyncio
async def test_auto_assign_keeps_score_and_trace():
    executor, _ = _make_executor()
    result = await executor.assign_auto(["l1"])
    detail = result.details["l1"]
    assert detail.score == 85
    assert detail.rule_trace["eligible"] == 2
    assert detail.rule_trace["score"] == 85


@pytest.mark.asyncio
async def test_each_lead_commits_separately():
    executor, db = _make_executor()
    await executor.assign_auto(["l1", "l2", "l3"])
    # one read-only unit for the rules, one per lead
    assert db.commits == 4
    assert db.rollbacks == 0


@pytest.mark.asyncio
async def test_auto_assign_no_eligible_agents():
    executor, db = _make_executor(agents=[_agent("full", current=20)])
    result = await executor.assign_auto(["l1", "l2"])
    assert result.assigned == {}
    assert result.failed == {
        "l1": FailureReason.NO_ELIGIBLE_AGENT,
        "l2": FailureReason.NO_ELIGIBLE_AGENT,
    }
    assert db.rollbacks == 2


@pytest.mark.asyncio
async def test_auto_assign_partial_failure_does_not_stop_batch():
    executor, _ = _make_executor()
    result = await executor.assign_auto(["l1", "nope", "l2"])
    assert result.assigned == {"l1": "a", "l2": "a"}
    assert result.failed == {"nope": FailureReason.NOT_FOUND}


@pytest.mark.asyncio
async def test_storage_failure_on_one_lead_leaves_the_others_committed():
    executor, db = _make_executor(
        leads=[_lead("l1"), _lead("bad1"), _lead("l2")],
        uow_kwargs={"store_cls": FailingWriteLeadStore},
    )
    result = await executor.assign_auto(["l1", "bad1", "l2"])
    assert result.assigned == {"l1": "a", "l2": "a"}
    assert result.failed == {"bad1": FailureReason.PERSISTENCE}
    # bad1's increment was undone with its transaction
    assert db.agents["a"].current_lead_count == 2
    assert db.leads["bad1"].assigned_agent_id is None


@pytest.mark.asyncio
async def test_auto_assign_honours_rules():
    rules = RuleSet(
        geolocation=[AssignmentRule(
            id="g1", name="Downtown team", priority=1,
            data=GeolocationRuleData(coverage_areas=("Downtown",), eligible_agent_ids=("b",)),
        )],
        capacity=[AssignmentRule(
            id="c1", name="Cap", priority=1, data=CapacityRuleData(max_leads_per_agent=1),
        )],
    )
    executor, db = _make_executor(rule_set=rules)
    result = await executor.assign_auto(["l1", "l2"])
    assert result.assigned == {"l1": "b"}
    assert result.failed == {"l2": FailureReason.NO_ELIGIBLE_AGENT}
    assert db.agents["a"].current_lead_count == 0
    # the geolocation rule narrows the directory read itself
    assert db.list_calls[0] == AgentFilter(agent_ids=frozenset({"b"}))


@pytest.mark.asyncio
async def test_auto_assign_skips_assigned_leads():
    executor, db = _make_executor(
        agents=[_agent("a", conversion=80), _agent("b", current=1)],
        leads=[_lead("l1", owner="b"), _lead("l2")],
    )
    result = await executor.assign_auto(["l1", "l2"])
    assert result.skipped == ["l1"]
    assert result.assigned == {"l2": "a"}
    assert db.agents["b"].current_lead_count == 1


@pytest.mark.asyncio
async def test_auto_assign_force_reassigns():
    executor, db = _make_executor(
        agents=[_agent("a", conversion=80), _agent("b", current=1)],
        leads=[_lead("l1", owner="b")],
    )
    result = await executor.assign_auto(["l1"], force=True)
    assert result.assigned == {"l1": "a"}
    assert result.details["l1"].previous_agent_id == "b"
    assert db.leads["l1"].assigned_agent_id == "a"
    assert db.agents["a"].current_lead_count == 1
    assert db.agents["b"].current_lead_count == 0


@pytest.mark.asyncio
async def test_auto_assign_force_keeps_best_current_owner():
    executor, db = _make_executor(
        agents=[_agent("a", current=1, conversion=80), _agent("b")],
        leads=[_lead("l1", owner="a")],
    )
    result = await executor.assign_auto(["l1"], force=True)
    assert result.assigned == {"l1": "a"}
    assert db.agents["a"].current_lead_count == 1


@pytest.mark.asyncio
async def test_auto_assign_is_safe_to_retry():
    executor, db = _make_executor()
    await executor.assign_auto(["l1", "l2"])
    again = await executor.assign_auto(["l1", "l2"])
    assert again.skipped == ["l1", "l2"]
    assert db.agents["a"].current_lead_count == 2


@pytest.mark.asyncio
async def test_duplicate_lead_ids_processed_once():
    executor, db = _make_executor()
    result = await executor.assign_auto(["l1", "l1", "l1"])
    assert result.assigned == {"l1": "a"}
    assert result.skipped == []
    assert db.agents["a"].current_lead_count == 1


@pytest.mark.asyncio
async def test_empty_batch():
    executor, _ = _make_executor()
    result = await executor.assign_auto([])
    assert result.assigned == {} and result.failed == {} and not result.cancelled


@pytest.mark.asyncio
async def test_timeout_fails_only_that_lead():
    executor, _ = _make_executor(
        leads=[_lead("slow1"), _lead("l1")],
        uow_kwargs={"store_cls": SlowLeadStore}, timeout_seconds=0.01,
    )
    result = await executor.assign_auto(["slow1", "l1"])
    assert result.failed == {"slow1": FailureReason.PERSISTENCE}
    assert result.assigned == {"l1": "a"}
    with pytest.raises(PersistenceError):
        await executor.assign_manual("slow1", "a")


@pytest.mark.asyncio
async def test_rule_load_failure_fails_the_batch():
    executor, _ = _make_executor(uow_kwargs={"rules_cls": BrokenRuleRepo})
    with pytest.raises(PersistenceError):
        await executor.assign_auto(["l1"])


@pytest.mark.asyncio
async def test_unexpected_error_is_not_reported_as_storage_failure():
    class ExplodingDirectory(FakeAgentDirectory):
        async def list_agents(self, agent_filter=None):
            raise RuntimeError("boom")

    executor, db = _make_executor(uow_kwargs={"directory_cls": ExplodingDirectory})
    with pytest.raises(RuntimeError):
        await executor.assign_auto(["l1"])
    assert db.rollbacks == 1


@pytest.mark.asyncio
async def test_cancel_stops_remaining_leads():
    cancel = asyncio.Event()

    class CancellingDirectory(FakeAgentDirectory):
        async def adjust_lead_count(self, agent_id, delta, enforce_capacity=False):
            cancel.set()
            return await super().adjust_lead_count(agent_id, delta, enforce_capacity)

    executor, _ = _make_executor(
        agents=[_agent("a")], uow_kwargs={"directory_cls": CancellingDirectory},
    )
    result = await executor.assign_auto(["l1", "l2", "l3"], cancel_event=cancel)
    assert result.cancelled is True
    assert result.assigned == {"l1": "a"}
    assert result.failed == {}


@pytest.mark.asyncio
async def test_concurrent_batch_never_exceeds_capacity():
    """Stale snapshots all favour A; the guarded increment keeps A at its cap."""
    agents = [_agent("a", maximum=2, conversion=100), _agent("b", maximum=10)]
    leads = [_lead(f"l{i}") for i in range(6)]
    executor, db = _make_executor(agents=agents, leads=leads, concurrency=6)
    result = await executor.assign_auto([lead.id for lead in leads])
    assert len(result.assigned) == 6
    assert db.agents["a"].current_lead_count == 2
    assert db.agents["b"].current_lead_count == 4


@pytest.mark.asyncio
async def test_two_batches_never_exceed_capacity():
    db = FakeDatabase(
        [_agent("a", maximum=3, conversion=100), _agent("b", maximum=10)],
        [_lead(f"l{i}") for i in range(8)],
    )
    first, _ = _make_executor(db=db, concurrency=4)
    second, _ = _make_executor(db=db, concurrency=4)
    await asyncio.gather(
        first.assign_auto([f"l{i}" for i in range(4)]),
        second.assign_auto([f"l{i}" for i in range(4, 8)]),
    )
    assert db.agents["a"].current_lead_count == 3
    assert db.agents["b"].current_lead_count == 5


@pytest.mark.asyncio
async def test_two_batches_on_the_same_top_agent_both_finish():
    """Row locks are held only for one lead's transaction, so batches just queue."""
    db = FakeDatabase(
        [_agent("a", maximum=20, conversion=100), _agent("b")],
        [_lead(f"l{i}") for i in range(6)],
    )
    uow_kwargs = {"directory_cls": RowLockingDirectory}
    first, _ = _make_executor(db=db, uow_kwargs=uow_kwargs, timeout_seconds=0.3, concurrency=2)
    second, _ = _make_executor(db=db, uow_kwargs=uow_kwargs, timeout_seconds=0.3, concurrency=2)
    r1, r2 = await asyncio.gather(
        first.assign_auto(["l0", "l1", "l2"]),
        second.assign_auto(["l3", "l4", "l5"]),
    )
    assert r1.failed == {} and r2.failed == {}
    assert set(r1.assigned.values()) | set(r2.assigned.values()) == {"a"}
    assert db.agents["a"].current_lead_count == 6


# ─── Unassign / candidates ───────────────────────────────────────────


@pytest.mark.asyncio
async def test_unassign_releases_agent():
    executor, db = _make_executor(
        agents=[_agent("a", current=2)], leads=[_lead("l1", owner="a")],
    )
    lead = await executor.unassign("l1")
    assert lead.assigned_agent_id is None
    assert db.agents["a"].current_lead_count == 1


@pytest.mark.asyncio
async def test_unassign_unowned_lead_is_noop():
    executor, db = _make_executor()
    lead = await executor.unassign("l1")
    assert lead.assigned_agent_id is None
    assert db.agents["a"].current_lead_count == 0


@pytest.mark.asyncio
async def test_rank_candidates_best_first():
    executor, _ = _make_executor()
    ranked = await executor.rank_candidates("l1")
    assert [c.agent.id for c in ranked] == ["a", "b"]
    assert ranked[0].score > ranked[1].score


@pytest.mark.asyncio
async def test_rank_candidates_unknown_lead():
    executor, _ = _make_executor()
    with pytest.raises(NotFoundError):
        await executor.rank_candidates("missing")
