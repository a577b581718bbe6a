"""Lead assignment endpoints — manual, automatic, unassign, candidate preview."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from leadrouter.application.use_cases.assign_leads import AssignmentExecutor
from leadrouter.domain.entities.assignment import AssignmentResult
from leadrouter.domain.entities.lead import Lead
from leadrouter.domain.policies.rule_evaluation import CandidateScore
from leadrouter.infrastructure.api.dependencies import get_assignment_executor

router = APIRouter(prefix="/leads", tags=["assignment"])

# ── Request schemas ─────────────────────────────────────────────────


class ManualAssignRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    lead_id: str = Field(alias="leadId", min_length=1)
    user_id: str = Field(alias="userId", min_length=1)


class AutoAssignRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    lead_ids: list[str] = Field(alias="leadIds")
    force: bool = False


# ── Endpoints ───────────────────────────────────────────────────────


@router.post("/assign-manual")
async def assign_manual(
    body: ManualAssignRequest,
    executor: AssignmentExecutor = Depends(get_assignment_executor),
):
    """Assign a lead to an agent, overriding rules and capacity."""
    lead = await executor.assign_manual(body.lead_id, body.user_id)
    return _serialize_lead(lead)


@router.post("/auto-assign")
async def auto_assign(
    body: AutoAssignRequest,
    executor: AssignmentExecutor = Depends(get_assignment_executor),
):
    """Route leads through the rules. Per-lead failures are reported, not raised."""
    result = await executor.assign_auto(body.lead_ids, force=body.force)
    return _serialize_result(result)


@router.post("/{lead_id}/unassign")
async def unassign(
    lead_id: str,
    executor: AssignmentExecutor = Depends(get_assignment_executor),
):
    lead = await executor.unassign(lead_id)
    return _serialize_lead(lead)


@router.get("/{lead_id}/candidates")
async def list_candidates(
    lead_id: str,
    executor: AssignmentExecutor = Depends(get_assignment_executor),
):
    """Agents that pass the rules for this lead, best match first."""
    candidates = await executor.rank_candidates(lead_id)
    return {
        "leadId": lead_id,
        "total": len(candidates),
        "candidates": [_serialize_candidate(c) for c in candidates],
    }


# ── Serializers ─────────────────────────────────────────────────────


def _serialize_lead(lead: Lead) -> dict:
    return {
        "id": lead.id,
        "propertyType": lead.property_type.value if lead.property_type else None,
        "preferredLocation": lead.preferred_location,
        "budget": {"min": lead.budget.min, "max": lead.budget.max},
        "leadScore": lead.lead_score,
        "source": lead.source,
        "assignedUserId": lead.assigned_agent_id,
    }


def _serialize_result(result: AssignmentResult) -> dict:
    return {
        "assigned": [
            {
                "leadId": a.lead_id,
                "userId": a.agent_id,
                "previousUserId": a.previous_agent_id,
                "score": a.score,
                "ruleTrace": a.rule_trace,
            }
            for a in result.details.values()
        ],
        "failed": list(result.failed),
        "failures": [
            {"leadId": lead_id, "reason": reason.value}
            for lead_id, reason in result.failed.items()
        ],
        "skipped": result.skipped,
        "cancelled": result.cancelled,
    }


def _serialize_candidate(c: CandidateScore) -> dict:
    agent = c.agent
    return {
        "userId": agent.id,
        "name": agent.name,
        "score": c.score,
        "capacityBand": c.band.value,
        "currentLeads": agent.current_lead_count,
        "maxCapacity": agent.max_capacity,
        "availability": agent.availability.value,
        "specializations": sorted(s.value for s in agent.specializations),
        "breakdown": {
            "capacity": round(c.breakdown.capacity, 3),
            "specialization": round(c.breakdown.specialization, 3),
            "performance": round(c.breakdown.performance, 3),
            "responsiveness": round(c.breakdown.responsiveness, 3),
        },
    }
