"""Assignment entities — the outcome of routing leads to agents."""

from dataclasses import dataclass, field

from leadrouter.domain.value_objects.enums import FailureReason


@dataclass
class Assignment:
    lead_id: str
    agent_id: str
    previous_agent_id: str | None = None
    score: int | None = None
    rule_trace: dict | None = field(default=None)


@dataclass
class AssignmentResult:
    """Accumulated outcome of one auto-assign batch."""

    assigned: dict[str, str] = field(default_factory=dict)
    failed: dict[str, FailureReason] = field(default_factory=dict)
    skipped: list[str] = field(default_factory=list)
    cancelled: bool = False
    # Full assignment records (score, rule trace) keyed by lead id
    details: dict[str, Assignment] = field(default_factory=dict)

    def record_success(self, assignment: Assignment) -> None:
        self.assigned[assignment.lead_id] = assignment.agent_id
        self.details[assignment.lead_id] = assignment

    def record_failure(self, lead_id: str, reason: FailureReason) -> None:
        self.failed[lead_id] = reason
