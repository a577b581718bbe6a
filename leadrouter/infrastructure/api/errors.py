"""HTTP status mapping for domain errors."""

from leadrouter.domain.errors import AssignmentError
from leadrouter.domain.value_objects.enums import FailureReason

STATUS_BY_REASON: dict[FailureReason, int] = {
    FailureReason.NOT_FOUND: 404,
    FailureReason.NO_ELIGIBLE_AGENT: 409,
    FailureReason.VALIDATION: 422,
    FailureReason.PERSISTENCE: 503,
}


def status_for(exc: AssignmentError) -> int:
    return STATUS_BY_REASON.get(exc.reason, 500)
