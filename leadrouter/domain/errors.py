"""Domain exceptions for the assignment engine."""

from leadrouter.domain.value_objects.enums import FailureReason


class AssignmentError(Exception):
    """Base exception for assignment errors."""

    reason: FailureReason = FailureReason.PERSISTENCE

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class RuleValidationError(AssignmentError):
    """A rule payload is malformed for its rule type."""

    reason = FailureReason.VALIDATION

    def __init__(self, message: str, rule_name: str | None = None):
        self.rule_name = rule_name
        prefix = f"Rule '{rule_name}': " if rule_name else ""
        super().__init__(f"{prefix}{message}")


class NotFoundError(AssignmentError):
    """Unknown lead or agent id."""

    reason = FailureReason.NOT_FOUND

    def __init__(self, entity: str, entity_id: str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found: {entity_id}")


class NoEligibleAgentError(AssignmentError):
    """The rule pipeline left no candidate agent for a lead."""

    reason = FailureReason.NO_ELIGIBLE_AGENT

    def __init__(self, lead_id: str):
        self.lead_id = lead_id
        super().__init__(f"No eligible agent for lead {lead_id}")


class PersistenceError(AssignmentError):
    """Storage read/write failure, including timeouts."""

    reason = FailureReason.PERSISTENCE
