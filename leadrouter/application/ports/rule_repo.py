"""Port interface for assignment rule persistence."""

from abc import ABC, abstractmethod

from leadrouter.domain.entities.assignment_rule import AssignmentRule, RuleSet
from leadrouter.domain.value_objects.enums import RuleType


class RuleRepository(ABC):
    @abstractmethod
    async def get_active_rules(self, rule_type: RuleType) -> list[AssignmentRule]:
        """Active rules of one type, sorted by (priority, insertion order)."""
        ...

    @abstractmethod
    async def get_rule_set(self) -> RuleSet:
        """All three collections, active or not, in insertion order."""
        ...

    @abstractmethod
    async def replace_all(
        self,
        geolocation: list[AssignmentRule],
        capacity: list[AssignmentRule],
        specialization: list[AssignmentRule],
    ) -> RuleSet:
        """Validate, then overwrite all three collections in one transaction.

        Raises RuleValidationError before anything is written, and
        PersistenceError if the write itself fails.
        """
        ...
