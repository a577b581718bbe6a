"""CapacityThresholds value object — workload ratio cut-offs for the bands."""

from dataclasses import dataclass

from leadrouter.domain.errors import RuleValidationError


@dataclass(frozen=True)
class CapacityThresholds:
    green: float = 0.7
    yellow: float = 0.9
    red: float = 1.0

    def __post_init__(self) -> None:
        if not 0.0 <= self.green <= self.yellow <= self.red <= 1.0:
            raise RuleValidationError(
                "capacity thresholds must satisfy 0 <= green <= yellow <= red <= 1.0 "
                f"(got green={self.green}, yellow={self.yellow}, red={self.red})"
            )


DEFAULT_THRESHOLDS = CapacityThresholds()
