"""CapacityPolicy — agent workload ratio, band and capacity sub-score."""

from leadrouter.domain.entities.agent import Agent
from leadrouter.domain.value_objects.capacity_thresholds import CapacityThresholds
from leadrouter.domain.value_objects.enums import CapacityBand

CAPACITY_WEIGHT = 30.0


def workload_ratio(agent: Agent) -> float:
    """current_lead_count / max_capacity; an agent with no capacity counts as full."""
    if agent.max_capacity <= 0:
        return 1.0
    return agent.current_lead_count / agent.max_capacity


def capacity_band(ratio: float, thresholds: CapacityThresholds) -> CapacityBand:
    """Green below green, Yellow below yellow, Red for everything else."""
    if ratio < thresholds.green:
        return CapacityBand.GREEN
    if ratio < thresholds.yellow:
        return CapacityBand.YELLOW
    return CapacityBand.RED


def capacity_score(ratio: float) -> float:
    return min(max((1.0 - ratio) * CAPACITY_WEIGHT, 0.0), CAPACITY_WEIGHT)
