"""Budget value object — the price range a lead is shopping in."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Budget:
    min: float | None = None
    max: float | None = None
