"""Pluggable remediation used by exception auto-resolution and QA checks.

The shipped strategies are simulations with fixed success rates; real
remediation (payment provider retries, address verification, warehouse
lookups) plugs in by registering another strategy for the exception type.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Any, Protocol


@dataclass(frozen=True)
class ResolutionOutcome:
    success: bool
    notes: str


class ResolutionStrategy(Protocol):
    def attempt(self, exception: Any, order: Any) -> ResolutionOutcome:
        ...


@dataclass
class SimulatedResolution:
    """Succeeds with a fixed probability."""

    success_rate: float
    success_notes: str
    failure_notes: str
    rng: random.Random | None = None

    def attempt(self, exception: Any, order: Any) -> ResolutionOutcome:
        draw = (self.rng or random).random()
        if draw < self.success_rate:
            return ResolutionOutcome(success=True, notes=self.success_notes)
        return ResolutionOutcome(success=False, notes=self.failure_notes)


class NoAutomaticResolution:
    def attempt(self, exception: Any, order: Any) -> ResolutionOutcome:
        return ResolutionOutcome(
            success=False,
            notes="Auto-resolution not available for this exception type",
        )


def default_strategies(rng: random.Random | None = None) -> dict[str, ResolutionStrategy]:
    return {
        "payment_retry": SimulatedResolution(
            success_rate=0.7,
            success_notes="Payment retry successful",
            failure_notes="Payment retry failed - manual intervention required",
            rng=rng,
        ),
        "inventory_check": SimulatedResolution(
            success_rate=0.8,
            success_notes="Inventory verified - item available",
            failure_notes="Inventory shortage confirmed",
            rng=rng,
        ),
        "address_validation": SimulatedResolution(
            success_rate=0.9,
            success_notes="Address validated successfully",
            failure_notes="Address validation failed - customer contact required",
            rng=rng,
        ),
    }


_registry: dict[str, ResolutionStrategy] = default_strategies()


def register_strategy(exception_type: str, strategy: ResolutionStrategy) -> ResolutionStrategy | None:
    """Install the strategy for `exception_type` and return the one it replaces."""
    previous = _registry.get(exception_type)
    _registry[exception_type] = strategy
    return previous


def strategy_for(exception_type: str) -> ResolutionStrategy:
    return _registry.get(exception_type, NoAutomaticResolution())


# Quality assurance

@dataclass(frozen=True)
class QualityCheck:
    name: str
    passed: bool


class QualityInspector(Protocol):
    def inspect(self, order: Any) -> list[QualityCheck]:
        ...


@dataclass
class SimulatedQualityInspector:
    craftsmanship_pass_rate: float = 0.9
    rush_verification_pass_rate: float = 0.95
    rng: random.Random | None = None

    def inspect(self, order: Any) -> list[QualityCheck]:
        rng = self.rng or random
        checks = [
            QualityCheck("Size Verification", True),
            QualityCheck("Color Match", True),
            QualityCheck("Craftsmanship", rng.random() < self.craftsmanship_pass_rate),
            QualityCheck("Packaging", True),
        ]
        if getattr(order, "is_rush_order", False):
            checks.append(QualityCheck("Rush Order Verification", rng.random() < self.rush_verification_pass_rate))
        return checks
