"""
EnginePolicy -- runtime knobs of the costing kernel.

Responsibility:
    Carry the tunable behaviour of the kernel (retry budget, shortfall
    clamping, default sale cost timing, presentation multipliers, alert
    thresholds) as one frozen value.

Architecture position:
    Kernel > Domain -- pure.  The kernel never reads configuration files;
    ``costing_config.bridges.build_engine_policy`` turns loaded settings
    into an EnginePolicy.  The defaults here match the bundled
    ``costing_config/defaults.yaml``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from costing_kernel.domain.types import CostTiming, ItemKind, UnitOfMeasure


def _default_multipliers() -> dict[UnitOfMeasure, Decimal]:
    return {
        UnitOfMeasure.GRAMS: Decimal("1000"),
        UnitOfMeasure.MILLILITRES: Decimal("1000"),
        UnitOfMeasure.UNITS: Decimal("1"),
    }


@dataclass(frozen=True)
class AlertBand:
    """Stock at or below ``critical`` is critical; at or below ``low`` is low."""

    critical: Decimal
    low: Decimal

    def __post_init__(self) -> None:
        if self.critical < 0 or self.low < self.critical:
            raise ValueError(
                f"Alert band requires 0 <= critical <= low, got "
                f"critical={self.critical} low={self.low}"
            )


@dataclass(frozen=True)
class EnginePolicy:
    max_attempts: int = 3
    retry_backoff_seconds: float = 0.05
    clamp_raw_material_shortfall: bool = True
    sale_cost_timing: CostTiming = CostTiming.LIVE
    standard_unit_multipliers: dict[UnitOfMeasure, Decimal] = field(
        default_factory=_default_multipliers
    )
    raw_material_alerts: AlertBand = AlertBand(Decimal("10"), Decimal("100"))
    finished_good_alerts: AlertBand = AlertBand(Decimal("5"), Decimal("20"))
    stock_history_limit: int = 50

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.retry_backoff_seconds < 0:
            raise ValueError(
                f"retry_backoff_seconds must be >= 0, got {self.retry_backoff_seconds}"
            )

    def alert_thresholds(self) -> dict[ItemKind, tuple[Decimal, Decimal]]:
        return {
            ItemKind.RAW_MATERIAL: (
                self.raw_material_alerts.critical,
                self.raw_material_alerts.low,
            ),
            ItemKind.FINISHED_GOOD: (
                self.finished_good_alerts.critical,
                self.finished_good_alerts.low,
            ),
        }
