"""
EngineSettings schema.

Typed, frozen form of the costing configuration.  YAML documents are
parsed into these types by ``costing_config.loader``; the kernel never
sees them directly (see ``costing_config.bridges``).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal


@dataclass(frozen=True)
class DatabaseSettings:
    """Connection settings for ``init_engine_from_url``."""

    url: str = "sqlite:///costing.db"
    echo: bool = False
    pool_size: int = 5
    max_overflow: int = 10
    pool_pre_ping: bool = True
    pool_timeout: int = 30
    pool_recycle: int = 1800


@dataclass(frozen=True)
class TransactionSettings:
    max_attempts: int = 3
    retry_backoff_seconds: float = 0.05


@dataclass(frozen=True)
class CostingSettings:
    """Costing behaviour knobs."""

    clamp_raw_material_shortfall: bool = True
    sale_cost_timing: str = "live"  # live | frozen
    standard_unit_multipliers: dict[str, Decimal] = field(default_factory=dict)
    stock_history_limit: int = 50


@dataclass(frozen=True)
class AlertThresholds:
    raw_material_critical: Decimal = Decimal("10")
    raw_material_low: Decimal = Decimal("100")
    finished_good_critical: Decimal = Decimal("5")
    finished_good_low: Decimal = Decimal("20")


@dataclass(frozen=True)
class EngineSettings:
    """Root of the costing configuration."""

    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    transactions: TransactionSettings = field(default_factory=TransactionSettings)
    costing: CostingSettings = field(default_factory=CostingSettings)
    alerts: AlertThresholds = field(default_factory=AlertThresholds)
    checksum: str = ""
    sources: tuple[str, ...] = ()
