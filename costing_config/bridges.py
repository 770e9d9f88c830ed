"""
Config -> Kernel Bridges.

Functions that turn EngineSettings into kernel inputs.  They live in
costing_config (the producer) because the kernel must NEVER import
costing_config.

Usage:
    from costing_config import get_active_settings
    from costing_config.bridges import create_costing_engine

    engine = create_costing_engine(get_active_settings())
"""

from __future__ import annotations

from costing_config.schema import EngineSettings
from costing_kernel.db.engine import (
    create_tables,
    get_session_factory,
    init_engine_from_url,
)
from costing_kernel.db.immutability import register_immutability_listeners
from costing_kernel.domain.clock import Clock
from costing_kernel.domain.policy import AlertBand, EnginePolicy
from costing_kernel.domain.types import CostTiming, UnitOfMeasure
from costing_kernel.services.costing_engine import CostingEngine


def build_engine_policy(settings: EngineSettings) -> EnginePolicy:
    """Build the kernel's EnginePolicy from loaded settings.

    Units missing from ``costing.standard_unit_multipliers`` keep the
    kernel default.
    """
    defaults = EnginePolicy()
    multipliers = dict(defaults.standard_unit_multipliers)
    for unit, multiplier in settings.costing.standard_unit_multipliers.items():
        multipliers[UnitOfMeasure(unit)] = multiplier

    alerts = settings.alerts
    return EnginePolicy(
        max_attempts=settings.transactions.max_attempts,
        retry_backoff_seconds=settings.transactions.retry_backoff_seconds,
        clamp_raw_material_shortfall=settings.costing.clamp_raw_material_shortfall,
        sale_cost_timing=CostTiming(settings.costing.sale_cost_timing),
        standard_unit_multipliers=multipliers,
        raw_material_alerts=AlertBand(
            alerts.raw_material_critical, alerts.raw_material_low
        ),
        finished_good_alerts=AlertBand(
            alerts.finished_good_critical, alerts.finished_good_low
        ),
        stock_history_limit=settings.costing.stock_history_limit,
    )


def create_costing_engine(
    settings: EngineSettings | None = None,
    clock: Clock | None = None,
) -> CostingEngine:
    """Initialize the database and return a ready CostingEngine.

    Creates missing tables and registers the append-only listeners.
    ``settings`` defaults to ``get_active_settings()``.
    """
    if settings is None:
        from costing_config import get_active_settings

        settings = get_active_settings()

    db = settings.database
    init_engine_from_url(
        db.url,
        echo=db.echo,
        pool_size=db.pool_size,
        max_overflow=db.max_overflow,
        pool_pre_ping=db.pool_pre_ping,
        pool_timeout=db.pool_timeout,
        pool_recycle=db.pool_recycle,
    )
    create_tables()
    register_immutability_listeners()

    return CostingEngine(
        get_session_factory(),
        policy=build_engine_policy(settings),
        clock=clock,
    )
