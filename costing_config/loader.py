"""
Configuration Loader (``costing_config.loader``).

Responsibility
--------------
Loads YAML documents, merges a user document over the bundled defaults,
and parses the result into the frozen ``costing_config.schema`` types.
Runtime callers use ``costing_config.get_active_settings()``; this module
is the tooling underneath it.

Invariants enforced
-------------------
* Unknown sections and unknown keys raise ``ValueError``; a typo in a
  config file never falls back silently to a default.
* Money, quantity and threshold values are parsed to ``Decimal`` (quote
  them in YAML to avoid float rounding).
* ``compute_checksum`` is deterministic over the merged document.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Wrong type, unknown key, out-of-range value  -> ``ValueError``.
"""

from __future__ import annotations

import copy
import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from costing_config.schema import (
    AlertThresholds,
    CostingSettings,
    DatabaseSettings,
    EngineSettings,
    TransactionSettings,
)
from costing_kernel.domain.types import CostTiming, UnitOfMeasure

_SECTIONS = ("database", "transactions", "costing", "alerts")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping, got {type(data).__name__}")
    return data


def merge_documents(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep-merge ``override`` into a copy of ``base``; scalars and lists replace."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_documents(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


# ---------------------------------------------------------------------------
# Scalar parsers
# ---------------------------------------------------------------------------


def parse_decimal(name: str, value: Any) -> Decimal:
    if isinstance(value, bool):
        raise ValueError(f"{name}: expected a number, got {value!r}")
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValueError(f"{name}: expected a number, got {value!r}") from None


def parse_int(name: str, value: Any, minimum: int | None = None) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name}: expected an integer, got {value!r}")
    if minimum is not None and value < minimum:
        raise ValueError(f"{name}: must be >= {minimum}, got {value}")
    return value


def parse_bool(name: str, value: Any) -> bool:
    if not isinstance(value, bool):
        raise ValueError(f"{name}: expected true/false, got {value!r}")
    return value


def _section(data: dict[str, Any], name: str, allowed: set[str]) -> dict[str, Any]:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ValueError(f"{name}: expected a mapping, got {type(section).__name__}")
    unknown = set(section) - allowed
    if unknown:
        raise ValueError(f"{name}: unknown keys {sorted(unknown)}")
    return section


# ---------------------------------------------------------------------------
# Section parsers
# ---------------------------------------------------------------------------


def parse_database(data: dict[str, Any]) -> DatabaseSettings:
    defaults = DatabaseSettings()
    section = _section(data, "database", {
        "url", "echo", "pool_size", "max_overflow",
        "pool_pre_ping", "pool_timeout", "pool_recycle",
    })
    url = section.get("url", defaults.url)
    if not isinstance(url, str) or not url:
        raise ValueError(f"database.url: expected a non-empty string, got {url!r}")
    return DatabaseSettings(
        url=url,
        echo=parse_bool("database.echo", section.get("echo", defaults.echo)),
        pool_size=parse_int(
            "database.pool_size", section.get("pool_size", defaults.pool_size), 1
        ),
        max_overflow=parse_int(
            "database.max_overflow", section.get("max_overflow", defaults.max_overflow), 0
        ),
        pool_pre_ping=parse_bool(
            "database.pool_pre_ping", section.get("pool_pre_ping", defaults.pool_pre_ping)
        ),
        pool_timeout=parse_int(
            "database.pool_timeout", section.get("pool_timeout", defaults.pool_timeout), 1
        ),
        pool_recycle=parse_int(
            "database.pool_recycle", section.get("pool_recycle", defaults.pool_recycle), -1
        ),
    )


def parse_transactions(data: dict[str, Any]) -> TransactionSettings:
    defaults = TransactionSettings()
    section = _section(data, "transactions", {"max_attempts", "retry_backoff_seconds"})
    backoff = float(
        parse_decimal(
            "transactions.retry_backoff_seconds",
            section.get("retry_backoff_seconds", defaults.retry_backoff_seconds),
        )
    )
    if backoff < 0:
        raise ValueError(f"transactions.retry_backoff_seconds: must be >= 0, got {backoff}")
    return TransactionSettings(
        max_attempts=parse_int(
            "transactions.max_attempts",
            section.get("max_attempts", defaults.max_attempts),
            1,
        ),
        retry_backoff_seconds=backoff,
    )


def parse_costing(data: dict[str, Any]) -> CostingSettings:
    defaults = CostingSettings()
    section = _section(data, "costing", {
        "clamp_raw_material_shortfall",
        "sale_cost_timing",
        "standard_unit_multipliers",
        "stock_history_limit",
    })

    timing = section.get("sale_cost_timing", defaults.sale_cost_timing)
    valid_timings = {t.value for t in CostTiming}
    if timing not in valid_timings:
        raise ValueError(
            f"costing.sale_cost_timing: expected one of {sorted(valid_timings)}, got {timing!r}"
        )

    raw_multipliers = section.get("standard_unit_multipliers") or {}
    if not isinstance(raw_multipliers, dict):
        raise ValueError("costing.standard_unit_multipliers: expected a mapping")
    valid_units = {u.value for u in UnitOfMeasure}
    multipliers: dict[str, Decimal] = {}
    for unit, value in raw_multipliers.items():
        if unit not in valid_units:
            raise ValueError(
                f"costing.standard_unit_multipliers: unknown unit {unit!r}, "
                f"expected one of {sorted(valid_units)}"
            )
        multiplier = parse_decimal(f"costing.standard_unit_multipliers.{unit}", value)
        if multiplier <= 0:
            raise ValueError(
                f"costing.standard_unit_multipliers.{unit}: must be > 0, got {multiplier}"
            )
        multipliers[unit] = multiplier

    return CostingSettings(
        clamp_raw_material_shortfall=parse_bool(
            "costing.clamp_raw_material_shortfall",
            section.get(
                "clamp_raw_material_shortfall", defaults.clamp_raw_material_shortfall
            ),
        ),
        sale_cost_timing=timing,
        standard_unit_multipliers=multipliers,
        stock_history_limit=parse_int(
            "costing.stock_history_limit",
            section.get("stock_history_limit", defaults.stock_history_limit),
            1,
        ),
    )


def parse_alerts(data: dict[str, Any]) -> AlertThresholds:
    defaults = AlertThresholds()
    keys = (
        "raw_material_critical",
        "raw_material_low",
        "finished_good_critical",
        "finished_good_low",
    )
    section = _section(data, "alerts", set(keys))
    values = {
        key: parse_decimal(f"alerts.{key}", section.get(key, getattr(defaults, key)))
        for key in keys
    }
    for kind in ("raw_material", "finished_good"):
        critical, low = values[f"{kind}_critical"], values[f"{kind}_low"]
        if critical < 0 or low < critical:
            raise ValueError(
                f"alerts.{kind}: require 0 <= critical <= low, got "
                f"critical={critical} low={low}"
            )
    return AlertThresholds(**values)


def parse_settings(
    data: dict[str, Any], sources: tuple[str, ...] = ()
) -> EngineSettings:
    """
    Parse a merged configuration document into ``EngineSettings``.

    Raises:
        ValueError: unknown section or key, wrong type, out-of-range value.
    """
    unknown = set(data) - set(_SECTIONS)
    if unknown:
        raise ValueError(f"Unknown configuration sections: {sorted(unknown)}")
    return EngineSettings(
        database=parse_database(data),
        transactions=parse_transactions(data),
        costing=parse_costing(data),
        alerts=parse_alerts(data),
        checksum=compute_checksum(data),
        sources=sources,
    )
