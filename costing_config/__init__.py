"""
costing_config -- single public entrypoint for costing configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_settings()``.  No other component reads configuration
    files or environment variables directly.

Architecture position:
    Configuration -- sits above ``costing_kernel``.  The kernel MUST NEVER
    import from ``costing_config``; ``costing_config.bridges`` translates
    settings into kernel inputs (EnginePolicy, a wired CostingEngine).

Invariants enforced:
    - Bundled ``defaults.yaml`` is always the base document; a user file is
      merged over it key by key.
    - ``DATABASE_URL`` in the environment overrides ``database.url``.
    - Every successful call emits a ``COSTING_CONFIG_TRACE`` log entry.

Failure modes:
    - ``FileNotFoundError`` -- the given config path does not exist.
    - ``ValueError`` -- unknown keys or invalid values.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from costing_config.loader import load_yaml_file, merge_documents, parse_settings
from costing_config.schema import (
    AlertThresholds,
    CostingSettings,
    DatabaseSettings,
    EngineSettings,
    TransactionSettings,
)

_logger = logging.getLogger("costing_kernel.config")

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"

DATABASE_URL_ENV = "DATABASE_URL"


def get_active_settings(path: Path | str | None = None) -> EngineSettings:
    """The ONLY public configuration entrypoint.

    Args:
        path: Optional user YAML file merged over the bundled defaults.

    Returns:
        Frozen EngineSettings.

    Raises:
        FileNotFoundError: If ``path`` does not exist.
        ValueError: If the merged document fails validation.
    """
    data = load_yaml_file(DEFAULTS_PATH)
    sources = [str(DEFAULTS_PATH)]
    if path is not None:
        data = merge_documents(data, load_yaml_file(Path(path)))
        sources.append(str(path))

    env_url = os.environ.get(DATABASE_URL_ENV)
    if env_url:
        data = merge_documents(data, {"database": {"url": env_url}})
        sources.append(f"env:{DATABASE_URL_ENV}")

    settings = parse_settings(data, tuple(sources))

    _logger.info(
        "COSTING_CONFIG_TRACE",
        extra={
            "trace_type": "COSTING_CONFIG_TRACE",
            "checksum": settings.checksum,
            "sources": list(settings.sources),
            "sale_cost_timing": settings.costing.sale_cost_timing,
            "clamp_raw_material_shortfall": settings.costing.clamp_raw_material_shortfall,
            "max_attempts": settings.transactions.max_attempts,
        },
    )
    return settings


__all__ = [
    "AlertThresholds",
    "CostingSettings",
    "DatabaseSettings",
    "EngineSettings",
    "TransactionSettings",
    "get_active_settings",
]
