# -*- coding: utf-8 -*-
"""
Field Reconciliation Service Configuration - DQ-RECON-001

Centralized configuration for the field reconciliation engine covering:
- Auto-mapping defaults (minimum similarity, reason term count)
- Pipeline behaviour (empty groups, mismatch logging, batch limits)
- Provenance, logging, and metrics settings

All settings can be overridden via environment variables with the
``DQ_RECON_`` prefix (e.g. ``DQ_RECON_DEFAULT_MIN_SIMILARITY``).

Example:
    >>> from dqengine.reconciliation.config import get_config
    >>> cfg = get_config()
    >>> print(cfg.default_min_similarity, cfg.max_batch_size)

Author: DQ Engine Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass, fields
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Environment variable prefix
# ---------------------------------------------------------------------------

_ENV_PREFIX = "DQ_RECON_"


# ---------------------------------------------------------------------------
# ReconciliationConfig
# ---------------------------------------------------------------------------


@dataclass
class ReconciliationConfig:
    """Complete configuration for the field reconciliation engine.

    Similarity weights and confidence tier thresholds are constants of
    the scoring model, not settings.

    Attributes:
        default_min_similarity: Minimum overall similarity a candidate
            needs to be accepted by the auto-mapper when the caller does
            not pass one explicitly (0.0 to 1.0).
        max_reason_terms: Maximum number of shared key terms listed in
            a mapping suggestion's "Common terms" reason.
        include_empty_groups: Whether the pipeline emits results for
            groups where no repository reported a value.
        max_logged_mismatches: Number of mismatch results logged at
            INFO level per pipeline period.
        max_batch_size: Maximum number of results accepted by a single
            summary or reconcile request.
        enable_provenance: Whether the service records provenance
            entries for each operation.
        log_level: Logging level for the reconciliation service.
        enable_metrics: Whether Prometheus metrics collection is enabled.
    """

    # -- Auto-mapping --------------------------------------------------------
    default_min_similarity: float = 0.30
    max_reason_terms: int = 3

    # -- Pipeline ------------------------------------------------------------
    include_empty_groups: bool = True
    max_logged_mismatches: int = 5
    max_batch_size: int = 10_000

    # -- Provenance ----------------------------------------------------------
    enable_provenance: bool = True

    # -- Logging -------------------------------------------------------------
    log_level: str = "INFO"

    # -- Metrics -------------------------------------------------------------
    enable_metrics: bool = True

    @classmethod
    def from_env(cls) -> ReconciliationConfig:
        """Build a ReconciliationConfig from ``DQ_RECON_<FIELD>`` variables.

        Booleans accept ``true/1/yes`` (case-insensitive). Unparsable
        numbers are logged and the default is kept.
        """
        overrides: Dict[str, Any] = {}
        for spec in fields(cls):
            raw = os.environ.get(f"{_ENV_PREFIX}{spec.name.upper()}")
            if raw is None:
                continue
            parsed = _parse_env(spec.name, spec.default, raw)
            if parsed is not None:
                overrides[spec.name] = parsed

        config = cls(**overrides)
        if overrides:
            logger.info(
                "ReconciliationConfig environment overrides: %s",
                ", ".join(f"{k}={v}" for k, v in sorted(overrides.items())),
            )
        return config


def _parse_env(name: str, default: Any, raw: str) -> Any:
    """Parse one raw override to the type of its default, or None."""
    if isinstance(default, bool):
        return raw.strip().lower() in ("true", "1", "yes")
    if isinstance(default, (int, float)):
        try:
            return type(default)(raw)
        except ValueError:
            logger.warning(
                "Invalid %s for %s%s=%r, using default %s",
                type(default).__name__, _ENV_PREFIX, name.upper(), raw, default,
            )
            return None
    return raw


# ---------------------------------------------------------------------------
# Thread-safe singleton accessor
# ---------------------------------------------------------------------------

_config_instance: Optional[ReconciliationConfig] = None
_config_lock = threading.Lock()


def get_config() -> ReconciliationConfig:
    """Return the singleton ReconciliationConfig, creating from env if needed.

    Uses double-checked locking for thread safety with minimal
    contention on the hot path.

    Returns:
        ReconciliationConfig singleton instance.
    """
    global _config_instance
    if _config_instance is None:
        with _config_lock:
            if _config_instance is None:
                _config_instance = ReconciliationConfig.from_env()
    return _config_instance


def set_config(config: ReconciliationConfig) -> None:
    """Replace the singleton ReconciliationConfig (useful for testing).

    Args:
        config: New configuration to install.
    """
    global _config_instance
    with _config_lock:
        _config_instance = config
    logger.info("ReconciliationConfig replaced programmatically")


def reset_config() -> None:
    """Reset the singleton (primarily for test teardown)."""
    global _config_instance
    with _config_lock:
        _config_instance = None


__all__ = [
    "ReconciliationConfig",
    "get_config",
    "set_config",
    "reset_config",
]
