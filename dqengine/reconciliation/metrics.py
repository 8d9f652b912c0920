# -*- coding: utf-8 -*-
"""
Prometheus Metrics - DQ-RECON-001: Field Reconciliation

8 Prometheus metrics for field reconciliation monitoring with graceful
fallback when prometheus_client is not installed.

Metrics:
    1. dq_recon_similarity_computations_total (Counter)
    2. dq_recon_mapping_suggestions_total (Counter, labels: confidence)
    3. dq_recon_unmapped_fields_total (Counter)
    4. dq_recon_validations_total (Counter, labels: result)
    5. dq_recon_comparisons_total (Counter, labels: status)
    6. dq_recon_processing_duration_seconds (Histogram, labels: operation)
    7. dq_recon_similarity_score (Histogram)
    8. dq_recon_processing_errors_total (Counter, labels: error_type)

Author: DQ Engine Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Graceful prometheus_client import
# ---------------------------------------------------------------------------

try:
    from prometheus_client import Counter, Histogram
    PROMETHEUS_AVAILABLE = True
except ImportError:
    PROMETHEUS_AVAILABLE = False
    logger.info(
        "prometheus_client not installed; reconciliation metrics disabled"
    )


# ---------------------------------------------------------------------------
# Metric definitions
# ---------------------------------------------------------------------------

if PROMETHEUS_AVAILABLE:
    # 1. Label pairs scored
    recon_similarity_computations_total = Counter(
        "dq_recon_similarity_computations_total",
        "Total label pairs scored for similarity",
    )

    # 2. Mapping suggestions by confidence tier
    recon_mapping_suggestions_total = Counter(
        "dq_recon_mapping_suggestions_total",
        "Total mapping suggestions emitted",
        labelnames=["confidence"],
    )

    # 3. Source fields left without a suggestion
    recon_unmapped_fields_total = Counter(
        "dq_recon_unmapped_fields_total",
        "Total source fields left unmapped by the auto-mapper",
    )

    # 4. Business-rule validations by result
    recon_validations_total = Counter(
        "dq_recon_validations_total",
        "Total business-rule validations performed",
        labelnames=["result"],
    )

    # 5. Comparison results by status
    recon_comparisons_total = Counter(
        "dq_recon_comparisons_total",
        "Total logical field comparisons produced",
        labelnames=["status"],
    )

    # 6. Processing duration by operation
    recon_processing_duration_seconds = Histogram(
        "dq_recon_processing_duration_seconds",
        "Reconciliation operation duration in seconds",
        labelnames=["operation"],
        buckets=(
            0.001, 0.005, 0.01, 0.05, 0.1, 0.25,
            0.5, 1.0, 2.5, 5.0, 10.0, 30.0,
        ),
    )

    # 7. Overall similarity of winning suggestions
    recon_similarity_score = Histogram(
        "dq_recon_similarity_score",
        "Overall similarity score of emitted suggestions",
        buckets=(0.3, 0.4, 0.5, 0.6, 0.7, 0.75, 0.8, 0.9, 0.95, 1.0),
    )

    # 8. Processing errors by type
    recon_processing_errors_total = Counter(
        "dq_recon_processing_errors_total",
        "Total reconciliation processing errors",
        labelnames=["error_type"],
    )

else:
    recon_similarity_computations_total = None  # type: ignore[assignment]
    recon_mapping_suggestions_total = None  # type: ignore[assignment]
    recon_unmapped_fields_total = None  # type: ignore[assignment]
    recon_validations_total = None  # type: ignore[assignment]
    recon_comparisons_total = None  # type: ignore[assignment]
    recon_processing_duration_seconds = None  # type: ignore[assignment]
    recon_similarity_score = None  # type: ignore[assignment]
    recon_processing_errors_total = None  # type: ignore[assignment]


# ---------------------------------------------------------------------------
# Helper functions (safe to call even without prometheus_client)
# ---------------------------------------------------------------------------


def inc_similarity_computations(count: int = 1) -> None:
    """Record label pairs scored.

    Args:
        count: Number of label pairs scored.
    """
    if not PROMETHEUS_AVAILABLE:
        return
    recon_similarity_computations_total.inc(count)


def inc_suggestions(confidence: str, count: int = 1) -> None:
    """Record mapping suggestions emitted.

    Args:
        confidence: Confidence tier (high, medium, low).
        count: Number of suggestions.
    """
    if not PROMETHEUS_AVAILABLE:
        return
    recon_mapping_suggestions_total.labels(
        confidence=confidence,
    ).inc(count)


def inc_unmapped(count: int = 1) -> None:
    """Record source fields left without a suggestion."""
    if not PROMETHEUS_AVAILABLE:
        return
    recon_unmapped_fields_total.inc(count)


def inc_validations(result: str) -> None:
    """Record a business-rule validation.

    Args:
        result: Validation result (valid, invalid).
    """
    if not PROMETHEUS_AVAILABLE:
        return
    recon_validations_total.labels(
        result=result,
    ).inc()


def inc_comparisons(status: str, count: int = 1) -> None:
    """Record comparison results produced.

    Args:
        status: Comparison status (valid, mismatch, missing, out_of_range).
        count: Number of results.
    """
    if not PROMETHEUS_AVAILABLE:
        return
    recon_comparisons_total.labels(
        status=status,
    ).inc(count)


def observe_duration(operation: str, duration: float) -> None:
    """Record processing duration for an operation.

    Args:
        operation: Operation type (similarity, automap, validate,
            reconcile, summarize, pipeline).
        duration: Duration in seconds.
    """
    if not PROMETHEUS_AVAILABLE:
        return
    recon_processing_duration_seconds.labels(
        operation=operation,
    ).observe(duration)


def observe_similarity(score: float) -> None:
    """Record the overall similarity of an emitted suggestion."""
    if not PROMETHEUS_AVAILABLE:
        return
    recon_similarity_score.observe(score)


def inc_errors(error_type: str) -> None:
    """Record a processing error event.

    Args:
        error_type: Error classification (fetch, validation, data, unknown).
    """
    if not PROMETHEUS_AVAILABLE:
        return
    recon_processing_errors_total.labels(
        error_type=error_type,
    ).inc()


__all__ = [
    "PROMETHEUS_AVAILABLE",
    # Metric objects
    "recon_similarity_computations_total",
    "recon_mapping_suggestions_total",
    "recon_unmapped_fields_total",
    "recon_validations_total",
    "recon_comparisons_total",
    "recon_processing_duration_seconds",
    "recon_similarity_score",
    "recon_processing_errors_total",
    # Helper functions
    "inc_similarity_computations",
    "inc_suggestions",
    "inc_unmapped",
    "inc_validations",
    "inc_comparisons",
    "observe_duration",
    "observe_similarity",
    "inc_errors",
]
