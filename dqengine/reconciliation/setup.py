# -*- coding: utf-8 -*-
"""
Field Reconciliation Service Setup - DQ-RECON-001

Provides ``configure_reconciliation(app)`` which wires up the field
reconciliation engines (similarity scorer, auto-mapper, business rule
validator, value reconciler, rules engine, provenance tracker) and
mounts the REST API.

Also exposes ``get_reconciliation_service(app)`` for programmatic access
and the ``ReconciliationService`` facade class.

Usage:
    >>> from fastapi import FastAPI
    >>> from dqengine.reconciliation.setup import configure_reconciliation
    >>> app = FastAPI()
    >>> import asyncio
    >>> service = asyncio.run(configure_reconciliation(app))

Author: DQ Engine Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from pydantic import BaseModel, Field

from dqengine.reconciliation.auto_mapper import AutoMapper
from dqengine.reconciliation.business_rules import BusinessRuleValidator
from dqengine.reconciliation.config import ReconciliationConfig, get_config
from dqengine.reconciliation.metrics import (
    PROMETHEUS_AVAILABLE,
    inc_comparisons,
    inc_errors,
    inc_similarity_computations,
    inc_suggestions,
    inc_unmapped,
    inc_validations,
    observe_duration,
    observe_similarity,
)
from dqengine.reconciliation.models import (
    AutoMapRequest,
    ComparisonResult,
    ComparisonSummary,
    DataElement,
    LogicalFieldGroup,
    MappingSuggestion,
    ObservedValue,
    PipelineResult,
    ReconcileRequest,
    RuleResult,
    RuleRunRequest,
    ServiceStatistics,
    SimilarityRequest,
    SimilarityScore,
    SummaryRequest,
    ValidateRequest,
    ValidationOutcome,
    ValidationRule,
)
from dqengine.reconciliation.provenance import ProvenanceTracker, build_hash
from dqengine.reconciliation.reconciliation_pipeline import (
    ProgressCallback,
    ReconciliationPipeline,
    RepositoryClient,
)
from dqengine.reconciliation.rules_engine import RulesEngine
from dqengine.reconciliation.similarity_scorer import SimilarityScorer
from dqengine.reconciliation.value_reconciler import ValueReconciler

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Optional FastAPI import
# ---------------------------------------------------------------------------

try:
    from fastapi import FastAPI
    FASTAPI_AVAILABLE = True
except ImportError:
    FastAPI = None  # type: ignore[assignment, misc]
    FASTAPI_AVAILABLE = False


# ===================================================================
# Response models used by the facade
# ===================================================================


class ReconcileResponse(BaseModel):
    """Batch reconciliation result for one org unit and period.

    Attributes:
        reconcile_id: Unique reconciliation operation identifier.
        results: One comparison result per group, in group order.
        summary: Status counts over the results.
        processing_time_ms: Processing duration in milliseconds.
        provenance_hash: SHA-256 provenance hash.
    """
    reconcile_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    results: List[ComparisonResult] = Field(default_factory=list)
    summary: ComparisonSummary = Field(default_factory=ComparisonSummary)
    processing_time_ms: float = Field(default=0.0)
    provenance_hash: str = Field(default="")


# ===================================================================
# ReconciliationService facade
# ===================================================================

_singleton_lock = threading.Lock()
_singleton_instance: Optional["ReconciliationService"] = None


class ReconciliationService:
    """Unified facade over the field reconciliation engines.

    Each method delegates to the pure engines, then records provenance,
    updates Prometheus metrics and keeps running statistics.

    Attributes:
        config: ReconciliationConfig instance.
        provenance: ProvenanceTracker for SHA-256 audit trails.

    Example:
        >>> service = ReconciliationService()
        >>> score = service.score_similarity("Malaria cases", "Malaria deaths")
        >>> print(score.overall)
    """

    def __init__(
        self,
        config: Optional[ReconciliationConfig] = None,
    ) -> None:
        self.config = config or get_config()
        self.provenance = ProvenanceTracker()

        self._scorer = SimilarityScorer()
        self._mapper = AutoMapper(
            scorer=self._scorer,
            max_reason_terms=self.config.max_reason_terms,
        )
        self._validator = BusinessRuleValidator()
        self._reconciler = ValueReconciler(validator=self._validator)
        self._rules_engine = RulesEngine.with_default_rules()

        self._stats = ServiceStatistics()
        self._stats_lock = threading.Lock()
        self._started = False

        logger.info("ReconciliationService facade created")

    # ------------------------------------------------------------------
    # Engine properties
    # ------------------------------------------------------------------

    @property
    def scorer(self) -> SimilarityScorer:
        return self._scorer

    @property
    def mapper(self) -> AutoMapper:
        return self._mapper

    @property
    def reconciler(self) -> ValueReconciler:
        return self._reconciler

    @property
    def rules_engine(self) -> RulesEngine:
        return self._rules_engine

    # ------------------------------------------------------------------
    # Similarity and mapping
    # ------------------------------------------------------------------

    def score_similarity(self, label_a: str, label_b: str) -> SimilarityScore:
        """Score two labels."""
        start_time = time.time()
        score = self._scorer.score(label_a, label_b)

        with self._stats_lock:
            self._stats.total_similarity_checks += 1
        if self.config.enable_metrics:
            inc_similarity_computations()
            observe_duration("similarity", time.time() - start_time)
        return score

    def generate_auto_mappings(
        self,
        source: Sequence[DataElement],
        target: Sequence[DataElement],
        min_similarity: Optional[float] = None,
    ) -> List[MappingSuggestion]:
        """Propose source-to-target mappings.

        Args:
            source: Source repository elements, in processing order.
            target: Target repository elements.
            min_similarity: Minimum overall similarity (configured
                default when omitted).

        Returns:
            Suggestions sorted by descending overall similarity.
        """
        start_time = time.time()
        threshold = (
            self.config.default_min_similarity
            if min_similarity is None else min_similarity
        )
        suggestions = self._mapper.generate_mappings(source, target, threshold)

        by_confidence: Dict[str, int] = {}
        for suggestion in suggestions:
            key = suggestion.confidence.value
            by_confidence[key] = by_confidence.get(key, 0) + 1

        with self._stats_lock:
            self._stats.total_mapping_runs += 1
            self._stats.total_suggestions += len(suggestions)
            for key, count in by_confidence.items():
                self._stats.by_confidence[key] = (
                    self._stats.by_confidence.get(key, 0) + count
                )

        self._record(
            "mapping", "automap",
            [s.provenance_hash for s in suggestions],
        )

        if self.config.enable_metrics:
            inc_similarity_computations(len(source) * len(target))
            for key, count in by_confidence.items():
                inc_suggestions(key, count)
            inc_unmapped(len(source) - len(suggestions))
            for suggestion in suggestions:
                observe_similarity(suggestion.similarity.overall)
            observe_duration("automap", time.time() - start_time)

        return suggestions

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate_value(
        self, value: Optional[str], field_label: str = "",
    ) -> ValidationOutcome:
        """Apply the built-in business rules to one value."""
        outcome = self._validator.validate(value, field_label)
        with self._stats_lock:
            self._stats.total_validations += 1
        if self.config.enable_metrics:
            inc_validations("valid" if outcome.valid else "invalid")
        return outcome

    def run_rules(
        self,
        values: Sequence[ObservedValue],
        repository_id: Optional[str] = None,
        historical: Optional[Sequence[ObservedValue]] = None,
    ) -> List[RuleResult]:
        """Evaluate the configured validation rules."""
        start_time = time.time()
        results = self._rules_engine.run_validation(
            values, repository_id=repository_id, historical=historical,
        )
        if self.config.enable_metrics:
            observe_duration("rules", time.time() - start_time)
        return results

    def add_rule(self, rule: ValidationRule) -> ValidationRule:
        stored = self._rules_engine.add_rule(rule)
        self._record("rule", "create", rule.model_dump(mode="json"), entity_id=rule.id)
        return stored

    def list_rules(self) -> List[ValidationRule]:
        return self._rules_engine.list_rules()

    def delete_rule(self, rule_id: str) -> bool:
        deleted = self._rules_engine.delete_rule(rule_id)
        if deleted:
            self._record("rule", "delete", {"rule_id": rule_id}, entity_id=rule_id)
        return deleted

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    def reconcile(
        self,
        group: LogicalFieldGroup,
        values_by_repository: Mapping[str, Iterable[Any]],
        org_unit: str,
        period: str,
        repository_names: Optional[Mapping[str, str]] = None,
        org_unit_name: Optional[str] = None,
    ) -> ComparisonResult:
        """Reconcile one group for one org unit and period."""
        response = self.reconcile_groups(
            [group], values_by_repository, org_unit, period,
            repository_names=repository_names,
            org_unit_name=org_unit_name,
        )
        return response.results[0]

    def reconcile_groups(
        self,
        groups: Sequence[LogicalFieldGroup],
        values_by_repository: Mapping[str, Iterable[Any]],
        org_unit: str,
        period: str,
        repository_names: Optional[Mapping[str, str]] = None,
        org_unit_name: Optional[str] = None,
    ) -> ReconcileResponse:
        """Reconcile a batch of groups for one org unit and period.

        Raises:
            ValueError: If the batch exceeds ``max_batch_size``.
        """
        start_time = time.time()
        self._check_batch(len(groups))

        results = self._reconciler.reconcile_groups(
            groups, values_by_repository, org_unit, period,
            repository_names=repository_names,
            org_unit_name=org_unit_name,
        )
        summary = ComparisonSummary.from_results(results)
        self._count_results(results)

        response = ReconcileResponse(
            results=results,
            summary=summary,
            processing_time_ms=round((time.time() - start_time) * 1000.0, 2),
        )
        response.provenance_hash = self._record(
            "comparison", "reconcile",
            [r.provenance_hash for r in results],
            entity_id=response.reconcile_id,
        )
        if self.config.enable_metrics:
            observe_duration("reconcile", time.time() - start_time)

        logger.info(
            "Reconciled %d groups for %s/%s: valid=%d mismatched=%d "
            "missing=%d out_of_range=%d",
            summary.total_records, org_unit, period, summary.valid_records,
            summary.mismatched_records, summary.missing_records,
            summary.out_of_range_records,
        )
        return response

    def summarize(self, results: Sequence[ComparisonResult]) -> ComparisonSummary:
        """Count a batch of results by status.

        Raises:
            ValueError: If the batch exceeds ``max_batch_size``.
        """
        self._check_batch(len(results))
        summary = ComparisonSummary.from_results(results)
        self._record("summary", "summarize", summary.model_dump())
        return summary

    def run_pipeline(
        self,
        client: RepositoryClient,
        groups: Sequence[LogicalFieldGroup],
        org_unit: str,
        periods: Union[str, Sequence[str]],
        repository_ids: Optional[Sequence[str]] = None,
        repository_names: Optional[Mapping[str, str]] = None,
        org_unit_name: Optional[str] = None,
        progress: Optional[ProgressCallback] = None,
    ) -> PipelineResult:
        """Run a multi-period reconciliation through a repository client."""
        pipeline = ReconciliationPipeline(
            client,
            reconciler=self._reconciler,
            mapper=self._mapper,
            config=self.config,
        )
        run = pipeline.run(
            groups, org_unit, periods,
            repository_ids=repository_ids,
            repository_names=repository_names,
            org_unit_name=org_unit_name,
            progress=progress,
        )
        with self._stats_lock:
            self._stats.total_reconciliations += len(run.results)
            for result in run.results:
                key = result.status.value
                self._stats.by_status[key] = self._stats.by_status.get(key, 0) + 1
        self._record("pipeline_run", "run", run.provenance_hash, entity_id=run.run_id)
        return run

    # ------------------------------------------------------------------
    # Statistics and health
    # ------------------------------------------------------------------

    def get_statistics(self) -> ServiceStatistics:
        with self._stats_lock:
            self._stats.provenance_entries = self.provenance.entry_count
            return self._stats.model_copy(deep=True)

    def health_check(self) -> Dict[str, Any]:
        """Perform a health check on the service.

        Returns:
            Health status dict.
        """
        return {
            "status": "healthy" if self._started else "not_started",
            "service": "field-reconciliation",
            "started": self._started,
            "rules": len(self._rules_engine.list_rules()),
            "provenance_entries": self.provenance.entry_count,
            "prometheus_available": PROMETHEUS_AVAILABLE,
        }

    def get_metrics(self) -> Dict[str, Any]:
        """Get reconciliation service metrics summary."""
        stats = self.get_statistics()
        return {
            "prometheus_available": PROMETHEUS_AVAILABLE,
            "started": self._started,
            **stats.model_dump(),
        }

    def get_provenance(self) -> ProvenanceTracker:
        return self.provenance

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _check_batch(self, size: int) -> None:
        if size > self.config.max_batch_size:
            if self.config.enable_metrics:
                inc_errors("validation")
            raise ValueError(
                f"batch of {size} exceeds max_batch_size "
                f"{self.config.max_batch_size}"
            )

    def _count_results(self, results: Sequence[ComparisonResult]) -> None:
        with self._stats_lock:
            self._stats.total_reconciliations += len(results)
            for result in results:
                key = result.status.value
                self._stats.by_status[key] = self._stats.by_status.get(key, 0) + 1
        if self.config.enable_metrics:
            for result in results:
                inc_comparisons(result.status.value)

    def _record(
        self,
        entity_type: str,
        action: str,
        data: Any,
        entity_id: Optional[str] = None,
    ) -> str:
        """Hash ``data`` and append it to the provenance chain when enabled."""
        data_hash = build_hash(data)
        if not self.config.enable_provenance:
            return data_hash
        return self.provenance.record(
            entity_type=entity_type,
            entity_id=entity_id or str(uuid.uuid4()),
            action=action,
            data_hash=data_hash,
        )


# ===================================================================
# Module-level configuration functions
# ===================================================================


async def configure_reconciliation(
    app: Any,
    config: Optional[ReconciliationConfig] = None,
) -> ReconciliationService:
    """Configure the Reconciliation Service on a FastAPI application.

    Creates the ReconciliationService, stores it in app.state, mounts the
    reconciliation API router, and starts the service.

    Args:
        app: FastAPI application instance.
        config: Optional reconciliation config.

    Returns:
        ReconciliationService instance.
    """
    global _singleton_instance

    service = ReconciliationService(config=config)

    with _singleton_lock:
        _singleton_instance = service

    app.state.reconciliation_service = service

    router = get_router(service)
    if router is not None:
        app.include_router(router)
        logger.info("Reconciliation API router mounted")
    else:
        logger.warning("Reconciliation API router not available")

    service._started = True
    logger.info("Reconciliation service configured and started")
    return service


def get_reconciliation_service(app: Any = None) -> ReconciliationService:
    """Get the ReconciliationService stored on a FastAPI application.

    Args:
        app: FastAPI application instance. When omitted the module
            singleton is returned, created on first use.

    Returns:
        ReconciliationService instance.

    Raises:
        RuntimeError: If the reconciliation service is not configured on
            the application.
    """
    if app is None:
        return get_service()
    service = getattr(app.state, "reconciliation_service", None)
    if service is None:
        raise RuntimeError(
            "Reconciliation service not configured. "
            "Call configure_reconciliation(app) first."
        )
    return service


def get_service() -> ReconciliationService:
    """Get the singleton ReconciliationService instance."""
    global _singleton_instance
    if _singleton_instance is None:
        with _singleton_lock:
            if _singleton_instance is None:
                _singleton_instance = ReconciliationService()
    return _singleton_instance


def reset_service() -> None:
    """Drop the singleton instance. Used by tests."""
    global _singleton_instance
    with _singleton_lock:
        _singleton_instance = None


def get_router(service: Optional[ReconciliationService] = None) -> Any:
    """Get the reconciliation API router.

    Creates a FastAPI APIRouter at prefix ``/api/v1/reconciliation``.

    Args:
        service: Service used by the route handlers (defaults to the
            module singleton, resolved per request).

    Returns:
        FastAPI APIRouter or None if FastAPI not available.
    """
    if not FASTAPI_AVAILABLE:
        return None

    from fastapi import APIRouter, HTTPException

    router = APIRouter(
        prefix="/api/v1/reconciliation",
        tags=["reconciliation"],
    )

    def _svc() -> ReconciliationService:
        """Get the service for route handlers."""
        return service if service is not None else get_service()

    # ------------------------------------------------------------------
    # 1. POST /similarity - Score two labels
    # ------------------------------------------------------------------
    @router.post("/similarity", response_model=SimilarityScore)
    async def post_similarity(request: SimilarityRequest) -> SimilarityScore:
        """Score the similarity of two element labels."""
        return _svc().score_similarity(request.label_a, request.label_b)

    # ------------------------------------------------------------------
    # 2. POST /automap - Propose source-to-target mappings
    # ------------------------------------------------------------------
    @router.post("/automap", response_model=List[MappingSuggestion])
    async def post_automap(request: AutoMapRequest) -> List[MappingSuggestion]:
        """Propose a one-to-one mapping of source onto target elements."""
        try:
            return _svc().generate_auto_mappings(
                request.source, request.target, request.min_similarity,
            )
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc))

    # ------------------------------------------------------------------
    # 3. POST /validate - Built-in business rules for one value
    # ------------------------------------------------------------------
    @router.post("/validate", response_model=ValidationOutcome)
    async def post_validate(request: ValidateRequest) -> ValidationOutcome:
        """Check one value against the built-in business rules."""
        return _svc().validate_value(request.value, request.field_label)

    # ------------------------------------------------------------------
    # 4. POST /reconcile - Reconcile groups for one org unit and period
    # ------------------------------------------------------------------
    @router.post("/reconcile", response_model=ReconcileResponse)
    async def post_reconcile(request: ReconcileRequest) -> ReconcileResponse:
        """Reconcile logical field groups for one org unit and period."""
        try:
            return _svc().reconcile_groups(
                request.groups,
                request.values_by_repository,
                request.org_unit,
                request.period,
                repository_names=request.repository_names(),
                org_unit_name=request.org_unit_name,
            )
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc))

    # ------------------------------------------------------------------
    # 5. POST /summary - Count results by status
    # ------------------------------------------------------------------
    @router.post("/summary", response_model=ComparisonSummary)
    async def post_summary(request: SummaryRequest) -> ComparisonSummary:
        """Summarize a batch of comparison results."""
        try:
            return _svc().summarize(request.results)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc))

    # ------------------------------------------------------------------
    # 6. GET /rules - List configured validation rules
    # ------------------------------------------------------------------
    @router.get("/rules", response_model=List[ValidationRule])
    async def get_rules() -> List[ValidationRule]:
        """List the configured validation rules."""
        return _svc().list_rules()

    # ------------------------------------------------------------------
    # 7. POST /rules - Add a validation rule
    # ------------------------------------------------------------------
    @router.post("/rules", response_model=ValidationRule, status_code=201)
    async def post_rule(rule: ValidationRule) -> ValidationRule:
        """Add a validation rule."""
        try:
            return _svc().add_rule(rule)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc))

    # ------------------------------------------------------------------
    # 8. DELETE /rules/{rule_id} - Delete a validation rule
    # ------------------------------------------------------------------
    @router.delete("/rules/{rule_id}")
    async def delete_rule(rule_id: str) -> Dict[str, Any]:
        """Delete a validation rule."""
        if not _svc().delete_rule(rule_id):
            raise HTTPException(
                status_code=404, detail=f"Rule {rule_id} not found",
            )
        return {"deleted": True, "rule_id": rule_id}

    # ------------------------------------------------------------------
    # 9. POST /rules/run - Evaluate the active validation rules
    # ------------------------------------------------------------------
    @router.post("/rules/run", response_model=List[RuleResult])
    async def post_run_rules(request: RuleRunRequest) -> List[RuleResult]:
        """Evaluate the active validation rules over observed values."""
        return _svc().run_rules(
            request.values,
            repository_id=request.repository_id,
            historical=request.historical,
        )

    # ------------------------------------------------------------------
    # 10. GET /health - Health check
    # ------------------------------------------------------------------
    @router.get("/health")
    async def get_health() -> Dict[str, Any]:
        """Return service health."""
        return _svc().health_check()

    # ------------------------------------------------------------------
    # 11. GET /stats - Service statistics
    # ------------------------------------------------------------------
    @router.get("/stats", response_model=ServiceStatistics)
    async def get_stats() -> ServiceStatistics:
        """Return running service statistics."""
        return _svc().get_statistics()

    return router


__all__ = [
    "ReconciliationService",
    "configure_reconciliation",
    "get_reconciliation_service",
    "get_service",
    "reset_service",
    "get_router",
    # Models
    "ReconcileResponse",
]
