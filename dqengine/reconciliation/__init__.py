# -*- coding: utf-8 -*-
"""
DQ-RECON-001: Field Reconciliation SDK
======================================

This package compares the same indicators reported by up to three
health information repositories. It supports:

- Label similarity scoring (Levenshtein, Jaro-Winkler, key-term
  Jaccard overlap, containment) with a weighted overall score
- Greedy one-to-one auto-mapping of source onto target elements with
  confidence tiers and human-readable match reasons
- Logical field groups with one slot per repository, editable in a
  session (add, remove, reassign)
- Built-in business-rule validation of reported values
- Value reconciliation into valid, mismatch, missing and out_of_range
  results with consensus suggestions and numeric variance
- Configurable validation rules (range, consistency, outlier, mandatory)
- Multi-period reconciliation pipeline over a repository client
- SHA-256 provenance chain tracking for complete audit trails
- 8 Prometheus metrics for observability
- FastAPI REST API
- Thread-safe configuration with DQ_RECON_ env prefix

Key Components:
    - config: ReconciliationConfig with DQ_RECON_ env prefix
    - similarity_scorer: Label similarity engine
    - auto_mapper: Greedy auto-mapping engine
    - field_groups: Editable logical field group session
    - business_rules: Built-in value validation
    - value_reconciler: Value reconciliation engine
    - rules_engine: Configurable validation rules
    - reconciliation_pipeline: Multi-period pipeline engine
    - provenance: SHA-256 chain-hashed audit trails
    - metrics: 8 Prometheus metrics
    - setup: ReconciliationService facade and API router

Example:
    >>> from dqengine.reconciliation import score_similarity
    >>> score = score_similarity(
    ...     "Number of malaria cases",
    ...     "Malaria cases, number",
    ... )
    >>> print(f"{score.overall:.3f}")
    0.759
"""

__version__ = "1.0.0"
__agent_id__ = "DQ-RECON-001"
__agent_name__ = "Field Reconciliation"

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------
from dqengine.reconciliation.config import (
    ReconciliationConfig,
    get_config,
    set_config,
    reset_config,
)

# ---------------------------------------------------------------------------
# Provenance
# ---------------------------------------------------------------------------
from dqengine.reconciliation.provenance import ProvenanceTracker, build_hash

# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------
from dqengine.reconciliation.metrics import PROMETHEUS_AVAILABLE

# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------
from dqengine.reconciliation.models import (
    ComparisonResult,
    ComparisonStatus,
    ComparisonSummary,
    ConfidenceLevel,
    DataElement,
    LogicalFieldGroup,
    MappingSuggestion,
    ObservedValue,
    PipelineResult,
    Repository,
    RuleResult,
    RuleSeverity,
    RuleType,
    SimilarityScore,
    ValidationOutcome,
    ValidationRule,
)

# ---------------------------------------------------------------------------
# Core engines
# ---------------------------------------------------------------------------
from dqengine.reconciliation.similarity_scorer import (
    SimilarityScorer,
    score_similarity,
)
from dqengine.reconciliation.auto_mapper import (
    AutoMapper,
    build_field_groups,
    generate_auto_mappings,
    generate_cross_repository_mappings,
)
from dqengine.reconciliation.business_rules import (
    BusinessRuleValidator,
    validate_value,
)
from dqengine.reconciliation.value_reconciler import (
    ValueReconciler,
    find_consensus_value,
    reconcile,
    summarize_results,
)
from dqengine.reconciliation.field_groups import (
    ElementAlreadyAssignedError,
    FieldGroupSet,
)
from dqengine.reconciliation.rules_engine import RulesEngine, default_rules
from dqengine.reconciliation.reconciliation_pipeline import (
    InMemoryRepositoryClient,
    ReconciliationPipeline,
    RepositoryClient,
)

# ---------------------------------------------------------------------------
# Service setup facade
# ---------------------------------------------------------------------------
from dqengine.reconciliation.setup import (
    ReconciliationService,
    ReconcileResponse,
    configure_reconciliation,
    get_reconciliation_service,
    get_router,
)

__all__ = [
    # Version
    "__version__",
    "__agent_id__",
    "__agent_name__",
    # Configuration
    "ReconciliationConfig",
    "get_config",
    "set_config",
    "reset_config",
    # Provenance
    "ProvenanceTracker",
    "build_hash",
    # Metric flag
    "PROMETHEUS_AVAILABLE",
    # Models
    "ComparisonResult",
    "ComparisonStatus",
    "ComparisonSummary",
    "ConfidenceLevel",
    "DataElement",
    "LogicalFieldGroup",
    "MappingSuggestion",
    "ObservedValue",
    "PipelineResult",
    "Repository",
    "RuleResult",
    "RuleSeverity",
    "RuleType",
    "SimilarityScore",
    "ValidationOutcome",
    "ValidationRule",
    # Engines
    "SimilarityScorer",
    "score_similarity",
    "AutoMapper",
    "build_field_groups",
    "generate_auto_mappings",
    "generate_cross_repository_mappings",
    "BusinessRuleValidator",
    "validate_value",
    "ValueReconciler",
    "find_consensus_value",
    "reconcile",
    "summarize_results",
    "ElementAlreadyAssignedError",
    "FieldGroupSet",
    "RulesEngine",
    "default_rules",
    "InMemoryRepositoryClient",
    "ReconciliationPipeline",
    "RepositoryClient",
    # Service
    "ReconciliationService",
    "ReconcileResponse",
    "configure_reconciliation",
    "get_reconciliation_service",
    "get_router",
]
