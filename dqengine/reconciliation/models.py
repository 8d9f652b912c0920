# -*- coding: utf-8 -*-
"""
Field Reconciliation Service Data Models - DQ-RECON-001

Pydantic v2 data models for the field reconciliation engine. Provides
type-safe models for repository data elements, label similarity scores,
mapping suggestions, logical field groups, observed values, comparison
results, business-rule outcomes, configurable validation rules, and
batch summaries.

Enumerations (4):
    - ConfidenceLevel, ComparisonStatus, RuleType, RuleSeverity

SDK models (13):
    - Repository, DataElement, SimilarityScore, MappingSuggestion,
      LogicalFieldGroup, ObservedValue, ValidationOutcome,
      ComparisonResult, ComparisonSummary, PipelineResult,
      ValidationRule, RuleResult, ServiceStatistics

Request models (6):
    - SimilarityRequest, AutoMapRequest, ValidateRequest,
      ReconcileRequest, SummaryRequest, RuleRunRequest

Author: DQ Engine Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import uuid
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, Field, field_validator, model_validator


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

#: Maximum number of repository slots in one logical field group.
MAX_REPOSITORY_SLOTS: int = 3

#: Confidence tier lower bounds, checked from highest to lowest.
HIGH_CONFIDENCE_THRESHOLD: float = 0.75
MEDIUM_CONFIDENCE_THRESHOLD: float = 0.50
LOW_CONFIDENCE_THRESHOLD: float = 0.30


def _require_non_empty(name: str, v: str) -> str:
    if not v or not v.strip():
        raise ValueError(f"{name} must be non-empty")
    return v


# =============================================================================
# Enumerations
# =============================================================================


class ConfidenceLevel(str, Enum):
    """Confidence tier of an automatic mapping suggestion.

    HIGH at or above 0.75 overall similarity, MEDIUM at or above 0.50,
    LOW at or above 0.30. Below 0.30 no tier applies and the auto-mapper
    emits no suggestion.
    """

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @classmethod
    def from_score(cls, score: float) -> Optional[ConfidenceLevel]:
        """Map an overall similarity score onto a confidence tier.

        Args:
            score: Overall similarity score (0.0 to 1.0).

        Returns:
            The matching ConfidenceLevel, or None below the low tier.
        """
        if score >= HIGH_CONFIDENCE_THRESHOLD:
            return cls.HIGH
        if score >= MEDIUM_CONFIDENCE_THRESHOLD:
            return cls.MEDIUM
        if score >= LOW_CONFIDENCE_THRESHOLD:
            return cls.LOW
        return None


class ComparisonStatus(str, Enum):
    """Outcome of reconciling one logical field for an org unit and period.

    MISSING takes priority over OUT_OF_RANGE, which takes priority over
    VALID and MISMATCH.
    """

    VALID = "valid"
    MISMATCH = "mismatch"
    MISSING = "missing"
    OUT_OF_RANGE = "out_of_range"


class RuleType(str, Enum):
    """Kind of configurable validation rule."""

    RANGE = "range"
    CONSISTENCY = "consistency"
    OUTLIER = "outlier"
    MANDATORY = "mandatory"


class RuleSeverity(str, Enum):
    """Severity attached to a configurable validation rule."""

    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


# =============================================================================
# Repository and element models
# =============================================================================


class Repository(BaseModel):
    """A data repository (reporting dataset) taking part in a comparison.

    Attributes:
        id: Repository identifier in the reporting platform.
        name: Human-readable repository name used in conflict messages.
    """

    id: str = Field(..., description="Repository identifier")
    name: str = Field(default="", description="Human-readable repository name")

    model_config = {"extra": "forbid", "frozen": True}

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        """Validate id is non-empty."""
        return _require_non_empty("id", v)


class DataElement(BaseModel):
    """A named field (data element) inside one repository.

    Attributes:
        id: Opaque element identifier, unique within its repository.
        display_name: Human-readable label used for similarity scoring.
        form_name: Optional alternate label shown on data-entry forms.
        repository_id: Optional identifier of the owning repository.
        repository_name: Optional name of the owning repository.
    """

    id: str = Field(..., description="Element identifier within its repository")
    display_name: str = Field(default="", description="Human-readable label")
    form_name: Optional[str] = Field(
        default=None, description="Alternate label used on data-entry forms",
    )
    repository_id: Optional[str] = Field(
        default=None, description="Identifier of the owning repository",
    )
    repository_name: Optional[str] = Field(
        default=None, description="Name of the owning repository",
    )

    model_config = {"extra": "forbid", "frozen": True}

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        """Validate id is non-empty."""
        return _require_non_empty("id", v)


# =============================================================================
# Similarity and mapping models
# =============================================================================


class SimilarityScore(BaseModel):
    """Label similarity broken down by measure, plus the weighted overall.

    Attributes:
        levenshtein: Normalized edit-distance similarity.
        jaro_winkler: Jaro-Winkler similarity.
        term_overlap: Jaccard similarity of key-term sets.
        containment: Substring / word containment score.
        overall: Weighted combination of the four measures.
    """

    levenshtein: float = Field(default=0.0, ge=0.0, le=1.0)
    jaro_winkler: float = Field(default=0.0, ge=0.0, le=1.0)
    term_overlap: float = Field(default=0.0, ge=0.0, le=1.0)
    containment: float = Field(default=0.0, ge=0.0, le=1.0)
    overall: float = Field(default=0.0, ge=0.0, le=1.0)

    model_config = {"extra": "forbid", "frozen": True}

    @classmethod
    def identical(cls) -> SimilarityScore:
        """Return the score of two labels that normalize to the same text."""
        return cls(
            levenshtein=1.0,
            jaro_winkler=1.0,
            term_overlap=1.0,
            containment=1.0,
            overall=1.0,
        )


class MappingSuggestion(BaseModel):
    """A proposed source-to-target element correspondence.

    Attributes:
        source_element: Element of the source repository.
        target_element: Element of the target repository.
        similarity: Score of the winning label pair.
        confidence: Confidence tier of the suggestion.
        reasons: Human-readable explanations, purely informational.
        provenance_hash: SHA-256 hash of the suggestion content.
    """

    source_element: DataElement = Field(..., description="Source element")
    target_element: DataElement = Field(..., description="Target element")
    similarity: SimilarityScore = Field(..., description="Winning similarity score")
    confidence: ConfidenceLevel = Field(..., description="Confidence tier")
    reasons: List[str] = Field(
        default_factory=list, description="Explanations for the suggestion",
    )
    provenance_hash: str = Field(
        default="", description="SHA-256 hash of the suggestion content",
    )

    model_config = {"extra": "forbid", "frozen": True}

    @property
    def source_id(self) -> str:
        return self.source_element.id

    @property
    def target_id(self) -> str:
        return self.target_element.id


# =============================================================================
# Field grouping
# =============================================================================


class LogicalFieldGroup(BaseModel):
    """One logical field represented by up to one element per repository.

    ``elements`` is a fixed-arity list aligned with ``repository_ids``;
    an empty slot is ``None``.

    Attributes:
        id: Group identifier.
        logical_name: Display name of the logical field.
        repository_ids: Ordered, distinct repository identifiers (1-3).
        elements: Element per repository slot, or None when unassigned.
    """

    id: str = Field(..., description="Group identifier")
    logical_name: str = Field(default="", description="Logical field name")
    repository_ids: List[str] = Field(
        ..., description="Ordered repository identifiers, one per slot",
    )
    elements: List[Optional[DataElement]] = Field(
        default_factory=list,
        description="Element per repository slot (None when unassigned)",
    )

    model_config = {"extra": "forbid"}

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        """Validate id is non-empty."""
        return _require_non_empty("id", v)

    @field_validator("repository_ids")
    @classmethod
    def validate_repository_ids(cls, v: List[str]) -> List[str]:
        """Validate slot count and that repository ids are distinct."""
        if not v:
            raise ValueError("repository_ids must contain at least one id")
        if len(v) > MAX_REPOSITORY_SLOTS:
            raise ValueError(
                f"at most {MAX_REPOSITORY_SLOTS} repositories per group, "
                f"got {len(v)}"
            )
        for repo_id in v:
            _require_non_empty("repository id", repo_id)
        if len(set(v)) != len(v):
            raise ValueError("repository_ids must be distinct")
        return v

    @model_validator(mode="after")
    def align_slots(self) -> LogicalFieldGroup:
        """Pad elements to one slot per repository."""
        if len(self.elements) > len(self.repository_ids):
            raise ValueError(
                f"group {self.id} has {len(self.elements)} elements for "
                f"{len(self.repository_ids)} repository slots"
            )
        missing = len(self.repository_ids) - len(self.elements)
        if missing:
            self.elements.extend([None] * missing)
        return self

    @classmethod
    def from_mapping(
        cls,
        group_id: str,
        logical_name: str,
        repository_ids: Iterable[str],
        elements: Mapping[str, Optional[DataElement]],
    ) -> LogicalFieldGroup:
        """Build a group from a sparse ``{repository_id: element}`` map.

        Keys that are not among ``repository_ids`` are rejected.
        """
        repo_ids = list(repository_ids)
        unknown = set(elements) - set(repo_ids)
        if unknown:
            raise ValueError(
                f"elements reference unknown repositories: {sorted(unknown)}"
            )
        return cls(
            id=group_id,
            logical_name=logical_name,
            repository_ids=repo_ids,
            elements=[elements.get(repo_id) for repo_id in repo_ids],
        )

    def slot_index(self, repository_id: str) -> int:
        """Return the slot position of a repository.

        Raises:
            KeyError: If the repository is not part of this group.
        """
        try:
            return self.repository_ids.index(repository_id)
        except ValueError:
            raise KeyError(
                f"repository {repository_id} is not part of group {self.id}"
            ) from None

    def element_for(self, repository_id: str) -> Optional[DataElement]:
        """Return the element assigned to a repository slot, if any."""
        if repository_id not in self.repository_ids:
            return None
        return self.elements[self.repository_ids.index(repository_id)]

    def assigned(self) -> List[Tuple[str, DataElement]]:
        """Return ``(repository_id, element)`` pairs for filled slots."""
        return [
            (repo_id, element)
            for repo_id, element in zip(self.repository_ids, self.elements)
            if element is not None
        ]


# =============================================================================
# Observed values and comparison results
# =============================================================================


class ObservedValue(BaseModel):
    """A single raw value reported by a repository.

    Attributes:
        field_id: Identifier of the element the value belongs to.
        org_unit: Organisational unit the value was reported for.
        period: Reporting period (e.g. ``202401``).
        value: Raw reported value; None or empty means not reported.
    """

    field_id: str = Field(..., description="Element identifier")
    org_unit: str = Field(..., description="Organisational unit identifier")
    period: str = Field(..., description="Reporting period")
    value: Optional[str] = Field(default=None, description="Raw value")

    model_config = {"extra": "forbid", "frozen": True}

    @field_validator("value", mode="before")
    @classmethod
    def coerce_value(cls, v: Any) -> Any:
        """Accept numeric payloads by keeping their string form."""
        if v is None or isinstance(v, str):
            return v
        return str(v)


class ValidationOutcome(BaseModel):
    """Result of the built-in business-rule check on one value."""

    valid: bool = Field(..., description="Whether the value passed")
    error: Optional[str] = Field(default=None, description="Failure message")

    model_config = {"extra": "forbid", "frozen": True}


class ComparisonResult(BaseModel):
    """Reconciliation outcome for one group, org unit and period.

    Attributes:
        group_id: Logical field group identifier.
        logical_name: Logical field name.
        org_unit: Organisational unit identifier.
        org_unit_name: Display name of the organisational unit.
        period: Reporting period.
        repository_ids: Repository identifiers in slot order.
        repository_names: Repository display names in slot order.
        element_ids: Element identifier per slot (None when unassigned).
        values: Observed value per slot (None when missing).
        suggested_value: Consensus value, when one exists.
        status: Comparison status.
        conflicts: Ordered human-readable conflict messages.
        variance: max - min of numeric values for mismatches.
        provenance_hash: SHA-256 hash of the result content.
    """

    group_id: str = Field(..., description="Logical field group identifier")
    logical_name: str = Field(default="", description="Logical field name")
    org_unit: str = Field(..., description="Organisational unit identifier")
    org_unit_name: str = Field(default="", description="Organisational unit name")
    period: str = Field(..., description="Reporting period")
    repository_ids: List[str] = Field(default_factory=list)
    repository_names: List[str] = Field(default_factory=list)
    element_ids: List[Optional[str]] = Field(default_factory=list)
    values: List[Optional[str]] = Field(default_factory=list)
    suggested_value: Optional[str] = Field(default=None)
    status: ComparisonStatus = Field(..., description="Comparison status")
    conflicts: List[str] = Field(default_factory=list)
    variance: Optional[float] = Field(default=None, ge=0.0)
    provenance_hash: str = Field(default="")

    model_config = {"extra": "forbid", "frozen": True}

    def value_for(self, repository_id: str) -> Optional[str]:
        """Return the observed value of a repository slot."""
        if repository_id not in self.repository_ids:
            return None
        return self.values[self.repository_ids.index(repository_id)]


class ComparisonSummary(BaseModel):
    """Status counts over a batch of comparison results."""

    total_records: int = Field(default=0, ge=0)
    valid_records: int = Field(default=0, ge=0)
    mismatched_records: int = Field(default=0, ge=0)
    missing_records: int = Field(default=0, ge=0)
    out_of_range_records: int = Field(default=0, ge=0)

    model_config = {"extra": "forbid"}

    @classmethod
    def from_results(cls, results: Iterable[ComparisonResult]) -> ComparisonSummary:
        """Count results by status."""
        counts = {status: 0 for status in ComparisonStatus}
        total = 0
        for result in results:
            counts[result.status] += 1
            total += 1
        return cls(
            total_records=total,
            valid_records=counts[ComparisonStatus.VALID],
            mismatched_records=counts[ComparisonStatus.MISMATCH],
            missing_records=counts[ComparisonStatus.MISSING],
            out_of_range_records=counts[ComparisonStatus.OUT_OF_RANGE],
        )

    def merge(self, other: ComparisonSummary) -> ComparisonSummary:
        """Return a new summary adding the counts of ``other``."""
        return ComparisonSummary(
            total_records=self.total_records + other.total_records,
            valid_records=self.valid_records + other.valid_records,
            mismatched_records=self.mismatched_records + other.mismatched_records,
            missing_records=self.missing_records + other.missing_records,
            out_of_range_records=(
                self.out_of_range_records + other.out_of_range_records
            ),
        )

    @property
    def issue_count(self) -> int:
        return (
            self.mismatched_records
            + self.missing_records
            + self.out_of_range_records
        )

    @property
    def match_rate(self) -> float:
        if self.total_records == 0:
            return 0.0
        return self.valid_records / self.total_records


class PipelineResult(BaseModel):
    """Output of a multi-period reconciliation run.

    Attributes:
        run_id: Unique identifier of the run.
        org_unit: Organisational unit compared.
        periods: Periods processed, in order.
        results: Comparison results across all periods.
        summary: Aggregated status counts across all periods.
        summary_by_period: Status counts per period.
        errors: Fetch or processing errors recorded during the run.
        provenance_hash: SHA-256 hash of the run content.
    """

    run_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    org_unit: str = Field(..., description="Organisational unit compared")
    periods: List[str] = Field(default_factory=list)
    results: List[ComparisonResult] = Field(default_factory=list)
    summary: ComparisonSummary = Field(default_factory=ComparisonSummary)
    summary_by_period: Dict[str, ComparisonSummary] = Field(default_factory=dict)
    errors: List[str] = Field(default_factory=list)
    provenance_hash: str = Field(default="")

    model_config = {"extra": "forbid"}


# =============================================================================
# Configurable validation rules
# =============================================================================


class ValidationRule(BaseModel):
    """A configurable validation rule applied to numeric values.

    Attributes:
        id: Rule identifier.
        name: Human-readable rule name.
        description: Longer explanation of the rule.
        rule_type: Kind of check performed.
        data_elements: Element identifiers the rule applies to; an empty
            list applies the rule to every value.
        condition: Expression for consistency rules, e.g. ``A + B == C``.
        threshold: Upper bound (range) or z-score limit (outlier).
        severity: Severity reported for failures.
        is_active: Whether the rule is evaluated.
        repository_id: Repository the rule is scoped to (None for all).
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str = Field(..., description="Rule name")
    description: str = Field(default="")
    rule_type: RuleType = Field(..., description="Kind of check")
    data_elements: List[str] = Field(default_factory=list)
    condition: Optional[str] = Field(default=None)
    threshold: Optional[float] = Field(default=None)
    severity: RuleSeverity = Field(default=RuleSeverity.ERROR)
    is_active: bool = Field(default=True)
    repository_id: Optional[str] = Field(default=None)

    model_config = {"extra": "forbid"}

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Validate name is non-empty."""
        return _require_non_empty("name", v)


class RuleResult(BaseModel):
    """Outcome of evaluating one validation rule."""

    rule_id: str
    rule_name: str
    rule_type: RuleType
    severity: RuleSeverity
    passed: bool
    message: str = ""
    data_element: Optional[str] = None
    value: Optional[Union[float, str]] = None
    expected_value: Optional[float] = None
    suggested_fix: Optional[str] = None

    model_config = {"extra": "forbid"}


# =============================================================================
# Service statistics
# =============================================================================


class ServiceStatistics(BaseModel):
    """Running counters kept by the reconciliation service facade."""

    total_similarity_checks: int = Field(default=0, ge=0)
    total_mapping_runs: int = Field(default=0, ge=0)
    total_suggestions: int = Field(default=0, ge=0)
    total_validations: int = Field(default=0, ge=0)
    total_reconciliations: int = Field(default=0, ge=0)
    by_status: Dict[str, int] = Field(default_factory=dict)
    by_confidence: Dict[str, int] = Field(default_factory=dict)
    provenance_entries: int = Field(default=0, ge=0)

    model_config = {"extra": "forbid"}


# =============================================================================
# Request models
# =============================================================================


class SimilarityRequest(BaseModel):
    """Request body for scoring two labels."""

    label_a: str = Field(..., description="First label")
    label_b: str = Field(..., description="Second label")

    model_config = {"extra": "forbid"}


class AutoMapRequest(BaseModel):
    """Request body for automatic source-to-target mapping."""

    source: List[DataElement] = Field(default_factory=list)
    target: List[DataElement] = Field(default_factory=list)
    min_similarity: Optional[float] = Field(
        default=None, ge=0.0,
        description="Minimum overall similarity (configured default when omitted)",
    )

    model_config = {"extra": "forbid"}


class ValidateRequest(BaseModel):
    """Request body for the built-in business-rule check."""

    value: Optional[str] = Field(default=None)
    field_label: str = Field(default="")

    model_config = {"extra": "forbid"}


class ReconcileRequest(BaseModel):
    """Request body for reconciling groups for one org unit and period."""

    groups: List[LogicalFieldGroup] = Field(default_factory=list)
    values_by_repository: Dict[str, List[ObservedValue]] = Field(
        default_factory=dict,
    )
    org_unit: str = Field(..., description="Organisational unit identifier")
    org_unit_name: Optional[str] = Field(default=None)
    period: str = Field(..., description="Reporting period")
    repositories: List[Repository] = Field(default_factory=list)

    model_config = {"extra": "forbid"}

    def repository_names(self) -> Dict[str, str]:
        return {repo.id: repo.name for repo in self.repositories if repo.name}


class SummaryRequest(BaseModel):
    """Request body for summarizing comparison results."""

    results: List[ComparisonResult] = Field(default_factory=list)

    model_config = {"extra": "forbid"}


class RuleRunRequest(BaseModel):
    """Request body for evaluating the configured validation rules."""

    values: List[ObservedValue] = Field(default_factory=list)
    repository_id: Optional[str] = Field(default=None)
    historical: List[ObservedValue] = Field(default_factory=list)

    model_config = {"extra": "forbid"}


__all__ = [
    # Constants
    "MAX_REPOSITORY_SLOTS",
    "HIGH_CONFIDENCE_THRESHOLD",
    "MEDIUM_CONFIDENCE_THRESHOLD",
    "LOW_CONFIDENCE_THRESHOLD",
    # Enumerations
    "ConfidenceLevel",
    "ComparisonStatus",
    "RuleType",
    "RuleSeverity",
    # SDK models
    "Repository",
    "DataElement",
    "SimilarityScore",
    "MappingSuggestion",
    "LogicalFieldGroup",
    "ObservedValue",
    "ValidationOutcome",
    "ComparisonResult",
    "ComparisonSummary",
    "PipelineResult",
    "ValidationRule",
    "RuleResult",
    "ServiceStatistics",
    # Request models
    "SimilarityRequest",
    "AutoMapRequest",
    "ValidateRequest",
    "ReconcileRequest",
    "SummaryRequest",
    "RuleRunRequest",
]
