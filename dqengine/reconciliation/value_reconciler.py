# -*- coding: utf-8 -*-
"""
Value Reconciler Engine - DQ-RECON-001: Field Reconciliation

Reconciles the values that up to three repositories report for one
logical field, org unit and period. Produces a comparison status, a
consensus ("suggested") value and human-readable conflict messages.

Status priority:
    MISSING       no slot has a value, or fewer values than slots
    OUT_OF_RANGE  every slot has a value and one fails a business rule
    VALID         every slot has the same literal value
    MISMATCH      otherwise

Consensus:
    Null and empty values are ignored. Values are counted literally in
    first-seen order and the first value reaching the highest count
    wins. A value is only suggested when it occurs more than once, or
    when it is the single non-empty value.

The reconciler is total over its input: repositories absent from the
value map, unassigned slots and malformed value records all read as
"no value".

Example:
    >>> from dqengine.reconciliation.value_reconciler import find_consensus_value
    >>> find_consensus_value(["10", "10", "20"])
    '10'

Author: DQ Engine Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from dqengine.reconciliation.business_rules import (
    BusinessRuleValidator,
    parse_numeric,
)
from dqengine.reconciliation.models import (
    ComparisonResult,
    ComparisonStatus,
    ComparisonSummary,
    DataElement,
    LogicalFieldGroup,
    ObservedValue,
)
from dqengine.reconciliation.provenance import build_hash

logger = logging.getLogger(__name__)

__all__ = [
    "ValueReconciler",
    "find_consensus_value",
    "reconcile",
    "summarize_results",
]

_FIELD_KEYS = ("field_id", "fieldId", "dataElement")
_ORG_UNIT_KEYS = ("org_unit", "orgUnit")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _has_value(value: Optional[str]) -> bool:
    return value is not None and value.strip() != ""


def _first_key(entry: Mapping[str, Any], keys: Sequence[str]) -> Optional[Any]:
    for key in keys:
        if entry.get(key) is not None:
            return entry[key]
    return None


def _coerce_observed(entry: Any) -> Optional[ObservedValue]:
    """Read an ObservedValue or a platform-style dict; None when malformed."""
    if isinstance(entry, ObservedValue):
        return entry
    if not isinstance(entry, Mapping):
        return None
    field_id = _first_key(entry, _FIELD_KEYS)
    org_unit = _first_key(entry, _ORG_UNIT_KEYS)
    period = entry.get("period")
    if field_id is None or org_unit is None or period is None:
        return None
    value = entry.get("value")
    return ObservedValue(
        field_id=str(field_id),
        org_unit=str(org_unit),
        period=str(period),
        value=None if value is None else str(value),
    )


def find_consensus_value(values: Iterable[Optional[str]]) -> Optional[str]:
    """Return the most common non-empty value, if it is a consensus.

    Args:
        values: Slot values; None and blank strings are ignored.

    Returns:
        The first-seen value with the highest count when that count is
        greater than one, the sole value when exactly one non-empty
        value exists, otherwise None.
    """
    counts: Dict[str, int] = {}
    for value in values:
        if _has_value(value):
            counts[value] = counts.get(value, 0) + 1

    if not counts:
        return None

    best_value: Optional[str] = None
    best_count = 0
    for value, count in counts.items():
        if count > best_count:
            best_value, best_count = value, count

    if best_count > 1 or sum(counts.values()) == 1:
        return best_value
    return None


# ---------------------------------------------------------------------------
# ValueReconciler
# ---------------------------------------------------------------------------


class ValueReconciler:
    """Compares repository values for logical field groups.

    Attributes:
        _validator: Business-rule validator applied to fully populated groups.
    """

    def __init__(self, validator: Optional[BusinessRuleValidator] = None) -> None:
        self._validator = validator or BusinessRuleValidator()

    def reconcile(
        self,
        group: LogicalFieldGroup,
        values_by_repository: Mapping[str, Iterable[Any]],
        org_unit: str,
        period: str,
        repository_names: Optional[Mapping[str, str]] = None,
        org_unit_name: Optional[str] = None,
    ) -> ComparisonResult:
        """Reconcile one group for one org unit and period.

        Args:
            group: Logical field group with its repository slots.
            values_by_repository: Observed values keyed by repository id.
                ObservedValue instances and platform-style dicts
                (``dataElement``/``orgUnit``/``period``/``value``) are
                accepted.
            org_unit: Organisational unit to look up.
            period: Reporting period to look up.
            repository_names: Display names keyed by repository id.
            org_unit_name: Display name of the organisational unit.

        Returns:
            A new ComparisonResult.
        """
        names = [
            self._repository_name(repo_id, element, repository_names)
            for repo_id, element in zip(group.repository_ids, group.elements)
        ]
        values: List[Optional[str]] = [
            self._lookup_value(
                element, values_by_repository.get(repo_id), org_unit, period,
            )
            for repo_id, element in zip(group.repository_ids, group.elements)
        ]

        suggested = find_consensus_value(values)
        status, conflicts = self._classify(group, names, values, suggested)

        variance: Optional[float] = None
        if status == ComparisonStatus.MISMATCH:
            variance = _numeric_variance(values)

        fields: Dict[str, Any] = {
            "group_id": group.id,
            "logical_name": group.logical_name,
            "org_unit": org_unit,
            "org_unit_name": org_unit_name or org_unit,
            "period": period,
            "repository_ids": list(group.repository_ids),
            "repository_names": names,
            "element_ids": [e.id if e is not None else None for e in group.elements],
            "values": values,
            "suggested_value": suggested,
            "status": status,
            "conflicts": conflicts,
            "variance": variance,
        }
        fields["provenance_hash"] = build_hash(
            {**fields, "status": status.value},
        )
        return ComparisonResult(**fields)

    def reconcile_groups(
        self,
        groups: Iterable[LogicalFieldGroup],
        values_by_repository: Mapping[str, Iterable[Any]],
        org_unit: str,
        period: str,
        repository_names: Optional[Mapping[str, str]] = None,
        org_unit_name: Optional[str] = None,
    ) -> List[ComparisonResult]:
        """Reconcile every group for one org unit and period, in group order."""
        # Materialize once so generators can be read per group.
        materialized = {
            repo_id: list(entries or ())
            for repo_id, entries in values_by_repository.items()
        }
        return [
            self.reconcile(
                group, materialized, org_unit, period,
                repository_names=repository_names,
                org_unit_name=org_unit_name,
            )
            for group in groups
        ]

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _classify(
        self,
        group: LogicalFieldGroup,
        names: Sequence[str],
        values: Sequence[Optional[str]],
        suggested: Optional[str],
    ) -> tuple:
        present = [i for i, value in enumerate(values) if _has_value(value)]

        if not present:
            return ComparisonStatus.MISSING, ["No data found in any repository"]

        if len(present) < len(values):
            absent = [names[i] for i in range(len(values)) if i not in present]
            return ComparisonStatus.MISSING, [
                f"Missing values in: {', '.join(absent)}",
            ]

        violations: List[str] = []
        for i, value in enumerate(values):
            outcome = self._validator.validate(
                value, group.logical_name,
            )
            if not outcome.valid:
                violations.append(f'{names[i]}: {outcome.error} (value: "{value}")')
        if violations:
            return ComparisonStatus.OUT_OF_RANGE, violations

        if len(set(values)) == 1:
            return ComparisonStatus.VALID, []

        conflicts: List[str] = []
        for i in range(len(values)):
            for j in range(i + 1, len(values)):
                if values[i] != values[j]:
                    conflicts.append(
                        f'{names[i]}: "{values[i]}" ≠ {names[j]}: "{values[j]}"'
                    )
        if suggested is not None:
            conflicts.append(f'Suggested correct value: "{suggested}" (most common)')
        return ComparisonStatus.MISMATCH, conflicts

    def _lookup_value(
        self,
        element: Optional[DataElement],
        entries: Optional[Iterable[Any]],
        org_unit: str,
        period: str,
    ) -> Optional[str]:
        if element is None or entries is None:
            return None
        for entry in entries:
            observed = _coerce_observed(entry)
            if observed is None:
                logger.debug("Skipping malformed value record: %r", entry)
                continue
            if (
                observed.field_id == element.id
                and observed.org_unit == org_unit
                and observed.period == period
            ):
                return observed.value if _has_value(observed.value) else None
        return None

    def _repository_name(
        self,
        repository_id: str,
        element: Optional[DataElement],
        repository_names: Optional[Mapping[str, str]],
    ) -> str:
        if repository_names and repository_names.get(repository_id):
            return repository_names[repository_id]
        if element is not None and element.repository_name:
            return element.repository_name
        return repository_id


def _numeric_variance(values: Sequence[Optional[str]]) -> Optional[float]:
    numbers = [n for n in (parse_numeric(v) for v in values) if n is not None]
    if len(numbers) < 2:
        return None
    return max(numbers) - min(numbers)


_default_reconciler = ValueReconciler()


def reconcile(
    group: LogicalFieldGroup,
    values_by_repository: Mapping[str, Iterable[Any]],
    org_unit: str,
    period: str,
    repository_names: Optional[Mapping[str, str]] = None,
    org_unit_name: Optional[str] = None,
) -> ComparisonResult:
    """Reconcile one group with the shared default reconciler."""
    return _default_reconciler.reconcile(
        group, values_by_repository, org_unit, period,
        repository_names=repository_names,
        org_unit_name=org_unit_name,
    )


def summarize_results(results: Iterable[ComparisonResult]) -> ComparisonSummary:
    """Count a batch of results by status."""
    return ComparisonSummary.from_results(results)
