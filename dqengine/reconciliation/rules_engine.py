# -*- coding: utf-8 -*-
"""
Validation Rules Engine - DQ-RECON-001: Field Reconciliation

Configurable, in-memory validation rules evaluated against the values a
repository reports. Complements the fixed business rules with checks an
operator can define per element.

Rule types (4):
    RANGE:        numeric, non-negative and at most ``threshold``
    CONSISTENCY:  arithmetic relation between elements, written with
                  positional placeholders (``DE1 + DE2 == DE3``,
                  ``DE1 - DE2 == DE3``, ``DE1 <= DE2``)
    OUTLIER:      absolute z-score at most ``threshold`` (default 3),
                  computed over historical values when supplied
    MANDATORY:    value present

A rule with no data elements applies to every value. Missing values pass
range and outlier checks; mandatory rules cover them.

Example:
    >>> from dqengine.reconciliation.rules_engine import RulesEngine
    >>> engine = RulesEngine.with_default_rules()
    >>> results = engine.run_validation(values)
    >>> failures = [r for r in results if not r.passed]

Author: DQ Engine Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import logging
import math
import re
import threading
from typing import Any, Dict, Iterable, List, Optional, Sequence

from dqengine.reconciliation.models import (
    ObservedValue,
    RuleResult,
    RuleSeverity,
    RuleType,
    ValidationRule,
)

logger = logging.getLogger(__name__)

__all__ = [
    "RulesEngine",
    "default_rules",
]


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

DEFAULT_OUTLIER_THRESHOLD = 3.0
MIN_OUTLIER_SAMPLE = 3
CONSISTENCY_TOLERANCE = 0.01

_SEVERITY_ORDER = {
    RuleSeverity.ERROR: 0,
    RuleSeverity.WARNING: 1,
    RuleSeverity.INFO: 2,
}

_ADDITION_RE = re.compile(r"DE(\d+)\s*\+\s*DE(\d+)\s*==\s*DE(\d+)")
_SUBTRACTION_RE = re.compile(r"DE(\d+)\s*-\s*DE(\d+)\s*==\s*DE(\d+)")
_LESS_EQUAL_RE = re.compile(r"DE(\d+)\s*<=\s*DE(\d+)")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _is_missing(value: Any) -> bool:
    """True if the value is None, empty string, or whitespace-only."""
    if value is None:
        return True
    if isinstance(value, str) and value.strip() == "":
        return True
    return False


def _to_float(value: Any) -> Optional[float]:
    """Strict numeric conversion; None for non-numeric, NaN or missing."""
    if _is_missing(value):
        return None
    try:
        num = float(str(value).strip())
    except (TypeError, ValueError):
        return None
    if math.isnan(num):
        return None
    return num


def _fmt(number: float) -> str:
    if number.is_integer():
        return str(int(number))
    return str(number)


def default_rules() -> List[ValidationRule]:
    """Return the starter rule set for health reporting data.

    The births consistency rule ships inactive; its element ids are
    placeholders to be replaced with real ids before activation.
    """
    return [
        ValidationRule(
            name="No Negative Values",
            description="Health data values should not be negative",
            rule_type=RuleType.RANGE,
            severity=RuleSeverity.ERROR,
        ),
        ValidationRule(
            name="Total Births Consistency",
            description="Total births should equal live births + still births",
            rule_type=RuleType.CONSISTENCY,
            data_elements=["LIVE_BIRTHS_ID", "STILL_BIRTHS_ID", "TOTAL_BIRTHS_ID"],
            condition="DE1 + DE2 == DE3",
            severity=RuleSeverity.ERROR,
            is_active=False,
        ),
        ValidationRule(
            name="Outlier Detection",
            description="Flag values that deviate significantly from historical patterns",
            rule_type=RuleType.OUTLIER,
            threshold=DEFAULT_OUTLIER_THRESHOLD,
            severity=RuleSeverity.WARNING,
        ),
    ]


# ---------------------------------------------------------------------------
# RulesEngine
# ---------------------------------------------------------------------------


class RulesEngine:
    """In-memory store and evaluator for validation rules.

    Thread-safe: rule storage is protected by a lock; evaluation works on
    a snapshot of the active rules.

    Attributes:
        _rules: Rules keyed by id, in insertion order.
        _lock: Threading lock for storage access.
    """

    def __init__(self, rules: Optional[Iterable[ValidationRule]] = None) -> None:
        self._rules: Dict[str, ValidationRule] = {}
        self._lock = threading.Lock()
        for rule in rules or ():
            self.add_rule(rule)
        logger.info("RulesEngine initialized with %d rules", len(self._rules))

    @classmethod
    def with_default_rules(cls) -> RulesEngine:
        return cls(default_rules())

    # ------------------------------------------------------------------
    # Rule storage
    # ------------------------------------------------------------------

    def add_rule(self, rule: ValidationRule) -> ValidationRule:
        """Store a rule, replacing any rule with the same id."""
        with self._lock:
            self._rules[rule.id] = rule
        logger.info(
            "Rule stored: id=%s, name=%s, type=%s",
            rule.id, rule.name, rule.rule_type.value,
        )
        return rule

    def get_rule(self, rule_id: str) -> Optional[ValidationRule]:
        with self._lock:
            return self._rules.get(rule_id)

    def delete_rule(self, rule_id: str) -> bool:
        """Delete a rule.

        Returns:
            True if deleted, False if not found.
        """
        with self._lock:
            if rule_id in self._rules:
                del self._rules[rule_id]
                logger.info("Rule deleted: %s", rule_id)
                return True
            return False

    def set_active(self, rule_id: str, active: bool) -> ValidationRule:
        """Activate or deactivate a rule.

        Raises:
            KeyError: If the rule does not exist.
        """
        with self._lock:
            rule = self._rules.get(rule_id)
            if rule is None:
                raise KeyError(f"rule {rule_id} not found")
            updated = rule.model_copy(update={"is_active": active})
            self._rules[rule_id] = updated
        return updated

    def list_rules(self) -> List[ValidationRule]:
        with self._lock:
            return list(self._rules.values())

    def get_active_rules(
        self, repository_id: Optional[str] = None,
    ) -> List[ValidationRule]:
        """Active rules for a repository (plus unscoped rules).

        Ordered by severity (error first), then name.
        """
        with self._lock:
            rules = [
                rule for rule in self._rules.values()
                if rule.is_active and (
                    repository_id is None
                    or rule.repository_id is None
                    or rule.repository_id == repository_id
                )
            ]
        return sorted(rules, key=lambda r: (_SEVERITY_ORDER[r.severity], r.name))

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    def run_validation(
        self,
        values: Sequence[ObservedValue],
        repository_id: Optional[str] = None,
        historical: Optional[Sequence[ObservedValue]] = None,
    ) -> List[RuleResult]:
        """Evaluate every active rule against the relevant values.

        Args:
            values: Values reported by the repository.
            repository_id: Repository the values come from; selects
                repository-scoped rules.
            historical: Earlier values used as the outlier baseline.

        Returns:
            One RuleResult per (rule, relevant value) pair.
        """
        rules = self.get_active_rules(repository_id)
        results: List[RuleResult] = []

        for rule in rules:
            relevant = [
                v for v in values
                if not rule.data_elements or v.field_id in rule.data_elements
            ]
            for observed in relevant:
                results.append(self.evaluate(rule, observed, values, historical))

        failures = sum(1 for r in results if not r.passed)
        logger.info(
            "Validation completed: %d rules, %d checks, %d failures",
            len(rules), len(results), failures,
        )
        return results

    def evaluate(
        self,
        rule: ValidationRule,
        observed: ObservedValue,
        all_values: Sequence[ObservedValue],
        historical: Optional[Sequence[ObservedValue]] = None,
    ) -> RuleResult:
        """Evaluate one rule against one observed."""
        if rule.rule_type == RuleType.RANGE:
            return self._evaluate_range(rule, observed)
        if rule.rule_type == RuleType.CONSISTENCY:
            return self._evaluate_consistency(rule, observed, all_values)
        if rule.rule_type == RuleType.OUTLIER:
            return self._evaluate_outlier(rule, observed, all_values, historical)
        return self._evaluate_mandatory(rule, observed)

    def _result(
        self,
        rule: ValidationRule,
        observed: ObservedValue,
        passed: bool,
        message: str,
        **extra: Any,
    ) -> RuleResult:
        fields: Dict[str, Any] = {
            "rule_id": rule.id,
            "rule_name": rule.name,
            "rule_type": rule.rule_type,
            "severity": rule.severity,
            "passed": passed,
            "message": message,
            "data_element": observed.field_id,
        }
        fields.update(extra)
        return RuleResult(**fields)

    def _evaluate_range(self, rule: ValidationRule, observed: ObservedValue) -> RuleResult:
        if _is_missing(observed.value):
            return self._result(rule, observed, True, "No value to check")

        num = _to_float(observed.value)
        if num is None:
            return self._result(
                rule, observed, False,
                f'Value "{observed.value}" is not a number',
                value=observed.value,
                suggested_fix="Enter a valid numeric value",
            )

        if num < 0:
            return self._result(
                rule, observed, False,
                f"Negative value detected: {_fmt(num)}",
                severity=RuleSeverity.ERROR,
                value=num,
                suggested_fix="Remove negative sign or verify the value",
            )

        if rule.threshold is not None and num > rule.threshold:
            return self._result(
                rule, observed, False,
                f"Value {_fmt(num)} exceeds threshold of {_fmt(rule.threshold)}",
                value=num,
                expected_value=rule.threshold,
                suggested_fix=(
                    f"Verify if value greater than {_fmt(rule.threshold)} is correct"
                ),
            )

        return self._result(
            rule, observed, True, "Value is within acceptable range", value=num,
        )

    def _evaluate_consistency(
        self,
        rule: ValidationRule,
        observed: ObservedValue,
        all_values: Sequence[ObservedValue],
    ) -> RuleResult:
        condition = rule.condition
        if not condition:
            return self._result(
                rule, observed, False, "No consistency condition defined",
                severity=RuleSeverity.ERROR,
            )

        # Placeholders DE1..DEn refer to rule.data_elements by position;
        # absent or non-numeric values count as 0.
        operands: Dict[int, float] = {}
        for index, element_id in enumerate(rule.data_elements, start=1):
            match = next(
                (
                    v for v in all_values
                    if v.field_id == element_id
                    and v.period == observed.period
                    and v.org_unit == observed.org_unit
                ),
                None,
            )
            num = _to_float(match.value) if match is not None else None
            operands[index] = num if num is not None else 0.0

        def operand(token: str) -> float:
            index = int(token)
            if index not in operands:
                raise KeyError(f"DE{index}")
            return operands[index]

        passed = False
        expected: Optional[float] = None
        try:
            addition = _ADDITION_RE.search(condition)
            subtraction = _SUBTRACTION_RE.search(condition)
            less_equal = _LESS_EQUAL_RE.search(condition)
            if addition:
                left = operand(addition.group(1)) + operand(addition.group(2))
                passed = abs(left - operand(addition.group(3))) < CONSISTENCY_TOLERANCE
                expected = left
            elif subtraction:
                left = operand(subtraction.group(1)) - operand(subtraction.group(2))
                passed = abs(left - operand(subtraction.group(3))) < CONSISTENCY_TOLERANCE
                expected = left
            elif less_equal:
                passed = operand(less_equal.group(1)) <= operand(less_equal.group(2))
            else:
                return self._result(
                    rule, observed, False,
                    f"Unsupported consistency condition: {condition}",
                    severity=RuleSeverity.ERROR,
                )
        except KeyError as exc:
            logger.warning(
                "Rule %s references unknown placeholder %s", rule.id, exc,
            )
            return self._result(
                rule, observed, False,
                f"Error evaluating condition: unknown placeholder {exc.args[0]}",
                severity=RuleSeverity.ERROR,
            )

        message = (
            f"Consistency check passed: {condition}" if passed
            else f"Consistency check failed: {condition}"
        )
        suggested_fix = None
        if not passed and expected is not None:
            suggested_fix = f"Expected value: {expected:.0f}"
        return self._result(
            rule, observed, passed, message,
            value=_to_float(observed.value),
            expected_value=expected,
            suggested_fix=suggested_fix,
        )

    def _evaluate_outlier(
        self,
        rule: ValidationRule,
        observed: ObservedValue,
        all_values: Sequence[ObservedValue],
        historical: Optional[Sequence[ObservedValue]],
    ) -> RuleResult:
        num = _to_float(observed.value)
        if num is None:
            return self._result(
                rule, observed, True, "Non-numeric value, outlier check skipped",
            )

        baseline = historical if historical else all_values
        sample = [
            n for n in (
                _to_float(v.value) for v in baseline
                if v.field_id == observed.field_id and v.org_unit == observed.org_unit
            )
            if n is not None
        ]

        if len(sample) < MIN_OUTLIER_SAMPLE:
            return self._result(
                rule, observed, True, "Insufficient data for outlier detection",
                value=num,
            )

        mean = sum(sample) / len(sample)
        std_dev = math.sqrt(sum((n - mean) ** 2 for n in sample) / len(sample))
        z_score = 0.0 if std_dev == 0 else abs((num - mean) / std_dev)
        threshold = rule.threshold or DEFAULT_OUTLIER_THRESHOLD
        passed = z_score <= threshold

        if passed:
            message = f"Value is within normal range (Z-score: {z_score:.2f})"
            suggested_fix = None
        else:
            message = (
                f"Potential outlier detected (Z-score: {z_score:.2f}, "
                f"threshold: {_fmt(threshold)})"
            )
            suggested_fix = (
                f"Mean value for this data element is {mean:.1f}. "
                f"Verify if {_fmt(num)} is correct."
            )
        return self._result(
            rule, observed, passed, message,
            value=num,
            expected_value=mean,
            suggested_fix=suggested_fix,
        )

    def _evaluate_mandatory(self, rule: ValidationRule, observed: ObservedValue) -> RuleResult:
        empty = _is_missing(observed.value)
        return self._result(
            rule, observed, not empty,
            "Required field is empty" if empty else "Required field has a value",
            value=observed.value,
            suggested_fix="Enter a value for this required field" if empty else None,
        )
