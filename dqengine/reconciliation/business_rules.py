# -*- coding: utf-8 -*-
"""
Business Rule Validator - DQ-RECON-001: Field Reconciliation

Flags a single reported value as plausible or implausible using a fixed,
ordered set of rules. The first failing rule wins.

Rules (in order):
    1. Empty or blank value                         -> valid
    2. Non-numeric value longer than 500 characters -> invalid
    3. Any other non-numeric value                  -> valid
    4. Negative number                              -> invalid
    5. "population" label and value > 10,000,000   -> invalid
    6. "percent"/"rate" label and value > 100       -> invalid
    7. Value > 999,999,999                          -> invalid

A value is numeric when it starts with a decimal number, the way the
reporting platform's web client parses values ("12abc" reads as 12).
Label matching is case-insensitive substring matching.

Example:
    >>> from dqengine.reconciliation.business_rules import validate_value
    >>> validate_value("105", "Completion Rate").error
    'Percentage/rate cannot exceed 100%'

Author: DQ Engine Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import logging
import re
from typing import Optional

from dqengine.reconciliation.models import ValidationOutcome

logger = logging.getLogger(__name__)

__all__ = [
    "BusinessRuleValidator",
    "parse_numeric",
    "validate_value",
    "ERROR_TOO_LONG",
    "ERROR_NEGATIVE",
    "ERROR_POPULATION_TOO_HIGH",
    "ERROR_RATE_ABOVE_100",
    "ERROR_UNREASONABLY_LARGE",
]


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

ERROR_TOO_LONG = "Value too long (>500 characters)"
ERROR_NEGATIVE = "Negative value not allowed"
ERROR_POPULATION_TOO_HIGH = "Population value seems too high"
ERROR_RATE_ABOVE_100 = "Percentage/rate cannot exceed 100%"
ERROR_UNREASONABLY_LARGE = "Value seems unreasonably large"

MAX_TEXT_LENGTH = 500
MAX_POPULATION = 10_000_000
MAX_PERCENTAGE = 100
MAX_REASONABLE_VALUE = 999_999_999

_POPULATION_KEYWORDS = ("population",)
_PERCENTAGE_KEYWORDS = ("percent", "rate")

_NUMERIC_PREFIX_RE = re.compile(
    r"^\s*([+-]?(?:Infinity|\d+(?:\.\d*)?(?:[eE][+-]?\d+)?|\.\d+(?:[eE][+-]?\d+)?))"
)

_VALID = ValidationOutcome(valid=True)


def parse_numeric(value: Optional[str]) -> Optional[float]:
    """Parse the leading decimal number of a raw value.

    Args:
        value: Raw value.

    Returns:
        The parsed number, or None when the value does not start with one.
    """
    if value is None:
        return None
    match = _NUMERIC_PREFIX_RE.match(value)
    if match is None:
        return None
    return float(match.group(1))


# ---------------------------------------------------------------------------
# BusinessRuleValidator
# ---------------------------------------------------------------------------


class BusinessRuleValidator:
    """Stateless checker for the built-in business rules."""

    def validate(self, value: Optional[str], field_label: str = "") -> ValidationOutcome:
        """Validate one raw value against the built-in rules.

        Args:
            value: Raw value; None or blank is always valid.
            field_label: Label of the field, used for the population and
                percentage rules.

        Returns:
            ValidationOutcome carrying the first failing rule's message.
        """
        if value is None or not value.strip():
            return _VALID

        number = parse_numeric(value)
        if number is None:
            if len(value) > MAX_TEXT_LENGTH:
                return ValidationOutcome(valid=False, error=ERROR_TOO_LONG)
            return _VALID

        if number < 0:
            return ValidationOutcome(valid=False, error=ERROR_NEGATIVE)

        label = (field_label or "").lower()

        if number > MAX_POPULATION and _mentions(label, _POPULATION_KEYWORDS):
            return ValidationOutcome(valid=False, error=ERROR_POPULATION_TOO_HIGH)

        if number > MAX_PERCENTAGE and _mentions(label, _PERCENTAGE_KEYWORDS):
            return ValidationOutcome(valid=False, error=ERROR_RATE_ABOVE_100)

        if number > MAX_REASONABLE_VALUE:
            return ValidationOutcome(valid=False, error=ERROR_UNREASONABLY_LARGE)

        return _VALID


def _mentions(label: str, keywords: tuple) -> bool:
    return any(keyword in label for keyword in keywords)


_default_validator = BusinessRuleValidator()


def validate_value(value: Optional[str], field_label: str = "") -> ValidationOutcome:
    """Validate one raw value with the shared default validator."""
    return _default_validator.validate(value, field_label)
