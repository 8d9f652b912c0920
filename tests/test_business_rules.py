"""
Test suite for the built-in business rule validator.

Covers:
- Blank and non-numeric values
- Negative, population, percentage and magnitude limits
- Rule priority
- Leading-number parsing
"""

import math

import pytest

from dqengine.reconciliation.business_rules import (
    ERROR_NEGATIVE,
    ERROR_POPULATION_TOO_HIGH,
    ERROR_RATE_ABOVE_100,
    ERROR_TOO_LONG,
    ERROR_UNREASONABLY_LARGE,
    BusinessRuleValidator,
    parse_numeric,
    validate_value,
)


class TestParseNumeric:
    """Test leading-number parsing of raw values."""

    @pytest.mark.parametrize("raw,expected", [
        ("12", 12.0),
        (" 3.5", 3.5),
        ("12abc", 12.0),
        (".5", 0.5),
        ("-7", -7.0),
        ("1e3", 1000.0),
        ("+4.", 4.0),
    ])
    def test_parses_leading_number(self, raw, expected):
        """Test values starting with a number are parsed."""
        assert parse_numeric(raw) == expected

    @pytest.mark.parametrize("raw", ["abc", "abc12", "", "-", None])
    def test_non_numeric(self, raw):
        """Test values not starting with a number parse to None."""
        assert parse_numeric(raw) is None

    def test_infinity(self):
        """Test Infinity is accepted as a number."""
        assert math.isinf(parse_numeric("Infinity"))


class TestBusinessRuleValidator:
    """Test the built-in rules applied to single values."""

    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_blank_values_are_valid(self, value):
        """Test absent values never fail validation."""
        assert validate_value(value).valid is True

    def test_plain_number_is_valid(self):
        """Test an ordinary count passes."""
        outcome = validate_value("42", "Malaria cases")
        assert outcome.valid is True
        assert outcome.error is None

    def test_text_value_is_valid(self):
        """Test short free text passes."""
        assert validate_value("not reported").valid is True

    def test_long_text_fails(self):
        """Test text over 500 characters fails."""
        outcome = validate_value("x" * 501)
        assert outcome.valid is False
        assert outcome.error == ERROR_TOO_LONG

    def test_text_at_limit_is_valid(self):
        """Test text of exactly 500 characters passes."""
        assert validate_value("x" * 500).valid is True

    def test_long_value_with_numeric_prefix_is_numeric(self):
        """Test the length rule only applies to non-numeric values."""
        assert validate_value("1" + "x" * 600).valid is True

    def test_negative_value_fails(self):
        """Test negative numbers fail."""
        outcome = validate_value("-5", "Malaria cases")
        assert outcome.error == ERROR_NEGATIVE

    def test_population_limit(self):
        """Test population values above ten million fail."""
        assert validate_value("10000000", "Total population").valid is True
        outcome = validate_value("10000001", "Total Population")
        assert outcome.error == ERROR_POPULATION_TOO_HIGH

    def test_population_limit_needs_population_label(self):
        """Test large values are fine when the label is not about population."""
        assert validate_value("20000000", "Doses administered").valid is True

    @pytest.mark.parametrize("label", ["Coverage rate", "Percent immunized"])
    def test_percentage_limit(self, label):
        """Test rates and percentages above 100 fail."""
        assert validate_value("100", label).valid is True
        assert validate_value("100.5", label).error == ERROR_RATE_ABOVE_100

    def test_percentage_limit_needs_rate_label(self):
        """Test counts above 100 are fine."""
        assert validate_value("101", "Malaria cases").valid is True

    def test_unreasonably_large(self):
        """Test any value above 999,999,999 fails."""
        assert validate_value("999999999").valid is True
        assert validate_value("1000000000").error == ERROR_UNREASONABLY_LARGE

    def test_population_rule_takes_priority(self):
        """Test the population message wins over the magnitude message."""
        outcome = validate_value("2000000000", "Population")
        assert outcome.error == ERROR_POPULATION_TOO_HIGH

    def test_negative_rule_takes_priority(self):
        """Test the negative check runs before the label checks."""
        assert validate_value("-Infinity", "population").error == ERROR_NEGATIVE

    def test_validator_is_stateless(self):
        """Test repeated validation gives the same outcome."""
        validator = BusinessRuleValidator()
        assert validator.validate("-1") == validator.validate("-1")
