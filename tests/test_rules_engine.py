"""
Test suite for configurable validation rules.

Covers:
- Default rule set and rule storage
- Range, consistency, outlier and mandatory rules
- Repository scoping and severity ordering
"""

import pytest

from dqengine.reconciliation.models import RuleSeverity, RuleType, ValidationRule
from dqengine.reconciliation.rules_engine import RulesEngine, default_rules

from conftest import make_value


def _rule(**kwargs) -> ValidationRule:
    kwargs.setdefault("name", "Test rule")
    return ValidationRule(**kwargs)


class TestRuleStorage:
    """Test rule storage and selection."""

    def test_default_rules(self):
        """Test the starter rule set."""
        rules = default_rules()
        assert [r.name for r in rules] == [
            "No Negative Values", "Total Births Consistency", "Outlier Detection",
        ]
        births = rules[1]
        assert births.is_active is False
        assert births.condition == "DE1 + DE2 == DE3"

    def test_active_rules_ordered_by_severity(self):
        """Test errors come before warnings and inactive rules are skipped."""
        engine = RulesEngine.with_default_rules()
        assert [r.name for r in engine.get_active_rules()] == [
            "No Negative Values", "Outlier Detection",
        ]

    def test_add_get_delete(self):
        """Test the storage round trip."""
        engine = RulesEngine()
        rule = engine.add_rule(_rule(rule_type=RuleType.MANDATORY))
        assert engine.get_rule(rule.id) == rule
        assert engine.delete_rule(rule.id) is True
        assert engine.delete_rule(rule.id) is False
        assert engine.get_rule(rule.id) is None

    def test_set_active(self):
        """Test toggling a rule."""
        engine = RulesEngine.with_default_rules()
        births = next(r for r in engine.list_rules() if r.rule_type == RuleType.CONSISTENCY)
        assert engine.set_active(births.id, True).is_active is True
        with pytest.raises(KeyError):
            engine.set_active("missing", True)

    def test_repository_scoping(self):
        """Test repository-scoped rules only apply to their repository."""
        engine = RulesEngine([
            _rule(name="Scoped", rule_type=RuleType.MANDATORY, repository_id="repo_a"),
            _rule(name="Global", rule_type=RuleType.MANDATORY),
        ])
        assert [r.name for r in engine.get_active_rules("repo_a")] == ["Global", "Scoped"]
        assert [r.name for r in engine.get_active_rules("repo_b")] == ["Global"]

    def test_rule_name_required(self):
        """Test a blank rule name is rejected."""
        with pytest.raises(ValueError):
            _rule(name=" ", rule_type=RuleType.RANGE)


class TestRangeRule:
    """Test range rules."""

    def test_negative_value(self):
        """Test the default rule set flags negative values."""
        engine = RulesEngine.with_default_rules()
        results = engine.run_validation([make_value("de1", "-5")])
        range_result = next(r for r in results if r.rule_type == RuleType.RANGE)
        assert range_result.passed is False
        assert range_result.message == "Negative value detected: -5"
        assert range_result.severity == RuleSeverity.ERROR
        assert range_result.data_element == "de1"

    def test_threshold_exceeded(self):
        """Test values above the threshold fail."""
        engine = RulesEngine([_rule(rule_type=RuleType.RANGE, threshold=100)])
        [result] = engine.run_validation([make_value("de1", "150")])
        assert result.passed is False
        assert result.message == "Value 150 exceeds threshold of 100"
        assert result.expected_value == 100

    def test_within_range(self):
        """Test an acceptable value passes."""
        engine = RulesEngine([_rule(rule_type=RuleType.RANGE, threshold=100)])
        [result] = engine.run_validation([make_value("de1", "99.5")])
        assert result.passed is True
        assert result.value == 99.5

    def test_missing_value_passes(self):
        """Test a blank value has nothing to check."""
        engine = RulesEngine([_rule(rule_type=RuleType.RANGE)])
        [result] = engine.run_validation([make_value("de1", "")])
        assert result.passed is True
        assert result.message == "No value to check"

    def test_non_numeric_value_fails(self):
        """Test text values fail range rules."""
        engine = RulesEngine([_rule(rule_type=RuleType.RANGE)])
        [result] = engine.run_validation([make_value("de1", "n/a")])
        assert result.passed is False

    def test_rule_limited_to_data_elements(self):
        """Test rules with element ids only check those elements."""
        engine = RulesEngine([_rule(rule_type=RuleType.RANGE, data_elements=["de2"])])
        results = engine.run_validation([make_value("de1", "-1"), make_value("de2", "3")])
        assert [r.data_element for r in results] == ["de2"]


class TestConsistencyRule:
    """Test consistency rules between elements."""

    def _engine(self, condition):
        return RulesEngine([_rule(
            rule_type=RuleType.CONSISTENCY,
            data_elements=["live", "still", "total"],
            condition=condition,
        )])

    def test_addition_holds(self):
        """Test DE1 + DE2 == DE3 passes when the totals agree."""
        values = [make_value("live", "10"), make_value("still", "2"), make_value("total", "12")]
        results = self._engine("DE1 + DE2 == DE3").run_validation(values)
        assert len(results) == 3
        assert all(r.passed for r in results)

    def test_addition_fails(self):
        """Test a wrong total is flagged with the expected value."""
        values = [make_value("live", "10"), make_value("still", "2"), make_value("total", "13")]
        results = self._engine("DE1 + DE2 == DE3").run_validation(values)
        assert not any(r.passed for r in results)
        assert results[0].suggested_fix == "Expected value: 12"
        assert results[0].message == "Consistency check failed: DE1 + DE2 == DE3"

    def test_missing_operand_counts_as_zero(self):
        """Test an unreported element is treated as zero."""
        values = [make_value("live", "10"), make_value("total", "10")]
        results = self._engine("DE1 + DE2 == DE3").run_validation(values)
        assert all(r.passed for r in results)

    def test_subtraction(self):
        """Test DE1 - DE2 == DE3."""
        values = [make_value("live", "10"), make_value("still", "2"), make_value("total", "8")]
        results = self._engine("DE1 - DE2 == DE3").run_validation(values)
        assert all(r.passed for r in results)

    def test_less_or_equal(self):
        """Test DE1 <= DE2."""
        values = [make_value("live", "10"), make_value("still", "2")]
        results = self._engine("DE1 <= DE2").run_validation(values)
        assert not any(r.passed for r in results)

    def test_unknown_placeholder(self):
        """Test a placeholder beyond the rule's elements is reported."""
        values = [make_value("live", "10")]
        [result] = self._engine("DE1 + DE4 == DE2").run_validation(values)
        assert result.passed is False
        assert result.message == "Error evaluating condition: unknown placeholder DE4"

    def test_unsupported_condition(self):
        """Test conditions outside the supported forms fail."""
        [result] = self._engine("DE1 * DE2").run_validation([make_value("live", "1")])
        assert result.passed is False
        assert result.message == "Unsupported consistency condition: DE1 * DE2"


class TestOutlierRule:
    """Test z-score outlier detection."""

    @pytest.fixture
    def engine(self):
        return RulesEngine([_rule(rule_type=RuleType.OUTLIER, threshold=3.0)])

    @pytest.fixture
    def history(self):
        return [make_value("de1", v, period=p) for v, p in [
            ("10", "202309"), ("12", "202310"), ("10", "202311"), ("12", "202312"),
        ]]

    def test_outlier_detected(self, engine, history):
        """Test a value far from the historical mean fails."""
        [result] = engine.run_validation([make_value("de1", "20")], historical=history)
        assert result.passed is False
        assert result.message == "Potential outlier detected (Z-score: 9.00, threshold: 3)"
        assert result.expected_value == pytest.approx(11.0)

    def test_normal_value(self, engine, history):
        """Test a value near the mean passes."""
        [result] = engine.run_validation([make_value("de1", "12")], historical=history)
        assert result.passed is True
        assert result.message == "Value is within normal range (Z-score: 1.00)"

    def test_insufficient_history(self, engine):
        """Test fewer than three samples skips the check."""
        [result] = engine.run_validation([make_value("de1", "500")])
        assert result.passed is True
        assert result.message == "Insufficient data for outlier detection"

    def test_non_numeric_value_skipped(self, engine, history):
        """Test text values are not outliers."""
        [result] = engine.run_validation([make_value("de1", "n/a")], historical=history)
        assert result.passed is True


class TestMandatoryRule:
    """Test mandatory rules."""

    def test_empty_value_fails(self):
        """Test a required element without a value fails."""
        engine = RulesEngine([_rule(rule_type=RuleType.MANDATORY)])
        [result] = engine.run_validation([make_value("de1", " ")])
        assert result.passed is False
        assert result.message == "Required field is empty"

    def test_present_value_passes(self):
        """Test a reported value passes."""
        engine = RulesEngine([_rule(rule_type=RuleType.MANDATORY)])
        [result] = engine.run_validation([make_value("de1", "0")])
        assert result.passed is True
