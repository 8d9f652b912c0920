"""
Test suite for the dq command line interface.

Covers:
- automap over exported element lists
- validate exit codes
- reconcile over a request document
- unreadable input files
"""

import json

import pytest
from typer.testing import CliRunner

from dqengine import __version__
from dqengine.cli.main import app

from conftest import ORG_UNIT, PERIOD


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def element_files(tmp_path):
    source = tmp_path / "source.json"
    target = tmp_path / "target.json"
    source.write_text(json.dumps([
        {"id": "s1", "display_name": "Malaria cases"},
        {"id": "s2", "display_name": "xyz"},
    ]))
    target.write_text(json.dumps([
        {"id": "t1", "display_name": "Malaria cases"},
    ]))
    return source, target


@pytest.fixture
def request_file(tmp_path):
    path = tmp_path / "request.json"
    path.write_text(json.dumps({
        "groups": [{
            "id": "group_1",
            "logical_name": "Malaria cases",
            "repository_ids": ["repo_a", "repo_b"],
            "elements": [
                {"id": "a_mal", "display_name": "Malaria cases"},
                {"id": "b_mal", "display_name": "Malaria cases"},
            ],
        }],
        "values_by_repository": {
            "repo_a": [{"field_id": "a_mal", "org_unit": ORG_UNIT, "period": PERIOD, "value": "12"}],
            "repo_b": [{"field_id": "b_mal", "org_unit": ORG_UNIT, "period": PERIOD, "value": "15"}],
        },
        "org_unit": ORG_UNIT,
        "period": PERIOD,
    }))
    return path


class TestVersion:
    """Test the root callback."""

    def test_version(self, runner):
        """Test --version prints the package version."""
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output


class TestAutomapCommand:
    """Test dq automap."""

    def test_automap_writes_output(self, runner, element_files, tmp_path):
        """Test suggestions are printed and written as JSON."""
        source, target = element_files
        output = tmp_path / "suggestions.json"
        result = runner.invoke(app, [
            "automap", str(source), str(target), "--output", str(output),
        ])
        assert result.exit_code == 0
        assert "1 source elements unmapped" in result.output

        written = json.loads(output.read_text())
        assert len(written) == 1
        assert written[0]["source_element"]["id"] == "s1"
        assert written[0]["target_element"]["id"] == "t1"
        assert written[0]["confidence"] == "high"

    def test_automap_rejects_non_list(self, runner, element_files, tmp_path):
        """Test an element file must hold a list."""
        _, target = element_files
        bad = tmp_path / "bad.json"
        bad.write_text(json.dumps({"id": "s1"}))
        result = runner.invoke(app, ["automap", str(bad), str(target)])
        assert result.exit_code == 1

    def test_automap_invalid_json(self, runner, element_files, tmp_path):
        """Test unparsable JSON exits with an error."""
        _, target = element_files
        bad = tmp_path / "broken.json"
        bad.write_text("{not json")
        result = runner.invoke(app, ["automap", str(bad), str(target)])
        assert result.exit_code == 1
        assert "Cannot read" in result.output


class TestValidateCommand:
    """Test dq validate."""

    def test_valid_value(self, runner):
        """Test an acceptable value exits cleanly."""
        result = runner.invoke(app, ["validate", "12"])
        assert result.exit_code == 0
        assert "is valid" in result.output

    def test_negative_value(self, runner):
        """Test a negative value fails with its message."""
        result = runner.invoke(app, ["validate", "--", "-5", "Cases"])
        assert result.exit_code == 1
        assert "Negative value not allowed" in result.output

    def test_label_selects_rule(self, runner):
        """Test the label enables the percentage rule."""
        result = runner.invoke(app, ["validate", "101", "Coverage rate"])
        assert result.exit_code == 1
        assert "cannot exceed 100%" in result.output


class TestReconcileCommand:
    """Test dq reconcile."""

    def test_reconcile(self, runner, request_file, tmp_path):
        """Test the summary line and JSON output."""
        output = tmp_path / "results.json"
        result = runner.invoke(app, [
            "reconcile", str(request_file), "--output", str(output),
        ])
        assert result.exit_code == 0
        assert "mismatch 1" in result.output

        written = json.loads(output.read_text())
        assert written["summary"]["mismatched_records"] == 1
        assert written["results"][0]["status"] == "mismatch"
        assert written["results"][0]["variance"] == 3.0

    def test_invalid_request(self, runner, tmp_path):
        """Test a request missing required fields is rejected."""
        path = tmp_path / "request.json"
        path.write_text(json.dumps({"groups": []}))
        result = runner.invoke(app, ["reconcile", str(path)])
        assert result.exit_code == 1
        assert "Invalid request" in result.output

    def test_missing_file(self, runner, tmp_path):
        """Test a missing request file exits with an error."""
        result = runner.invoke(app, ["reconcile", str(tmp_path / "absent.json")])
        assert result.exit_code == 1
