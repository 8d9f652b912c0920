"""
Test suite for the reconciliation service facade and REST API.

Covers:
- ReconciliationService statistics, provenance and batch limits
- configure_reconciliation / get_reconciliation_service wiring
- Every endpoint of the reconciliation router
"""

import asyncio

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from dqengine.reconciliation.config import ReconciliationConfig
from dqengine.reconciliation.models import ComparisonStatus
from dqengine.reconciliation.reconciliation_pipeline import InMemoryRepositoryClient
from dqengine.reconciliation.setup import (
    ReconciliationService,
    configure_reconciliation,
    get_reconciliation_service,
    get_service,
)

from conftest import ORG_UNIT, PERIOD, make_value

API = "/api/v1/reconciliation"


def _element(element_id, name):
    return {"id": element_id, "display_name": name}


def _reconcile_payload(values):
    repos = ["repo_a", "repo_b"]
    return {
        "groups": [{
            "id": "group_1",
            "logical_name": "Malaria cases",
            "repository_ids": repos,
            "elements": [_element("a_mal", "Malaria cases"), _element("b_mal", "Malaria cases")],
        }],
        "values_by_repository": {
            repo: [{"field_id": field, "org_unit": ORG_UNIT, "period": PERIOD, "value": value}]
            for repo, field, value in zip(repos, ["a_mal", "b_mal"], values)
        },
        "org_unit": ORG_UNIT,
        "period": PERIOD,
        "repositories": [
            {"id": "repo_a", "name": "HMIS Monthly"},
            {"id": "repo_b", "name": "Malaria Program"},
        ],
    }


def _make_app(config=None):
    app = FastAPI()
    service = asyncio.run(configure_reconciliation(app, config=config))
    return app, service


@pytest.fixture
def app_and_service():
    return _make_app()


@pytest.fixture
def client(app_and_service):
    app, _ = app_and_service
    return TestClient(app)


class TestReconciliationService:
    """Test the service facade directly."""

    def test_statistics_track_operations(self, source_elements, target_elements):
        """Test counters follow the operations performed."""
        service = ReconciliationService()
        service.score_similarity("Malaria cases", "Malaria deaths")
        service.generate_auto_mappings(source_elements, target_elements)
        service.validate_value("-1")

        stats = service.get_statistics()
        assert stats.total_similarity_checks == 1
        assert stats.total_mapping_runs == 1
        assert stats.total_suggestions == 2
        assert stats.total_validations == 1
        assert sum(stats.by_confidence.values()) == 2

    def test_default_min_similarity_from_config(self, source_elements, target_elements):
        """Test the configured threshold applies when none is given."""
        service = ReconciliationService(ReconciliationConfig(default_min_similarity=0.9))
        assert service.generate_auto_mappings(source_elements, target_elements) == []

    def test_reconcile_records_provenance(self, malaria_group, agreeing_values):
        """Test a reconciliation batch adds a verifiable provenance entry."""
        service = ReconciliationService()
        response = service.reconcile_groups([malaria_group], agreeing_values, ORG_UNIT, PERIOD)

        assert response.summary.valid_records == 1
        assert service.provenance.entry_count == 1
        valid, chain = service.provenance.verify_chain("comparison", response.reconcile_id)
        assert valid is True
        assert chain[0]["chain_hash"] == response.provenance_hash
        assert service.get_statistics().by_status == {"valid": 1}

    def test_provenance_can_be_disabled(self, malaria_group, agreeing_values):
        """Test no provenance entries are kept when disabled."""
        service = ReconciliationService(ReconciliationConfig(enable_provenance=False))
        response = service.reconcile_groups([malaria_group], agreeing_values, ORG_UNIT, PERIOD)
        assert service.provenance.entry_count == 0
        assert len(response.provenance_hash) == 64

    def test_single_reconcile(self, malaria_group, agreeing_values):
        """Test reconciling one group returns its result."""
        result = ReconciliationService().reconcile(
            malaria_group, agreeing_values, ORG_UNIT, PERIOD,
        )
        assert result.status == ComparisonStatus.VALID

    def test_batch_limit(self, malaria_group, agreeing_values):
        """Test batches over max_batch_size are rejected."""
        service = ReconciliationService(ReconciliationConfig(max_batch_size=1))
        with pytest.raises(ValueError, match="max_batch_size"):
            service.reconcile_groups(
                [malaria_group, malaria_group], agreeing_values, ORG_UNIT, PERIOD,
            )

    def test_run_pipeline(self, malaria_group):
        """Test pipeline runs update statistics and provenance."""
        service = ReconciliationService()
        client = InMemoryRepositoryClient(values={
            "repo_a": [make_value("a_mal", "3")],
            "repo_b": [make_value("b_mal", "4")],
            "repo_c": [make_value("c_mal", "3")],
        })
        run = service.run_pipeline(client, [malaria_group], ORG_UNIT, [PERIOD])
        assert run.summary.mismatched_records == 1
        assert service.get_statistics().by_status == {"mismatch": 1}
        assert service.provenance.get_chain("pipeline_run", run.run_id)

    def test_run_rules_with_default_rule_set(self):
        """Test the default rules evaluate present values without error."""
        results = ReconciliationService().run_rules([make_value("de1", "-5")])
        by_name = {r.rule_name: r for r in results}
        assert by_name["No Negative Values"].passed is False
        assert by_name["No Negative Values"].value == -5.0
        assert by_name["Outlier Detection"].message == "Insufficient data for outlier detection"

    def test_health_before_start(self):
        """Test a service not mounted on an app reports not_started."""
        assert ReconciliationService().health_check()["status"] == "not_started"


class TestServiceWiring:
    """Test application wiring helpers."""

    def test_configure_stores_service(self, app_and_service):
        """Test the service is stored on the app and marked started."""
        app, service = app_and_service
        assert get_reconciliation_service(app) is service
        assert get_service() is service
        assert service.health_check()["status"] == "healthy"

    def test_unconfigured_app_raises(self):
        """Test looking up a service on a bare app fails."""
        with pytest.raises(RuntimeError):
            get_reconciliation_service(FastAPI())

    def test_singleton_created_lazily(self):
        """Test the module singleton is created on first use."""
        assert get_reconciliation_service() is get_service()


class TestReconciliationAPI:
    """Test the REST endpoints."""

    def test_similarity(self, client):
        """Test POST /similarity."""
        response = client.post(f"{API}/similarity", json={
            "label_a": "Malaria cases", "label_b": "malaria cases",
        })
        assert response.status_code == 200
        assert response.json()["overall"] == 1.0

    def test_similarity_rejects_unknown_fields(self, client):
        """Test request models forbid extra fields."""
        response = client.post(f"{API}/similarity", json={
            "label_a": "a", "label_b": "b", "label_c": "c",
        })
        assert response.status_code == 422

    def test_automap(self, client):
        """Test POST /automap."""
        response = client.post(f"{API}/automap", json={
            "source": [_element("s1", "Malaria cases"), _element("s2", "xyz")],
            "target": [_element("t1", "Malaria cases")],
        })
        assert response.status_code == 200
        body = response.json()
        assert len(body) == 1
        assert body[0]["source_element"]["id"] == "s1"
        assert body[0]["confidence"] == "high"

    def test_validate(self, client):
        """Test POST /validate."""
        response = client.post(f"{API}/validate", json={
            "value": "150", "field_label": "Coverage rate",
        })
        assert response.json() == {
            "valid": False, "error": "Percentage/rate cannot exceed 100%",
        }

    def test_reconcile(self, client):
        """Test POST /reconcile with a mismatch."""
        response = client.post(f"{API}/reconcile", json=_reconcile_payload(["12", "15"]))
        assert response.status_code == 200
        body = response.json()
        result = body["results"][0]
        assert result["status"] == "mismatch"
        assert result["conflicts"] == ['HMIS Monthly: "12" ≠ Malaria Program: "15"']
        assert result["variance"] == 3.0
        assert body["summary"]["mismatched_records"] == 1

    def test_reconcile_invalid_group(self, client):
        """Test an invalid group definition is rejected."""
        payload = _reconcile_payload(["1", "1"])
        payload["groups"][0]["repository_ids"] = ["repo_a", "repo_a"]
        response = client.post(f"{API}/reconcile", json=payload)
        assert response.status_code == 422

    def test_reconcile_over_batch_limit(self):
        """Test the batch limit maps to HTTP 400."""
        app, _ = _make_app(ReconciliationConfig(max_batch_size=0))
        response = TestClient(app).post(f"{API}/reconcile", json=_reconcile_payload(["1", "1"]))
        assert response.status_code == 400

    def test_summary(self, client):
        """Test POST /summary counts results posted back."""
        reconciled = client.post(f"{API}/reconcile", json=_reconcile_payload(["7", "7"])).json()
        response = client.post(f"{API}/summary", json={"results": reconciled["results"]})
        assert response.status_code == 200
        assert response.json()["valid_records"] == 1

    def test_rules_crud_and_run(self, client):
        """Test listing, adding, running and deleting rules."""
        assert len(client.get(f"{API}/rules").json()) == 3

        created = client.post(f"{API}/rules", json={
            "name": "Cases required", "rule_type": "mandatory",
            "data_elements": ["de1"],
        })
        assert created.status_code == 201
        rule_id = created.json()["id"]

        run = client.post(f"{API}/rules/run", json={
            "values": [{"field_id": "de1", "org_unit": ORG_UNIT, "period": PERIOD, "value": ""}],
        })
        assert run.status_code == 200
        mandatory = [r for r in run.json() if r["rule_id"] == rule_id]
        assert mandatory[0]["passed"] is False

        assert client.delete(f"{API}/rules/{rule_id}").status_code == 200
        assert client.delete(f"{API}/rules/{rule_id}").status_code == 404

    def test_health_and_stats(self, client):
        """Test GET /health and GET /stats."""
        client.post(f"{API}/similarity", json={"label_a": "a", "label_b": "b"})
        assert client.get(f"{API}/health").json()["status"] == "healthy"
        assert client.get(f"{API}/stats").json()["total_similarity_checks"] == 1
