# -*- coding: utf-8 -*-
"""Pytest configuration and shared fixtures."""

from typing import Dict, List, Optional

import pytest

from dqengine.reconciliation.config import ReconciliationConfig, reset_config, set_config
from dqengine.reconciliation.models import (
    DataElement,
    LogicalFieldGroup,
    ObservedValue,
    Repository,
)
from dqengine.reconciliation.setup import reset_service

ORG_UNIT = "OU_DISTRICT_1"
PERIOD = "202401"


@pytest.fixture(autouse=True)
def clean_singletons():
    """Give every test a fresh configuration and service singleton."""
    reset_config()
    reset_service()
    set_config(ReconciliationConfig())
    yield
    reset_config()
    reset_service()


@pytest.fixture
def repositories() -> List[Repository]:
    """Three reporting repositories."""
    return [
        Repository(id="repo_a", name="HMIS Monthly"),
        Repository(id="repo_b", name="Malaria Program"),
        Repository(id="repo_c", name="Community Reports"),
    ]


@pytest.fixture
def repository_names(repositories) -> Dict[str, str]:
    return {repo.id: repo.name for repo in repositories}


@pytest.fixture
def source_elements() -> List[DataElement]:
    """Elements of the source repository."""
    return [
        DataElement(id="a_malaria", display_name="Number of malaria cases",
                    repository_id="repo_a"),
        DataElement(id="a_anc1", display_name="ANC 1st visit",
                    repository_id="repo_a"),
        DataElement(id="a_xyz", display_name="xyz", repository_id="repo_a"),
    ]


@pytest.fixture
def target_elements() -> List[DataElement]:
    """Elements of a target repository."""
    return [
        DataElement(id="b_anc1", display_name="ANC first visit",
                    repository_id="repo_b"),
        DataElement(id="b_malaria", display_name="Malaria cases, number",
                    repository_id="repo_b"),
        DataElement(id="b_opd", display_name="OPD attendance",
                    repository_id="repo_b"),
    ]


def make_element(element_id: str, name: str = "", repo_id: Optional[str] = None) -> DataElement:
    return DataElement(id=element_id, display_name=name or element_id, repository_id=repo_id)


def make_value(field_id: str, value: Optional[str], org_unit: str = ORG_UNIT,
               period: str = PERIOD) -> ObservedValue:
    return ObservedValue(field_id=field_id, org_unit=org_unit, period=period, value=value)


@pytest.fixture
def malaria_group() -> LogicalFieldGroup:
    """A three-slot group for confirmed malaria cases."""
    return LogicalFieldGroup(
        id="group_1",
        logical_name="Malaria cases",
        repository_ids=["repo_a", "repo_b", "repo_c"],
        elements=[
            make_element("a_mal", "Malaria cases", "repo_a"),
            make_element("b_mal", "Confirmed malaria", "repo_b"),
            make_element("c_mal", "Malaria cases reported", "repo_c"),
        ],
    )


@pytest.fixture
def agreeing_values() -> Dict[str, List[ObservedValue]]:
    return {
        "repo_a": [make_value("a_mal", "12")],
        "repo_b": [make_value("b_mal", "12")],
        "repo_c": [make_value("c_mal", "12")],
    }
