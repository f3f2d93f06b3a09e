"""
Shared pytest fixtures.
"""

import os
from datetime import date, datetime, UTC
from decimal import Decimal

import pytest
import yaml

from cpas.billing.lifecycle import PayApplicationDraft
from cpas.billing.models import Project, ProjectData, ScheduleOfValuesItem
from cpas.config import reset_config


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Keep tests away from real config files and CPAS_ environment variables."""
    for name in list(os.environ):
        if name.startswith("CPAS_"):
            monkeypatch.delenv(name)
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.chdir(tmp_path)
    reset_config()
    yield
    reset_config()


@pytest.fixture
def project():
    """A $100,000 contract with 10% retainage on work and stored materials."""
    return Project(
        project_id="P-1",
        name="Main Street Office",
        original_contract_sum=Decimal("100000.00"),
        retainage_rate_work=Decimal("0.10"),
        retainage_rate_stored=Decimal("0.10"),
        contract_date=date(2024, 1, 15),
        billing_day=25,
    )


@pytest.fixture
def project_data(project):
    """Project with a single SOV line covering the whole contract."""
    return ProjectData(
        project=project,
        sov_items=(
            ScheduleOfValuesItem("sov-1", "1", "General Conditions", Decimal("100000.00")),
        ),
    )


@pytest.fixture
def multi_item_data(project):
    """Project whose schedule of values has three lines."""
    return ProjectData(
        project=project,
        sov_items=(
            ScheduleOfValuesItem("sov-3", "3", "Finishes", Decimal("30000.00"), sort_order=3),
            ScheduleOfValuesItem("sov-1", "1", "Sitework", Decimal("20000.00"), sort_order=1),
            ScheduleOfValuesItem("sov-2", "2", "Structure", Decimal("50000.00"), sort_order=2),
        ),
    )


def submit_application(data, work, stored=None, number=None, period_from=None, period_to=None):
    """Freeze a pay application with the given progress and add it to ``data``.

    Args:
        data: ProjectData
        work: Mapping of sov_id to work completed this period
        stored: Mapping of sov_id to materials stored

    Returns:
        (updated ProjectData, submitted PayApplication)
    """
    draft = PayApplicationDraft(
        data,
        application_number=number,
        period_from=period_from or date(2024, 1, 15),
        period_to=period_to or date(2024, 1, 25),
    )
    for sov_id, amount in work.items():
        draft.set_work_this_period(sov_id, amount)
    for sov_id, amount in (stored or {}).items():
        draft.set_materials_stored(sov_id, amount)

    application = draft.freeze(
        submitted_at=datetime(2024, 1, 26, 12, 0, tzinfo=UTC), accept_warnings=True
    )
    return data.with_application(application), application


@pytest.fixture
def first_application(project_data):
    """Scenario A: $20,000 of work billed on the first application."""
    return submit_application(project_data, {"sov-1": Decimal("20000")})[1]


@pytest.fixture
def data_with_history(project_data, first_application):
    return project_data.with_application(first_application)


@pytest.fixture
def project_file_dict():
    """Raw contents of a project file with two SOV lines and one pending change order."""
    return {
        "project": {
            "id": "P-100",
            "name": "Riverside Clinic",
            "number": "2024-017",
            "owner": "Riverside Health",
            "contractor": "Acme Builders",
            "original_contract_sum": 100000,
            "retainage_rate_work": 0.10,
            "retainage_rate_stored": "5%",
            "contract_date": "2024-01-15",
            "billing_day": 25,
        },
        "schedule_of_values": [
            {"id": "sov-1", "item_number": 1, "description": "General Conditions",
             "scheduled_value": 40000, "sort_order": 1},
            {"id": "sov-2", "item_number": 2, "description": "Sitework",
             "scheduled_value": 60000, "sort_order": 2},
        ],
        "change_orders": [
            {"number": 1, "description": "Added fence", "amount": 5000, "status": "pending"},
        ],
        "pay_applications": [],
    }


@pytest.fixture
def project_file(tmp_path, project_file_dict):
    """The project file written as YAML."""
    path = tmp_path / "project.yaml"
    with open(path, "w") as f:
        yaml.safe_dump(project_file_dict, f, sort_keys=False)
    return path


@pytest.fixture
def submit():
    """The submit_application helper, for tests that build longer histories."""
    return submit_application
