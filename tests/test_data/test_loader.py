"""
Tests for loading and saving project files.
"""

import json
from decimal import Decimal

import pytest
import yaml

from cpas.billing.lifecycle import PayApplicationDraft, mark_paid
from cpas.billing.models import ChangeOrderStatus, PayAppStatus
from cpas.data.loader import (
    ProjectFileError, load_project_file, parse_project_data, project_data_to_dict, save_project_file
)


class TestLoadProjectFile:
    """Tests for reading and validating project files."""

    def test_load_yaml(self, project_file):
        data = load_project_file(project_file)
        project = data.project

        assert project.project_id == "P-100"
        assert project.project_number == "2024-017"
        assert project.original_contract_sum == Decimal("100000")
        assert project.retainage_rates.work == Decimal("0.1")
        assert project.retainage_rates.stored == Decimal("0.0500")
        assert [sov.item_number for sov in data.sov_items] == ["1", "2"]
        assert data.change_orders[0].status == ChangeOrderStatus.PENDING

    def test_load_json(self, tmp_path, project_file_dict):
        path = tmp_path / "project.json"
        path.write_text(json.dumps(project_file_dict))

        assert load_project_file(path).project.name == "Riverside Clinic"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ProjectFileError, match="not found"):
            load_project_file(tmp_path / "missing.yaml")

    def test_unparseable_file(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json")

        with pytest.raises(ProjectFileError):
            load_project_file(path)

    def test_top_level_must_be_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- 1\n- 2\n")

        with pytest.raises(ProjectFileError, match="mapping"):
            load_project_file(path)

    def test_negative_contract_sum_rejected(self, project_file_dict):
        project_file_dict["project"]["original_contract_sum"] = -1

        with pytest.raises(ProjectFileError, match="original_contract_sum"):
            parse_project_data(project_file_dict)

    def test_rate_out_of_range_rejected(self, project_file_dict):
        project_file_dict["project"]["retainage_rate_work"] = 1.5

        with pytest.raises(ProjectFileError, match="retainage_rate_work"):
            parse_project_data(project_file_dict)

    def test_unknown_field_rejected(self, project_file_dict):
        project_file_dict["schedule_of_values"][0]["colour"] = "blue"

        with pytest.raises(ProjectFileError, match="colour"):
            parse_project_data(project_file_dict)

    def test_duplicate_sov_ids_rejected(self, project_file_dict):
        project_file_dict["schedule_of_values"][1]["id"] = "sov-1"

        with pytest.raises(ProjectFileError, match="duplicate schedule of values id"):
            parse_project_data(project_file_dict)

    def test_approval_date_requires_approved_status(self, project_file_dict):
        project_file_dict["change_orders"][0]["date_approved"] = "2024-02-01"

        with pytest.raises(ProjectFileError, match="approval date"):
            parse_project_data(project_file_dict)

    def test_submitted_application_needs_summary(self, project_file_dict):
        project_file_dict["pay_applications"] = [{"number": 1, "status": "submitted"}]

        with pytest.raises(ProjectFileError, match="no summary"):
            parse_project_data(project_file_dict)

    def test_config_defaults_fill_missing_settings(self, project_file_dict):
        for key in ("retainage_rate_work", "retainage_rate_stored", "billing_day"):
            del project_file_dict["project"][key]
        config = {
            "default_retainage_rate_work": 0.05,
            "default_retainage_rate_stored": 0.0,
            "default_billing_day": 15,
        }

        project = parse_project_data(project_file_dict, config=config).project

        assert project.retainage_rates.work == Decimal("0.05")
        assert project.retainage_rates.stored == Decimal("0")
        assert project.billing_day == 15

    def test_hand_written_draft_is_calculated(self, project_file_dict):
        project_file_dict["pay_applications"] = [{
            "number": 1,
            "period_from": "2024-01-15",
            "period_to": "2024-01-25",
            "line_items": [
                {"sov_id": "sov-2", "item_number": 2, "scheduled_value": 60000,
                 "work_completed_this_period": 15000},
            ],
        }]

        application = parse_project_data(project_file_dict).get_application(1)

        assert application.status == PayAppStatus.DRAFT
        assert [item.sov_id for item in application.line_items] == ["sov-1", "sov-2"]
        assert application.line_items[1].total_completed_and_stored == Decimal("15000.00")
        assert application.summary.line8_current_payment_due == Decimal("13500.00")


class TestSaveProjectFile:
    """Tests for writing project files."""

    def test_submitted_snapshot_survives_save_and_load(self, project_file):
        data = load_project_file(project_file)
        draft = PayApplicationDraft(data)
        draft.set_work_this_period("sov-1", "10000")
        draft.set_materials_stored("sov-2", "4000")
        submitted = draft.freeze()
        save_project_file(data.with_application(submitted), project_file)

        reloaded = load_project_file(project_file).get_application(1)

        assert reloaded.status == PayAppStatus.SUBMITTED
        assert reloaded.summary == submitted.summary
        assert reloaded.line_items == submitted.line_items
        assert reloaded.submitted_at == submitted.submitted_at

    def test_stored_snapshot_is_not_recomputed(self, project_file):
        data = load_project_file(project_file)
        draft = PayApplicationDraft(data)
        draft.set_work_this_period("sov-1", "10000")
        save_project_file(data.with_application(draft.freeze()), project_file)

        raw = yaml.safe_load(project_file.read_text())
        raw["project"]["retainage_rate_work"] = 0.2
        reloaded = parse_project_data(raw).get_application(1)

        assert reloaded.summary.line5a_retainage_on_completed == Decimal("1000.00")

    def test_save_json(self, tmp_path, project_file):
        data = load_project_file(project_file)
        path = tmp_path / "copy.json"

        save_project_file(data, path)

        content = json.loads(path.read_text())
        assert content["project"]["id"] == "P-100"
        assert content["project"]["number"] == "2024-017"
        assert len(content["schedule_of_values"]) == 2

    def test_paid_application_saved(self, project_file):
        data = load_project_file(project_file)
        draft = PayApplicationDraft(data)
        draft.set_work_this_period("sov-1", "10000")
        data = data.with_application(draft.freeze())
        data = data.with_application(mark_paid(data.get_application(1)))
        save_project_file(data, project_file)

        assert load_project_file(project_file).get_application(1).status == PayAppStatus.PAID

    def test_no_temporary_files_left(self, tmp_path, project_file):
        save_project_file(load_project_file(project_file), project_file)

        assert sorted(p.name for p in tmp_path.iterdir()) == ["project.yaml"]

    def test_project_data_to_dict_uses_file_layout(self, project_file):
        content = project_data_to_dict(load_project_file(project_file))

        assert set(content) == {"project", "schedule_of_values", "change_orders", "pay_applications"}
        assert content["change_orders"][0]["status"] == "pending"
        assert "date_approved" not in content["change_orders"][0]
