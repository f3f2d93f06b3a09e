"""
Tests for the pay application lifecycle.
"""

import dataclasses
from datetime import date, datetime, UTC
from decimal import Decimal

import pytest

from cpas.billing.exceptions import (
    FinalizationBlockedError, ImmutableApplicationError, InvalidTransitionError
)
from cpas.billing.lifecycle import PayApplicationDraft, mark_paid
from cpas.billing.models import (
    ChangeOrder, ChangeOrderStatus, PayAppStatus, ProjectData, ScheduleOfValuesItem
)
from cpas.billing.validation import LINE_ITEM_OVERBILLED, SOV_MISMATCH


class TestDraft:
    """Tests for creating and editing drafts."""

    def test_defaults(self, project_data):
        draft = PayApplicationDraft(project_data, today=date(2024, 1, 20))

        assert draft.application_number == 1
        assert draft.period_from == date(2024, 1, 15)
        assert draft.period_to == date(2024, 1, 25)
        assert draft.line_items[0].work_completed_previous == Decimal("0.00")

    def test_second_draft_carries_forward(self, data_with_history):
        draft = PayApplicationDraft(data_with_history, today=date(2024, 2, 10))

        assert draft.application_number == 2
        assert draft.period_from == date(2024, 1, 26)
        assert draft.period_to == date(2024, 2, 25)
        assert draft.line_items[0].work_completed_previous == Decimal("20000.00")

    def test_scenario_b(self, data_with_history):
        draft = PayApplicationDraft(data_with_history)
        draft.set_work_this_period("sov-1", Decimal("30000"))
        summary = draft.calculate().summary

        assert summary.line4_total_completed_and_stored == Decimal("50000.00")
        assert summary.line5a_retainage_on_completed == Decimal("5000.00")
        assert summary.line6_total_earned_less_retainage == Decimal("45000.00")
        assert summary.line7_less_previous_certificates == Decimal("18000.00")
        assert summary.line8_current_payment_due == Decimal("27000.00")

    def test_text_input_is_parsed_leniently(self, project_data):
        draft = PayApplicationDraft(project_data)
        draft.set_work_this_period("sov-1", "$1,500.00")
        draft.set_materials_stored("sov-1", "not a number")

        row = draft.line_items[0]
        assert row.work_completed_this_period == Decimal("1500.00")
        assert row.materials_stored == Decimal("0.00")

    def test_unknown_sov_item(self, project_data):
        draft = PayApplicationDraft(project_data)

        with pytest.raises(KeyError):
            draft.set_work_this_period("sov-99", Decimal("1"))

    def test_mark_complete_bills_remaining_balance(self, data_with_history):
        draft = PayApplicationDraft(data_with_history)
        draft.set_materials_stored("sov-1", Decimal("5000"))
        draft.mark_complete("sov-1")

        row = draft.line_items[0]
        assert row.work_completed_this_period == Decimal("75000.00")
        assert draft.calculate().line_items[0].balance_to_finish == Decimal("0.00")

    def test_bill_remaining_never_goes_negative(self, project_data, submit):
        data, _ = submit(project_data, {"sov-1": Decimal("100500")})
        draft = PayApplicationDraft(data)
        draft.bill_remaining()

        assert draft.line_items[0].work_completed_this_period == Decimal("0.00")

    def test_restores_entered_progress(self, data_with_history):
        entered = PayApplicationDraft(data_with_history)
        entered.set_work_this_period("sov-1", Decimal("1234.56"))

        reopened = PayApplicationDraft(data_with_history, line_items=entered.line_items)

        assert reopened.line_items[0].work_completed_this_period == Decimal("1234.56")

    def test_from_snapshot_recomputes_against_current_schedule(self, project_data):
        draft = PayApplicationDraft(project_data)
        draft.set_work_this_period("sov-1", Decimal("1000"))
        saved = draft.snapshot()

        added = ScheduleOfValuesItem("sov-2", "2", "Added scope", Decimal("5000"))
        changed = dataclasses.replace(project_data, sov_items=project_data.sov_items + (added,))
        reopened = PayApplicationDraft.from_snapshot(changed, saved)

        assert [row.sov_id for row in reopened.line_items] == ["sov-1", "sov-2"]
        assert reopened.line_items[0].work_completed_this_period == Decimal("1000.00")

    def test_submission_keeps_draft_created_at(self, project_data):
        created_at = datetime(2024, 1, 20, 9, 0, tzinfo=UTC)
        draft = PayApplicationDraft(project_data)
        draft.set_work_this_period("sov-1", Decimal("1000"))
        saved = draft.snapshot(created_at=created_at)
        data = project_data.with_application(saved)

        submitted = PayApplicationDraft.from_snapshot(data, saved).freeze(
            submitted_at=datetime(2024, 1, 26, tzinfo=UTC)
        )

        assert submitted.created_at == created_at
        assert submitted.submitted_at == datetime(2024, 1, 26, tzinfo=UTC)

    def test_snapshot_is_draft(self, project_data):
        snapshot = PayApplicationDraft(project_data).snapshot()

        assert snapshot.status == PayAppStatus.DRAFT
        assert snapshot.created_at is not None
        assert snapshot.submitted_at is None


class TestFreeze:
    """Tests for submitting a draft."""

    def test_freeze_produces_submitted_snapshot(self, project_data):
        draft = PayApplicationDraft(project_data)
        draft.set_work_this_period("sov-1", Decimal("20000"))
        submitted_at = datetime(2024, 1, 26, tzinfo=UTC)

        application = draft.freeze(submitted_at=submitted_at)

        assert application.status == PayAppStatus.SUBMITTED
        assert application.submitted_at == submitted_at
        assert application.current_payment_due == Decimal("18000.00")
        assert len(application.line_items) == 1

    def test_errors_block_submission(self, project):
        sov = ScheduleOfValuesItem("sov-1", "1", "General Conditions", Decimal("95000"))
        data = ProjectData(project=project, sov_items=(sov,))
        draft = PayApplicationDraft(data)

        with pytest.raises(FinalizationBlockedError) as excinfo:
            draft.freeze(accept_warnings=True)

        assert SOV_MISMATCH in excinfo.value.validation.codes()

    def test_warnings_must_be_accepted(self, project_data):
        draft = PayApplicationDraft(project_data)
        draft.set_work_this_period("sov-1", Decimal("100500"))

        with pytest.raises(FinalizationBlockedError) as excinfo:
            draft.freeze()
        assert excinfo.value.validation.is_valid
        assert LINE_ITEM_OVERBILLED in excinfo.value.validation.codes()

        application = draft.freeze(accept_warnings=True)
        assert application.status == PayAppStatus.SUBMITTED

    def test_snapshot_is_immutable(self, first_application):
        with pytest.raises(dataclasses.FrozenInstanceError):
            first_application.status = PayAppStatus.DRAFT

    def test_submitted_number_cannot_be_redrafted(self, data_with_history):
        with pytest.raises(ImmutableApplicationError):
            PayApplicationDraft(data_with_history, application_number=1)

    def test_submitted_cannot_be_reopened(self, data_with_history, first_application):
        with pytest.raises(ImmutableApplicationError):
            PayApplicationDraft.from_snapshot(data_with_history, first_application)

    def test_submitted_cannot_be_replaced(self, data_with_history, project_data):
        draft = PayApplicationDraft(project_data)
        draft.set_work_this_period("sov-1", Decimal("1"))
        other = draft.freeze()

        with pytest.raises(ImmutableApplicationError):
            data_with_history.with_application(other)

    def test_later_change_orders_do_not_alter_snapshot(self, data_with_history, first_application):
        changed = data_with_history.with_change_order(
            ChangeOrder(1, "Added fence", Decimal("5000"), ChangeOrderStatus.APPROVED, date(2024, 2, 1))
        )

        assert changed.get_application(1) == first_application
        assert changed.get_application(1).summary.line3_contract_sum_to_date == Decimal("100000.00")


class TestMarkPaid:
    """Tests for recording payment."""

    def test_submitted_to_paid(self, data_with_history, first_application):
        paid_at = datetime(2024, 2, 15, tzinfo=UTC)
        paid = mark_paid(first_application, paid_at=paid_at)

        assert paid.status == PayAppStatus.PAID
        assert paid.paid_at == paid_at
        assert paid.summary == first_application.summary

        updated = data_with_history.with_application(paid)
        assert updated.get_application(1).status == PayAppStatus.PAID

    def test_draft_cannot_be_paid(self, project_data):
        with pytest.raises(InvalidTransitionError):
            mark_paid(PayApplicationDraft(project_data).snapshot())

    def test_paid_cannot_be_paid_again(self, first_application):
        with pytest.raises(InvalidTransitionError):
            mark_paid(mark_paid(first_application))
