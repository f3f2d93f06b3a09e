"""
Pay application lifecycle: draft -> submitted -> paid.

A PayApplicationDraft is the only mutable form of a pay application. It is
freely recalculated as the user edits it. Freezing it produces an immutable
PayApplication snapshot; once submitted, a snapshot is corrected only by
creating a new application.
"""

import logging
from dataclasses import replace
from datetime import date, datetime, UTC
from typing import Any, Dict, Iterable, List, Optional

from cpas.billing.carry_forward import latest_application, next_application_number, prior_applications
from cpas.billing.engine import BillingEngine, PayAppCalculation
from cpas.billing.exceptions import (
    FinalizationBlockedError, ImmutableApplicationError, InvalidTransitionError
)
from cpas.billing.line_items import remaining_balance
from cpas.billing.models import (
    PayApplication, PayAppLineItemInput, PayAppStatus, ProjectData
)
from cpas.billing.money import ZERO, Number, parse_currency_input, round_currency
from cpas.billing.schedule import default_period

logger = logging.getLogger(__name__)


def _amount(value: Any):
    """User text goes through the lenient parser; numbers are rounded."""
    if isinstance(value, str):
        return parse_currency_input(value)
    return round_currency(value)


class PayApplicationDraft:
    """Working copy of a pay application.

    Column D is carried forward from the billing history when the draft is
    created. Columns E and F are edited through the setter methods, and
    ``calculate`` reruns the pipeline on the current values.
    """

    def __init__(
        self,
        data: ProjectData,
        application_number: Optional[int] = None,
        period_from: Optional[date] = None,
        period_to: Optional[date] = None,
        line_items: Optional[Iterable[PayAppLineItemInput]] = None,
        engine: Optional[BillingEngine] = None,
        today: Optional[date] = None,
        created_at: Optional[datetime] = None
    ):
        """Start a draft.

        Args:
            data: Project data including application history
            application_number: Defaults to the next unused number
            period_from: Defaults to the day after the last period
            period_to: Defaults to the next billing day
            line_items: Previously entered rows; their E and F values are
                kept for SOV items that still exist
            engine: Billing engine (a default one is created if omitted)
            today: Reference date for the default period
            created_at: When the draft was first saved
        """
        self.data = data
        self.engine = engine or BillingEngine()
        self.created_at = created_at

        if application_number is None:
            application_number = next_application_number(data.pay_applications)
        existing = data.get_application(application_number)
        if existing is not None and existing.status != PayAppStatus.DRAFT:
            raise ImmutableApplicationError(existing.application_number, existing.status.value)
        self.application_number = application_number

        if period_from is None or period_to is None:
            last = latest_application(prior_applications(data.pay_applications, application_number))
            default_from, default_to = default_period(
                last, data.project.contract_date, data.project.billing_day, today
            )
            period_from = period_from or default_from
            period_to = period_to or default_to
        self.period_from = period_from
        self.period_to = period_to

        self._rows: List[PayAppLineItemInput] = list(
            self.engine.start_line_items(data, application_number)
        )
        if line_items is not None:
            self._restore_progress(line_items)

    @classmethod
    def from_snapshot(
        cls,
        data: ProjectData,
        application: PayApplication,
        engine: Optional[BillingEngine] = None
    ) -> "PayApplicationDraft":
        """Reopen a saved draft, recomputing it against the current project data."""
        if application.status != PayAppStatus.DRAFT:
            raise ImmutableApplicationError(application.application_number, application.status.value)
        return cls(
            data,
            application_number=application.application_number,
            period_from=application.period_from,
            period_to=application.period_to,
            line_items=[item.to_input() for item in application.line_items],
            engine=engine,
            created_at=application.created_at,
        )

    def _restore_progress(self, line_items: Iterable[PayAppLineItemInput]) -> None:
        entered: Dict[str, PayAppLineItemInput] = {item.sov_id: item for item in line_items}
        self._rows = [
            row.with_progress(
                work_completed_this_period=entered[row.sov_id].work_completed_this_period,
                materials_stored=entered[row.sov_id].materials_stored,
            ) if row.sov_id in entered else row
            for row in self._rows
        ]

    def _index(self, sov_id: str) -> int:
        for index, row in enumerate(self._rows):
            if row.sov_id == sov_id:
                return index
        raise KeyError(f"SOV item '{sov_id}' is not part of pay application #{self.application_number}")

    @property
    def line_items(self) -> List[PayAppLineItemInput]:
        return list(self._rows)

    def set_work_this_period(self, sov_id: str, value: Number) -> None:
        """Set column E for one row. Text is parsed leniently (bad input becomes 0)."""
        index = self._index(sov_id)
        self._rows[index] = self._rows[index].with_progress(work_completed_this_period=_amount(value))

    def set_materials_stored(self, sov_id: str, value: Number) -> None:
        """Set column F for one row. Text is parsed leniently (bad input becomes 0)."""
        index = self._index(sov_id)
        self._rows[index] = self._rows[index].with_progress(materials_stored=_amount(value))

    def mark_complete(self, sov_id: str) -> None:
        """Bill whatever remains on one row as work this period."""
        index = self._index(sov_id)
        row = self._rows[index]
        remaining = remaining_balance(row.scheduled_value, row.work_completed_previous, row.materials_stored)
        self._rows[index] = row.with_progress(work_completed_this_period=max(remaining, ZERO))

    def bill_remaining(self) -> None:
        """Mark every row complete. Rows already at or over their value get zero."""
        for row in list(self._rows):
            self.mark_complete(row.sov_id)

    def calculate(self) -> PayAppCalculation:
        return self.engine.calculate(self.data, self.application_number, self._rows)

    def _to_snapshot(self, status: PayAppStatus, calculation: PayAppCalculation, **timestamps) -> PayApplication:
        return PayApplication(
            application_number=self.application_number,
            period_from=self.period_from,
            period_to=self.period_to,
            status=status,
            summary=calculation.summary,
            line_items=tuple(calculation.line_items),
            created_at=timestamps.get("created_at") or datetime.now(UTC),
            submitted_at=timestamps.get("submitted_at"),
        )

    def snapshot(self, created_at: Optional[datetime] = None) -> PayApplication:
        """Capture the draft as a draft-status PayApplication for saving."""
        return self._to_snapshot(PayAppStatus.DRAFT, self.calculate(), created_at=created_at or self.created_at)

    def freeze(self, submitted_at: Optional[datetime] = None, accept_warnings: bool = False) -> PayApplication:
        """Finalize the draft into a submitted, immutable snapshot.

        Args:
            submitted_at: Submission timestamp (defaults to now, UTC)
            accept_warnings: Must be true to submit an application with warnings

        Returns:
            PayApplication with status ``submitted``

        Raises:
            OutOfSequenceError: If a lower-numbered draft is still open, or a
                higher-numbered application was already submitted
            FinalizationBlockedError: If validation reports errors, or reports
                warnings that were not accepted
        """
        self.data.check_submission_order(self.application_number)
        calculation = self.calculate()
        validation = calculation.validation

        if not validation.is_valid:
            raise FinalizationBlockedError(validation)
        if validation.warnings and not accept_warnings:
            raise FinalizationBlockedError(validation)

        submitted_at = submitted_at or datetime.now(UTC)
        logger.info(
            f"Submitting pay application #{self.application_number}: "
            f"current payment due {calculation.summary.line8_current_payment_due}"
        )
        return self._to_snapshot(
            PayAppStatus.SUBMITTED,
            calculation,
            created_at=self.created_at or submitted_at,
            submitted_at=submitted_at,
        )


def mark_paid(application: PayApplication, paid_at: Optional[datetime] = None) -> PayApplication:
    """Record payment of a submitted application. Only the status and paid_at change."""
    if application.status != PayAppStatus.SUBMITTED:
        raise InvalidTransitionError(
            f"pay application #{application.application_number}",
            application.status.value,
            PayAppStatus.PAID.value
        )
    logger.info(f"Pay application #{application.application_number} marked paid")
    return replace(application, status=PayAppStatus.PAID, paid_at=paid_at or datetime.now(UTC))
