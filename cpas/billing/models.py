"""
Typed records for the billing engine.

These are the plain data structures exchanged with the persistence layer,
the presentation layer and document export. All of them are frozen; changes
are expressed by building new records (``dataclasses.replace``) so a record
handed to a renderer can never be altered under it.
"""

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, Tuple

from cpas.billing.exceptions import (
    ImmutableApplicationError, InvalidTransitionError, OutOfSequenceError
)
from cpas.billing.money import to_decimal, round_currency, ZERO


class ChangeOrderStatus(str, Enum):
    """Status of a change order."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class PayAppStatus(str, Enum):
    """Status of a pay application."""
    DRAFT = "draft"
    SUBMITTED = "submitted"
    PAID = "paid"


@dataclass(frozen=True)
class RetainageRates:
    """Retainage withheld on completed work and on stored materials.

    Both rates are fractions in [0, 1]; 0.10 means ten percent.
    """

    work: Decimal
    stored: Decimal

    def __post_init__(self):
        for name in ("work", "stored"):
            rate = to_decimal(getattr(self, name))
            if rate < 0 or rate > 1:
                raise ValueError(f"Retainage rate '{name}' must be between 0 and 1, got {rate}")
            object.__setattr__(self, name, rate)


@dataclass(frozen=True)
class Project:
    """Contract-level settings for a construction project."""

    project_id: str
    name: str
    original_contract_sum: Decimal
    retainage_rate_work: Decimal
    retainage_rate_stored: Decimal
    contract_date: Optional[date] = None
    billing_day: int = 25
    project_number: Optional[str] = None
    address: Optional[str] = None
    owner_name: Optional[str] = None
    contractor_name: Optional[str] = None
    architect_name: Optional[str] = None

    @property
    def retainage_rates(self) -> RetainageRates:
        return RetainageRates(work=self.retainage_rate_work, stored=self.retainage_rate_stored)


@dataclass(frozen=True)
class ScheduleOfValuesItem:
    """One billable line of the contract's schedule of values."""

    sov_id: str
    item_number: str
    description: str
    scheduled_value: Decimal
    sort_order: int = 0
    change_order_number: Optional[int] = None

    @property
    def is_from_change_order(self) -> bool:
        return self.change_order_number is not None


@dataclass(frozen=True)
class ChangeOrder:
    """A signed modification of the contract sum.

    Positive amounts add to the contract, negative amounts deduct. Only
    approved change orders have any financial effect.
    """

    co_number: int
    description: str
    amount: Decimal
    status: ChangeOrderStatus = ChangeOrderStatus.PENDING
    date_approved: Optional[date] = None

    @property
    def is_approved(self) -> bool:
        return self.status == ChangeOrderStatus.APPROVED

    def approve(self, on: Optional[date] = None) -> "ChangeOrder":
        """Return an approved copy of this pending change order."""
        if self.status != ChangeOrderStatus.PENDING:
            raise InvalidTransitionError(
                f"change order #{self.co_number}", self.status.value, ChangeOrderStatus.APPROVED.value
            )
        return replace(self, status=ChangeOrderStatus.APPROVED, date_approved=on or date.today())

    def reject(self) -> "ChangeOrder":
        """Return a rejected copy of this pending change order. Rejection is final."""
        if self.status != ChangeOrderStatus.PENDING:
            raise InvalidTransitionError(
                f"change order #{self.co_number}", self.status.value, ChangeOrderStatus.REJECTED.value
            )
        return replace(self, status=ChangeOrderStatus.REJECTED, date_approved=None)


@dataclass(frozen=True)
class PayAppLineItemInput:
    """The raw G703 columns for one SOV item: C, D, E and F."""

    sov_id: str
    item_number: str
    description: str
    scheduled_value: Decimal
    work_completed_previous: Decimal = ZERO
    work_completed_this_period: Decimal = ZERO
    materials_stored: Decimal = ZERO

    def with_progress(self, work_completed_this_period=None, materials_stored=None) -> "PayAppLineItemInput":
        """Return a copy with new user-entered values for columns E and/or F."""
        changes = {}
        if work_completed_this_period is not None:
            changes["work_completed_this_period"] = round_currency(work_completed_this_period)
        if materials_stored is not None:
            changes["materials_stored"] = round_currency(materials_stored)
        return replace(self, **changes)


@dataclass(frozen=True)
class LineItemCalculation:
    """Derived G703 columns G, H and I plus the line's retainage."""

    total_completed_and_stored: Decimal
    percent_complete: Decimal
    balance_to_finish: Decimal
    retainage: Decimal


@dataclass(frozen=True)
class PayAppLineItem:
    """A fully computed G703 row."""

    sov_id: str
    item_number: str
    description: str
    scheduled_value: Decimal
    work_completed_previous: Decimal
    work_completed_this_period: Decimal
    materials_stored: Decimal
    total_completed_and_stored: Decimal
    percent_complete: Decimal
    balance_to_finish: Decimal
    retainage: Decimal

    def to_input(self) -> PayAppLineItemInput:
        return PayAppLineItemInput(
            sov_id=self.sov_id,
            item_number=self.item_number,
            description=self.description,
            scheduled_value=self.scheduled_value,
            work_completed_previous=self.work_completed_previous,
            work_completed_this_period=self.work_completed_this_period,
            materials_stored=self.materials_stored,
        )


@dataclass(frozen=True)
class G703Totals:
    """Column sums of the continuation sheet."""

    total_scheduled_value: Decimal
    total_work_previous: Decimal
    total_work_this_period: Decimal
    total_materials_stored: Decimal
    total_completed_and_stored: Decimal
    total_balance_to_finish: Decimal

    @classmethod
    def zero(cls) -> "G703Totals":
        return cls(ZERO, ZERO, ZERO, ZERO, ZERO, ZERO)


@dataclass(frozen=True)
class G702Summary:
    """The nine lines of the Application and Certificate for Payment."""

    line1_original_contract_sum: Decimal
    line2_net_change_orders: Decimal
    line3_contract_sum_to_date: Decimal
    line4_total_completed_and_stored: Decimal
    line5a_retainage_on_completed: Decimal
    line5b_retainage_on_stored: Decimal
    line5c_total_retainage: Decimal
    line6_total_earned_less_retainage: Decimal
    line7_less_previous_certificates: Decimal
    line8_current_payment_due: Decimal
    line9_balance_to_finish_plus_retainage: Decimal


@dataclass(frozen=True)
class ValidationIssue:
    """A single validation error or warning.

    ``code`` identifies the rule that produced the issue; ``line_item`` holds
    the item number when the issue concerns one row of the G703.
    """

    code: str
    field: str
    message: str
    line_item: Optional[str] = None
    can_override: bool = False


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating a pay application."""

    errors: Tuple[ValidationIssue, ...] = ()
    warnings: Tuple[ValidationIssue, ...] = ()

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def codes(self) -> Tuple[str, ...]:
        return tuple(issue.code for issue in self.errors + self.warnings)


@dataclass(frozen=True)
class PayApplication:
    """Frozen snapshot of one billing period.

    Once the status leaves ``draft`` the summary and line items are final;
    later change orders or SOV edits never alter them.
    """

    application_number: int
    period_from: Optional[date]
    period_to: Optional[date]
    status: PayAppStatus
    summary: G702Summary
    line_items: Tuple[PayAppLineItem, ...] = field(default_factory=tuple)
    created_at: Optional[datetime] = None
    submitted_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None

    @property
    def is_draft(self) -> bool:
        return self.status == PayAppStatus.DRAFT

    @property
    def total_earned_less_retainage(self) -> Decimal:
        return self.summary.line6_total_earned_less_retainage

    @property
    def current_payment_due(self) -> Decimal:
        return self.summary.line8_current_payment_due

    @property
    def total_retainage(self) -> Decimal:
        return self.summary.line5c_total_retainage

    def line_item_for(self, sov_id: str) -> Optional[PayAppLineItem]:
        for item in self.line_items:
            if item.sov_id == sov_id:
                return item
        return None


@dataclass(frozen=True)
class ProjectData:
    """Everything the engine needs to know about one project.

    This is the unit exchanged with the persistence layer: the project,
    its schedule of values, its change orders and its pay application
    history, each application carrying its own line items.
    """

    project: Project
    sov_items: Tuple[ScheduleOfValuesItem, ...] = ()
    change_orders: Tuple[ChangeOrder, ...] = ()
    pay_applications: Tuple[PayApplication, ...] = ()

    def get_application(self, application_number: int) -> Optional[PayApplication]:
        for app in self.pay_applications:
            if app.application_number == application_number:
                return app
        return None

    def with_application(self, application: PayApplication) -> "ProjectData":
        """Return a copy with ``application`` added or replacing a same-numbered draft.

        A submitted application may only be replaced by its own paid copy
        (same summary and line items).
        """
        existing = self.get_application(application.application_number)
        if existing is not None and existing.status != PayAppStatus.DRAFT:
            recording_payment = (
                existing.status == PayAppStatus.SUBMITTED
                and application.status == PayAppStatus.PAID
                and application.summary == existing.summary
                and application.line_items == existing.line_items
            )
            if not recording_payment:
                raise ImmutableApplicationError(existing.application_number, existing.status.value)
        elif application.status != PayAppStatus.DRAFT:
            self.check_submission_order(application.application_number)

        others = tuple(
            app for app in self.pay_applications
            if app.application_number != application.application_number
        )
        ordered = tuple(sorted(others + (application,), key=lambda app: app.application_number))
        return replace(self, pay_applications=ordered)

    def with_change_order(self, change_order: ChangeOrder) -> "ProjectData":
        """Return a copy with ``change_order`` added or replacing the same-numbered one."""
        others = tuple(co for co in self.change_orders if co.co_number != change_order.co_number)
        ordered = tuple(sorted(others + (change_order,), key=lambda co: co.co_number))
        return replace(self, change_orders=ordered)

    def check_submission_order(self, application_number: int) -> None:
        """Raise OutOfSequenceError unless ``application_number`` is next in the chain.

        Every draft numbered below it must already be submitted, and no
        submitted or paid application may be numbered above it.
        """
        for app in self.pay_applications:
            if app.application_number == application_number:
                continue
            if app.status == PayAppStatus.DRAFT and app.application_number < application_number:
                raise OutOfSequenceError(application_number, app.application_number, app.status.value)
            if app.status != PayAppStatus.DRAFT and app.application_number > application_number:
                raise OutOfSequenceError(application_number, app.application_number, app.status.value)
