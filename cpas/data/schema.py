"""
Project file schema.

Pydantic models describing the shape of a project file. Validating the file
against these models before any calculation keeps malformed input (wrong
types, missing fields, out-of-range rates) away from the summary functions.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, Any, List, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator, model_validator

from cpas.billing.models import ChangeOrderStatus, PayAppStatus
from cpas.billing.money import parse_percentage_input, to_decimal


class _Record(BaseModel):
    model_config = ConfigDict(extra="forbid", use_enum_values=False)


def _to_label(value: Any) -> Any:
    # Item numbers are labels; YAML reads "1" as an int.
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


Label = Annotated[str, BeforeValidator(_to_label)]


def _to_amount(value: Any) -> Any:
    # Floats go through repr so 0.1 stays 0.1.
    if isinstance(value, float):
        return to_decimal(value)
    return value


Amount = Annotated[Decimal, BeforeValidator(_to_amount)]


class ProjectSchema(_Record):
    """Project header."""

    id: Label
    name: str
    number: Optional[Label] = None
    address: Optional[str] = None
    owner: Optional[str] = None
    contractor: Optional[str] = None
    architect: Optional[str] = None
    original_contract_sum: Amount = Field(ge=0)
    retainage_rate_work: Optional[Amount] = Field(default=None, ge=0, le=1)
    retainage_rate_stored: Optional[Amount] = Field(default=None, ge=0, le=1)
    contract_date: Optional[date] = None
    billing_day: Optional[int] = Field(default=None, ge=1, le=28)

    @field_validator("retainage_rate_work", "retainage_rate_stored", mode="before")
    @classmethod
    def _percent_text(cls, value: Any) -> Any:
        if isinstance(value, str) and value.strip().endswith("%"):
            return parse_percentage_input(value)
        return value


class ScheduleItemSchema(_Record):
    """One schedule-of-values line."""

    id: Label
    item_number: Label
    description: str = ""
    scheduled_value: Amount = Field(ge=0)
    sort_order: int = 0
    change_order_number: Optional[int] = None


class ChangeOrderSchema(_Record):
    """One change order."""

    number: int = Field(ge=1)
    description: str = ""
    amount: Amount
    status: ChangeOrderStatus = ChangeOrderStatus.PENDING
    date_approved: Optional[date] = None

    @model_validator(mode="after")
    def _approval_date_only_when_approved(self) -> "ChangeOrderSchema":
        if self.date_approved is not None and self.status != ChangeOrderStatus.APPROVED:
            raise ValueError(
                f"change order {self.number} has an approval date but status '{self.status.value}'"
            )
        return self


class LineItemSchema(_Record):
    """One G703 row of a saved pay application.

    The derived columns are optional: a saved snapshot carries them, a
    hand-written draft may leave them out.
    """

    sov_id: Label
    item_number: Label
    description: str = ""
    scheduled_value: Amount = Field(ge=0)
    work_completed_previous: Amount = Decimal(0)
    work_completed_this_period: Amount = Decimal(0)
    materials_stored: Amount = Decimal(0)
    total_completed_and_stored: Optional[Amount] = None
    percent_complete: Optional[Amount] = None
    balance_to_finish: Optional[Amount] = None
    retainage: Optional[Amount] = None

    def has_derived_columns(self) -> bool:
        return None not in (
            self.total_completed_and_stored, self.percent_complete,
            self.balance_to_finish, self.retainage
        )


class SummarySchema(_Record):
    """The nine G702 lines of a saved pay application."""

    line1_original_contract_sum: Amount
    line2_net_change_orders: Amount
    line3_contract_sum_to_date: Amount
    line4_total_completed_and_stored: Amount
    line5a_retainage_on_completed: Amount
    line5b_retainage_on_stored: Amount
    line5c_total_retainage: Amount
    line6_total_earned_less_retainage: Amount
    line7_less_previous_certificates: Amount
    line8_current_payment_due: Amount
    line9_balance_to_finish_plus_retainage: Amount


class PayApplicationSchema(_Record):
    """One saved pay application."""

    number: int = Field(ge=1)
    period_from: Optional[date] = None
    period_to: Optional[date] = None
    status: PayAppStatus = PayAppStatus.DRAFT
    created_at: Optional[datetime] = None
    submitted_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    summary: Optional[SummarySchema] = None
    line_items: List[LineItemSchema] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_snapshot(self) -> "PayApplicationSchema":
        if self.period_from and self.period_to and self.period_to < self.period_from:
            raise ValueError(f"pay application {self.number} ends before it starts")
        if self.status != PayAppStatus.DRAFT and self.summary is None:
            raise ValueError(f"pay application {self.number} is {self.status.value} but has no summary")
        return self


class ProjectFileSchema(_Record):
    """A complete project file."""

    project: ProjectSchema
    schedule_of_values: List[ScheduleItemSchema] = Field(default_factory=list)
    change_orders: List[ChangeOrderSchema] = Field(default_factory=list)
    pay_applications: List[PayApplicationSchema] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_unique_keys(self) -> "ProjectFileSchema":
        for label, keys in (
            ("schedule of values id", [item.id for item in self.schedule_of_values]),
            ("change order number", [co.number for co in self.change_orders]),
            ("pay application number", [app.number for app in self.pay_applications]),
        ):
            duplicates = sorted({str(key) for key in keys if keys.count(key) > 1})
            if duplicates:
                raise ValueError(f"duplicate {label}: {', '.join(duplicates)}")
        return self
