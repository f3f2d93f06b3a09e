"""
G702/G703 billing engine.

Every financial figure shown on screen, printed or exported is produced by
this package. Other layers import from here rather than repeating a formula.
"""

from cpas.billing.carry_forward import (
    billing_history, latest_application, next_application_number,
    prior_applications, resolve_carry_forward
)
from cpas.billing.change_orders import (
    net_change_orders, next_change_order_number, pending_change_orders_total, total_by_status
)
from cpas.billing.engine import BillingEngine, PayAppCalculation, calculate_pay_application
from cpas.billing.exceptions import (
    BillingError, FinalizationBlockedError, ImmutableApplicationError, InvalidTransitionError,
    OutOfSequenceError
)
from cpas.billing.lifecycle import PayApplicationDraft, mark_paid
from cpas.billing.line_items import build_line_item, calculate_line_item, remaining_balance
from cpas.billing.models import (
    ChangeOrder, ChangeOrderStatus, G702Summary, G703Totals, LineItemCalculation,
    PayApplication, PayAppLineItem, PayAppLineItemInput, PayAppStatus, Project,
    ProjectData, RetainageRates, ScheduleOfValuesItem, ValidationIssue, ValidationResult
)
from cpas.billing.money import (
    CURRENCY_TOLERANCE, format_currency, format_percent, parse_currency_input,
    parse_percentage_input, round_currency, round_percentage
)
from cpas.billing.summary import calculate_g702_summary, less_previous_certificates, retainage_variance
from cpas.billing.totals import calculate_g703_totals
from cpas.billing.validation import validate_pay_application

__all__ = [
    "BillingEngine", "BillingError", "CURRENCY_TOLERANCE", "ChangeOrder", "ChangeOrderStatus",
    "FinalizationBlockedError", "G702Summary", "G703Totals", "ImmutableApplicationError",
    "InvalidTransitionError", "LineItemCalculation", "OutOfSequenceError", "PayAppCalculation",
    "PayAppLineItem", "PayAppLineItemInput", "PayAppStatus", "PayApplication", "PayApplicationDraft", "Project",
    "ProjectData", "RetainageRates", "ScheduleOfValuesItem", "ValidationIssue", "ValidationResult",
    "billing_history", "build_line_item", "calculate_g702_summary", "calculate_g703_totals",
    "calculate_line_item", "calculate_pay_application", "format_currency", "format_percent",
    "latest_application", "less_previous_certificates", "mark_paid", "net_change_orders",
    "next_application_number", "next_change_order_number", "parse_currency_input",
    "parse_percentage_input", "pending_change_orders_total", "prior_applications",
    "remaining_balance", "resolve_carry_forward", "retainage_variance", "round_currency",
    "round_percentage", "total_by_status", "validate_pay_application",
]
