"""
Pay application validation.

Every rule is evaluated independently and every finding is collected; the
application may be finalized only when there are no errors. Warnings describe
unusual but legitimate states that a person has to accept consciously.

Rules:
    sov_mismatch (error): SOV total differs from the contract sum to date.
    line_item_overbilled (warning): a row is billed beyond its scheduled value.
    calculation_mismatch (error): G702 line 4 differs from the G703 total.
        This one means the pipeline itself is broken and is logged at ERROR.
    negative_payment_due (warning): line 8 is below zero.
    negative_input (error): a row has negative work this period or stored
        materials.
"""

import logging
from typing import Iterable, List, Union

from cpas.billing.line_items import calc_total_completed_and_stored, normalize_input
from cpas.billing.models import (
    G702Summary, G703Totals, PayAppLineItem, PayAppLineItemInput,
    ValidationIssue, ValidationResult
)
from cpas.billing.money import CURRENCY_TOLERANCE, format_currency

logger = logging.getLogger(__name__)

SOV_MISMATCH = "sov_mismatch"
LINE_ITEM_OVERBILLED = "line_item_overbilled"
CALCULATION_MISMATCH = "calculation_mismatch"
NEGATIVE_PAYMENT_DUE = "negative_payment_due"
NEGATIVE_INPUT = "negative_input"


def _as_input(item: Union[PayAppLineItemInput, PayAppLineItem]) -> PayAppLineItemInput:
    if isinstance(item, PayAppLineItem):
        item = item.to_input()
    return normalize_input(item)


def check_sov_matches_contract(summary: G702Summary, totals: G703Totals) -> List[ValidationIssue]:
    sov_total = totals.total_scheduled_value
    contract_sum = summary.line3_contract_sum_to_date

    if abs(sov_total - contract_sum) > CURRENCY_TOLERANCE:
        return [ValidationIssue(
            code=SOV_MISMATCH,
            field="schedule_of_values",
            message=(
                f"Your Schedule of Values total ({format_currency(sov_total)}) does not match "
                f"the contract sum ({format_currency(contract_sum)}). Add change orders to the "
                f"SOV or adjust line items."
            ),
        )]
    return []


def check_overbilling(line_items: List[PayAppLineItemInput]) -> List[ValidationIssue]:
    issues = []
    for item in line_items:
        total = calc_total_completed_and_stored(
            item.work_completed_previous,
            item.work_completed_this_period,
            item.materials_stored
        )
        if total > item.scheduled_value + CURRENCY_TOLERANCE:
            issues.append(ValidationIssue(
                code=LINE_ITEM_OVERBILLED,
                field="line_item",
                line_item=item.item_number,
                message=(
                    f"Line item {item.item_number} billed ({format_currency(total)}) exceeds "
                    f"scheduled value ({format_currency(item.scheduled_value)})."
                ),
                can_override=True,
            ))
    return issues


def check_summary_matches_sheet(summary: G702Summary, totals: G703Totals) -> List[ValidationIssue]:
    line4 = summary.line4_total_completed_and_stored
    sheet_total = totals.total_completed_and_stored

    if abs(line4 - sheet_total) > CURRENCY_TOLERANCE:
        logger.error(
            f"G702 line 4 ({line4}) does not match G703 total completed and stored ({sheet_total})"
        )
        return [ValidationIssue(
            code=CALCULATION_MISMATCH,
            field="calculation_mismatch",
            message=(
                "Internal calculation error: G702 Line 4 does not match G703 total. "
                "Please contact support."
            ),
        )]
    return []


def check_payment_due(summary: G702Summary) -> List[ValidationIssue]:
    payment_due = summary.line8_current_payment_due

    if payment_due < -CURRENCY_TOLERANCE:
        return [ValidationIssue(
            code=NEGATIVE_PAYMENT_DUE,
            field="current_payment_due",
            message=(
                f"Current payment due is negative ({format_currency(payment_due)}). This may "
                f"indicate overbilling in a previous period. Please review."
            ),
            can_override=True,
        )]
    return []


def check_negative_inputs(line_items: List[PayAppLineItemInput]) -> List[ValidationIssue]:
    issues = []
    for item in line_items:
        if item.work_completed_this_period < 0:
            issues.append(ValidationIssue(
                code=NEGATIVE_INPUT,
                field="work_completed_this_period",
                line_item=item.item_number,
                message=f"Line item {item.item_number} has a negative value for work completed this period.",
            ))
        if item.materials_stored < 0:
            issues.append(ValidationIssue(
                code=NEGATIVE_INPUT,
                field="materials_stored",
                line_item=item.item_number,
                message=f"Line item {item.item_number} has a negative value for materials stored.",
            ))
    return issues


def validate_pay_application(
    line_items: Iterable[Union[PayAppLineItemInput, PayAppLineItem]],
    summary: G702Summary,
    totals: G703Totals
) -> ValidationResult:
    """Validate a computed pay application.

    Args:
        line_items: G703 rows the summary was computed from
        summary: Computed G702 summary
        totals: Computed G703 totals

    Returns:
        ValidationResult; ``is_valid`` is true when there are no errors
    """
    rows = [_as_input(item) for item in line_items]

    errors: List[ValidationIssue] = []
    warnings: List[ValidationIssue] = []

    errors.extend(check_sov_matches_contract(summary, totals))
    warnings.extend(check_overbilling(rows))
    errors.extend(check_summary_matches_sheet(summary, totals))
    warnings.extend(check_payment_due(summary))
    errors.extend(check_negative_inputs(rows))

    for issue in errors:
        if issue.code != CALCULATION_MISMATCH:
            logger.info(f"Validation error [{issue.code}]: {issue.message}")
    for issue in warnings:
        logger.info(f"Validation warning [{issue.code}]: {issue.message}")

    return ValidationResult(errors=tuple(errors), warnings=tuple(warnings))
