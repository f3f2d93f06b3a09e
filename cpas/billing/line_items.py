"""
G703 line-item calculations.

Column letters follow the continuation sheet: C scheduled value, D work
completed in previous periods, E work completed this period, F materials
presently stored, G total completed and stored, H percent complete, I balance
to finish.
"""

from dataclasses import replace
from decimal import Decimal
from typing import Optional

from cpas.billing.models import (
    LineItemCalculation, PayAppLineItem, PayAppLineItemInput, RetainageRates
)
from cpas.billing.money import Number, round_currency, round_percentage, to_decimal


def calc_total_completed_and_stored(
    work_completed_previous: Number,
    work_completed_this_period: Number,
    materials_stored: Number
) -> Decimal:
    """Column G = D + E + F."""
    return round_currency(
        to_decimal(work_completed_previous)
        + to_decimal(work_completed_this_period)
        + to_decimal(materials_stored)
    )


def calc_percent_complete(total_completed_and_stored: Number, scheduled_value: Number) -> Decimal:
    """Column H = G / C, or zero when nothing is scheduled."""
    scheduled = to_decimal(scheduled_value)
    if scheduled == 0:
        return round_percentage(0)
    return round_percentage(to_decimal(total_completed_and_stored) / scheduled)


def calc_balance_to_finish(scheduled_value: Number, total_completed_and_stored: Number) -> Decimal:
    """Column I = C - G. Negative balances are reported by the validator, not here."""
    return round_currency(to_decimal(scheduled_value) - to_decimal(total_completed_and_stored))


def calc_line_item_retainage(
    work_completed_previous: Number,
    work_completed_this_period: Number,
    materials_stored: Number,
    rates: RetainageRates
) -> Decimal:
    """Retainage held on one line: (D + E) x work rate + F x stored rate."""
    work = to_decimal(work_completed_previous) + to_decimal(work_completed_this_period)
    return round_currency(work * rates.work + to_decimal(materials_stored) * rates.stored)


def normalize_input(item: PayAppLineItemInput) -> PayAppLineItemInput:
    """Round columns C, D, E and F to cents so that G = D + E + F holds exactly."""
    return replace(
        item,
        scheduled_value=round_currency(item.scheduled_value),
        work_completed_previous=round_currency(item.work_completed_previous),
        work_completed_this_period=round_currency(item.work_completed_this_period),
        materials_stored=round_currency(item.materials_stored),
    )


def calculate_line_item(item: PayAppLineItemInput, rates: RetainageRates) -> LineItemCalculation:
    """Calculate the derived columns for a single G703 row.

    Inputs are rounded to cents first.

    Args:
        item: Raw C, D, E, F values for the row
        rates: Project retainage rates

    Returns:
        LineItemCalculation with G, H, I and retainage
    """
    item = normalize_input(item)
    total = calc_total_completed_and_stored(
        item.work_completed_previous,
        item.work_completed_this_period,
        item.materials_stored
    )

    return LineItemCalculation(
        total_completed_and_stored=total,
        percent_complete=calc_percent_complete(total, item.scheduled_value),
        balance_to_finish=calc_balance_to_finish(item.scheduled_value, total),
        retainage=calc_line_item_retainage(
            item.work_completed_previous,
            item.work_completed_this_period,
            item.materials_stored,
            rates
        ),
    )


def build_line_item(item: PayAppLineItemInput, rates: RetainageRates) -> PayAppLineItem:
    """Combine a row's inputs and derived columns into a PayAppLineItem."""
    item = normalize_input(item)
    calc = calculate_line_item(item, rates)
    return PayAppLineItem(
        sov_id=item.sov_id,
        item_number=item.item_number,
        description=item.description,
        scheduled_value=item.scheduled_value,
        work_completed_previous=item.work_completed_previous,
        work_completed_this_period=item.work_completed_this_period,
        materials_stored=item.materials_stored,
        total_completed_and_stored=calc.total_completed_and_stored,
        percent_complete=calc.percent_complete,
        balance_to_finish=calc.balance_to_finish,
        retainage=calc.retainage,
    )


def remaining_balance(
    scheduled_value: Number,
    work_completed_previous: Number,
    materials_stored: Optional[Number] = None
) -> Decimal:
    """Amount of work still billable on a line: C - D - F.

    Used to fill column E when a line is marked complete.
    """
    return round_currency(
        to_decimal(scheduled_value) - to_decimal(work_completed_previous) - to_decimal(materials_stored)
    )
