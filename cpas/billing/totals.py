"""
G703 continuation-sheet totals.
"""

from decimal import Decimal
from typing import Iterable, Union

from cpas.billing.line_items import calc_total_completed_and_stored, normalize_input
from cpas.billing.models import G703Totals, PayAppLineItem, PayAppLineItemInput
from cpas.billing.money import round_currency

LineItemLike = Union[PayAppLineItemInput, PayAppLineItem]


def calculate_g703_totals(line_items: Iterable[LineItemLike]) -> G703Totals:
    """Sum the continuation-sheet columns.

    Column G is derived per row (with per-row rounding) before summation, so
    the G total always equals the sum of the rounded row totals. An empty
    sheet returns all-zero totals.

    Args:
        line_items: Rows of the continuation sheet, computed or raw

    Returns:
        G703Totals
    """
    scheduled = previous = this_period = stored = completed = balance = Decimal(0)

    for item in line_items:
        row = normalize_input(item.to_input() if isinstance(item, PayAppLineItem) else item)
        row_total = calc_total_completed_and_stored(
            row.work_completed_previous,
            row.work_completed_this_period,
            row.materials_stored
        )

        scheduled += row.scheduled_value
        previous += row.work_completed_previous
        this_period += row.work_completed_this_period
        stored += row.materials_stored
        completed += row_total
        balance += row.scheduled_value - row_total

    return G703Totals(
        total_scheduled_value=round_currency(scheduled),
        total_work_previous=round_currency(previous),
        total_work_this_period=round_currency(this_period),
        total_materials_stored=round_currency(stored),
        total_completed_and_stored=round_currency(completed),
        total_balance_to_finish=round_currency(balance),
    )
