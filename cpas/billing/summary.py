"""
G702 Application and Certificate for Payment.

The nine summary lines are computed in form order; each line depends only on
lines above it, the G703 totals, and the frozen snapshots of prior
applications. Line 7 is never recomputed from the current SOV or change
orders: it is the sum of the line 6 values that earlier applications were
certified with.
"""

from decimal import Decimal
from typing import Iterable

from cpas.billing.change_orders import net_change_orders
from cpas.billing.models import (
    ChangeOrder, G702Summary, G703Totals, PayApplication, PayAppLineItem, RetainageRates
)
from cpas.billing.money import Number, round_currency, to_decimal


def less_previous_certificates(prior_applications: Iterable[PayApplication]) -> Decimal:
    """G702 line 7: sum of line 6 over every prior application's snapshot."""
    total = sum(
        (to_decimal(app.total_earned_less_retainage) for app in prior_applications),
        Decimal(0)
    )
    return round_currency(total)


def calculate_g702_summary(
    original_contract_sum: Number,
    change_orders: Iterable[ChangeOrder],
    g703_totals: G703Totals,
    rates: RetainageRates,
    prior_applications: Iterable[PayApplication]
) -> G702Summary:
    """Calculate the G702 summary.

    The caller selects ``prior_applications``: the snapshots numbered below
    the application being calculated. Dates are not consulted.

    Args:
        original_contract_sum: Contract sum before any change orders
        change_orders: All change orders for the project, any status
        g703_totals: Continuation sheet totals for this application
        rates: Project retainage rates
        prior_applications: Earlier pay application snapshots

    Returns:
        G702Summary with every line rounded to cents
    """
    line1 = round_currency(original_contract_sum)
    line2 = net_change_orders(change_orders)
    line3 = round_currency(line1 + line2)

    line4 = round_currency(g703_totals.total_completed_and_stored)

    # Retainage on the aggregate columns, not the sum of per-row retainage.
    completed_work = to_decimal(g703_totals.total_work_previous) + to_decimal(g703_totals.total_work_this_period)
    line5a = round_currency(completed_work * rates.work)
    line5b = round_currency(to_decimal(g703_totals.total_materials_stored) * rates.stored)
    line5c = round_currency(line5a + line5b)

    line6 = round_currency(line4 - line5c)
    line7 = less_previous_certificates(prior_applications)
    line8 = round_currency(line6 - line7)
    line9 = round_currency(line3 - line4 + line5c)

    return G702Summary(
        line1_original_contract_sum=line1,
        line2_net_change_orders=line2,
        line3_contract_sum_to_date=line3,
        line4_total_completed_and_stored=line4,
        line5a_retainage_on_completed=line5a,
        line5b_retainage_on_stored=line5b,
        line5c_total_retainage=line5c,
        line6_total_earned_less_retainage=line6,
        line7_less_previous_certificates=line7,
        line8_current_payment_due=line8,
        line9_balance_to_finish_plus_retainage=line9,
    )


def retainage_variance(line_items: Iterable[PayAppLineItem], summary: G702Summary) -> Decimal:
    """Difference between the sum of per-row retainage and G702 line 5c.

    Row retainage is rounded per row while line 5c is rounded on the column
    totals, so the two may differ by at most half a cent per row. Anything
    larger points at a carry-forward or aggregation defect.
    """
    row_total = sum((to_decimal(item.retainage) for item in line_items), Decimal(0))
    return round_currency(row_total - summary.line5c_total_retainage)
