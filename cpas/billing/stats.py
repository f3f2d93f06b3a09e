"""
Project and portfolio statistics.

All figures are read from pay application snapshots; nothing here recomputes
a G702 line.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from cpas.billing.carry_forward import billing_history, latest_application, next_application_number
from cpas.billing.change_orders import net_change_orders, pending_change_orders_total
from cpas.billing.models import PayApplication, PayAppStatus, ProjectData
from cpas.billing.money import Number, ZERO, round_currency, round_percentage, to_decimal
from cpas.billing.schedule import next_billing_date


def project_percent_complete(total_completed: Number, contract_sum: Number) -> Decimal:
    """Fraction of the contract earned to date; zero for a zero contract sum."""
    contract = to_decimal(contract_sum)
    if contract == 0:
        return round_percentage(0)
    return round_percentage(to_decimal(total_completed) / contract)


@dataclass(frozen=True)
class ProjectStats:
    """Headline numbers for one project."""

    original_contract_sum: Decimal
    net_change_orders: Decimal
    pending_change_orders: Decimal
    contract_sum_to_date: Decimal
    sov_total: Decimal
    total_billed: Decimal
    percent_complete: Decimal
    retainage_held: Decimal
    application_count: int
    next_application_number: int
    next_billing_date: date


def project_stats(data: ProjectData, today: Optional[date] = None) -> ProjectStats:
    """Summarize a project from its current data and latest snapshot.

    ``total_billed`` is line 6 of the latest submitted or paid application,
    and ``retainage_held`` is that application's line 5c.
    """
    project = data.project
    net = net_change_orders(data.change_orders)
    contract_sum_to_date = round_currency(to_decimal(project.original_contract_sum) + net)
    sov_total = round_currency(sum((to_decimal(sov.scheduled_value) for sov in data.sov_items), Decimal(0)))

    latest = latest_application(data.pay_applications)
    total_billed = latest.total_earned_less_retainage if latest else ZERO
    retainage_held = latest.total_retainage if latest else ZERO

    return ProjectStats(
        original_contract_sum=round_currency(project.original_contract_sum),
        net_change_orders=net,
        pending_change_orders=pending_change_orders_total(data.change_orders),
        contract_sum_to_date=contract_sum_to_date,
        sov_total=sov_total,
        total_billed=round_currency(total_billed),
        percent_complete=project_percent_complete(total_billed, contract_sum_to_date),
        retainage_held=round_currency(retainage_held),
        application_count=len(billing_history(data.pay_applications)),
        next_application_number=next_application_number(data.pay_applications),
        next_billing_date=next_billing_date(project.billing_day, today),
    )


@dataclass(frozen=True)
class PortfolioStats:
    """Dashboard totals across many projects."""

    billed_this_month: Decimal
    outstanding: Decimal
    retainage_held: Decimal
    active_project_count: int


def portfolio_stats(
    applications: Iterable[PayApplication],
    active_project_count: int = 0,
    today: Optional[date] = None
) -> PortfolioStats:
    """Totals for a dashboard.

    Args:
        applications: Pay applications across all projects
        active_project_count: Number of active projects, passed through
        today: Reference date for "this month" (defaults to the current date)

    Returns:
        PortfolioStats
    """
    today = today or date.today()
    applications = list(applications)

    billed_this_month = sum(
        (to_decimal(app.current_payment_due) for app in applications
         if app.submitted_at is not None
         and app.submitted_at.year == today.year
         and app.submitted_at.month == today.month),
        Decimal(0)
    )
    outstanding = sum(
        (to_decimal(app.current_payment_due) for app in applications
         if app.status == PayAppStatus.SUBMITTED),
        Decimal(0)
    )
    retainage_held = sum(
        (to_decimal(app.total_retainage) for app in applications
         if app.status == PayAppStatus.SUBMITTED),
        Decimal(0)
    )

    return PortfolioStats(
        billed_this_month=round_currency(billed_this_month),
        outstanding=round_currency(outstanding),
        retainage_held=round_currency(retainage_held),
        active_project_count=active_project_count,
    )
