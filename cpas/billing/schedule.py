"""
Billing calendar helpers.

Projects bill on a fixed day of the month (1-28, so the day exists in every
month). These helpers take ``today`` explicitly; it defaults to the current
date only when omitted.
"""

from datetime import date, timedelta
from typing import Optional, Tuple

from cpas.billing.models import PayApplication


def _clamp_billing_day(billing_day: int) -> int:
    return min(max(int(billing_day), 1), 28)


def _add_month(year: int, month: int) -> Tuple[int, int]:
    if month == 12:
        return year + 1, 1
    return year, month + 1


def next_billing_date(billing_day: int, today: Optional[date] = None) -> date:
    """The next billing date strictly after ``today``.

    Args:
        billing_day: Day of month the project bills on
        today: Reference date (defaults to the current date)

    Returns:
        This month's billing date if it is still ahead, else next month's
    """
    today = today or date.today()
    day = _clamp_billing_day(billing_day)

    candidate = date(today.year, today.month, day)
    if candidate <= today:
        year, month = _add_month(today.year, today.month)
        candidate = date(year, month, day)
    return candidate


def days_until_billing(billing_day: int, today: Optional[date] = None) -> int:
    today = today or date.today()
    return (next_billing_date(billing_day, today) - today).days


def default_period(
    last_application: Optional[PayApplication],
    contract_date: Optional[date],
    billing_day: int,
    today: Optional[date] = None
) -> Tuple[date, date]:
    """Suggest the period covered by a new pay application.

    The period starts the day after the last application's period ended, or
    on the contract date for the first application. It ends on the billing
    day of the current month, moving to later months until the end is not
    before the start.

    Args:
        last_application: Most recent application in the billing chain, if any
        contract_date: Contract date of the project
        billing_day: Day of month the project bills on
        today: Reference date (defaults to the current date)

    Returns:
        (period_from, period_to)
    """
    today = today or date.today()
    day = _clamp_billing_day(billing_day)

    if last_application is not None and last_application.period_to is not None:
        period_from = last_application.period_to + timedelta(days=1)
    else:
        period_from = contract_date or today

    year, month = today.year, today.month
    period_to = date(year, month, day)
    while period_to < period_from:
        year, month = _add_month(year, month)
        period_to = date(year, month, day)

    return period_from, period_to
