"""
Carry-forward of billed totals between pay applications.

A project's pay applications form an ordered chain keyed by application
number. Only submitted and paid snapshots belong to the chain; a draft is a
working copy and is never the basis of another application.
"""

import logging
from decimal import Decimal
from typing import Iterable, List, Optional

from cpas.billing.models import (
    PayApplication, PayAppLineItemInput, PayAppStatus, ScheduleOfValuesItem
)
from cpas.billing.money import ZERO, round_currency

logger = logging.getLogger(__name__)


def billing_history(applications: Iterable[PayApplication]) -> List[PayApplication]:
    """Submitted and paid applications, in application-number order."""
    return sorted(
        (app for app in applications if app.status != PayAppStatus.DRAFT),
        key=lambda app: app.application_number
    )


def prior_applications(applications: Iterable[PayApplication], application_number: int) -> List[PayApplication]:
    """The snapshots that precede ``application_number`` in the billing chain."""
    return [app for app in billing_history(applications) if app.application_number < application_number]


def latest_application(applications: Iterable[PayApplication]) -> Optional[PayApplication]:
    history = billing_history(applications)
    return history[-1] if history else None


def next_application_number(applications: Iterable[PayApplication]) -> int:
    """One more than the highest application number in use, drafts included."""
    numbers = [app.application_number for app in applications]
    return max(numbers) + 1 if numbers else 1


def sorted_schedule(sov_items: Iterable[ScheduleOfValuesItem]) -> List[ScheduleOfValuesItem]:
    return sorted(sov_items, key=lambda sov: (sov.sort_order, sov.item_number))


def resolve_carry_forward(
    sov_items: Iterable[ScheduleOfValuesItem],
    prior: Iterable[PayApplication]
) -> List[PayAppLineItemInput]:
    """Build the starting rows of a new pay application.

    Column D of each row is the previous application's column G for the same
    SOV item, matched on the SOV identifier. Items that were not billed
    before (for example lines added by a change order) start at zero, as do
    columns E and F on every row.

    Args:
        sov_items: Current schedule of values
        prior: Earlier applications; the highest-numbered one is used

    Returns:
        One PayAppLineItemInput per SOV item, in schedule order
    """
    previous = latest_application(prior)
    if previous is None:
        logger.debug("No prior application; starting all rows at zero")
    else:
        logger.debug(f"Carrying forward from application #{previous.application_number}")

    rows = []
    for sov in sorted_schedule(sov_items):
        work_completed_previous: Decimal = ZERO
        if previous is not None:
            prior_row = previous.line_item_for(sov.sov_id)
            if prior_row is not None:
                work_completed_previous = round_currency(prior_row.total_completed_and_stored)

        rows.append(PayAppLineItemInput(
            sov_id=sov.sov_id,
            item_number=sov.item_number,
            description=sov.description,
            scheduled_value=round_currency(sov.scheduled_value),
            work_completed_previous=work_completed_previous,
            work_completed_this_period=ZERO,
            materials_stored=ZERO,
        ))
    return rows
