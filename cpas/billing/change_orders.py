"""
Change-order aggregation.

Only approved change orders move the contract sum. Pending and rejected
orders are listed for information but contribute nothing to the G702.
"""

from decimal import Decimal
from typing import Iterable, List

from cpas.billing.models import ChangeOrder, ChangeOrderStatus
from cpas.billing.money import round_currency, to_decimal


def total_by_status(change_orders: Iterable[ChangeOrder], status: ChangeOrderStatus) -> Decimal:
    """Sum the amounts of all change orders with the given status."""
    status = ChangeOrderStatus(status)
    total = sum(
        (to_decimal(co.amount) for co in change_orders if co.status == status),
        Decimal(0)
    )
    return round_currency(total)


def net_change_orders(change_orders: Iterable[ChangeOrder]) -> Decimal:
    """G702 line 2: net change by approved change orders."""
    return total_by_status(change_orders, ChangeOrderStatus.APPROVED)


def pending_change_orders_total(change_orders: Iterable[ChangeOrder]) -> Decimal:
    """Total of change orders still awaiting a decision. Informational only."""
    return total_by_status(change_orders, ChangeOrderStatus.PENDING)


def approved_change_orders(change_orders: Iterable[ChangeOrder]) -> List[ChangeOrder]:
    """Approved change orders in change-order number order."""
    return sorted((co for co in change_orders if co.is_approved), key=lambda co: co.co_number)


def next_change_order_number(change_orders: Iterable[ChangeOrder]) -> int:
    numbers = [co.co_number for co in change_orders]
    return max(numbers) + 1 if numbers else 1
