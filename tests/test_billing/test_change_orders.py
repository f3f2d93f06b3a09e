"""
Tests for change-order aggregation and status transitions.
"""

from datetime import date
from decimal import Decimal

import pytest

from cpas.billing.change_orders import (
    approved_change_orders, net_change_orders, next_change_order_number,
    pending_change_orders_total, total_by_status
)
from cpas.billing.exceptions import InvalidTransitionError
from cpas.billing.models import ChangeOrder, ChangeOrderStatus


@pytest.fixture
def change_orders():
    return [
        ChangeOrder(3, "Owner credit", Decimal("-2000.00"), ChangeOrderStatus.APPROVED, date(2024, 3, 1)),
        ChangeOrder(1, "Added fence", Decimal("5000.00"), ChangeOrderStatus.APPROVED, date(2024, 2, 1)),
        ChangeOrder(2, "Upgraded fixtures", Decimal("3000.00"), ChangeOrderStatus.PENDING),
        ChangeOrder(4, "Extra paving", Decimal("1000.00"), ChangeOrderStatus.REJECTED),
    ]


class TestAggregation:
    """Tests for change-order totals."""

    def test_net_counts_only_approved(self, change_orders):
        assert net_change_orders(change_orders) == Decimal("3000.00")

    def test_pending_total(self, change_orders):
        assert pending_change_orders_total(change_orders) == Decimal("3000.00")

    def test_total_by_status_accepts_value(self, change_orders):
        assert total_by_status(change_orders, "rejected") == Decimal("1000.00")

    def test_no_change_orders(self):
        assert net_change_orders([]) == Decimal("0.00")

    def test_approved_in_number_order(self, change_orders):
        assert [co.co_number for co in approved_change_orders(change_orders)] == [1, 3]

    def test_next_number(self, change_orders):
        assert next_change_order_number(change_orders) == 5
        assert next_change_order_number([]) == 1


class TestTransitions:
    """Tests for approving and rejecting change orders."""

    def test_approve_pending(self):
        co = ChangeOrder(1, "Added fence", Decimal("5000.00"))
        approved = co.approve(on=date(2024, 2, 1))

        assert approved.status == ChangeOrderStatus.APPROVED
        assert approved.date_approved == date(2024, 2, 1)
        assert co.status == ChangeOrderStatus.PENDING

    def test_reject_pending(self):
        rejected = ChangeOrder(1, "Added fence", Decimal("5000.00")).reject()

        assert rejected.status == ChangeOrderStatus.REJECTED
        assert rejected.date_approved is None

    def test_rejection_is_final(self):
        rejected = ChangeOrder(1, "Added fence", Decimal("5000.00")).reject()

        with pytest.raises(InvalidTransitionError):
            rejected.approve()

    def test_cannot_approve_twice(self):
        approved = ChangeOrder(1, "Added fence", Decimal("5000.00")).approve()

        with pytest.raises(InvalidTransitionError):
            approved.approve()
