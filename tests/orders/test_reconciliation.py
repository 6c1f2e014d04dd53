from __future__ import annotations

from datetime import datetime

from technician_payroll.core.enums import OrderStatus
from technician_payroll.orders.reconciliation import belongs_to_week, collect_week_orders, union_orders
from technician_payroll.weeks.payout_week import PayoutWeek


def test_three_row_shapes_are_unioned(orders_repo, add_order, week):
    stamped = add_order(100, paid_at=datetime(2025, 3, 2))
    legacy = add_order(200, paid_at=None, payout_week=week, created_at=datetime(2025, 2, 20))
    bare = add_order(300, paid_at=None, created_at=datetime(2025, 3, 3))
    # outside the week in every shape
    add_order(400, paid_at=datetime(2025, 3, 8))
    add_order(500, paid_at=None, payout_week=PayoutWeek(2025, 8), created_at=datetime(2025, 3, 3))
    add_order(600, paid_at=None, created_at=datetime(2025, 2, 28))

    result = collect_week_orders(orders_repo, technician_id=1, week=week)

    assert [o.order_id for o in result] == [legacy.order_id, bare.order_id, stamped.order_id]


def test_paid_at_wins_over_a_different_stored_week(add_order, week):
    # paid late on Friday UTC but stamped with next week's number by an old client
    order = add_order(100, paid_at=datetime(2025, 3, 7, 23, 0), payout_week=week.next())
    assert belongs_to_week(order, week)
    assert not belongs_to_week(order, week.next())


def test_union_dedupes_by_id(add_order):
    a = add_order(100)
    b = add_order(200)
    assert union_orders([a, b], [b, a]) == [a, b]


def test_other_technicians_are_ignored(orders_repo, add_order, week):
    add_order(100, technician_id=2)
    assert collect_week_orders(orders_repo, technician_id=1, week=week) == []


def test_pending_orders_show_up_by_creation_date(orders_repo, add_order, week):
    pending = add_order(100, status=OrderStatus.PENDING, paid_at=None, created_at=datetime(2025, 3, 5))
    assert collect_week_orders(orders_repo, technician_id=1, week=week) == [pending]
