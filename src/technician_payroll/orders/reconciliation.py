"""One canonical view of "the orders that count for a payout week".

Order rows were written in three shapes over time (paid_at stamped, payout
week only, or neither). Every report reads weekly orders through
``collect_week_orders`` so that all screens agree on the same totals.
"""

from __future__ import annotations

from typing import Iterable

from ..weeks.payout_week import PayoutWeek
from .model import Order
from .repository import OrderRepository


def belongs_to_week(order: Order, week: PayoutWeek) -> bool:
    if order.paid_at is not None:
        return week.contains(order.paid_at)
    if order.assigned_week is not None:
        return order.assigned_week == week
    return week.contains(order.created_at)


def union_orders(*sources: Iterable[Order]) -> list[Order]:
    """Concatenate sources, keeping the first row seen for each order id."""
    seen: dict[int, Order] = {}
    for source in sources:
        for order in source:
            seen.setdefault(order.order_id, order)
    return list(seen.values())


def collect_week_orders(orders: OrderRepository, *, technician_id: int, week: PayoutWeek) -> list[Order]:
    merged = union_orders(
        orders.list_paid_between(technician_id=technician_id, start=week.start, end=week.end),
        orders.list_by_payout_week(technician_id=technician_id, week=week),
        orders.list_created_between(technician_id=technician_id, start=week.start, end=week.end),
    )
    result = [o for o in merged if belongs_to_week(o, week)]
    result.sort(key=lambda o: (o.created_at, o.order_id))
    return result
