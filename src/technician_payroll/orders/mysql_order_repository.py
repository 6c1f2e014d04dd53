from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional, Sequence

from ..common.validators import parse_payment_method
from ..core.enums import OrderStatus, PaymentMethod
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, schema_guard
from ..weeks.payout_week import PayoutWeek
from .model import NewOrder, Order
from .repository import OrderRepository

_COLUMNS = """
    order_id, technician_id, order_number, device, replacement_cost, total_price, payment_method,
    receipt_number, document_url, status, commission_amount, created_at, paid_at, payout_week, payout_year
"""


def _to_order(r: Dict[str, Any]) -> Order:
    return Order(
        order_id=int(r["order_id"]),
        technician_id=int(r["technician_id"]),
        replacement_cost=int(r["replacement_cost"] or 0),
        total_price=int(r["total_price"] or 0),
        payment_method=parse_payment_method(r.get("payment_method")),
        status=OrderStatus(r["status"]),
        commission_amount=int(r["commission_amount"] or 0),
        created_at=r["created_at"],
        paid_at=r.get("paid_at"),
        payout_week=r.get("payout_week"),
        payout_year=r.get("payout_year"),
        order_number=r.get("order_number"),
        device=r.get("device"),
        receipt_number=r.get("receipt_number"),
        document_url=r.get("document_url"),
    )


class MySQLOrderRepository(OrderRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def _select(self, where: str, params: tuple) -> Sequence[Order]:
        with schema_guard("orders"), db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM orders WHERE {where} ORDER BY created_at, order_id", params)
            return [_to_order(r) for r in fetchall(cur)]

    def get(self, order_id: int) -> Optional[Order]:
        with schema_guard("orders"), db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM orders WHERE order_id=%s", (int(order_id),))
            r = fetchone(cur)
            return _to_order(r) if r else None

    def create(self, order: NewOrder) -> int:
        week = order.payout_week
        with schema_guard("orders"), db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO orders (technician_id, order_number, device, replacement_cost, total_price,
                                    payment_method, receipt_number, document_url, status, commission_amount,
                                    created_at, paid_at, payout_week, payout_year)
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                """,
                (
                    order.technician_id,
                    order.order_number,
                    order.device,
                    order.replacement_cost,
                    order.total_price,
                    order.payment_method.value,
                    order.receipt_number,
                    order.document_url,
                    order.status.value,
                    order.commission_amount,
                    order.created_at,
                    order.paid_at,
                    week.week if week else None,
                    week.year if week else None,
                ),
            )
            return int(cur.lastrowid)

    def receipt_in_use(self, receipt_number: str, *, exclude_order_id: Optional[int] = None) -> bool:
        with schema_guard("orders"), db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT order_id FROM orders WHERE receipt_number=%s AND order_id<>%s LIMIT 1",
                (receipt_number, int(exclude_order_id or 0)),
            )
            return fetchone(cur) is not None

    def mark_paid(
        self,
        *,
        order_id: int,
        payment_method: PaymentMethod,
        receipt_number: str,
        commission_amount: int,
        paid_at: Optional[datetime],
        payout_week: PayoutWeek,
        document_url: Optional[str] = None,
    ) -> bool:
        with schema_guard("orders"), db_cursor(self._conn_factory) as (_, cur):
            # COALESCE keeps a payout week that was already assigned.
            cur.execute(
                """
                UPDATE orders
                SET status='paid', payment_method=%s, receipt_number=%s, commission_amount=%s,
                    document_url=COALESCE(%s, document_url),
                    paid_at=COALESCE(paid_at, %s),
                    payout_week=COALESCE(payout_week, %s),
                    payout_year=COALESCE(payout_year, %s)
                WHERE order_id=%s
                """,
                (
                    payment_method.value,
                    receipt_number,
                    int(commission_amount),
                    document_url,
                    paid_at,
                    payout_week.week,
                    payout_week.year,
                    int(order_id),
                ),
            )
            return cur.rowcount > 0

    def update_costs(self, *, order_id: int, replacement_cost: int, total_price: int, commission_amount: int) -> bool:
        with schema_guard("orders"), db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE orders SET replacement_cost=%s, total_price=%s, commission_amount=%s WHERE order_id=%s",
                (int(replacement_cost), int(total_price), int(commission_amount), int(order_id)),
            )
            return cur.rowcount > 0

    def update_status(self, *, order_id: int, status: OrderStatus) -> bool:
        with schema_guard("orders"), db_cursor(self._conn_factory) as (_, cur):
            cur.execute("UPDATE orders SET status=%s WHERE order_id=%s", (status.value, int(order_id)))
            return cur.rowcount > 0

    def delete(self, order_id: int) -> bool:
        with schema_guard("orders"), db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM orders WHERE order_id=%s", (int(order_id),))
            return cur.rowcount > 0

    def list_paid_between(self, *, technician_id: int, start: datetime, end: datetime) -> Sequence[Order]:
        return self._select(
            "technician_id=%s AND paid_at IS NOT NULL AND paid_at BETWEEN %s AND %s",
            (int(technician_id), start, end),
        )

    def list_by_payout_week(self, *, technician_id: int, week: PayoutWeek) -> Sequence[Order]:
        return self._select(
            "technician_id=%s AND paid_at IS NULL AND payout_week=%s AND payout_year=%s",
            (int(technician_id), week.week, week.year),
        )

    def list_created_between(self, *, technician_id: int, start: datetime, end: datetime) -> Sequence[Order]:
        return self._select(
            "technician_id=%s AND paid_at IS NULL AND payout_week IS NULL AND created_at BETWEEN %s AND %s",
            (int(technician_id), start, end),
        )
