from __future__ import annotations

import itertools
import threading
from dataclasses import replace
from datetime import datetime

import pytest

from technician_payroll.adjustments.model import SalaryAdjustment
from technician_payroll.container import build_services
from technician_payroll.core.enums import (
    AdjustmentType,
    OrderStatus,
    PaymentMethod,
)
from technician_payroll.core.exceptions import ConcurrentModificationError, SchemaCompatibilityError
from technician_payroll.orders.model import Order
from technician_payroll.settlements.model import SettlementTransaction
from technician_payroll.weeks.payout_week import PayoutWeek, payout_week_for

# Saturday 2025-03-01 .. Friday 2025-03-07
WEEK = PayoutWeek(year=2025, week=9)
NOW = datetime(2025, 3, 4, 12, 0, 0)


class FakeDatabase:
    """Shared state for the in-memory repositories."""

    def __init__(self):
        self.lock = threading.Lock()
        self.orders: dict[int, Order] = {}
        self.adjustments: dict[int, SalaryAdjustment] = {}
        self.applications: list[dict] = []
        self.settlements: dict[int, SettlementTransaction] = {}
        self.missing_tables: set[str] = set()
        self._ids = itertools.count(1)

    def next_id(self) -> int:
        return next(self._ids)

    def require(self, table: str) -> None:
        if table in self.missing_tables:
            raise SchemaCompatibilityError(table)


class InMemoryOrders:
    def __init__(self, db: FakeDatabase):
        self._db = db

    def add(self, order: Order) -> Order:
        self._db.orders[order.order_id] = order
        return order

    def get(self, order_id):
        return self._db.orders.get(int(order_id))

    def create(self, order):
        oid = self._db.next_id()
        week = order.payout_week
        self._db.orders[oid] = Order(
            order_id=oid,
            technician_id=order.technician_id,
            replacement_cost=order.replacement_cost,
            total_price=order.total_price,
            payment_method=order.payment_method,
            status=order.status,
            commission_amount=order.commission_amount,
            created_at=order.created_at,
            paid_at=order.paid_at,
            payout_week=week.week if week else None,
            payout_year=week.year if week else None,
            order_number=order.order_number,
            device=order.device,
            receipt_number=order.receipt_number,
            document_url=order.document_url,
        )
        return oid

    def receipt_in_use(self, receipt_number, *, exclude_order_id=None):
        return any(
            o.receipt_number == receipt_number and o.order_id != exclude_order_id for o in self._db.orders.values()
        )

    def mark_paid(self, *, order_id, payment_method, receipt_number, commission_amount, paid_at, payout_week, document_url=None):
        o = self.get(order_id)
        if not o:
            return False
        self._db.orders[o.order_id] = replace(
            o,
            status=OrderStatus.PAID,
            payment_method=payment_method,
            receipt_number=receipt_number,
            commission_amount=commission_amount,
            paid_at=o.paid_at or paid_at,
            payout_week=o.payout_week if o.payout_week is not None else payout_week.week,
            payout_year=o.payout_year if o.payout_year is not None else payout_week.year,
            document_url=document_url or o.document_url,
        )
        return True

    def update_costs(self, *, order_id, replacement_cost, total_price, commission_amount):
        o = self.get(order_id)
        if not o:
            return False
        self._db.orders[o.order_id] = replace(
            o, replacement_cost=replacement_cost, total_price=total_price, commission_amount=commission_amount
        )
        return True

    def update_status(self, *, order_id, status):
        o = self.get(order_id)
        if not o:
            return False
        self._db.orders[o.order_id] = replace(o, status=status)
        return True

    def delete(self, order_id):
        return self._db.orders.pop(int(order_id), None) is not None

    def _for(self, technician_id):
        return [o for o in self._db.orders.values() if o.technician_id == technician_id]

    def list_paid_between(self, *, technician_id, start, end):
        return [o for o in self._for(technician_id) if o.paid_at and start <= o.paid_at <= end]

    def list_by_payout_week(self, *, technician_id, week):
        return [
            o
            for o in self._for(technician_id)
            if o.paid_at is None and (o.payout_week, o.payout_year) == (week.week, week.year)
        ]

    def list_created_between(self, *, technician_id, start, end):
        return [
            o
            for o in self._for(technician_id)
            if o.paid_at is None and o.payout_week is None and start <= o.created_at <= end
        ]


class InMemoryAdjustments:
    def __init__(self, db: FakeDatabase):
        self._db = db

    def get(self, adjustment_id):
        return self._db.adjustments.get(int(adjustment_id))

    def list_for_technician(self, technician_id):
        rows = [a for a in self._db.adjustments.values() if a.technician_id == technician_id]
        return sorted(rows, key=lambda a: (a.created_at, a.adjustment_id))

    def applied_totals(self, technician_id):
        self._db.require("salary_adjustment_applications")
        totals: dict[int, int] = {}
        for app in self._db.applications:
            if app["technician_id"] == technician_id:
                totals[app["adjustment_id"]] = totals.get(app["adjustment_id"], 0) + app["applied_amount"]
        return totals

    def create(self, adjustment):
        aid = self._db.next_id()
        self._db.adjustments[aid] = SalaryAdjustment(
            adjustment_id=aid,
            technician_id=adjustment.technician_id,
            type=adjustment.type,
            amount=adjustment.amount,
            created_at=adjustment.created_at,
            note=adjustment.note,
            available_from=adjustment.available_from,
        )
        return aid

    def delete(self, adjustment_id):
        self._db.applications = [x for x in self._db.applications if x["adjustment_id"] != int(adjustment_id)]
        return self._db.adjustments.pop(int(adjustment_id), None) is not None


class InMemorySettlements:
    def __init__(self, db: FakeDatabase, adjustments: InMemoryAdjustments):
        self._db = db
        self._adjustments = adjustments
        # Called once per record(), before the write lock; lets tests interleave writers.
        self.on_record = None

    def list_for_week(self, *, technician_id, week_start):
        self._db.require("salary_settlements")
        return [
            s for s in self._db.settlements.values() if s.technician_id == technician_id and s.week_start == week_start
        ]

    def list_history(self, *, technician_id=None, payment_method=None, start=None, end=None, limit=500):
        self._db.require("salary_settlements")
        rows = list(self._db.settlements.values())
        if technician_id:
            rows = [s for s in rows if s.technician_id == technician_id]
        if payment_method:
            rows = [s for s in rows if s.payment_method == payment_method]
        if start:
            rows = [s for s in rows if s.created_at.date() >= start]
        if end:
            rows = [s for s in rows if s.created_at.date() <= end]
        rows.sort(key=lambda s: (s.created_at, s.settlement_id), reverse=True)
        return rows[:limit]

    def loan_repayments_total(self, technician_id):
        self._db.require("salary_settlements")
        return sum(
            s.breakdown.loan_payments_total for s in self._db.settlements.values() if s.technician_id == technician_id
        )

    def record(self, draft, expectation):
        hook, self.on_record = self.on_record, None
        if hook:
            hook()

        with self._db.lock:
            self._db.require("salary_settlements")
            touched = {a.adjustment_id for a in draft.applications} | {c.adjustment_id for c in draft.carry_overs}
            if any(aid not in self._db.adjustments for aid in touched):
                raise ConcurrentModificationError("An adjustment was deleted. Reload and try again.")
            if expectation.applied_totals or draft.applications:
                current = self._adjustments.applied_totals(draft.technician_id)
                for adjustment_id, expected in expectation.applied_totals.items():
                    if current.get(adjustment_id, 0) != expected:
                        raise ConcurrentModificationError("Adjustments changed. Reload and try again.")
            settled = sum(s.resolved_total for s in self.list_for_week(technician_id=draft.technician_id, week_start=draft.week_start))
            if settled != expectation.settled_total:
                raise ConcurrentModificationError("Another settlement was registered. Reload and try again.")

            sid = self._db.next_id()
            settlement = SettlementTransaction(
                settlement_id=sid,
                technician_id=draft.technician_id,
                week_start=draft.week_start,
                amount=draft.amount,
                payment_method=draft.payment_method,
                breakdown=draft.breakdown,
                created_at=draft.created_at,
                created_by=draft.created_by,
                context=draft.context,
                note=draft.note,
            )
            self._db.settlements[sid] = settlement
            for app in draft.applications:
                self._db.applications.append(
                    {
                        "adjustment_id": app.adjustment_id,
                        "technician_id": draft.technician_id,
                        "settlement_id": sid,
                        "week_start": draft.week_start,
                        "applied_amount": app.applied_amount,
                    }
                )
            for carry in draft.carry_overs:
                adj = self._db.adjustments[carry.adjustment_id]
                self._db.adjustments[carry.adjustment_id] = replace(
                    adj, available_from=carry.available_from, note=carry.note
                )
            return settlement


@pytest.fixture
def db():
    return FakeDatabase()


@pytest.fixture
def orders_repo(db):
    return InMemoryOrders(db)


@pytest.fixture
def adjustments_repo(db):
    return InMemoryAdjustments(db)


@pytest.fixture
def settlements_repo(db, adjustments_repo):
    return InMemorySettlements(db, adjustments_repo)


@pytest.fixture
def container(orders_repo, adjustments_repo, settlements_repo):
    return build_services(
        orders_repo=orders_repo,
        adjustments_repo=adjustments_repo,
        settlements_repo=settlements_repo,
    )


@pytest.fixture
def add_order(db, orders_repo):
    def _add(
        commission,
        *,
        technician_id=1,
        status=OrderStatus.PAID,
        paid_at=NOW,
        created_at=NOW,
        payout_week=None,
        payment_method=PaymentMethod.CASH,
        replacement_cost=0,
        total_price=0,
    ):
        week = payout_week
        if week is None and paid_at is not None:
            week = payout_week_for(paid_at)
        return orders_repo.add(
            Order(
                order_id=db.next_id(),
                technician_id=technician_id,
                replacement_cost=replacement_cost,
                total_price=total_price,
                payment_method=payment_method,
                status=status,
                commission_amount=commission,
                created_at=created_at,
                paid_at=paid_at,
                payout_week=week.week if week else None,
                payout_year=week.year if week else None,
            )
        )

    return _add


@pytest.fixture
def add_adjustment(db):
    def _add(amount, *, technician_id=1, type=AdjustmentType.DISCOUNT, created_at=NOW, available_from=None, note=None):
        adj = SalaryAdjustment(
            adjustment_id=db.next_id(),
            technician_id=technician_id,
            type=type,
            amount=amount,
            created_at=created_at,
            note=note,
            available_from=available_from,
        )
        db.adjustments[adj.adjustment_id] = adj
        return adj

    return _add


@pytest.fixture
def week():
    return WEEK


@pytest.fixture
def now():
    return NOW
