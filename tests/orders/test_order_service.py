from __future__ import annotations

from datetime import datetime

import pytest

from technician_payroll.core.enums import OrderStatus, PaymentMethod, Role
from technician_payroll.core.exceptions import AuthorizationError, DocumentLookupError, ValidationError
from technician_payroll.orders.reconciliation import collect_week_orders
from technician_payroll.orders.service import OrderService
from technician_payroll.receipts.validator import DocumentLookup
from technician_payroll.weeks.payout_week import PayoutWeek


class FakeValidator:
    def __init__(self, *, fail=False):
        self.fail = fail
        self.calls = []

    def lookup(self, receipt_number):
        self.calls.append(receipt_number)
        if self.fail:
            raise DocumentLookupError("service down")
        return DocumentLookup(exists=True, document={"number": receipt_number, "url": f"https://docs/{receipt_number}"})


def _pending(service, **kwargs):
    params = dict(
        technician_id=1,
        replacement_cost=20000,
        total_price=120000,
        payment_method=PaymentMethod.CASH,
        now=datetime(2025, 3, 4, 9, 0),
    )
    params.update(kwargs)
    return service.create_order(**params)


def test_create_order_computes_commission(orders_repo):
    service = OrderService(orders_repo)
    order = orders_repo.get(_pending(service))

    assert order.status == OrderStatus.PENDING
    assert order.commission_amount == 40000
    assert order.paid_at is None
    assert order.assigned_week is None


def test_create_with_receipt_is_paid_and_gets_week(orders_repo):
    service = OrderService(orders_repo, validator=FakeValidator())
    order = orders_repo.get(_pending(service, receipt_number="B-1"))

    assert order.status == OrderStatus.PAID
    assert order.paid_at == datetime(2025, 3, 4, 9, 0)
    assert order.assigned_week == PayoutWeek(2025, 9)
    assert order.document_url == "https://docs/B-1"


def test_mark_paid_assigns_week_once(orders_repo):
    service = OrderService(orders_repo)
    oid = _pending(service)

    paid = service.mark_paid(order_id=oid, receipt_number="B-2", now=datetime(2025, 3, 6, 18, 0))
    assert paid.assigned_week == PayoutWeek(2025, 9)

    # edited weeks later: the commission follows, the week and paid_at stay
    edited = service.update_costs(order_id=oid, replacement_cost=0, total_price=120000)
    assert edited.assigned_week == PayoutWeek(2025, 9)
    assert edited.paid_at == datetime(2025, 3, 6, 18, 0)
    assert edited.commission_amount == 48000


def test_paid_order_cannot_be_marked_paid_again(orders_repo):
    service = OrderService(orders_repo)
    oid = _pending(service)
    service.mark_paid(order_id=oid, receipt_number="B-2", now=datetime(2025, 3, 6, 18, 0))

    with pytest.raises(ValidationError):
        service.mark_paid(
            order_id=oid, receipt_number="B-2", payment_method=PaymentMethod.CARD, now=datetime(2025, 4, 20, 10, 0)
        )

    stored = orders_repo.get(oid)
    assert stored.paid_at == datetime(2025, 3, 6, 18, 0)
    assert stored.payment_method == PaymentMethod.CASH
    assert stored.commission_amount == 40000


def test_legacy_paid_row_stays_in_its_week(orders_repo, add_order):
    # paid before paid_at existed: only the payout week was stored
    legacy = add_order(10000, paid_at=None, payout_week=PayoutWeek(2025, 8), created_at=datetime(2025, 2, 24))
    service = OrderService(orders_repo)

    with pytest.raises(ValidationError):
        service.mark_paid(order_id=legacy.order_id, receipt_number="R-9", now=datetime(2025, 3, 4))

    stored = orders_repo.get(legacy.order_id)
    assert stored.paid_at is None
    assert stored.commission_amount == 10000
    assert [o.order_id for o in collect_week_orders(orders_repo, technician_id=1, week=PayoutWeek(2025, 8))] == [
        legacy.order_id
    ]
    assert collect_week_orders(orders_repo, technician_id=1, week=PayoutWeek(2025, 9)) == []


def test_pending_row_with_stored_week_is_not_stamped(orders_repo, add_order):
    pending = add_order(
        10000,
        status=OrderStatus.PENDING,
        paid_at=None,
        payout_week=PayoutWeek(2025, 8),
        created_at=datetime(2025, 2, 24),
    )

    paid = OrderService(orders_repo).mark_paid(order_id=pending.order_id, receipt_number="R-10", now=datetime(2025, 3, 4))

    assert paid.status == OrderStatus.PAID
    assert paid.paid_at is None
    assert paid.assigned_week == PayoutWeek(2025, 8)
    assert collect_week_orders(orders_repo, technician_id=1, week=PayoutWeek(2025, 9)) == []


def test_mark_paid_recomputes_commission_for_new_method(orders_repo):
    service = OrderService(orders_repo)
    oid = _pending(service, replacement_cost=19000, total_price=119000)

    paid = service.mark_paid(order_id=oid, receipt_number="B-3", payment_method=PaymentMethod.CARD, now=datetime(2025, 3, 4))
    assert paid.payment_method == PaymentMethod.CARD
    assert paid.commission_amount == 32400


def test_mark_paid_without_method_keeps_stored_commission(orders_repo, add_order):
    order = add_order(
        12345,
        status=OrderStatus.PENDING,
        paid_at=None,
        payment_method=PaymentMethod.NONE,
        replacement_cost=0,
        total_price=100000,
    )
    paid = OrderService(orders_repo).mark_paid(order_id=order.order_id, receipt_number="B-4", now=datetime(2025, 3, 4))
    assert paid.commission_amount == 12345
    assert paid.status == OrderStatus.PAID


def test_duplicate_receipt_rejected(orders_repo):
    service = OrderService(orders_repo)
    _pending(service, receipt_number="B-5")
    other = _pending(service)

    with pytest.raises(ValidationError):
        service.mark_paid(order_id=other, receipt_number="B-5")


def test_receipt_required(orders_repo):
    service = OrderService(orders_repo)
    oid = _pending(service)
    with pytest.raises(ValidationError):
        service.mark_paid(order_id=oid, receipt_number="  ")


def test_receipt_lookup_failure_never_blocks_payment(orders_repo):
    validator = FakeValidator(fail=True)
    service = OrderService(orders_repo, validator=validator)
    oid = _pending(service)

    paid = service.mark_paid(order_id=oid, receipt_number="B-6", now=datetime(2025, 3, 4))
    assert paid.status == OrderStatus.PAID
    assert paid.document_url is None
    assert validator.calls == ["B-6"]


def test_returned_order_keeps_its_week(orders_repo):
    service = OrderService(orders_repo)
    oid = _pending(service)
    service.mark_paid(order_id=oid, receipt_number="B-7", now=datetime(2025, 3, 4))

    returned = service.change_status(order_id=oid, status=OrderStatus.RETURNED)
    assert returned.is_penalty
    assert returned.assigned_week == PayoutWeek(2025, 9)

    with pytest.raises(ValidationError):
        service.mark_paid(order_id=oid, receipt_number="B-7")


def test_status_transitions_are_checked(orders_repo):
    service = OrderService(orders_repo)
    oid = _pending(service)

    with pytest.raises(ValidationError):
        service.change_status(order_id=oid, status=OrderStatus.PAID)
    with pytest.raises(ValidationError):
        service.change_status(order_id=oid, status=OrderStatus.RETURNED)

    assert service.change_status(order_id=oid, status=OrderStatus.CANCELLED).status == OrderStatus.CANCELLED


def test_negative_amounts_rejected(orders_repo):
    service = OrderService(orders_repo)
    with pytest.raises(ValidationError):
        _pending(service, total_price=-1)


def test_delete_order_is_admin_only(orders_repo):
    service = OrderService(orders_repo)
    oid = _pending(service)

    with pytest.raises(AuthorizationError):
        service.delete_order(current_role=Role.TECHNICIAN, order_id=oid)

    deleted = service.delete_order(current_role=Role.ADMIN, order_id=oid)
    assert deleted.technician_id == 1
    assert orders_repo.get(oid) is None
