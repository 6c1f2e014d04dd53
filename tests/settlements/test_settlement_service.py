from __future__ import annotations

import threading
from datetime import date, datetime

import pytest

from technician_payroll.core.enums import AdjustmentType, Role, SettlementContext, SettlementPaymentMethod
from technician_payroll.core.exceptions import (
    AuthorizationError,
    ConcurrentModificationError,
    SchemaCompatibilityError,
    ValidationError,
)
from technician_payroll.settlements.model import PaymentSplit

EARLIER = datetime(2025, 2, 20, 10, 0)


@pytest.fixture
def service(container):
    return container.settlement_service


@pytest.fixture
def settle(service, week, now):
    def _settle(amount, **kwargs):
        params = dict(
            current_role=Role.ADMIN,
            technician_id=1,
            amount=amount,
            payment_method=SettlementPaymentMethod.CASH,
            week=week,
            created_by=7,
            now=now,
        )
        params.update(kwargs)
        return service.record_settlement(**params)

    return _settle


def _applied(db, adjustment_id):
    return sum(a["applied_amount"] for a in db.applications if a["adjustment_id"] == adjustment_id)


def test_record_writes_settlement_applications_and_breakdown(db, add_order, add_adjustment, settle):
    add_order(40000)
    adj = add_adjustment(10000, created_at=EARLIER, note="advance")

    settlement = settle(30000)

    assert settlement.amount == 30000
    assert settlement.created_by == 7
    assert settlement.week_start == date(2025, 3, 1)
    assert settlement.breakdown.base_amount == 40000
    assert settlement.breakdown.selected_adjustments_total == 10000
    [line] = settlement.breakdown.adjustments
    assert (line.applied, line.omitted, line.carried_to_next_week) == (10000, 0, 0)
    assert _applied(db, adj.adjustment_id) == 10000
    assert [a["settlement_id"] for a in db.applications] == [settlement.settlement_id]


def test_weekly_totals_reconcile_deductions_as_settled(add_order, add_adjustment, settle, service, week):
    add_order(40000)
    add_adjustment(10000, created_at=EARLIER)
    settle(30000)

    totals = service.get_weekly_totals(technician_id=1, week=week)
    assert totals.settled_total == 40000
    assert totals.gross_available == 0
    assert totals.total_adjustable == 0
    assert totals.min_payable == totals.max_payable == 0


def test_scenario_c_leftover_is_deferred_to_next_week(db, add_order, add_adjustment, settle, service, week):
    add_order(40000)
    adj = add_adjustment(10000, note="tools")

    settlement = settle(35000)

    stored = db.adjustments[adj.adjustment_id]
    assert _applied(db, adj.adjustment_id) == 5000
    assert stored.available_from == date(2025, 3, 8)
    assert stored.note == "tools (carried to 08/03/2025)"
    assert settlement.breakdown.adjustments[0].carried_to_next_week == 5000
    assert settlement.breakdown.carry_over == ({"original_id": adj.adjustment_id, "amount": 5000, "available_from": "2025-03-08"},)

    next_week = service.get_weekly_totals(technician_id=1, week=week.next())
    assert next_week.total_adjustable == 5000
    this_week = service.get_weekly_totals(technician_id=1, week=week)
    assert this_week.deferred_holdback == 5000
    assert this_week.gross_available == 0


def test_amount_outside_range_is_rejected_before_any_write(db, add_order, add_adjustment, settle):
    add_order(40000)
    add_adjustment(10000, created_at=EARLIER)

    with pytest.raises(ValidationError):
        settle(29999)
    with pytest.raises(ValidationError):
        settle(40001)
    with pytest.raises(ValidationError):
        settle(0)
    assert db.settlements == {}
    assert db.applications == []


def test_nothing_left_to_settle(add_order, settle):
    add_order(40000)
    settle(40000)
    with pytest.raises(ValidationError):
        settle(1)


def test_only_admins_record(add_order, settle):
    add_order(40000)
    with pytest.raises(AuthorizationError):
        settle(40000, current_role=Role.TECHNICIAN)


def test_loan_repayment_is_withheld_and_reconciled(add_order, add_adjustment, settle, container, week):
    add_order(40000)
    add_adjustment(50000, type=AdjustmentType.LOAN)

    with pytest.raises(ValidationError):
        settle(30000, loan_repayment=60000)

    settlement = settle(30000, loan_repayment=10000)

    assert settlement.breakdown.loan_payments_total == 10000
    assert settlement.resolved_total == 40000
    assert container.adjustment_service.get_loans(technician_id=1).outstanding == 40000
    assert container.settlement_service.get_weekly_totals(technician_id=1, week=week).gross_available == 0


def test_mixed_payment_split(add_order, settle, service):
    add_order(40000)

    with pytest.raises(ValidationError):
        settle(40000, split=PaymentSplit(cash=20000, transfer=20000))
    with pytest.raises(ValidationError):
        settle(40000, payment_method=SettlementPaymentMethod.OTHER, split=PaymentSplit(cash=10000, transfer=20000))

    settlement = settle(
        40000,
        payment_method=SettlementPaymentMethod.OTHER,
        split=PaymentSplit(cash=15000, transfer=25000),
        context=SettlementContext.TECHNICIAN,
        note=" friday ",
    )
    assert settlement.breakdown.to_dict()["payment_breakdown"] == {"cash": 15000, "transfer": 25000, "total": 40000}
    assert settlement.context == SettlementContext.TECHNICIAN
    assert settlement.note == "friday"

    history = service.get_settlement_history(technician_id=1)
    assert history.totals_by_method == {"cash": 15000, "transfer": 25000, "other": 0}


def test_history_filters(add_order, settle, service):
    add_order(40000, technician_id=1)
    add_order(20000, technician_id=2)
    settle(40000)
    settle(20000, technician_id=2, payment_method=SettlementPaymentMethod.TRANSFER)

    assert service.get_settlement_history().total_amount == 60000
    assert [s.technician_id for s in service.get_settlement_history(technician_id=2).items] == [2]
    assert service.get_settlement_history(payment_method=SettlementPaymentMethod.CASH).total_amount == 40000
    assert service.get_settlement_history(start=date(2025, 3, 5)).items == ()
    assert service.get_settlement_history(start=date(2025, 3, 4), end=date(2025, 3, 4)).total_amount == 60000
    with pytest.raises(ValidationError):
        service.get_settlement_history(start=date(2025, 3, 5), end=date(2025, 3, 1))


def test_scenario_e_interleaved_writer_is_rejected(db, add_order, add_adjustment, settle, settlements_repo):
    add_order(40000)
    adj = add_adjustment(10000, created_at=EARLIER)
    inner = {}

    def other_writer():
        # computed from the same state the outer call saw, and commits first
        inner["settlement"] = settle(30000)

    settlements_repo.on_record = other_writer
    with pytest.raises(ConcurrentModificationError):
        settle(30000)

    assert inner["settlement"].breakdown.selected_adjustments_total == 10000
    assert _applied(db, adj.adjustment_id) == 10000
    assert len(db.settlements) == 1


def test_adjustment_deleted_before_write_is_a_conflict(db, add_order, add_adjustment, settle, settlements_repo, container):
    add_order(40000)
    adj = add_adjustment(10000, created_at=EARLIER)

    def other_admin_deletes():
        container.adjustment_service.delete_adjustment(current_role=Role.ADMIN, adjustment_id=adj.adjustment_id)

    settlements_repo.on_record = other_admin_deletes
    with pytest.raises(ConcurrentModificationError):
        settle(30000)

    assert db.settlements == {}
    assert db.applications == []


def test_scenario_e_threads_never_over_apply(db, add_order, add_adjustment, settle, settlements_repo):
    add_order(40000)
    adj = add_adjustment(10000, created_at=EARLIER)
    barrier = threading.Barrier(2, timeout=5)
    outcomes = []

    original_record = settlements_repo.record

    def record_after_both_read(draft, expectation):
        barrier.wait()
        return original_record(draft, expectation)

    settlements_repo.record = record_after_both_read

    def worker():
        try:
            outcomes.append(settle(30000))
        except ConcurrentModificationError as exc:
            outcomes.append(exc)

    threads = [threading.Thread(target=worker) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)

    assert len(outcomes) == 2
    assert sum(isinstance(o, ConcurrentModificationError) for o in outcomes) == 1
    assert _applied(db, adj.adjustment_id) == 10000


def test_missing_history_table_allows_only_full_payouts(db, add_order, add_adjustment, settle, service, week):
    add_order(40000)
    add_adjustment(10000, created_at=EARLIER)
    db.missing_tables.add("salary_adjustment_applications")

    quote = service.get_weekly_totals(technician_id=1, week=week)
    assert quote.setup_warnings
    with pytest.raises(SchemaCompatibilityError):
        settle(30000)

    settlement = settle(40000)
    assert settlement.breakdown.selected_adjustments_total == 0


def test_missing_settlements_table_reads_as_nothing_settled(db, add_order, service, week):
    add_order(40000)
    db.missing_tables.add("salary_settlements")

    quote = service.get_weekly_totals(technician_id=1, week=week)
    assert quote.settled_total == 0
    assert quote.gross_available == 40000
    assert any("salary_settlements" in w for w in quote.setup_warnings)


def test_deleting_an_order_changes_weekly_totals(add_order, container, week):
    order = add_order(40000)
    add_order(10000)
    container.order_service.delete_order(current_role=Role.ADMIN, order_id=order.order_id)

    assert container.settlement_service.get_weekly_totals(technician_id=1, week=week).gross_available == 10000
