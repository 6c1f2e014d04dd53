"""Weekly payable range and deduction distribution.

Read-only: nothing here touches a repository or the clock. The caller
resolves the payout week once and passes it in.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from ..adjustments.model import LedgerView
from ..commission.calculator.base import CommissionCalculator
from ..commission.calculator.standard_calculator import StandardCommissionCalculator
from ..common.datetime_utils import format_day
from ..core.enums import OrderStatus, PaymentMethod
from ..orders.model import Order
from ..weeks.payout_week import PayoutWeek
from .model import CarryOver, Distribution, SettlementQuote, SettlementTransaction

logger = logging.getLogger(__name__)


def settled_total(transactions: Iterable[SettlementTransaction]) -> int:
    """Everything already resolved for the week, not only the cash handed over."""
    return sum(t.resolved_total for t in transactions)


def carry_over_note(note: Optional[str], available_from) -> str:
    day = format_day(available_from)
    if note:
        return f"{note} (carried to {day})"
    return f"Carried over, available from {day}"


class SettlementCalculator:
    def __init__(self, *, calculator: Optional[CommissionCalculator] = None):
        self._calculator = calculator or StandardCommissionCalculator()

    def _projected_commission(self, order: Order) -> int:
        if order.payment_method == PaymentMethod.NONE:
            logger.warning(
                "Pending order %s has no payment method; using stored commission %s",
                order.order_id,
                order.commission_amount,
            )
            return order.commission_amount
        return self._calculator.commission(order.payment_method, order.replacement_cost, order.total_price)

    def compute(
        self,
        *,
        week: PayoutWeek,
        orders: Iterable[Order],
        settled_total: int,
        ledger: LedgerView,
        setup_warnings: Iterable[str] = (),
    ) -> SettlementQuote:
        """orders must already be the reconciled set for ``week``."""
        paid = penalty = pending = 0
        paid_count = pending_count = 0
        for order in orders:
            if order.status == OrderStatus.PAID:
                paid += order.commission_amount
                paid_count += 1
            elif order.is_penalty:
                penalty += order.commission_amount
            elif order.status == OrderStatus.PENDING:
                pending += self._projected_commission(order)
                pending_count += 1

        warnings = [w for w in setup_warnings if w]
        if ledger.setup_warning and ledger.setup_warning not in warnings:
            warnings.append(ledger.setup_warning)

        return SettlementQuote(
            week=week,
            paid_commission=paid,
            penalty_commission=penalty,
            settled_total=settled_total,
            ledger=ledger,
            pending_commission=pending,
            paid_orders=paid_count,
            pending_orders=pending_count,
            setup_warnings=tuple(warnings),
        )

    def distribute(self, quote: SettlementQuote, target: int) -> Distribution:
        """Spread the deduction implied by ``target`` over available adjustments.

        Adjustments are walked in ledger order; deferred ones always get 0.
        A current-week adjustment left partly unapplied is carried to the
        next payout week.
        """
        target = quote.clamp(target)
        deduction = min(max(quote.gross_available - quote.deferred_holdback - target, 0), quote.total_adjustable)

        applied: dict[int, int] = {}
        budget = deduction
        for pending in quote.ledger.available:
            amount = min(pending.remaining, budget)
            applied[pending.adjustment_id] = amount
            budget -= amount
        for pending in quote.ledger.deferred:
            applied[pending.adjustment_id] = 0

        next_start = quote.week.next().start_date
        carry_overs = []
        for pending in quote.ledger.available:
            leftover = pending.remaining - applied[pending.adjustment_id]
            if leftover <= 0 or not pending.is_current_week:
                continue
            carry_overs.append(
                CarryOver(
                    adjustment_id=pending.adjustment_id,
                    amount=leftover,
                    available_from=next_start,
                    note=carry_over_note(pending.adjustment.note, next_start),
                )
            )

        return Distribution(target=target, deduction=deduction, applied=applied, carry_overs=tuple(carry_overs))
