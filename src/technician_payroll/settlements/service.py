from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Optional

from ..adjustments.ledger import AdjustmentLedger
from ..common.datetime_utils import now_utc, to_utc_naive
from ..common.validators import require_amount, require_id
from ..core.constants import DEFAULT_HISTORY_LIMIT
from ..core.enums import PayoutPreset, Role, SettlementContext, SettlementPaymentMethod
from ..core.exceptions import (
    AuthorizationError,
    ConcurrentModificationError,
    SchemaCompatibilityError,
    ValidationError,
)
from ..orders.reconciliation import collect_week_orders
from ..orders.repository import OrderRepository
from ..weeks.payout_week import PayoutWeek
from .calculator import SettlementCalculator, settled_total
from .model import (
    AdjustmentApplication,
    AdjustmentLine,
    Distribution,
    PaymentSplit,
    SettlementBreakdown,
    SettlementDraft,
    SettlementHistory,
    SettlementQuote,
    SettlementTransaction,
    WriteExpectation,
)
from .repository import SettlementRepository

logger = logging.getLogger(__name__)


class SettlementService:
    """Weekly totals, settlement previews and the settlement recorder."""

    def __init__(
        self,
        orders: OrderRepository,
        settlements: SettlementRepository,
        ledger: AdjustmentLedger,
        *,
        calculator: Optional[SettlementCalculator] = None,
    ):
        self._orders = orders
        self._settlements = settlements
        self._ledger = ledger
        self._calculator = calculator or SettlementCalculator()

    def _settled_for_week(self, technician_id: int, week: PayoutWeek) -> tuple[int, Optional[str]]:
        try:
            rows = self._settlements.list_for_week(technician_id=technician_id, week_start=week.start_date)
        except SchemaCompatibilityError as exc:
            logger.warning("Settlements unavailable for technician %s: %s", technician_id, exc)
            return 0, str(exc)
        return settled_total(rows), None

    def get_weekly_totals(self, *, technician_id: int, week: PayoutWeek) -> SettlementQuote:
        technician_id = require_id(technician_id, "Technician")
        orders = collect_week_orders(self._orders, technician_id=technician_id, week=week)
        settled, warning = self._settled_for_week(technician_id, week)
        ledger = self._ledger.pending_for_week(technician_id, week)
        return self._calculator.compute(
            week=week,
            orders=orders,
            settled_total=settled,
            ledger=ledger,
            setup_warnings=(warning,) if warning else (),
        )

    def preview_settlement(
        self,
        *,
        technician_id: int,
        week: PayoutWeek,
        preset: PayoutPreset = PayoutPreset.NET,
        target: Optional[int] = None,
    ) -> tuple[SettlementQuote, Distribution]:
        quote = self.get_weekly_totals(technician_id=technician_id, week=week)
        chosen = quote.default_target(preset) if target is None else quote.clamp(target)
        return quote, self._calculator.distribute(quote, chosen)

    @staticmethod
    def _check_split(split: Optional[PaymentSplit], method: SettlementPaymentMethod, amount: int) -> None:
        if split is None:
            return
        if method != SettlementPaymentMethod.OTHER:
            raise ValidationError("A cash/transfer split is only allowed with payment method 'other'")
        if split.cash < 0 or split.transfer < 0:
            raise ValidationError("Cash and transfer amounts cannot be negative")
        if split.total != amount:
            raise ValidationError("Cash plus transfer must add up to the settlement amount")

    def record_settlement(
        self,
        *,
        current_role: Role,
        technician_id: int,
        amount: int,
        payment_method: SettlementPaymentMethod,
        week: PayoutWeek,
        created_by: Optional[int] = None,
        loan_repayment: int = 0,
        split: Optional[PaymentSplit] = None,
        context: SettlementContext = SettlementContext.ADMIN,
        note: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> SettlementTransaction:
        """Pay a technician for ``week``.

        The distribution is recomputed here from current ledger state; the
        repository re-checks that state under its write lock before writing.
        """
        if current_role != Role.ADMIN:
            raise AuthorizationError("Only administrators can register settlements")

        technician_id = require_id(technician_id, "Technician")
        amount = require_amount(amount, "Settlement amount")
        loan_repayment = require_amount(loan_repayment or 0, "Loan repayment", allow_zero=True)
        self._check_split(split, payment_method, amount)

        quote = self.get_weekly_totals(technician_id=technician_id, week=week)
        if quote.gross_available <= 0:
            raise ValidationError("There is nothing left to settle for this week")

        if loan_repayment:
            outstanding = self._ledger.loans_for(technician_id).outstanding
            if loan_repayment > outstanding:
                raise ValidationError(f"Loan repayment cannot exceed the outstanding loan balance ({outstanding})")

        payable = amount + loan_repayment
        if payable < quote.min_payable or payable > quote.max_payable:
            raise ValidationError(f"Amount must be between {quote.min_payable} and {quote.max_payable}")

        distribution = self._calculator.distribute(quote, payable)
        degraded = quote.ledger.setup_warning is not None
        if degraded and distribution.deduction > 0:
            raise SchemaCompatibilityError(
                "salary_adjustment_applications",
                "Deductions cannot be recorded until database/schema.sql has been applied. "
                "Settle the full amount or run the schema script first.",
            )

        carried = {c.adjustment_id: c.amount for c in distribution.carry_overs}
        lines = tuple(
            AdjustmentLine(
                adjustment_id=p.adjustment_id,
                type=p.adjustment.type,
                amount=p.adjustment.amount,
                applied=distribution.applied_to(p.adjustment_id),
                omitted=p.remaining - distribution.applied_to(p.adjustment_id),
                carried_to_next_week=carried.get(p.adjustment_id, 0),
                note=p.adjustment.note,
            )
            for p in quote.ledger.items
        )
        breakdown = SettlementBreakdown(
            base_amount=quote.base_amount,
            selected_adjustments_total=distribution.applied_total,
            settled_amount=amount,
            adjustments=lines,
            carry_over=tuple(c.to_dict() for c in distribution.carry_overs),
            loan_payments_total=loan_repayment,
            payment_breakdown=split,
        )
        draft = SettlementDraft(
            technician_id=technician_id,
            week_start=week.start_date,
            amount=amount,
            payment_method=payment_method,
            breakdown=breakdown,
            applications=tuple(
                AdjustmentApplication(adjustment_id=p.adjustment_id, applied_amount=distribution.applied_to(p.adjustment_id))
                for p in quote.ledger.available
                if distribution.applied_to(p.adjustment_id) > 0
            ),
            carry_overs=distribution.carry_overs,
            created_at=to_utc_naive(now or now_utc()),
            created_by=created_by,
            context=context,
            note=(note or "").strip() or None,
        )
        expectation = WriteExpectation(
            applied_totals={} if degraded else {p.adjustment_id: p.applied_total for p in quote.ledger.items},
            settled_total=quote.settled_total,
        )

        try:
            settlement = self._settlements.record(draft, expectation)
        except ConcurrentModificationError:
            logger.warning("Settlement for technician %s, %s aborted: ledger changed", technician_id, week.label)
            raise

        logger.info(
            "Settlement %s recorded: technician=%s week=%s/%s amount=%s deductions=%s loan=%s",
            settlement.settlement_id,
            technician_id,
            week.week,
            week.year,
            amount,
            distribution.applied_total,
            loan_repayment,
        )
        return settlement

    def get_settlement_history(
        self,
        *,
        technician_id: Optional[int] = None,
        payment_method: Optional[SettlementPaymentMethod] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
        limit: int = DEFAULT_HISTORY_LIMIT,
    ) -> SettlementHistory:
        if start and end and start > end:
            raise ValidationError("Start date must be on or before end date")
        rows = self._settlements.list_history(
            technician_id=technician_id,
            payment_method=payment_method,
            start=start,
            end=end,
            limit=limit,
        )
        return SettlementHistory(items=tuple(rows))
