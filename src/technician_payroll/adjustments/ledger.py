"""Outstanding balance of each advance and discount.

remaining = amount - Σ applied_amount over every application row of the
adjustment, whatever week it was applied in. Loans never enter this
arithmetic; they have their own read path (``loans_for``).
"""

from __future__ import annotations

import logging
from typing import Optional

from ..core.enums import DistributionOrder
from ..core.exceptions import SchemaCompatibilityError
from ..settlements.repository import SettlementRepository
from ..weeks.payout_week import PayoutWeek
from .model import LedgerView, LoanSummary, PendingAdjustment
from .repository import AdjustmentRepository

logger = logging.getLogger(__name__)


class AdjustmentLedger:
    def __init__(
        self,
        adjustments: AdjustmentRepository,
        settlements: Optional[SettlementRepository] = None,
        *,
        order: DistributionOrder = DistributionOrder.CREATION,
    ):
        self._adjustments = adjustments
        self._settlements = settlements
        self._order = order

    def _applied_totals(self, technician_id: int) -> tuple[dict[int, int], Optional[str]]:
        try:
            return self._adjustments.applied_totals(technician_id), None
        except SchemaCompatibilityError as exc:
            # Reduced mode: without history every adjustment is fully outstanding.
            logger.warning("Adjustment history unavailable for technician %s: %s", technician_id, exc)
            return {}, str(exc)

    def pending_for_week(self, technician_id: int, week: PayoutWeek) -> LedgerView:
        applied, warning = self._applied_totals(technician_id)

        available: list[PendingAdjustment] = []
        deferred: list[PendingAdjustment] = []
        for adj in self._adjustments.list_for_technician(technician_id):
            if not adj.type.is_deductible:
                continue
            pending = PendingAdjustment(
                adjustment=adj,
                applied_total=applied.get(adj.adjustment_id, 0),
                is_available_this_week=adj.effective_available_from <= week.end_date,
                is_current_week=week.contains(adj.created_at),
            )
            if pending.remaining <= 0:
                continue
            if pending.is_available_this_week:
                available.append(pending)
            else:
                deferred.append(pending)

        if self._order == DistributionOrder.URGENCY:
            available.sort(
                key=lambda p: (p.adjustment.effective_available_from, p.adjustment.created_at, p.adjustment_id)
            )
        else:
            available.sort(key=lambda p: (p.adjustment.created_at, p.adjustment_id))
        deferred.sort(key=lambda p: (p.adjustment.created_at, p.adjustment_id))

        return LedgerView(available=tuple(available), deferred=tuple(deferred), setup_warning=warning)

    def loans_for(self, technician_id: int) -> LoanSummary:
        loans = tuple(a for a in self._adjustments.list_for_technician(technician_id) if not a.type.is_deductible)
        if not self._settlements:
            return LoanSummary(loans=loans, repaid=0)
        try:
            repaid = self._settlements.loan_repayments_total(technician_id)
        except SchemaCompatibilityError as exc:
            logger.warning("Loan repayments unavailable for technician %s: %s", technician_id, exc)
            return LoanSummary(loans=loans, repaid=0, setup_warning=str(exc))
        return LoanSummary(loans=loans, repaid=repaid)
