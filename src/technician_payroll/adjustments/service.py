from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Optional

from ..common.datetime_utils import now_utc, to_utc_naive
from ..common.validators import require_amount, require_id
from ..core.enums import AdjustmentType, Role
from ..core.exceptions import AuthorizationError, ValidationError
from ..weeks.payout_week import PayoutWeek
from .ledger import AdjustmentLedger
from .model import LedgerView, LoanSummary, NewAdjustment, SalaryAdjustment
from .repository import AdjustmentRepository

logger = logging.getLogger(__name__)


class AdjustmentService:
    def __init__(self, adjustments: AdjustmentRepository, ledger: AdjustmentLedger):
        self._adjustments = adjustments
        self._ledger = ledger

    def create_adjustment(
        self,
        *,
        current_role: Role,
        technician_id: int,
        type: AdjustmentType,
        amount: int,
        note: Optional[str] = None,
        available_from: Optional[date] = None,
        now: Optional[datetime] = None,
    ) -> int:
        if current_role != Role.ADMIN:
            raise AuthorizationError("Only administrators can register adjustments")

        created_at = to_utc_naive(now or now_utc())
        return self._adjustments.create(
            NewAdjustment(
                technician_id=require_id(technician_id, "Technician"),
                type=type,
                amount=require_amount(amount, "Amount"),
                created_at=created_at,
                note=(note or "").strip() or None,
                available_from=available_from or created_at.date(),
            )
        )

    def delete_adjustment(self, *, current_role: Role, adjustment_id: int) -> SalaryAdjustment:
        """Remove an adjustment and its application history.

        Destructive: the technician's weekly totals must be recomputed afterwards.
        """
        if current_role != Role.ADMIN:
            raise AuthorizationError("Only administrators can delete adjustments")

        adj = self._adjustments.get(require_id(adjustment_id, "Adjustment"))
        if not adj:
            raise ValidationError("Adjustment not found")
        if not self._adjustments.delete(adj.adjustment_id):
            raise ValidationError("Could not delete the adjustment")
        logger.info("Adjustment %s of technician %s deleted", adj.adjustment_id, adj.technician_id)
        return adj

    def get_pending_adjustments(self, *, technician_id: int, week: PayoutWeek) -> LedgerView:
        return self._ledger.pending_for_week(require_id(technician_id, "Technician"), week)

    def get_loans(self, *, technician_id: int) -> LoanSummary:
        return self._ledger.loans_for(require_id(technician_id, "Technician"))
