from __future__ import annotations

from datetime import date
from typing import Optional, Protocol, Sequence

from ..core.enums import SettlementPaymentMethod
from .model import SettlementDraft, SettlementTransaction, WriteExpectation


class SettlementRepository(Protocol):
    def list_for_week(self, *, technician_id: int, week_start: date) -> Sequence[SettlementTransaction]:
        raise NotImplementedError

    def list_history(
        self,
        *,
        technician_id: Optional[int] = None,
        payment_method: Optional[SettlementPaymentMethod] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
        limit: int = 500,
    ) -> Sequence[SettlementTransaction]:
        """Newest first; start/end bound the creation date, both inclusive."""

        raise NotImplementedError

    def loan_repayments_total(self, technician_id: int) -> int:
        raise NotImplementedError

    def record(self, draft: SettlementDraft, expectation: WriteExpectation) -> SettlementTransaction:
        """Write settlement, applications and deferrals as one unit.

        Implementations hold a per-technician single-writer lock while they
        re-check ``expectation`` against current state, and raise
        ConcurrentModificationError without writing anything on mismatch.
        """

        raise NotImplementedError
