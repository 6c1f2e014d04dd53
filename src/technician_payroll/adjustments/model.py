from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Optional

from ..core.enums import AdjustmentType


@dataclass(frozen=True)
class SalaryAdjustment:
    """Domain entity: an advance, discount or loan granted to a technician."""

    adjustment_id: int
    technician_id: int
    type: AdjustmentType
    amount: int
    created_at: datetime
    note: Optional[str] = None
    available_from: Optional[date] = None

    @property
    def effective_available_from(self) -> date:
        return self.available_from or self.created_at.date()

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.adjustment_id,
            "technician_id": self.technician_id,
            "type": self.type,
            "amount": self.amount,
            "note": self.note,
            "created_at": self.created_at,
            "available_from": self.effective_available_from,
        }


@dataclass(frozen=True)
class NewAdjustment:
    technician_id: int
    type: AdjustmentType
    amount: int
    created_at: datetime
    note: Optional[str] = None
    available_from: Optional[date] = None


@dataclass(frozen=True)
class PendingAdjustment:
    """An adjustment together with how much of it is still owed."""

    adjustment: SalaryAdjustment
    applied_total: int
    is_available_this_week: bool
    is_current_week: bool

    @property
    def adjustment_id(self) -> int:
        return self.adjustment.adjustment_id

    @property
    def remaining(self) -> int:
        return max(self.adjustment.amount - self.applied_total, 0)

    def to_dict(self) -> dict[str, Any]:
        data = self.adjustment.to_dict()
        data.update(
            applied_total=self.applied_total,
            remaining=self.remaining,
            is_available_this_week=self.is_available_this_week,
            is_current_week=self.is_current_week,
        )
        return data


@dataclass(frozen=True)
class LedgerView:
    available: tuple[PendingAdjustment, ...] = ()
    deferred: tuple[PendingAdjustment, ...] = ()
    setup_warning: Optional[str] = None

    @property
    def items(self) -> tuple[PendingAdjustment, ...]:
        return self.available + self.deferred

    @property
    def total_adjustable(self) -> int:
        return sum(p.remaining for p in self.available)

    @property
    def deferred_holdback(self) -> int:
        """Outstanding money that will only reduce a later week's payable range."""
        return sum(p.remaining for p in self.deferred)

    def to_dict(self) -> dict[str, Any]:
        return {
            "available": [p.to_dict() for p in self.available],
            "deferred": [p.to_dict() for p in self.deferred],
            "total_adjustable": self.total_adjustable,
            "deferred_holdback": self.deferred_holdback,
            "setup_warning": self.setup_warning,
        }


@dataclass(frozen=True)
class LoanSummary:
    loans: tuple[SalaryAdjustment, ...]
    repaid: int
    setup_warning: Optional[str] = None

    @property
    def total_amount(self) -> int:
        return sum(loan.amount for loan in self.loans)

    @property
    def outstanding(self) -> int:
        return max(self.total_amount - self.repaid, 0)

    def to_dict(self) -> dict[str, Any]:
        return {
            "loans": [loan.to_dict() for loan in self.loans],
            "total_amount": self.total_amount,
            "repaid": self.repaid,
            "outstanding": self.outstanding,
            "setup_warning": self.setup_warning,
        }
