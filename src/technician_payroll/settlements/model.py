from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Optional

from ..adjustments.model import LedgerView
from ..common.validators import parse_adjustment_type
from ..core.enums import AdjustmentType, PayoutPreset, SettlementContext, SettlementPaymentMethod
from ..weeks.payout_week import PayoutWeek


@dataclass(frozen=True)
class PaymentSplit:
    """Cash/transfer halves of a mixed payout."""

    cash: int
    transfer: int

    @property
    def total(self) -> int:
        return self.cash + self.transfer

    def to_dict(self) -> dict[str, int]:
        return {"cash": self.cash, "transfer": self.transfer, "total": self.total}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PaymentSplit":
        # rows written before the rename used the spanish keys
        return cls(
            cash=int(data.get("cash", data.get("efectivo", 0)) or 0),
            transfer=int(data.get("transfer", data.get("transferencia", 0)) or 0),
        )


@dataclass(frozen=True)
class AdjustmentLine:
    adjustment_id: int
    type: AdjustmentType
    amount: int
    applied: int
    omitted: int
    carried_to_next_week: int = 0
    note: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.adjustment_id,
            "type": self.type.value,
            "note": self.note,
            "amount": self.amount,
            "applied": self.applied,
            "omitted": self.omitted,
            "carried_to_next_week": self.carried_to_next_week,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AdjustmentLine":
        return cls(
            adjustment_id=int(data["id"]),
            type=parse_adjustment_type(data.get("type")),
            amount=int(data.get("amount") or 0),
            applied=int(data.get("applied") or 0),
            omitted=int(data.get("omitted") or 0),
            carried_to_next_week=int(data.get("carried_to_next_week") or 0),
            note=data.get("note"),
        )


@dataclass(frozen=True)
class CarryOver:
    """Leftover of a current-week adjustment pushed to the next payout week."""

    adjustment_id: int
    amount: int
    available_from: date
    note: str

    def to_dict(self) -> dict[str, Any]:
        return {"original_id": self.adjustment_id, "amount": self.amount, "available_from": self.available_from.isoformat()}


@dataclass(frozen=True)
class AdjustmentApplication:
    adjustment_id: int
    applied_amount: int


@dataclass(frozen=True)
class SettlementBreakdown:
    """Everything a later audit needs without re-reading the ledger."""

    base_amount: int
    selected_adjustments_total: int
    settled_amount: int
    adjustments: tuple[AdjustmentLine, ...] = ()
    carry_over: tuple[dict[str, Any], ...] = ()
    loan_payments_total: int = 0
    payment_breakdown: Optional[PaymentSplit] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "base_amount": self.base_amount,
            "selected_adjustments_total": self.selected_adjustments_total,
            "settled_amount": self.settled_amount,
            "adjustments": [line.to_dict() for line in self.adjustments],
            "carry_over": list(self.carry_over),
            "loan_payments_total": self.loan_payments_total,
        }
        if self.payment_breakdown:
            data["payment_breakdown"] = self.payment_breakdown.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> "SettlementBreakdown":
        """Tolerates rows written before the breakdown existed (all zeros)."""
        data = data or {}
        split = data.get("payment_breakdown")
        return cls(
            base_amount=int(data.get("base_amount") or 0),
            selected_adjustments_total=int(data.get("selected_adjustments_total") or 0),
            settled_amount=int(data.get("settled_amount") or 0),
            adjustments=tuple(AdjustmentLine.from_dict(x) for x in data.get("adjustments") or []),
            carry_over=tuple(data.get("carry_over") or []),
            loan_payments_total=int(data.get("loan_payments_total") or 0),
            payment_breakdown=PaymentSplit.from_dict(split) if split else None,
        )


@dataclass(frozen=True)
class SettlementTransaction:
    """One recorded payout. Never edited once written."""

    settlement_id: int
    technician_id: int
    week_start: date
    amount: int
    payment_method: SettlementPaymentMethod
    breakdown: SettlementBreakdown
    created_at: datetime
    created_by: Optional[int] = None
    context: SettlementContext = SettlementContext.ADMIN
    note: Optional[str] = None

    @property
    def resolved_total(self) -> int:
        """Cash handed over plus the deductions and loan payments it settled."""
        return self.amount + self.breakdown.selected_adjustments_total + self.breakdown.loan_payments_total

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.settlement_id,
            "technician_id": self.technician_id,
            "week_start": self.week_start,
            "amount": self.amount,
            "payment_method": self.payment_method,
            "context": self.context,
            "note": self.note,
            "details": self.breakdown.to_dict(),
            "resolved_total": self.resolved_total,
            "created_at": self.created_at,
            "created_by": self.created_by,
        }


@dataclass(frozen=True)
class SettlementDraft:
    technician_id: int
    week_start: date
    amount: int
    payment_method: SettlementPaymentMethod
    breakdown: SettlementBreakdown
    applications: tuple[AdjustmentApplication, ...]
    carry_overs: tuple[CarryOver, ...]
    created_at: datetime
    created_by: Optional[int] = None
    context: SettlementContext = SettlementContext.ADMIN
    note: Optional[str] = None


@dataclass(frozen=True)
class WriteExpectation:
    """Ledger state a draft was computed against; re-checked under the write lock."""

    applied_totals: dict[int, int] = field(default_factory=dict)
    settled_total: int = 0


@dataclass(frozen=True)
class SettlementQuote:
    """Read-only payable range of one technician for one payout week."""

    week: PayoutWeek
    paid_commission: int
    penalty_commission: int
    settled_total: int
    ledger: LedgerView
    pending_commission: int = 0
    paid_orders: int = 0
    pending_orders: int = 0
    setup_warnings: tuple[str, ...] = ()

    @property
    def base_amount(self) -> int:
        return self.paid_commission - self.penalty_commission

    @property
    def gross_available(self) -> int:
        return self.base_amount - self.settled_total

    @property
    def total_adjustable(self) -> int:
        return self.ledger.total_adjustable

    @property
    def deferred_holdback(self) -> int:
        return self.ledger.deferred_holdback

    @property
    def min_payable(self) -> int:
        if self.gross_available <= 0:
            return 0
        return max(self.gross_available - (self.total_adjustable + self.deferred_holdback), 0)

    @property
    def max_payable(self) -> int:
        if self.gross_available <= 0:
            return 0
        return max(self.gross_available + self.deferred_holdback, self.gross_available)

    def default_target(self, preset: PayoutPreset) -> int:
        return self.max_payable if preset == PayoutPreset.FULL else self.min_payable

    def clamp(self, target: int) -> int:
        return max(self.min_payable, min(int(target), self.max_payable))

    def to_dict(self) -> dict[str, Any]:
        return {
            "week": self.week.week,
            "year": self.week.year,
            "week_start": self.week.start_date,
            "week_end": self.week.end_date,
            "paid_commission": self.paid_commission,
            "penalty_commission": self.penalty_commission,
            "pending_commission": self.pending_commission,
            "paid_orders": self.paid_orders,
            "pending_orders": self.pending_orders,
            "base_amount": self.base_amount,
            "settled_total": self.settled_total,
            "gross_available": self.gross_available,
            "total_adjustable": self.total_adjustable,
            "deferred_holdback": self.deferred_holdback,
            "min_payable": self.min_payable,
            "max_payable": self.max_payable,
            "setup_warnings": list(self.setup_warnings),
        }


@dataclass(frozen=True)
class Distribution:
    """How a deduction budget was spread over the available adjustments."""

    target: int
    deduction: int
    applied: dict[int, int]
    carry_overs: tuple[CarryOver, ...] = ()

    @property
    def applied_total(self) -> int:
        return sum(self.applied.values())

    def applied_to(self, adjustment_id: int) -> int:
        return self.applied.get(adjustment_id, 0)

    def to_dict(self) -> dict[str, Any]:
        return {
            "target": self.target,
            "deduction": self.deduction,
            "applied_total": self.applied_total,
            "applied": [{"adjustment_id": k, "amount": v} for k, v in self.applied.items()],
            "carry_over": [c.to_dict() for c in self.carry_overs],
        }


@dataclass(frozen=True)
class SettlementHistory:
    items: tuple[SettlementTransaction, ...]

    @property
    def total_amount(self) -> int:
        return sum(s.amount for s in self.items)

    @property
    def totals_by_method(self) -> dict[str, int]:
        """Cash and transfer totals; mixed payouts count toward both halves."""
        totals = {m.value: 0 for m in SettlementPaymentMethod}
        for s in self.items:
            split = s.breakdown.payment_breakdown
            if s.payment_method == SettlementPaymentMethod.OTHER and split:
                totals[SettlementPaymentMethod.CASH.value] += split.cash
                totals[SettlementPaymentMethod.TRANSFER.value] += split.transfer
            else:
                totals[s.payment_method.value] += s.amount
        return totals

    def to_dict(self) -> dict[str, Any]:
        return {
            "items": [s.to_dict() for s in self.items],
            "total_amount": self.total_amount,
            "totals_by_method": self.totals_by_method,
        }
