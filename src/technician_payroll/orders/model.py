from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from ..core.enums import OrderStatus, PaymentMethod
from ..weeks.payout_week import PayoutWeek


@dataclass(frozen=True)
class Order:
    """Domain entity: a repair job and the commission it earns."""

    order_id: int
    technician_id: int
    replacement_cost: int
    total_price: int
    payment_method: PaymentMethod
    status: OrderStatus
    commission_amount: int
    created_at: datetime
    paid_at: Optional[datetime] = None
    payout_week: Optional[int] = None
    payout_year: Optional[int] = None
    order_number: Optional[str] = None
    device: Optional[str] = None
    receipt_number: Optional[str] = None
    document_url: Optional[str] = None

    @property
    def assigned_week(self) -> Optional[PayoutWeek]:
        if self.payout_week is None or self.payout_year is None:
            return None
        return PayoutWeek(year=int(self.payout_year), week=int(self.payout_week))

    @property
    def is_penalty(self) -> bool:
        """Returned or cancelled orders take their commission back."""
        return self.status in (OrderStatus.RETURNED, OrderStatus.CANCELLED)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.order_id,
            "technician_id": self.technician_id,
            "order_number": self.order_number,
            "device": self.device,
            "replacement_cost": self.replacement_cost,
            "total_price": self.total_price,
            "payment_method": self.payment_method,
            "status": self.status,
            "commission_amount": self.commission_amount,
            "receipt_number": self.receipt_number,
            "document_url": self.document_url,
            "created_at": self.created_at,
            "paid_at": self.paid_at,
            "payout_week": self.payout_week,
            "payout_year": self.payout_year,
        }


@dataclass(frozen=True)
class NewOrder:
    technician_id: int
    replacement_cost: int
    total_price: int
    payment_method: PaymentMethod
    status: OrderStatus
    commission_amount: int
    created_at: datetime
    paid_at: Optional[datetime] = None
    payout_week: Optional[PayoutWeek] = None
    order_number: Optional[str] = None
    device: Optional[str] = None
    receipt_number: Optional[str] = None
    document_url: Optional[str] = None
