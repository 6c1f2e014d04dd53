from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, Sequence

from ..core.enums import OrderStatus, PaymentMethod
from ..weeks.payout_week import PayoutWeek
from .model import NewOrder, Order


class OrderRepository(Protocol):
    def get(self, order_id: int) -> Optional[Order]:
        raise NotImplementedError

    def create(self, order: NewOrder) -> int:
        raise NotImplementedError

    def receipt_in_use(self, receipt_number: str, *, exclude_order_id: Optional[int] = None) -> bool:
        raise NotImplementedError

    def mark_paid(
        self,
        *,
        order_id: int,
        payment_method: PaymentMethod,
        receipt_number: str,
        commission_amount: int,
        paid_at: Optional[datetime],
        payout_week: PayoutWeek,
        document_url: Optional[str] = None,
    ) -> bool:
        """Set status=paid. paid_at, payout_week and payout_year are written only while still NULL."""

        raise NotImplementedError

    def update_costs(self, *, order_id: int, replacement_cost: int, total_price: int, commission_amount: int) -> bool:
        raise NotImplementedError

    def update_status(self, *, order_id: int, status: OrderStatus) -> bool:
        raise NotImplementedError

    def delete(self, order_id: int) -> bool:
        raise NotImplementedError

    # The three historical shapes of "this order belongs to the week".
    def list_paid_between(self, *, technician_id: int, start: datetime, end: datetime) -> Sequence[Order]:
        """Orders whose paid_at falls in [start, end]."""

        raise NotImplementedError

    def list_by_payout_week(self, *, technician_id: int, week: PayoutWeek) -> Sequence[Order]:
        """Legacy rows: payout week matches but paid_at is NULL."""

        raise NotImplementedError

    def list_created_between(self, *, technician_id: int, start: datetime, end: datetime) -> Sequence[Order]:
        """Last resort: neither paid_at nor payout week, created_at in [start, end]."""

        raise NotImplementedError
