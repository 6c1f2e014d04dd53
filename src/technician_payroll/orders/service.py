from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Optional

from ..commission.calculator.base import CommissionCalculator
from ..commission.calculator.standard_calculator import StandardCommissionCalculator
from ..common.datetime_utils import now_utc, to_utc_naive
from ..common.validators import require_amount, require_id
from ..core.enums import OrderStatus, PaymentMethod, Role
from ..core.exceptions import AuthorizationError, DocumentLookupError, ValidationError
from ..receipts.validator import DocumentLookup, DocumentValidator
from ..weeks.payout_week import payout_week_for
from .model import NewOrder, Order
from .repository import OrderRepository

logger = logging.getLogger(__name__)

_ALLOWED_STATUS_CHANGES = {
    OrderStatus.PENDING: {OrderStatus.CANCELLED},
    OrderStatus.PAID: {OrderStatus.RETURNED, OrderStatus.CANCELLED},
    OrderStatus.RETURNED: set(),
    OrderStatus.CANCELLED: set(),
}


class OrderService:
    """Use cases around an order's commission and its paid transition."""

    def __init__(
        self,
        orders: OrderRepository,
        *,
        calculator: Optional[CommissionCalculator] = None,
        validator: Optional[DocumentValidator] = None,
    ):
        self._orders = orders
        self._calculator = calculator or StandardCommissionCalculator()
        self._validator = validator

    def _require(self, order_id: int) -> Order:
        order = self._orders.get(require_id(order_id, "Order"))
        if not order:
            raise ValidationError("Order not found")
        return order

    def _lookup_receipt(self, receipt_number: str) -> Optional[DocumentLookup]:
        if not self._validator:
            return None
        try:
            result = self._validator.lookup(receipt_number)
        except DocumentLookupError as exc:
            logger.warning("Receipt validation skipped for %s: %s", receipt_number, exc)
            return None
        if not result.exists:
            logger.info("Receipt %s not found in the invoicing service", receipt_number)
        return result

    def _check_receipt(self, receipt_number: str, *, order_id: Optional[int] = None) -> str:
        receipt = (receipt_number or "").strip()
        if not receipt:
            raise ValidationError("Receipt number is required to mark an order paid")
        if self._orders.receipt_in_use(receipt, exclude_order_id=order_id):
            raise ValidationError("This receipt number is already registered on another order")
        return receipt

    def create_order(
        self,
        *,
        technician_id: int,
        replacement_cost: int,
        total_price: int,
        payment_method: PaymentMethod,
        receipt_number: Optional[str] = None,
        order_number: Optional[str] = None,
        device: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> int:
        technician_id = require_id(technician_id, "Technician")
        replacement_cost = require_amount(replacement_cost, "Replacement cost", allow_zero=True)
        total_price = require_amount(total_price, "Total price", allow_zero=True)
        created_at = to_utc_naive(now or now_utc())

        commission = self._calculator.commission(payment_method, replacement_cost, total_price)
        new_order = NewOrder(
            technician_id=technician_id,
            replacement_cost=replacement_cost,
            total_price=total_price,
            payment_method=payment_method,
            status=OrderStatus.PENDING,
            commission_amount=commission,
            created_at=created_at,
            order_number=(order_number or "").strip() or None,
            device=(device or "").strip() or None,
        )

        if (receipt_number or "").strip():
            receipt = self._check_receipt(receipt_number)
            lookup = self._lookup_receipt(receipt)
            new_order = replace(
                new_order,
                status=OrderStatus.PAID,
                paid_at=created_at,
                payout_week=payout_week_for(created_at),
                receipt_number=receipt,
                document_url=lookup.url if lookup else None,
            )

        return self._orders.create(new_order)

    def mark_paid(
        self,
        *,
        order_id: int,
        receipt_number: str,
        payment_method: Optional[PaymentMethod] = None,
        now: Optional[datetime] = None,
    ) -> Order:
        """Move a pending order to paid.

        The payout week is computed here exactly once. A legacy row that already
        carries a payout week keeps it and is not stamped with paid_at.
        """
        order = self._require(order_id)
        if order.is_penalty:
            raise ValidationError("Returned or cancelled orders cannot be marked paid")
        if order.status == OrderStatus.PAID:
            raise ValidationError("Order is already paid")

        receipt = self._check_receipt(receipt_number, order_id=order.order_id)
        lookup = self._lookup_receipt(receipt)

        method = payment_method if payment_method not in (None, PaymentMethod.NONE) else order.payment_method
        if method == PaymentMethod.NONE:
            logger.warning("Order %s paid without a payment method; keeping stored commission", order.order_id)
            commission = order.commission_amount
        else:
            commission = self._calculator.commission(method, order.replacement_cost, order.total_price)

        if order.assigned_week is not None:
            paid_at, week = order.paid_at, order.assigned_week
        else:
            paid_at = order.paid_at or to_utc_naive(now or now_utc())
            week = payout_week_for(paid_at)

        ok = self._orders.mark_paid(
            order_id=order.order_id,
            payment_method=method,
            receipt_number=receipt,
            commission_amount=commission,
            paid_at=paid_at,
            payout_week=week,
            document_url=lookup.url if lookup else None,
        )
        if not ok:
            raise ValidationError("Could not mark the order paid")
        return self._require(order.order_id)

    def update_costs(self, *, order_id: int, replacement_cost: int, total_price: int) -> Order:
        """Edit amounts; the commission follows, the payout week never moves."""
        order = self._require(order_id)
        replacement_cost = require_amount(replacement_cost, "Replacement cost", allow_zero=True)
        total_price = require_amount(total_price, "Total price", allow_zero=True)

        if order.payment_method == PaymentMethod.NONE:
            commission = order.commission_amount
        else:
            commission = self._calculator.commission(order.payment_method, replacement_cost, total_price)

        ok = self._orders.update_costs(
            order_id=order.order_id,
            replacement_cost=replacement_cost,
            total_price=total_price,
            commission_amount=commission,
        )
        if not ok:
            raise ValidationError("Could not update the order amounts")
        return self._require(order.order_id)

    def change_status(self, *, order_id: int, status: OrderStatus) -> Order:
        order = self._require(order_id)
        if status == OrderStatus.PAID:
            raise ValidationError("Use mark_paid to record a payment")
        if status == order.status:
            return order
        if status not in _ALLOWED_STATUS_CHANGES[order.status]:
            raise ValidationError(f"An order cannot go from {order.status.value} to {status.value}")

        if not self._orders.update_status(order_id=order.order_id, status=status):
            raise ValidationError("Could not update the order status")
        return self._require(order.order_id)

    def delete_order(self, *, current_role: Role, order_id: int) -> Order:
        """Destructive admin escape hatch; callers must refresh weekly totals."""
        if current_role != Role.ADMIN:
            raise AuthorizationError("Only administrators can delete orders")
        order = self._require(order_id)
        if not self._orders.delete(order.order_id):
            raise ValidationError("Could not delete the order")
        logger.info("Order %s of technician %s deleted", order.order_id, order.technician_id)
        return order
