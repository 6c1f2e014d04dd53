from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """User role used for authorization checks."""

    ADMIN = "admin"
    TECHNICIAN = "technician"


class OrderStatus(str, Enum):
    """Lifecycle state of a repair order."""

    PENDING = "pending"
    PAID = "paid"
    RETURNED = "returned"
    CANCELLED = "cancelled"


class PaymentMethod(str, Enum):
    """How the customer paid for a repair order."""

    CASH = "cash"
    CARD = "card"
    TRANSFER = "transfer"
    NONE = "none"


class AdjustmentType(str, Enum):
    """Advance, discount or loan granted to a technician.

    Loans are informational only and never enter balance arithmetic.
    """

    ADVANCE = "advance"
    DISCOUNT = "discount"
    LOAN = "loan"

    @property
    def is_deductible(self) -> bool:
        return self is not AdjustmentType.LOAN


class SettlementPaymentMethod(str, Enum):
    """How a settlement was handed over to the technician."""

    CASH = "cash"
    TRANSFER = "transfer"
    OTHER = "other"


class SettlementContext(str, Enum):
    """Screen a settlement was registered from."""

    TECHNICIAN = "technician"
    ADMIN = "admin"


class PayoutPreset(str, Enum):
    NET = "net"
    FULL = "full"


class DistributionOrder(str, Enum):
    """Order in which a deduction budget walks the available adjustments."""

    CREATION = "creation"
    URGENCY = "urgency"
