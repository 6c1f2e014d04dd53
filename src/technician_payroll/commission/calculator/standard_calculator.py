from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import ROUND_DOWN, Decimal, InvalidOperation
from typing import Any

from ...core.constants import DEFAULT_CARD_TAX_RATE, DEFAULT_COMMISSION_RATE
from ...core.enums import PaymentMethod
from .base import CommissionCalculator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommissionPolicy:
    """Rates applied by the standard calculator, read from settings."""

    rate: Decimal = DEFAULT_COMMISSION_RATE
    card_tax_rate: Decimal = DEFAULT_CARD_TAX_RATE

    @classmethod
    def from_settings(cls, settings: Any) -> "CommissionPolicy":
        return cls(
            rate=Decimal(str(getattr(settings, "COMMISSION_RATE", DEFAULT_COMMISSION_RATE))),
            card_tax_rate=Decimal(str(getattr(settings, "CARD_TAX_RATE", DEFAULT_CARD_TAX_RATE))),
        )


def _clamp_amount(value: Any) -> Decimal:
    """Invalid, non-finite or negative input counts as 0."""
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        return Decimal(0)
    if not amount.is_finite() or amount < 0:
        return Decimal(0)
    return amount


class StandardCommissionCalculator(CommissionCalculator):
    """Standard rule: rate x (price - replacement cost), never below 0.

    Card and transfer prices are tax-inclusive, so the tax is divided out of
    the price before the margin is taken. The result is truncated to whole
    currency units. Never raises.
    """

    def __init__(self, policy: CommissionPolicy | None = None):
        self._policy = policy or CommissionPolicy()

    @property
    def policy(self) -> CommissionPolicy:
        return self._policy

    def commission(self, payment_method: PaymentMethod, replacement_cost: Any, total_price: Any) -> int:
        cost = _clamp_amount(replacement_cost)
        price = _clamp_amount(total_price)

        if payment_method == PaymentMethod.NONE:
            # The caller decides whether to keep a stored commission instead.
            logger.warning("Commission requested without a payment method; returning 0")
            return 0
        if payment_method in (PaymentMethod.CARD, PaymentMethod.TRANSFER):
            price = price / (Decimal(1) + self._policy.card_tax_rate)
        elif payment_method != PaymentMethod.CASH:
            logger.warning("Unknown payment method %r; returning 0", payment_method)
            return 0

        margin = price - cost
        if margin <= 0:
            return 0
        return int((margin * self._policy.rate).to_integral_value(rounding=ROUND_DOWN))


def calc_commission(payment_method: PaymentMethod, replacement_cost: Any, total_price: Any) -> int:
    """Commission with the default policy."""
    return StandardCommissionCalculator().commission(payment_method, replacement_cost, total_price)
