from __future__ import annotations

from typing import Any, Optional

from ..core.enums import AdjustmentType, PaymentMethod, SettlementPaymentMethod
from ..core.exceptions import ValidationError

# Spellings still found in rows written by older clients.
_LEGACY_PAYMENT_METHODS = {
    "efectivo": PaymentMethod.CASH,
    "tarjeta": PaymentMethod.CARD,
    "debito": PaymentMethod.CARD,
    "credito": PaymentMethod.CARD,
    "transferencia": PaymentMethod.TRANSFER,
}

_LEGACY_SETTLEMENT_METHODS = {
    "efectivo": SettlementPaymentMethod.CASH,
    "transferencia": SettlementPaymentMethod.TRANSFER,
    "otro": SettlementPaymentMethod.OTHER,
    "efectivo/transferencia": SettlementPaymentMethod.OTHER,
}


def require_id(value: Any, field_name: str) -> int:
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} is required")
    if parsed <= 0:
        raise ValidationError(f"{field_name} is required")
    return parsed


def require_amount(value: Any, field_name: str, *, allow_zero: bool = False) -> int:
    """Whole currency units; fractions are rejected rather than rounded."""
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a whole number")
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be a whole number")
    if isinstance(value, float) and not value.is_integer():
        raise ValidationError(f"{field_name} must be a whole number")
    if parsed < 0 or (parsed == 0 and not allow_zero):
        qualifier = "zero or more" if allow_zero else "greater than zero"
        raise ValidationError(f"{field_name} must be {qualifier}")
    return parsed


def parse_payment_method(value: Optional[str]) -> PaymentMethod:
    """Map stored or submitted spellings onto the closed payment-method set.

    Empty values mean "not set yet" and become PaymentMethod.NONE.
    """
    raw = (value or "").strip().lower()
    if not raw:
        return PaymentMethod.NONE
    if raw in _LEGACY_PAYMENT_METHODS:
        return _LEGACY_PAYMENT_METHODS[raw]
    try:
        return PaymentMethod(raw)
    except ValueError:
        raise ValidationError(f"Unknown payment method: {value!r}")


def parse_settlement_method(value: Optional[str]) -> SettlementPaymentMethod:
    raw = (value or "").strip().lower()
    if raw in _LEGACY_SETTLEMENT_METHODS:
        return _LEGACY_SETTLEMENT_METHODS[raw]
    try:
        return SettlementPaymentMethod(raw)
    except ValueError:
        raise ValidationError("Payment method must be cash, transfer or other")


def parse_adjustment_type(value: Optional[str]) -> AdjustmentType:
    try:
        return AdjustmentType((value or "").strip().lower())
    except ValueError:
        raise ValidationError("Adjustment type must be advance, discount or loan")


def parse_optional_int(value: Any, field_name: str) -> Optional[int]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a whole number")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be a whole number")
