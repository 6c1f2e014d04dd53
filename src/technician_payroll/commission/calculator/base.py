from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from ...core.enums import PaymentMethod


class CommissionCalculator(ABC):
    """Calculator interface (Strategy Pattern for commissions)."""

    @abstractmethod
    def commission(self, payment_method: PaymentMethod, replacement_cost: Any, total_price: Any) -> int:
        raise NotImplementedError
