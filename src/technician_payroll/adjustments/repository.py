from __future__ import annotations

from typing import Optional, Protocol, Sequence

from .model import NewAdjustment, SalaryAdjustment


class AdjustmentRepository(Protocol):
    def get(self, adjustment_id: int) -> Optional[SalaryAdjustment]:
        raise NotImplementedError

    def list_for_technician(self, technician_id: int) -> Sequence[SalaryAdjustment]:
        """All adjustments of a technician, oldest first."""

        raise NotImplementedError

    def applied_totals(self, technician_id: int) -> dict[int, int]:
        """Σ applied_amount per adjustment id, across every week.

        Raises SchemaCompatibilityError when the applications table is missing.
        """

        raise NotImplementedError

    def create(self, adjustment: NewAdjustment) -> int:
        raise NotImplementedError

    def delete(self, adjustment_id: int) -> bool:
        raise NotImplementedError
