from __future__ import annotations

from typing import Any, Dict, Optional, Sequence

from ..common.validators import parse_adjustment_type
from ..database.connection import DatabaseConnection
from ..database.mysql_base import as_date, as_int, db_cursor, fetchall, fetchone, schema_guard
from .model import NewAdjustment, SalaryAdjustment
from .repository import AdjustmentRepository


def _to_adjustment(r: Dict[str, Any]) -> SalaryAdjustment:
    return SalaryAdjustment(
        adjustment_id=int(r["adjustment_id"]),
        technician_id=int(r["technician_id"]),
        type=parse_adjustment_type(r["type"]),
        amount=int(r["amount"]),
        created_at=r["created_at"],
        note=r.get("note"),
        available_from=as_date(r.get("available_from")),
    )


class MySQLAdjustmentRepository(AdjustmentRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get(self, adjustment_id: int) -> Optional[SalaryAdjustment]:
        with schema_guard("salary_adjustments"), db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT adjustment_id, technician_id, type, amount, note, created_at, available_from
                FROM salary_adjustments
                WHERE adjustment_id=%s
                """,
                (int(adjustment_id),),
            )
            r = fetchone(cur)
            return _to_adjustment(r) if r else None

    def list_for_technician(self, technician_id: int) -> Sequence[SalaryAdjustment]:
        with schema_guard("salary_adjustments"), db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT adjustment_id, technician_id, type, amount, note, created_at, available_from
                FROM salary_adjustments
                WHERE technician_id=%s
                ORDER BY created_at, adjustment_id
                """,
                (int(technician_id),),
            )
            return [_to_adjustment(r) for r in fetchall(cur)]

    def applied_totals(self, technician_id: int) -> dict[int, int]:
        with schema_guard("salary_adjustment_applications"), db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT adjustment_id, SUM(applied_amount) AS applied
                FROM salary_adjustment_applications
                WHERE technician_id=%s
                GROUP BY adjustment_id
                """,
                (int(technician_id),),
            )
            return {int(r["adjustment_id"]): as_int(r["applied"]) for r in fetchall(cur)}

    def create(self, adjustment: NewAdjustment) -> int:
        with schema_guard("salary_adjustments"), db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO salary_adjustments (technician_id, type, amount, note, created_at, available_from)
                VALUES (%s, %s, %s, %s, %s, %s)
                """,
                (
                    adjustment.technician_id,
                    adjustment.type.value,
                    adjustment.amount,
                    adjustment.note,
                    adjustment.created_at,
                    adjustment.available_from,
                ),
            )
            return int(cur.lastrowid)

    def delete(self, adjustment_id: int) -> bool:
        # applications go with it (ON DELETE CASCADE)
        with schema_guard("salary_adjustments"), db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM salary_adjustments WHERE adjustment_id=%s", (int(adjustment_id),))
            return cur.rowcount > 0
