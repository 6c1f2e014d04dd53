from __future__ import annotations

import json
import logging
from datetime import date, timedelta
from typing import Any, Dict, Optional, Sequence

from ..common.validators import parse_settlement_method
from ..core.enums import SettlementContext, SettlementPaymentMethod
from ..core.exceptions import ConcurrentModificationError
from ..database.connection import DatabaseConnection
from ..database.mysql_base import as_date, as_int, db_cursor, fetchall, fetchone, schema_guard
from .model import SettlementBreakdown, SettlementDraft, SettlementTransaction, WriteExpectation
from .repository import SettlementRepository

logger = logging.getLogger(__name__)

_COLUMNS = """
    settlement_id, technician_id, week_start, amount, payment_method, context, note, details, created_by, created_at
"""


def _load_details(raw: Any) -> Optional[dict]:
    if raw is None or raw == "":
        return None
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8")
    return json.loads(raw)


def _to_settlement(r: Dict[str, Any]) -> SettlementTransaction:
    return SettlementTransaction(
        settlement_id=int(r["settlement_id"]),
        technician_id=int(r["technician_id"]),
        week_start=as_date(r["week_start"]),
        amount=int(r["amount"]),
        payment_method=parse_settlement_method(r["payment_method"]),
        breakdown=SettlementBreakdown.from_dict(_load_details(r.get("details"))),
        created_at=r["created_at"],
        created_by=int(r["created_by"]) if r.get("created_by") is not None else None,
        context=SettlementContext(r.get("context") or SettlementContext.ADMIN.value),
        note=r.get("note"),
    )


class MySQLSettlementRepository(SettlementRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def list_for_week(self, *, technician_id: int, week_start: date) -> Sequence[SettlementTransaction]:
        with schema_guard("salary_settlements"), db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM salary_settlements
                WHERE technician_id=%s AND week_start=%s
                ORDER BY created_at, settlement_id
                """,
                (int(technician_id), week_start),
            )
            return [_to_settlement(r) for r in fetchall(cur)]

    def list_history(
        self,
        *,
        technician_id: Optional[int] = None,
        payment_method: Optional[SettlementPaymentMethod] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
        limit: int = 500,
    ) -> Sequence[SettlementTransaction]:
        where = ["1=1"]
        params: list[Any] = []
        if technician_id:
            where.append("technician_id=%s")
            params.append(int(technician_id))
        if payment_method:
            where.append("payment_method=%s")
            params.append(payment_method.value)
        if start:
            where.append("created_at >= %s")
            params.append(start)
        if end:
            where.append("created_at < %s")
            params.append(end + timedelta(days=1))
        params.append(int(limit))

        with schema_guard("salary_settlements"), db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM salary_settlements
                WHERE {" AND ".join(where)}
                ORDER BY created_at DESC, settlement_id DESC
                LIMIT %s
                """,
                tuple(params),
            )
            return [_to_settlement(r) for r in fetchall(cur)]

    def loan_repayments_total(self, technician_id: int) -> int:
        with schema_guard("salary_settlements"), db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT COALESCE(SUM(CAST(JSON_EXTRACT(details, '$.loan_payments_total') AS SIGNED)), 0) AS repaid
                FROM salary_settlements
                WHERE technician_id=%s
                """,
                (int(technician_id),),
            )
            r = fetchone(cur)
            return as_int(r["repaid"]) if r else 0

    def _check_expectation(self, cur, draft: SettlementDraft, expectation: WriteExpectation) -> None:
        touched = sorted({a.adjustment_id for a in draft.applications} | {c.adjustment_id for c in draft.carry_overs})
        if touched:
            placeholders = ", ".join(["%s"] * len(touched))
            cur.execute(
                f"SELECT adjustment_id FROM salary_adjustments WHERE adjustment_id IN ({placeholders}) FOR UPDATE",
                tuple(touched),
            )
            present = {int(r["adjustment_id"]) for r in fetchall(cur)}
            if present != set(touched):
                raise ConcurrentModificationError(
                    "An adjustment in this settlement was deleted meanwhile. Reload and try again."
                )

        if expectation.applied_totals or draft.applications:
            with schema_guard("salary_adjustment_applications"):
                cur.execute(
                    """
                    SELECT adjustment_id, SUM(applied_amount) AS applied
                    FROM salary_adjustment_applications
                    WHERE technician_id=%s
                    GROUP BY adjustment_id
                    LOCK IN SHARE MODE
                    """,
                    (draft.technician_id,),
                )
                current = {int(r["adjustment_id"]): as_int(r["applied"]) for r in fetchall(cur)}
            for adjustment_id, expected in expectation.applied_totals.items():
                if current.get(adjustment_id, 0) != expected:
                    raise ConcurrentModificationError(
                        "Adjustments changed while this settlement was being prepared. Reload and try again."
                    )

        cur.execute(
            f"""
            SELECT {_COLUMNS}
            FROM salary_settlements
            WHERE technician_id=%s AND week_start=%s
            LOCK IN SHARE MODE
            """,
            (draft.technician_id, draft.week_start),
        )
        settled = sum(_to_settlement(r).resolved_total for r in fetchall(cur))
        if settled != expectation.settled_total:
            raise ConcurrentModificationError(
                "Another settlement was registered for this week. Reload and try again."
            )

    def record(self, draft: SettlementDraft, expectation: WriteExpectation) -> SettlementTransaction:
        with schema_guard("salary_settlements"), db_cursor(self._conn_factory) as (_, cur):
            # Single writer per technician until commit/rollback.
            with schema_guard("settlement_locks"):
                cur.execute(
                    """
                    INSERT INTO settlement_locks (technician_id, locked_at) VALUES (%s, %s)
                    ON DUPLICATE KEY UPDATE locked_at=VALUES(locked_at)
                    """,
                    (draft.technician_id, draft.created_at),
                )
                cur.execute(
                    "SELECT technician_id FROM settlement_locks WHERE technician_id=%s FOR UPDATE",
                    (draft.technician_id,),
                )
                fetchall(cur)

            self._check_expectation(cur, draft, expectation)

            cur.execute(
                """
                INSERT INTO salary_settlements (technician_id, week_start, amount, payment_method, context, note,
                                                details, created_by, created_at)
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
                """,
                (
                    draft.technician_id,
                    draft.week_start,
                    draft.amount,
                    draft.payment_method.value,
                    draft.context.value,
                    draft.note,
                    json.dumps(draft.breakdown.to_dict()),
                    draft.created_by,
                    draft.created_at,
                ),
            )
            settlement_id = int(cur.lastrowid)

            if draft.applications:
                with schema_guard("salary_adjustment_applications"):
                    cur.executemany(
                        """
                        INSERT INTO salary_adjustment_applications (adjustment_id, technician_id, settlement_id,
                                                                    week_start, applied_amount, created_by, created_at)
                        VALUES (%s, %s, %s, %s, %s, %s, %s)
                        """,
                        [
                            (
                                a.adjustment_id,
                                draft.technician_id,
                                settlement_id,
                                draft.week_start,
                                a.applied_amount,
                                draft.created_by,
                                draft.created_at,
                            )
                            for a in draft.applications
                        ],
                    )

            for carry in draft.carry_overs:
                cur.execute(
                    "UPDATE salary_adjustments SET available_from=%s, note=%s WHERE adjustment_id=%s",
                    (carry.available_from, carry.note, carry.adjustment_id),
                )

        logger.debug("Settlement %s written with %s applications", settlement_id, len(draft.applications))
        return SettlementTransaction(
            settlement_id=settlement_id,
            technician_id=draft.technician_id,
            week_start=draft.week_start,
            amount=draft.amount,
            payment_method=draft.payment_method,
            breakdown=draft.breakdown,
            created_at=draft.created_at,
            created_by=draft.created_by,
            context=draft.context,
            note=draft.note,
        )
