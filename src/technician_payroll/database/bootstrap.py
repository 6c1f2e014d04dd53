from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Iterator

from .connection import DatabaseConnection, DBConfig

logger = logging.getLogger(__name__)

# Settlement bookkeeping cannot run without these; the engine degrades (with
# setup warnings) only when the applications or settlements table is absent.
REQUIRED_TABLES = (
    "orders",
    "salary_adjustments",
    "salary_adjustment_applications",
    "salary_settlements",
    "settlement_locks",
)

_DATABASE_DIRECTIVE = re.compile(r"^\s*(CREATE\s+DATABASE|USE)\b", re.IGNORECASE)


def _connection(db_config: dict) -> DatabaseConnection:
    return DatabaseConnection(DBConfig.from_mapping(db_config))


def split_statements(sql: str) -> Iterator[str]:
    """Yield the statements of a schema or seed file.

    Statements end with ';' at the end of a line. Full-line '--' comments and
    CREATE DATABASE / USE directives are dropped so the file applies to
    whichever database is configured.
    """
    statement: list[str] = []
    for line in sql.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("--"):
            continue
        statement.append(line)
        if stripped.endswith(";"):
            text = "\n".join(statement).strip().rstrip(";").strip()
            statement = []
            if text and not _DATABASE_DIRECTIVE.match(text):
                yield text
    tail = "\n".join(statement).strip()
    if tail and not _DATABASE_DIRECTIVE.match(tail):
        yield tail


def _run_sql_file(db_config: dict, path: Path) -> int:
    conn = _connection(db_config).connect()
    count = 0
    try:
        cur = conn.cursor()
        try:
            for statement in split_statements(path.read_text(encoding="utf-8")):
                cur.execute(statement)
                count += 1
        finally:
            cur.close()
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()
    return count


def ensure_database_exists(db_config: dict) -> None:
    factory = _connection(db_config)
    conn = factory.connect(with_database=False)
    try:
        cur = conn.cursor()
        cur.execute(
            f"CREATE DATABASE IF NOT EXISTS `{factory.database}` "
            "CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci"
        )
        conn.commit()
    finally:
        conn.close()


def apply_schema(db_config: dict, *, schema_path: str | Path) -> None:
    ensure_database_exists(db_config)
    count = _run_sql_file(db_config, Path(schema_path))
    logger.info("Applied %s schema statements from %s", count, schema_path)


def apply_seed_sql(db_config: dict, *, seed_path: str | Path) -> None:
    count = _run_sql_file(db_config, Path(seed_path))
    logger.info("Applied %s seed statements from %s", count, seed_path)


def list_tables(db_config: dict) -> list[str]:
    conn = _connection(db_config).connect()
    try:
        cur = conn.cursor()
        cur.execute("SHOW TABLES")
        return [row[0] for row in cur.fetchall()]
    finally:
        conn.close()


def missing_tables(db_config: dict) -> list[str]:
    present = set(list_tables(db_config))
    return [table for table in REQUIRED_TABLES if table not in present]
