from __future__ import annotations

import importlib
from pathlib import Path

from technician_payroll.config import get_settings_module
from technician_payroll.database.bootstrap import apply_schema, list_tables, missing_tables


def main() -> None:
    settings = importlib.import_module(get_settings_module())
    db_config = dict(settings.DB_CONFIG)

    schema_path = Path(__file__).resolve().parents[1] / "database" / "schema.sql"
    apply_schema(db_config, schema_path=schema_path)
    tables = list_tables(db_config)
    print(
        "OK: Applied schema.sql -> "
        f"{db_config.get('user')}@{db_config.get('host')}:{db_config.get('port', 3306)}/{db_config.get('database')} "
        f"(tables={len(tables)})"
    )
    missing = missing_tables(db_config)
    if missing:
        print("WARNING: still missing " + ", ".join(missing))


if __name__ == "__main__":
    main()
