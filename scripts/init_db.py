from __future__ import annotations

import importlib

from dotenv import load_dotenv

from attendance_tracker.config import get_settings_module
from attendance_tracker.database.bootstrap import apply_schema, list_tables
from attendance_tracker.database.connection import DatabaseConnection
from attendance_tracker.logging import setup_logging


def main() -> None:
    load_dotenv(override=False)
    settings = importlib.import_module(get_settings_module())
    setup_logging(getattr(settings, "LOG_LEVEL", None))

    conn = DatabaseConnection.from_mapping(settings.DB_CONFIG)
    apply_schema(conn)
    tables = list_tables(conn)
    print(f"OK: Applied schema.sql -> {conn.describe()} (tables={len(tables)})")


if __name__ == "__main__":
    main()
