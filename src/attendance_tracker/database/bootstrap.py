from __future__ import annotations

import re
from pathlib import Path
from typing import Optional

import structlog

from .connection import DatabaseConnection
from .mysql_base import db_cursor

logger = structlog.get_logger(__name__)

SCHEMA_PATH = Path(__file__).resolve().parent / "schema.sql"

# Statements end with ';' at end of line. schema.sql has no string literals.
_STATEMENT_END = re.compile(r";\s*$", re.MULTILINE)
_DATABASE_LEVEL = re.compile(r"^\s*(CREATE\s+DATABASE|USE)\b", re.IGNORECASE)


def schema_statements(sql: str) -> list[str]:
    """Table-level statements of a schema file; `--` comment lines and database-level statements dropped."""
    body = "\n".join(line for line in sql.splitlines() if not line.lstrip().startswith("--"))
    statements = [s.strip() for s in _STATEMENT_END.split(body)]
    return [s for s in statements if s and not _DATABASE_LEVEL.match(s)]


def ensure_database_exists(conn_factory: DatabaseConnection) -> None:
    conn = conn_factory.connect_server()
    try:
        cur = conn.cursor()
        cur.execute(
            f"CREATE DATABASE IF NOT EXISTS `{conn_factory.database}` "
            "CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci"
        )
        conn.commit()
    finally:
        conn.close()


def apply_schema(conn_factory: DatabaseConnection, *, schema_path: Optional[str | Path] = None) -> int:
    """Apply schema.sql (idempotent CREATE ... IF NOT EXISTS). Returns statement count."""
    ensure_database_exists(conn_factory)

    path = Path(schema_path) if schema_path else SCHEMA_PATH
    statements = schema_statements(path.read_text(encoding="utf-8"))
    with db_cursor(conn_factory, dictionary=False) as cur:
        for stmt in statements:
            cur.execute(stmt)

    logger.info("schema_applied", database=conn_factory.database, statements=len(statements))
    return len(statements)


def list_tables(conn_factory: DatabaseConnection) -> list[str]:
    with db_cursor(conn_factory, dictionary=False) as cur:
        cur.execute("SHOW TABLES")
        return [str(row[0]) for row in cur.fetchall()]
