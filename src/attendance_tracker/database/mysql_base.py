from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence

from .connection import DatabaseConnection


@contextmanager
def db_cursor(conn_factory: DatabaseConnection, *, dictionary: bool = True) -> Iterator[Any]:
    """One connection, one transaction: commit on success, roll back on error."""
    conn = conn_factory.connect()
    try:
        cur = conn.cursor(dictionary=dictionary)
        try:
            yield cur
            conn.commit()
        finally:
            cur.close()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def fetchone(cur) -> Optional[Dict[str, Any]]:
    return cur.fetchone() or None


def fetchall(cur) -> List[Dict[str, Any]]:
    return list(cur.fetchall() or [])


def select_for_update(cur, *, table: str, key_column: str, key: Any, columns: Sequence[str]) -> Optional[Dict[str, Any]]:
    """Read one row and hold its lock until the surrounding transaction ends."""
    cur.execute(f"SELECT {', '.join(columns)} FROM {table} WHERE {key_column}=%s FOR UPDATE", (key,))
    return fetchone(cur)


def conditional_update(
    cur,
    *,
    table: str,
    assignments: Mapping[str, Any],
    key_column: str,
    key: Any,
    guard: Optional[Mapping[str, Any]] = None,
) -> int:
    """UPDATE one row by key, only while every `guard` column still holds its value.

    Returns the number of rows changed (0 when the guard no longer matches).
    """
    if not assignments:
        return 0
    where = [f"{key_column}=%s"]
    params: list[Any] = [*assignments.values(), key]
    for column, value in (guard or {}).items():
        where.append(f"{column}=%s")
        params.append(value)
    cur.execute(
        f"UPDATE {table} SET {', '.join(f'{c}=%s' for c in assignments)} WHERE {' AND '.join(where)}",
        tuple(params),
    )
    return int(cur.rowcount)
