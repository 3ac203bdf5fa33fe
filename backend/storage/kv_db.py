"""
Postgres-backed key-value store (Supabase `kv_store` table).

Why: The in-memory store is not durable and does not scale across instances.
This store keeps every record as one JSONB row keyed by its prefixed string
key, which is the layout the portal has always used on Supabase.

Schema:
    create table public.kv_store (key text primary key, value jsonb not null);

Security:
- Intended to be used with a service role connection string; the table must
  not be reachable by anon clients.
- The table identifier is validated once at construction and never taken
  from request data.

Note: This module uses psycopg3. It is imported only when enabled via
`KV_BACKEND=db`. Tests keep using the in-memory store or a fake driver.
"""
from __future__ import annotations

from typing import List, Optional
import os
import re

try:
    import psycopg
    from psycopg.types.json import Json
    HAVE_PSYCOPG = True
except Exception:  # pragma: no cover - optional dependency in dev
    psycopg = None  # type: ignore
    Json = None  # type: ignore
    HAVE_PSYCOPG = False


_TABLE_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,62}(?:\.[A-Za-z_][A-Za-z0-9_]{0,62})?$")


def _like_prefix(prefix: str) -> str:
    escaped = prefix.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"{escaped}%"


class DBKeyValueStore:
    """Key-value store persisted in Postgres.

    Parameters
    ----------
    dsn:
        Psycopg3 connection string. Use a service role in Supabase.
    table:
        Fully qualified table name. Defaults to `public.kv_store`.
    """

    def __init__(self, dsn: str | None = None, table: str | None = None) -> None:
        if not HAVE_PSYCOPG:
            raise RuntimeError("psycopg3 is required for DBKeyValueStore")
        self._dsn = dsn or os.getenv("DATABASE_URL") or os.getenv("SUPABASE_DB_URL", "")
        if not self._dsn:
            raise RuntimeError("No database DSN provided for DBKeyValueStore")
        table = table or os.getenv("KV_TABLE", "public.kv_store")
        if not _TABLE_RE.match(table or ""):
            raise ValueError("Invalid table name")
        self._table = table

    def get(self, key: str) -> Optional[dict]:
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(f"select value from {self._table} where key = %s", (key,))
                row = cur.fetchone()
        return row[0] if row else None

    def set(self, key: str, value: dict) -> None:
        with psycopg.connect(self._dsn, autocommit=True) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"insert into {self._table} (key, value) values (%s, %s) "
                    "on conflict (key) do update set value = excluded.value",
                    (key, Json(value)),
                )

    def delete(self, key: str) -> None:
        with psycopg.connect(self._dsn, autocommit=True) as conn:
            with conn.cursor() as cur:
                cur.execute(f"delete from {self._table} where key = %s", (key,))

    def get_by_prefix(self, prefix: str) -> List[dict]:
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"select value from {self._table} where key like %s order by key",
                    (_like_prefix(prefix),),
                )
                rows = cur.fetchall()
        return [row[0] for row in rows or []]

    def add(self, key: str, value: dict) -> bool:
        with psycopg.connect(self._dsn, autocommit=True) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"insert into {self._table} (key, value) values (%s, %s) "
                    "on conflict (key) do nothing returning key",
                    (key, Json(value)),
                )
                row = cur.fetchone()
        return row is not None

    def compare_and_set(self, key: str, expected: dict, value: dict) -> bool:
        with psycopg.connect(self._dsn, autocommit=True) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"update {self._table} set value = %s where key = %s and value = %s returning key",
                    (Json(value), key, Json(expected)),
                )
                row = cur.fetchone()
        return row is not None


__all__ = ["DBKeyValueStore"]
