"""Database helpers: connection pool, upserts for auth users and logins, run tracking."""

from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from dataclasses import astuple, fields
from typing import Any, Generator, Optional, Protocol, Sequence

import psycopg2
import psycopg2.extras
import psycopg2.pool

from scripts.auth_sync.config import DatabaseConfig
from scripts.auth_sync.models import AuthUser, AuthUserLogin

logger = logging.getLogger("auth_sync.db")

AUTH_USER_COLUMNS = [f.name for f in fields(AuthUser)]
AUTH_USER_CONFLICT = ["user_id"]

AUTH_USER_LOGIN_COLUMNS = [f.name for f in fields(AuthUserLogin)]
AUTH_USER_LOGIN_CONFLICT = ["user_id", "log_id"]


class UpsertSink(Protocol):
    """What the sync needs from storage. Both writes must be idempotent."""

    def upsert_auth_user(self, auth_user: AuthUser) -> int: ...

    def upsert_auth_user_login(self, login: AuthUserLogin) -> int: ...

    def record_run_start(self, provider: str, metadata: Optional[dict] = None) -> str: ...

    def record_run_end(
        self,
        run_id: str,
        status: str,
        records_upserted: int = 0,
        error_message: Optional[str] = None,
        error_detail: Optional[dict] = None,
    ) -> None: ...


class Database:
    """Thin wrapper around a ThreadedConnectionPool with upsert helpers."""

    def __init__(self, config: DatabaseConfig) -> None:
        self._pool = psycopg2.pool.ThreadedConnectionPool(
            minconn=config.min_connections,
            maxconn=config.max_connections,
            dsn=config.url,
        )

    def close(self) -> None:
        self._pool.closeall()

    @contextmanager
    def connection(self) -> Generator:
        conn = self._pool.getconn()
        try:
            yield conn
        finally:
            self._pool.putconn(conn)

    @contextmanager
    def transaction(self) -> Generator:
        """Yield a cursor inside an auto-commit/rollback transaction."""
        with self.connection() as conn:
            try:
                with conn.cursor() as cur:
                    yield cur
                conn.commit()
            except Exception:
                conn.rollback()
                raise

    @staticmethod
    def upsert_batch(
        cur,
        table: str,
        columns: list[str],
        rows: Sequence[tuple],
        conflict_columns: list[str],
    ) -> int:
        """Bulk upsert using execute_values with ON CONFLICT DO UPDATE.

        Every non-key column is overwritten. Returns the number of rows affected.
        """
        if not rows:
            return 0

        update_columns = [c for c in columns if c not in conflict_columns]
        col_list = ", ".join(columns)
        conflict_list = ", ".join(conflict_columns)
        set_clauses = ", ".join(f"{c} = EXCLUDED.{c}" for c in update_columns)
        set_clauses += ", last_synced_at = NOW()"

        sql = (
            f"INSERT INTO {table} ({col_list}) VALUES %s "
            f"ON CONFLICT ({conflict_list}) DO UPDATE SET {set_clauses}"
        )

        psycopg2.extras.execute_values(cur, sql, rows, page_size=500)
        return cur.rowcount

    def upsert_auth_user(self, auth_user: AuthUser) -> int:
        with self.transaction() as cur:
            return self.upsert_batch(
                cur, "auth_users", AUTH_USER_COLUMNS, [astuple(auth_user)],
                AUTH_USER_CONFLICT,
            )

    def upsert_auth_user_login(self, login: AuthUserLogin) -> int:
        with self.transaction() as cur:
            return self.upsert_batch(
                cur, "auth_user_logins", AUTH_USER_LOGIN_COLUMNS, [astuple(login)],
                AUTH_USER_LOGIN_CONFLICT,
            )

    # ------------------------------------------------------------------
    # Ingestion run tracking
    # ------------------------------------------------------------------

    def record_run_start(self, provider: str, metadata: Optional[dict] = None) -> str:
        """Insert a new ingestion_runs row with status RUNNING. Returns the run id."""
        run_id = str(uuid.uuid4())
        with self.transaction() as cur:
            cur.execute(
                """INSERT INTO ingestion_runs (id, provider, status, run_metadata)
                   VALUES (%s, %s, 'RUNNING', %s)""",
                (run_id, provider, psycopg2.extras.Json(metadata or {})),
            )
        return run_id

    def record_run_end(
        self,
        run_id: str,
        status: str,
        records_upserted: int = 0,
        error_message: Optional[str] = None,
        error_detail: Optional[dict] = None,
    ) -> None:
        """Finalise an ingestion_runs row."""
        with self.transaction() as cur:
            cur.execute(
                """UPDATE ingestion_runs
                   SET status = %s,
                       finished_at = NOW(),
                       records_upserted = %s,
                       error_message = %s,
                       error_detail = %s
                   WHERE id = %s""",
                (
                    status,
                    records_upserted,
                    error_message,
                    psycopg2.extras.Json(error_detail) if error_detail else None,
                    run_id,
                ),
            )

    def get_recent_runs(self, limit: int = 10) -> list[dict[str, Any]]:
        """Fetch recent ingestion runs for status display."""
        with self.transaction() as cur:
            cur.execute(
                """SELECT id, provider, status, started_at, finished_at,
                          records_upserted, error_message
                   FROM ingestion_runs
                   ORDER BY started_at DESC LIMIT %s""",
                (limit,),
            )
            cols = [d[0] for d in cur.description]
            return [dict(zip(cols, row)) for row in cur.fetchall()]
