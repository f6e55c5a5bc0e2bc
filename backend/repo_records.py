"""
Repository: SQL operations for the records table.

This file contains only DB interaction code. It maps `StoredRow` models to
SQL parameters and DB rows back to `StoredRow`. Ownership rules live in
`store.OwnershipStore`; nothing here knows about users or resources.

Important notes:
- The table is a plain key/value layout: `uuid` is the primary key and
  `(owner_tag, ts, uuid)` is the range index used by `query()`.
- We convert `payload` using `Jsonb` so Postgres stores native JSONB.
- Writes commit before the method returns.
- The table name comes from settings and is always quoted through
  `psycopg.sql.Identifier`.
"""

import logging
from typing import Any, Callable, List, Optional

import psycopg
from psycopg import sql
from psycopg.types.json import Jsonb

from db import get_conn
from models import RangeQuery, StoredRow
from settings import settings


logger = logging.getLogger(__name__)

COLUMNS = sql.SQL("uuid, owner_tag, ts, payload")


class RecordRepo:
    """Postgres storage transport. No business logic here.

    Responsibilities:
    - range query by owner tag + timestamp with cursor and limit
    - point get / upsert / delete by uuid
    - keep transaction/commit boundaries local and explicit
    """

    def __init__(
        self,
        table: Optional[str] = None,
        conn_factory: Callable[[], psycopg.Connection] = get_conn,
    ):
        self.table = table or settings.table_name
        self.conn_factory = conn_factory

    def query(self, query: RangeQuery) -> List[StoredRow]:
        """Run a range query and return rows in the requested order.

        The cursor comparison uses `(ts, uuid)` as a row value so that
        records sharing a timestamp are neither repeated nor skipped
        between pages.
        """

        direction = sql.SQL("ASC" if query.ascending else "DESC")
        where = [sql.SQL("owner_tag = %s"), sql.SQL("ts BETWEEN %s AND %s")]
        params: List[Any] = [query.owner_tag, query.start, query.end]
        if query.exclusive_start is not None:
            op = sql.SQL(">" if query.ascending else "<")
            where.append(sql.SQL("(ts, uuid) {} (%s, %s)").format(op))
            params.extend([query.exclusive_start.last_timestamp, query.exclusive_start.last_uuid])
        if query.filters:
            where.append(sql.SQL("payload @> %s"))
            params.append(Jsonb(query.filters))
        stmt = sql.SQL("SELECT {} FROM {} WHERE {} ORDER BY ts {}, uuid {}").format(
            COLUMNS,
            sql.Identifier(self.table),
            sql.SQL(" AND ").join(where),
            direction,
            direction,
        )
        if query.limit:
            stmt = stmt + sql.SQL(" LIMIT %s")
            params.append(query.limit)

        logger.debug("range query on %s for %s", self.table, query.owner_tag)
        with self.conn_factory() as conn:
            with conn.cursor() as cur:
                cur.execute(stmt, params)
                return [self._row(r) for r in cur.fetchall()]

    def get(self, uuid: str) -> Optional[StoredRow]:
        stmt = sql.SQL("SELECT {} FROM {} WHERE uuid = %s").format(
            COLUMNS, sql.Identifier(self.table)
        )
        with self.conn_factory() as conn:
            with conn.cursor() as cur:
                cur.execute(stmt, (uuid,))
                r = cur.fetchone()
        return self._row(r) if r else None

    def put(self, row: StoredRow) -> None:
        """Insert or overwrite the row with `row.uuid` (last writer wins)."""

        stmt = sql.SQL(
            "INSERT INTO {} (uuid, owner_tag, ts, payload) VALUES (%s, %s, %s, %s) "
            "ON CONFLICT (uuid) DO UPDATE SET owner_tag = EXCLUDED.owner_tag, "
            "ts = EXCLUDED.ts, payload = EXCLUDED.payload"
        ).format(sql.Identifier(self.table))
        with self.conn_factory() as conn:
            with conn.cursor() as cur:
                cur.execute(stmt, (row.uuid, row.owner_tag, row.timestamp, Jsonb(row.payload)))
            conn.commit()

    def delete(self, uuid: str) -> None:
        stmt = sql.SQL("DELETE FROM {} WHERE uuid = %s").format(sql.Identifier(self.table))
        with self.conn_factory() as conn:
            with conn.cursor() as cur:
                cur.execute(stmt, (uuid,))
            conn.commit()

    def ping(self) -> None:
        """Lightweight DB health check. Raises on error."""

        with self.conn_factory() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1;")

    @staticmethod
    def _row(r) -> StoredRow:
        return StoredRow(uuid=r[0], owner_tag=r[1], timestamp=r[2], payload=r[3] or {})
