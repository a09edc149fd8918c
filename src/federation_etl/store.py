"""federation_etl.store

PostgreSQL access for the importer.

The only write the importer performs is insert-or-ignore:

    INSERT INTO <table> (c1, c2, ...)
    VALUES (%s, DEFAULT, ...), (%s, %s, ...)
    ON CONFLICT (<key>) DO NOTHING

Columns a row does not carry are written as DEFAULT so the column default
applies; existing keys are skipped, never updated.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol, Sequence

import psycopg
from psycopg import sql
from psycopg.rows import dict_row

from federation_etl.shared import StoreError

log = logging.getLogger(__name__)


class BulkStore(Protocol):
    async def insert_ignore(
        self,
        table: str,
        rows: Sequence[dict[str, Any]],
        key: str = "id",
    ) -> int:
        """Insert rows, skipping existing keys. Return the number inserted."""
        ...

    async def list_athletes(self, limit: int | None = None) -> list[dict[str, Any]]:
        ...


def build_insert_ignore(
    table: str,
    rows: Sequence[dict[str, Any]],
    key: str = "id",
) -> tuple[sql.Composed, list[Any]]:
    """Compose the multi-row insert-or-ignore statement and its parameters.

    The column list is the union of the rows' keys in first-seen order.
    """
    columns: list[str] = []
    for row in rows:
        for col in row:
            if col not in columns:
                columns.append(col)

    params: list[Any] = []
    values_sql: list[sql.Composable] = []
    for row in rows:
        cells: list[sql.Composable] = []
        for col in columns:
            if col in row:
                cells.append(sql.Placeholder())
                params.append(row[col])
            else:
                cells.append(sql.SQL("DEFAULT"))
        values_sql.append(sql.SQL("({})").format(sql.SQL(", ").join(cells)))

    query = sql.SQL(
        "INSERT INTO {table} ({columns}) VALUES {values} "
        "ON CONFLICT ({key}) DO NOTHING"
    ).format(
        table=sql.Identifier(table),
        columns=sql.SQL(", ").join(sql.Identifier(c) for c in columns),
        values=sql.SQL(", ").join(values_sql),
        key=sql.Identifier(key),
    )
    return query, params


class PostgresStore:
    """BulkStore over a single psycopg AsyncConnection.

    psycopg serializes concurrent operations on one connection, so the
    results reconciler's tasks can share it.
    """

    def __init__(self, conn: psycopg.AsyncConnection) -> None:
        self.conn = conn

    @classmethod
    async def connect(cls, dsn: str, autocommit: bool = True) -> PostgresStore:
        try:
            conn = await psycopg.AsyncConnection.connect(dsn, autocommit=autocommit)
        except psycopg.Error as exc:
            raise StoreError(f"cannot connect to database: {exc}") from exc
        return cls(conn)

    async def insert_ignore(
        self,
        table: str,
        rows: Sequence[dict[str, Any]],
        key: str = "id",
    ) -> int:
        if not rows:
            return 0
        query, params = build_insert_ignore(table, rows, key)
        try:
            cur = await self.conn.execute(query, params)
        except psycopg.Error as exc:
            raise StoreError(f"bulk insert into {table} failed: {exc}") from exc
        return max(cur.rowcount, 0)

    async def list_athletes(self, limit: int | None = None) -> list[dict[str, Any]]:
        query = sql.SQL(
            "SELECT id, firstname, lastname, live_id FROM athlete ORDER BY id"
        )
        params: list[Any] = []
        if limit is not None:
            query = query + sql.SQL(" LIMIT %s")
            params.append(limit)
        try:
            async with self.conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(query, params)
                return await cur.fetchall()
        except psycopg.Error as exc:
            raise StoreError(f"cannot list athletes: {exc}") from exc

    async def count_rows(self, table: str) -> int:
        cur = await self.conn.execute(
            sql.SQL("SELECT count(*) FROM {}").format(sql.Identifier(table))
        )
        row = await cur.fetchone()
        return int(row[0])

    async def rollback(self) -> None:
        await self.conn.rollback()

    async def close(self) -> None:
        if not self.conn.closed:
            await self.conn.close()
