from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Sequence
from typing import Any

import psycopg2
import psycopg2.errors
from psycopg2 import sql
from psycopg2.extras import Json

from ..models.execution import UpsertItem, UpsertItemResult, UpsertStatus
from ..models.preview import BaseAction, LookupMatch
from ..services.preview import LookupForbiddenError

"""PostgreSQL client store (psycopg2).

Table layout: one row per client, the normalized payload kept as JSONB.

    id            text primary key
    codigo_conta  text (digits only, nullable)
    data          jsonb
    last_import_id / last_import_row  source of the last write
    created_at / updated_at

Each upsert item runs inside its own SAVEPOINT so a failing item becomes an
``error`` result without discarding the rest of the batch. Updates merge the
JSONB document, fields absent from the payload keep their stored value.
"""

__all__ = [
    "ClientStoreError",
    "NOT_FOUND_MESSAGE",
    "ensure_table",
    "lookup_clients",
    "upsert_clients",
    "PostgresClientStore",
]

logger = logging.getLogger(__name__)

NOT_FOUND_MESSAGE = "Cliente não encontrado para atualização."

# Nested objects merged key by key instead of being replaced.
_NESTED_KEYS = ("metrics", "customFields")


class ClientStoreError(Exception):
    pass


def ensure_table(cursor: Any, table: str) -> None:
    cursor.execute(
        sql.SQL(
            "CREATE TABLE IF NOT EXISTS {} ("
            " id text PRIMARY KEY,"
            " codigo_conta text,"
            " data jsonb NOT NULL DEFAULT '{{}}'::jsonb,"
            " last_import_id text,"
            " last_import_row integer,"
            " created_at timestamptz NOT NULL DEFAULT now(),"
            " updated_at timestamptz NOT NULL DEFAULT now())"
        ).format(sql.Identifier(table))
    )
    cursor.execute(
        sql.SQL("CREATE INDEX IF NOT EXISTS {} ON {} (codigo_conta)").format(
            sql.Identifier(f"{table}_codigo_conta_idx"), sql.Identifier(table)
        )
    )


def lookup_clients(cursor: Any, table: str, accounts: Sequence[str]) -> list[LookupMatch]:
    """Return one match per stored client whose codigo_conta is in ``accounts``."""
    if not accounts:
        return []
    cursor.execute(
        sql.SQL("SELECT id, codigo_conta, data FROM {} WHERE codigo_conta = ANY(%s) ORDER BY created_at, id").format(
            sql.Identifier(table)
        ),
        (list(accounts),),
    )
    matches: list[LookupMatch] = []
    for client_id, codigo_conta, data in cursor.fetchall():
        doc = dict(data or {})
        doc["accountNumber"] = codigo_conta
        doc["clientId"] = client_id
        matches.append(LookupMatch.from_dict(doc))
    return matches


def _insert(cursor: Any, table: str, item: UpsertItem) -> UpsertItemResult:
    client_id = uuid.uuid4().hex
    cursor.execute(
        sql.SQL(
            "INSERT INTO {} (id, codigo_conta, data, last_import_id, last_import_row)"
            " VALUES (%s, %s, %s, %s, %s) RETURNING id"
        ).format(sql.Identifier(table)),
        (client_id, item.data.codigo_conta, Json(item.data.to_dict()), item.import_id, item.row_number),
    )
    row = cursor.fetchone()
    return UpsertItemResult(status=UpsertStatus.CREATED.value, client_id=row[0])


def _update(cursor: Any, table: str, item: UpsertItem) -> UpsertItemResult:
    doc = item.data.to_dict()
    nested = {key: doc.pop(key) for key in _NESTED_KEYS if key in doc}

    merge = sql.SQL("data || %(patch)s::jsonb")
    params: dict[str, Any] = {
        "patch": Json(doc),
        "account": item.data.codigo_conta,
        "import_id": item.import_id,
        "row_number": item.row_number,
    }
    for key, value in nested.items():
        merge = sql.SQL("jsonb_set({merge}, {path}, COALESCE(data->{key}, '{{}}'::jsonb) || {param}::jsonb)").format(
            merge=merge,
            path=sql.Literal("{" + key + "}"),
            key=sql.Literal(key),
            param=sql.Placeholder(key),
        )
        params[key] = Json(value)

    if item.client_id is not None:
        where = sql.SQL("id = %(client_id)s")
        params["client_id"] = item.client_id
    else:
        where = sql.SQL("codigo_conta = %(account)s")

    cursor.execute(
        sql.SQL(
            "UPDATE {table} SET data = {merge},"
            " codigo_conta = COALESCE(%(account)s, codigo_conta),"
            " last_import_id = %(import_id)s, last_import_row = %(row_number)s,"
            " updated_at = now()"
            " WHERE {where} RETURNING id"
        ).format(table=sql.Identifier(table), merge=merge, where=where),
        params,
    )
    rows = cursor.fetchall()
    if len(rows) != 1:
        raise ClientStoreError(NOT_FOUND_MESSAGE if not rows else "Mais de um cliente com a mesma conta.")
    return UpsertItemResult(status=UpsertStatus.UPDATED.value, client_id=rows[0][0])


def upsert_clients(cursor: Any, table: str, items: Sequence[UpsertItem]) -> list[UpsertItemResult]:
    """Apply items in order, returning one positional result per item."""
    results: list[UpsertItemResult] = []
    for item in items:
        cursor.execute("SAVEPOINT client_import_item")
        try:
            if item.action is BaseAction.CREATE:
                result = _insert(cursor, table, item)
            else:
                result = _update(cursor, table, item)
        except (psycopg2.Error, ClientStoreError) as e:
            cursor.execute("ROLLBACK TO SAVEPOINT client_import_item")
            message = getattr(e, "pgerror", None) or str(e)
            logger.debug("upsert item failed row=%d: %s", item.row_number, message)
            results.append(UpsertItemResult(status=UpsertStatus.ERROR.value, error=message.strip()))
            continue
        cursor.execute("RELEASE SAVEPOINT client_import_item")
        results.append(result)
    return results


class PostgresClientStore:
    """Async facade over a psycopg2 connection.

    The blocking driver calls run in a worker thread; each upsert batch is
    committed on its own.
    """

    def __init__(self, conn: Any, table: str = "clientes") -> None:
        self.conn = conn
        self.table = table

    def _lookup_sync(self, accounts: list[str]) -> list[LookupMatch]:
        try:
            with self.conn.cursor() as cur:
                matches = lookup_clients(cur, self.table, accounts)
            self.conn.rollback()
        except psycopg2.errors.InsufficientPrivilege as e:
            self.conn.rollback()
            raise LookupForbiddenError(str(e)) from e
        except psycopg2.Error as e:
            self.conn.rollback()
            raise ClientStoreError(f"lookup failed: {e}") from e
        return matches

    def _upsert_sync(self, items: list[UpsertItem]) -> list[UpsertItemResult]:
        try:
            with self.conn.cursor() as cur:
                results = upsert_clients(cur, self.table, items)
            self.conn.commit()
        except psycopg2.Error as e:
            self.conn.rollback()
            raise ClientStoreError(f"upsert failed: {e}") from e
        return results

    async def lookup(self, accounts: list[str]) -> list[LookupMatch]:
        return await asyncio.to_thread(self._lookup_sync, accounts)

    async def upsert(self, items: list[UpsertItem]) -> list[UpsertItemResult]:
        return await asyncio.to_thread(self._upsert_sync, items)
