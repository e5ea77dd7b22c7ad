"""
Postgres-backed document store (JSONB) for production use.

Why: The identity and teaching contexts only need key/value document access
with equality scans. A single JSONB table keeps the storage engine swappable
and the schema trivial:

    create table documents (
        collection text not null,
        id text not null,
        body jsonb not null,
        primary key (collection, id)
    );

Design:
- Minimal psycopg3 usage; each call opens a short-lived connection.
- ``merge`` is a shallow top-level merge (``body || patch``) with upsert.
- Every driver error is surfaced as ``StoreFailure``; nothing is retried here.

Security: The table identifier is validated early; values are always bound
parameters.
"""
from __future__ import annotations

import logging
import re
from typing import Any, List, Optional

import psycopg
from psycopg.types.json import Jsonb

from .errors import StoreFailure
from .ports import Document

_log = logging.getLogger("coursegate.storage")

_TABLE_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,62}(?:\.[A-Za-z_][A-Za-z0-9_]{0,62})?$")


class DBDocumentStore:
    """JSONB document store.

    Parameters
    ----------
    dsn:
        Psycopg3 connection string.
    table:
        Optionally schema-qualified table name. Defaults to `public.documents`.
    """

    def __init__(self, dsn: str, table: str = "public.documents") -> None:
        if not dsn:
            raise RuntimeError("No database DSN provided for DBDocumentStore")
        if not _TABLE_RE.match(table or ""):
            raise ValueError("Invalid table name")
        self._dsn = dsn
        self._table = table

    def _execute(self, stmt: str, params: tuple, *, fetch: str | None = None) -> Any:
        try:
            with psycopg.connect(self._dsn, autocommit=True) as conn:
                with conn.cursor() as cur:
                    cur.execute(stmt, params)
                    if fetch == "one":
                        return cur.fetchone()
                    if fetch == "all":
                        return cur.fetchall()
                    return None
        except psycopg.Error as exc:
            _log.warning("Document store call failed: %s", exc.__class__.__name__)
            raise StoreFailure("store_failure", exc.__class__.__name__) from exc

    @staticmethod
    def _doc(doc_id: str, body: Any) -> Document:
        doc = dict(body or {})
        doc["id"] = doc_id
        return doc

    def ensure_schema(self) -> None:
        self._execute(
            f"create table if not exists {self._table} ("
            "collection text not null, id text not null, body jsonb not null, "
            "primary key (collection, id))",
            (),
        )

    def get(self, collection: str, doc_id: str) -> Optional[Document]:
        row = self._execute(
            f"select body from {self._table} where collection = %s and id = %s",
            (collection, doc_id),
            fetch="one",
        )
        if not row:
            return None
        return self._doc(doc_id, row[0])

    def put(self, collection: str, doc_id: str, document: Document) -> None:
        self._execute(
            f"insert into {self._table} (collection, id, body) values (%s, %s, %s) "
            "on conflict (collection, id) do update set body = excluded.body",
            (collection, doc_id, Jsonb(dict(document))),
        )

    def merge(self, collection: str, doc_id: str, fields: Document) -> None:
        self._execute(
            f"insert into {self._table} as t (collection, id, body) values (%s, %s, %s) "
            "on conflict (collection, id) do update set body = t.body || excluded.body",
            (collection, doc_id, Jsonb(dict(fields))),
        )

    def delete(self, collection: str, doc_id: str) -> None:
        self._execute(
            f"delete from {self._table} where collection = %s and id = %s",
            (collection, doc_id),
        )

    def query(self, collection: str, field: str, value: Any) -> List[Document]:
        rows = self._execute(
            f"select id, body from {self._table} where collection = %s and body -> %s::text = %s order by id",
            (collection, field, Jsonb(value)),
            fetch="all",
        )
        return [self._doc(row[0], row[1]) for row in rows or []]

    def scan(self, collection: str) -> List[Document]:
        rows = self._execute(
            f"select id, body from {self._table} where collection = %s order by id",
            (collection,),
            fetch="all",
        )
        return [self._doc(row[0], row[1]) for row in rows or []]


__all__ = ["DBDocumentStore"]
