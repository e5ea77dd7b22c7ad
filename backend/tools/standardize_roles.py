"""
Normalize stored role discriminants to the canonical role name.

Why: User documents written by older releases encode the role as an ordinal
(``0``), in other casings (``teacher``) or under the PascalCase key ``Role``.
Reads tolerate all of these; this tool rewrites them once so other consumers
of the collection see a single format.

Usage:
    python -m tools.standardize_roles --dsn "$DATABASE_URL" [--dry-run]

Behavior:
- Documents without any discriminant are left untouched (they read as
  ``User``).
- Only the ``role`` field is written (shallow merge); other fields survive.
"""
from __future__ import annotations

import argparse
import logging
import os

from identity_access.domain import parse_role
from identity_access.models import lookup
from storage.config import DOCUMENT_TABLE_DEFAULT, USERS_COLLECTION
from storage.ports import DocumentStore

logger = logging.getLogger("coursegate.tools.standardize_roles")


def standardize_role_format(store: DocumentStore, *, dry_run: bool = False) -> int:
    """Rewrite non-canonical role discriminants; return the number changed."""
    updated = 0
    for doc in store.scan(USERS_COLLECTION):
        raw = lookup(doc, "role")
        if raw is None:
            continue
        canonical = parse_role(raw).value
        if doc.get("role") == canonical:
            continue
        doc_id = str(doc.get("id") or "")
        if dry_run:
            logger.info("[dry-run] Would update role for ~%s from %r to %s", doc_id[-6:], raw, canonical)
        else:
            store.merge(USERS_COLLECTION, doc_id, {"role": canonical})
            logger.info("Updated role for ~%s from %r to %s", doc_id[-6:], raw, canonical)
        updated += 1
    return updated


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Standardize stored user role discriminants")
    parser.add_argument("--dsn", default=os.getenv("DATABASE_URL"))
    parser.add_argument("--table", default=os.getenv("DOCUMENT_STORE_TABLE", DOCUMENT_TABLE_DEFAULT))
    parser.add_argument("--dry-run", action="store_true", help="Report changes without writing")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(name)s:%(message)s")
    args = _parse_args(argv)
    if not args.dsn:
        raise SystemExit("--dsn or DATABASE_URL must be provided")

    from storage.documents_db import DBDocumentStore

    store = DBDocumentStore(args.dsn, table=args.table)
    logger.info("Starting role format standardization…")
    count = standardize_role_format(store, dry_run=args.dry_run)
    logger.info("Completed standardization. %s %d documents.", "Would update" if args.dry_run else "Updated", count)
    return count


if __name__ == "__main__":  # pragma: no cover - manual entry point
    main()
