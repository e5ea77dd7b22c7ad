"""
Centralized document store configuration.

Intent:
    Provide a single source of truth for collection names and the store
    backend selection. Configuration is read once at process start into a
    frozen dataclass and passed into constructors; nothing here holds a
    client or connection.

Behavior:
    - DOCUMENT_STORE_BACKEND selects "memory" (default) or "db".
    - DATABASE_URL provides the psycopg DSN for the "db" backend.
    - DOCUMENT_STORE_TABLE overrides the JSONB table name.

Permissions:
    Pure configuration; no external calls or privileges required.
"""
from __future__ import annotations

import os
from dataclasses import dataclass

from .memory import InMemoryDocumentStore
from .ports import DocumentStore


USERS_COLLECTION = "users"
COURSES_COLLECTION = "courses"
ENROLLMENTS_COLLECTION = "enrollments"

DOCUMENT_TABLE_DEFAULT = "public.documents"

_BACKENDS = frozenset({"memory", "db"})


@dataclass(frozen=True)
class StoreConfig:
    backend: str = "memory"
    dsn: str = ""
    table: str = DOCUMENT_TABLE_DEFAULT


def load_store_config() -> StoreConfig:
    """Read the store configuration from the environment.

    Unknown backend names are rejected instead of silently falling back to
    the in-memory store.
    """
    backend = (os.getenv("DOCUMENT_STORE_BACKEND") or "memory").strip().lower()
    if backend not in _BACKENDS:
        raise ValueError(f"Unsupported DOCUMENT_STORE_BACKEND: {backend}")
    dsn = (os.getenv("DATABASE_URL") or "").strip()
    table = (os.getenv("DOCUMENT_STORE_TABLE") or DOCUMENT_TABLE_DEFAULT).strip()
    return StoreConfig(backend=backend, dsn=dsn, table=table)


def build_document_store(cfg: StoreConfig) -> DocumentStore:
    if cfg.backend == "db":
        # Imported lazily so memory-only setups do not need a database driver.
        from .documents_db import DBDocumentStore

        return DBDocumentStore(cfg.dsn, table=cfg.table)
    return InMemoryDocumentStore()


__all__ = [
    "USERS_COLLECTION",
    "COURSES_COLLECTION",
    "ENROLLMENTS_COLLECTION",
    "DOCUMENT_TABLE_DEFAULT",
    "StoreConfig",
    "load_store_config",
    "build_document_store",
]
