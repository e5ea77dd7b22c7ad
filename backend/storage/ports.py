"""
Document store port used by the identity and teaching contexts.

Keep this small and framework-agnostic so tests can supply simple fakes and
deployments can pick a backend (in-memory for dev, Postgres JSONB for prod).

Semantics:
    - Documents are plain dicts keyed by (collection, id). Every document
      returned by an adapter carries ``"id"`` set to its key.
    - ``put`` overwrites the whole document; ``merge`` overwrites only the
      given top-level fields and creates the document when missing.
    - Last write wins per document. There are no multi-document transactions.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol


Document = Dict[str, Any]


class DocumentStore(Protocol):
    """Minimal key/value document access.

    Permissions:
        Implementations do not authorize; callers enforce ownership and roles.

    Errors:
        Adapters raise ``storage.errors.StoreFailure`` for any backend error.
        A missing document is not an error for ``get`` (returns None) or
        ``delete`` (no-op).
    """

    def get(self, collection: str, doc_id: str) -> Optional[Document]: ...

    def put(self, collection: str, doc_id: str, document: Document) -> None: ...

    def merge(self, collection: str, doc_id: str, fields: Document) -> None: ...

    def delete(self, collection: str, doc_id: str) -> None: ...

    def query(self, collection: str, field: str, value: Any) -> List[Document]: ...

    def scan(self, collection: str) -> List[Document]: ...


__all__ = ["Document", "DocumentStore"]
