"""
In-memory document store for development and tests.

Why: Run the identity and teaching use cases without Postgres. Documents are
deep-copied on the way in and out so callers can never mutate stored state by
accident (mirrors a real store's value semantics).
"""
from __future__ import annotations

from copy import deepcopy
from typing import Any, Dict, List, Optional

from .ports import Document


def _equals(left: Any, right: Any) -> bool:
    # Keep True/1 and False/0 apart, like a JSON document store does.
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left is right
    return left == right


class InMemoryDocumentStore:
    def __init__(self) -> None:
        self._data: Dict[str, Dict[str, Document]] = {}

    def _collection(self, collection: str) -> Dict[str, Document]:
        return self._data.setdefault(collection, {})

    @staticmethod
    def _with_id(doc_id: str, body: Document) -> Document:
        doc = deepcopy(body)
        doc["id"] = doc_id
        return doc

    def get(self, collection: str, doc_id: str) -> Optional[Document]:
        body = self._collection(collection).get(doc_id)
        if body is None:
            return None
        return self._with_id(doc_id, body)

    def put(self, collection: str, doc_id: str, document: Document) -> None:
        self._collection(collection)[doc_id] = deepcopy(dict(document))

    def merge(self, collection: str, doc_id: str, fields: Document) -> None:
        docs = self._collection(collection)
        current = docs.get(doc_id) or {}
        current.update(deepcopy(dict(fields)))
        docs[doc_id] = current

    def delete(self, collection: str, doc_id: str) -> None:
        self._collection(collection).pop(doc_id, None)

    def query(self, collection: str, field: str, value: Any) -> List[Document]:
        return [
            self._with_id(doc_id, body)
            for doc_id, body in self._collection(collection).items()
            if field in body and _equals(body[field], value)
        ]

    def scan(self, collection: str) -> List[Document]:
        return [self._with_id(doc_id, body) for doc_id, body in self._collection(collection).items()]


__all__ = ["InMemoryDocumentStore"]
