"""
Error kinds shared by every context that talks to the document store.

Both carry a machine-readable ``code`` so adapters (HTTP, CLI) can map them
without parsing messages.
"""
from __future__ import annotations


class NotFound(LookupError):
    """A user, course, lecture or enrollment does not exist."""

    def __init__(self, code: str = "not_found"):
        super().__init__(code)
        self.code = code


class StoreFailure(RuntimeError):
    """The underlying document store failed. Always surfaced to callers."""

    def __init__(self, code: str = "store_failure", detail: str | None = None):
        super().__init__(f"{code}: {detail}" if detail else code)
        self.code = code
        self.detail = detail


__all__ = ["NotFound", "StoreFailure"]
