from __future__ import annotations

from typing import Any, Mapping, Protocol

from ..oplog.models import Namespace


class DocumentStore(Protocol):
    """
    Per-document write primitives the replay needs from a target store.

    Every method addresses exactly one document by (namespace, key).
    Implementations report "no such document" through their return value and
    raise only for genuine failures (connectivity, constraint violations).
    """

    def upsert(self, namespace: Namespace, key: Any, document: Mapping[str, Any]) -> None:
        """Insert the document, or replace it entirely if the key exists."""
        ...

    def update(self, namespace: Namespace, key: Any, diff: Mapping[str, Any]) -> bool:
        """Apply a replacement or $set/$unset diff. Returns False if nothing matched."""
        ...

    def delete(self, namespace: Namespace, key: Any) -> bool:
        """Remove the document. Returns False if it did not exist."""
        ...
