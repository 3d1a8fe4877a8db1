"""Hierarchical document store with optimistic transactions.

Paths follow ``accounts/{account_id}/{collection}/{doc_id}``. A transaction
records the version of every document it reads; the commit is rejected when
any of those versions moved in the meantime and the transaction function is
run again, up to ``max_attempts`` times.
"""

from __future__ import annotations

import copy
import logging
import random
import threading
import time
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Protocol, Sequence, TypeVar

from ..config import settings
from ..errors import ConcurrencyConflict, NotFoundError

logger = logging.getLogger(__name__)

T = TypeVar("T")

Filter = tuple[str, str, Any]

_OPERATORS: dict[str, Callable[[Any, Any], bool]] = {
    "==": lambda left, right: left == right,
    "!=": lambda left, right: left != right,
    "<": lambda left, right: left is not None and left < right,
    "<=": lambda left, right: left is not None and left <= right,
    ">": lambda left, right: left is not None and left > right,
    ">=": lambda left, right: left is not None and left >= right,
    "in": lambda left, right: left in right,
}


@dataclass(slots=True)
class Document:
    path: str
    data: dict[str, Any]
    version: int

    @property
    def id(self) -> str:
        return self.path.rsplit("/", 1)[-1]


class _CommitRejected(Exception):
    """Raised by a backend when a read version changed before commit."""


def split_path(path: str) -> tuple[str, str]:
    """Split a document path into (collection path, document id)."""
    parts = path.strip("/").split("/")
    if len(parts) < 2 or len(parts) % 2 != 0:
        raise ValueError(f"Not a document path: '{path}'")
    return "/".join(parts[:-1]), parts[-1]


def matches(data: dict[str, Any], filters: Sequence[Filter]) -> bool:
    for field_name, operator, expected in filters:
        try:
            check = _OPERATORS[operator]
        except KeyError as exc:
            raise ValueError(f"Unsupported filter operator '{operator}'") from exc
        if not check(data.get(field_name), expected):
            return False
    return True


class Transaction:
    """Buffered reads and writes for a single transaction attempt."""

    def __init__(self, store: "DocumentStore") -> None:
        self._store = store
        self.reads: dict[str, int] = {}
        self.writes: dict[str, dict[str, Any] | None] = {}

    def get(self, path: str) -> dict[str, Any] | None:
        if path in self.writes:
            pending = self.writes[path]
            return copy.deepcopy(pending) if pending is not None else None
        document = self._store.get_document(path)
        self.reads.setdefault(path, document.version if document else 0)
        return copy.deepcopy(document.data) if document else None

    def set(self, path: str, data: dict[str, Any]) -> None:
        split_path(path)
        self.writes[path] = copy.deepcopy(data)

    def update(self, path: str, fields: dict[str, Any]) -> None:
        current = self.get(path)
        if current is None:
            raise NotFoundError(f"Document not found: {path}")
        current.update(copy.deepcopy(fields))
        self.writes[path] = current

    def delete(self, path: str) -> None:
        self.writes[path] = None


class DocumentStore(Protocol):
    def get(self, path: str) -> dict[str, Any] | None: ...

    def get_document(self, path: str) -> Document | None: ...

    def set(self, path: str, data: dict[str, Any]) -> None: ...

    def update(self, path: str, fields: dict[str, Any]) -> None: ...

    def delete(self, path: str) -> None: ...

    def query(self, collection: str, filters: Sequence[Filter] = ()) -> list[Document]: ...

    def run_transaction(self, fn: Callable[[Transaction], T], max_attempts: int | None = None) -> T: ...

    def new_id(self) -> str: ...


class _BaseStore:
    """Shared transaction loop and single-document helpers."""

    max_attempts: int

    def get_document(self, path: str) -> Document | None:
        raise NotImplementedError

    def _commit(self, reads: dict[str, int], writes: dict[str, dict[str, Any] | None]) -> None:
        raise NotImplementedError

    def new_id(self) -> str:
        return uuid.uuid4().hex[:20]

    def get(self, path: str) -> dict[str, Any] | None:
        document = self.get_document(path)
        return document.data if document else None

    def set(self, path: str, data: dict[str, Any]) -> None:
        self.run_transaction(lambda tx: tx.set(path, data))

    def update(self, path: str, fields: dict[str, Any]) -> None:
        self.run_transaction(lambda tx: tx.update(path, fields))

    def delete(self, path: str) -> None:
        self.run_transaction(lambda tx: tx.delete(path))

    def run_transaction(self, fn: Callable[[Transaction], T], max_attempts: int | None = None) -> T:
        attempts = max_attempts or self.max_attempts
        for attempt in range(1, attempts + 1):
            transaction = Transaction(self)
            result = fn(transaction)
            try:
                self._commit(transaction.reads, transaction.writes)
                return result
            except _CommitRejected:
                logger.debug(f"Transaction conflict, retrying (attempt {attempt}/{attempts})")
                time.sleep(random.uniform(0, 0.002 * attempt))
        raise ConcurrencyConflict(f"Transaction aborted after {attempts} conflicting attempts.")


class InMemoryDocumentStore(_BaseStore):
    """Process-local store used for tests and single-node runs."""

    def __init__(self, max_attempts: int | None = None) -> None:
        self.max_attempts = max_attempts or settings.transaction_max_attempts
        self._documents: dict[str, Document] = {}
        self._commit_lock = threading.Lock()

    def get_document(self, path: str) -> Document | None:
        document = self._documents.get(path.strip("/"))
        if document is None:
            return None
        return Document(path=document.path, data=copy.deepcopy(document.data), version=document.version)

    def query(self, collection: str, filters: Sequence[Filter] = ()) -> list[Document]:
        prefix = collection.strip("/") + "/"
        with self._commit_lock:
            snapshot = sorted(self._documents.items())
        results = []
        for path, document in snapshot:
            if not path.startswith(prefix) or "/" in path[len(prefix):]:
                continue
            if matches(document.data, filters):
                results.append(Document(path=path, data=copy.deepcopy(document.data), version=document.version))
        return results

    def _commit(self, reads: dict[str, int], writes: dict[str, dict[str, Any] | None]) -> None:
        with self._commit_lock:
            for path, version in reads.items():
                current = self._documents.get(path.strip("/"))
                if (current.version if current else 0) != version:
                    raise _CommitRejected(path)
            for path, data in writes.items():
                key = path.strip("/")
                if data is None:
                    self._documents.pop(key, None)
                    continue
                current = self._documents.get(key)
                self._documents[key] = Document(path=key, data=data, version=(current.version if current else 0) + 1)


class SupabaseDocumentStore(_BaseStore):
    """Store backed by the ``documents`` table and the ``commit_documents`` RPC.

    See ``sql/documents.sql`` for the table and the function that applies a
    commit atomically after re-checking the read versions.
    """

    table_name = "documents"

    def __init__(self, client: Any, max_attempts: int | None = None) -> None:
        self.client = client
        self.max_attempts = max_attempts or settings.transaction_max_attempts

    def get_document(self, path: str) -> Document | None:
        response = self.client.table(self.table_name).select("path,data,version").eq("path", path.strip("/")).execute()
        rows = response.data or []
        if not rows:
            return None
        row = rows[0]
        return Document(path=row["path"], data=row.get("data") or {}, version=int(row.get("version") or 0))

    def query(self, collection: str, filters: Sequence[Filter] = ()) -> list[Document]:
        response = (
            self.client.table(self.table_name)
            .select("path,data,version")
            .eq("collection", collection.strip("/"))
            .order("path")
            .execute()
        )
        documents = [
            Document(path=row["path"], data=row.get("data") or {}, version=int(row.get("version") or 0))
            for row in (response.data or [])
        ]
        return [document for document in documents if matches(document.data, filters)]

    def _commit(self, reads: dict[str, int], writes: dict[str, dict[str, Any] | None]) -> None:
        payload_writes = []
        for path, data in writes.items():
            collection, doc_id = split_path(path)
            payload_writes.append({"path": path.strip("/"), "collection": collection, "doc_id": doc_id, "data": data})
        payload = {
            "reads": [{"path": path.strip("/"), "version": version} for path, version in reads.items()],
            "writes": payload_writes,
        }
        response = self.client.rpc("commit_documents", payload).execute()
        if response.data is False:
            raise _CommitRejected(",".join(reads))
