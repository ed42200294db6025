from __future__ import annotations

import copy
import json
import logging
from pathlib import Path
from threading import Lock
from typing import Any, MutableMapping, Protocol, Sequence

logger = logging.getLogger(__name__)

Document = dict[str, Any]


class DocumentStore(Protocol):
    """Persisted collection of documents keyed by primary key."""

    def list(self) -> Sequence[Document]:
        ...

    def get(self, key: str) -> Document | None:
        ...

    def put(self, document: Document) -> None:
        ...


class InMemoryDocumentStore:
    """Dictionary-backed store; returned documents are detached copies."""

    def __init__(self, *, key_field: str = "ticketId", documents: Sequence[Document] = ()) -> None:
        self._key_field = key_field
        self._documents: MutableMapping[str, Document] = {}
        self._lock = Lock()
        for document in documents:
            self.put(document)

    def list(self) -> list[Document]:
        with self._lock:
            return [copy.deepcopy(document) for document in self._documents.values()]

    def get(self, key: str) -> Document | None:
        with self._lock:
            document = self._documents.get(key)
            return copy.deepcopy(document) if document is not None else None

    def put(self, document: Document) -> None:
        key = document.get(self._key_field)
        if not key:
            raise ValueError(f"Document is missing primary key {self._key_field!r}")
        with self._lock:
            self._documents[str(key)] = copy.deepcopy(document)


class JsonFileDocumentStore(InMemoryDocumentStore):
    """Store that mirrors its whole collection into a single JSON file."""

    def __init__(self, path: str | Path, *, key_field: str = "ticketId") -> None:
        self._path = Path(path)
        super().__init__(key_field=key_field)
        if self._path.exists():
            raw = json.loads(self._path.read_text(encoding="utf-8") or "[]")
            for document in raw:
                super().put(document)
            logger.info("Loaded %d documents from %s", len(raw), self._path)

    def put(self, document: Document) -> None:
        super().put(document)
        self._flush()

    def _flush(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(self.list(), indent=2, default=str), encoding="utf-8")
        tmp_path.replace(self._path)
