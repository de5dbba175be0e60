"""In-memory document store used for tests and local runs."""
import copy
import logging
import threading
from typing import Any, Dict, List, Optional, Tuple

from storage.document_store import (
    Document,
    DocumentNotFoundError,
    DocumentStore,
    get_field,
)

logger = logging.getLogger(__name__)


class InMemoryDocumentStore(DocumentStore):
    """Dictionary-backed DocumentStore. Safe to share between threads."""

    def __init__(self):
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._lock = threading.Lock()

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            data = self._collections.get(collection, {}).get(doc_id)
            return copy.deepcopy(data) if data is not None else None

    def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        with self._lock:
            self._collections.setdefault(collection, {})[doc_id] = copy.deepcopy(data)

    def update(self, collection: str, doc_id: str, changes: Dict[str, Any]) -> None:
        with self._lock:
            documents = self._collections.get(collection, {})
            if doc_id not in documents:
                raise DocumentNotFoundError(collection, doc_id)
            documents[doc_id].update(copy.deepcopy(changes))

    def delete(self, collection: str, doc_id: str) -> None:
        with self._lock:
            self._collections.get(collection, {}).pop(doc_id, None)

    def list(self, collection: str) -> List[Document]:
        with self._lock:
            return [
                Document(doc_id, copy.deepcopy(data))
                for doc_id, data in self._collections.get(collection, {}).items()
            ]

    def query(
        self,
        collection: str,
        field: str,
        value: Any,
        op: str = '=='
    ) -> List[Document]:
        self._check_operator(op)
        matches = []
        for document in self.list(collection):
            current = get_field(document.data, field)
            if op == '==' and current == value:
                matches.append(document)
            elif op == 'in' and current in value:
                matches.append(document)
        return matches

    def increment(
        self,
        collection: str,
        doc_id: str,
        field_path: str,
        amount: int = 1
    ) -> None:
        with self._lock:
            documents = self._collections.get(collection, {})
            if doc_id not in documents:
                raise DocumentNotFoundError(collection, doc_id)

            target = documents[doc_id]
            *parents, leaf = field_path.split('.')
            for part in parents:
                target = target.setdefault(part, {})
            target[leaf] = (target.get(leaf) or 0) + amount

    def batch_set(self, collection: str, documents: List[Tuple[str, Dict[str, Any]]]) -> None:
        with self._lock:
            target = self._collections.setdefault(collection, {})
            for doc_id, data in documents:
                target[doc_id] = copy.deepcopy(data)
        logger.debug(f"Batch wrote {len(documents)} documents to {collection}")
