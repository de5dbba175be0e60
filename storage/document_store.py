"""Document store interface shared by the DynamoDB and in-memory backends."""
import abc
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple


QUERY_OPERATORS = ('==', 'in')


class DocumentNotFoundError(LookupError):
    """Raised when an update targets a document that does not exist."""

    def __init__(self, collection: str, doc_id: str):
        super().__init__(f"Document {collection}/{doc_id} not found")
        self.collection = collection
        self.doc_id = doc_id


@dataclass
class Document:
    """A stored document and its identifier."""
    id: str
    data: Dict[str, Any]


def new_document_id() -> str:
    """Generate a random 20 character document id."""
    return uuid.uuid4().hex[:20]


def subcollection(parent_collection: str, parent_id: str, name: str) -> str:
    """Build the path of a collection nested under a document."""
    return f"{parent_collection}/{parent_id}/{name}"


def get_field(data: Dict[str, Any], field_path: str) -> Any:
    """Read a dotted field path (e.g. "attendanceSummary.yesCount")."""
    value: Any = data
    for part in field_path.split('.'):
        if not isinstance(value, dict) or part not in value:
            return None
        value = value[part]
    return value


class DocumentStore(abc.ABC):
    """
    Minimal document database: collections of JSON-like documents.

    Stores have an explicit lifecycle. Call connect() before use and
    dispose() afterwards, or use the store as a context manager.
    """

    def connect(self) -> None:
        """Open connections to the backend."""

    def dispose(self) -> None:
        """Release connections held by the store."""

    def __enter__(self) -> 'DocumentStore':
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.dispose()

    @abc.abstractmethod
    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Return a document's data, or None if it does not exist."""

    @abc.abstractmethod
    def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        """Create or fully replace a document."""

    @abc.abstractmethod
    def update(self, collection: str, doc_id: str, changes: Dict[str, Any]) -> None:
        """
        Merge top-level fields into an existing document.

        Raises:
            DocumentNotFoundError: If the document does not exist
        """

    @abc.abstractmethod
    def delete(self, collection: str, doc_id: str) -> None:
        """Delete a document; deleting a missing document is not an error."""

    @abc.abstractmethod
    def list(self, collection: str) -> List[Document]:
        """Return every document in a collection."""

    @abc.abstractmethod
    def query(
        self,
        collection: str,
        field: str,
        value: Any,
        op: str = '=='
    ) -> List[Document]:
        """
        Return documents whose field matches.

        Args:
            collection: Collection path
            field: Top-level field name
            value: Value to compare, or a list of values for "in"
            op: "==" or "in"
        """

    @abc.abstractmethod
    def increment(
        self,
        collection: str,
        doc_id: str,
        field_path: str,
        amount: int = 1
    ) -> None:
        """
        Atomically add to a numeric field, treating a missing field as 0.

        Raises:
            DocumentNotFoundError: If the document does not exist
        """

    @abc.abstractmethod
    def batch_set(self, collection: str, documents: List[Tuple[str, Dict[str, Any]]]) -> None:
        """Write several documents; either all of them are stored or the call raises."""

    def add(self, collection: str, data: Dict[str, Any]) -> str:
        """Create a document with a generated id and return the id."""
        doc_id = new_document_id()
        self.set(collection, doc_id, data)
        return doc_id

    @staticmethod
    def _check_operator(op: str) -> None:
        if op not in QUERY_OPERATORS:
            raise ValueError(f"Unsupported query operator '{op}'")
