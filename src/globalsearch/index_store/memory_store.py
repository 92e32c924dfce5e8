"""In-process index store backed by dictionaries."""

import threading
from typing import Callable, Dict, List

from .store_interface import IndexStore, TypeIndex
from ..models.documents import SearchDocument
from ..models.entities import EntityType


class InMemoryTypeIndex(TypeIndex):
    """
    Thread-safe dictionary index for one entity type.

    Documents are returned in insertion order. Concurrent writes to the
    same id are serialized by the lock, so the last write wins.
    """

    def __init__(self, entity_type: EntityType):
        self.entity_type = entity_type
        self._documents: Dict[int, SearchDocument] = {}
        self._lock = threading.Lock()

    def upsert(self, document: SearchDocument) -> None:
        with self._lock:
            self._documents[document.id] = document

    def delete_by_id(self, doc_id: int) -> bool:
        with self._lock:
            return self._documents.pop(doc_id, None) is not None

    def get(self, doc_id: int):
        with self._lock:
            return self._documents.get(doc_id)

    def _select(self, predicate: Callable[[SearchDocument], bool]) -> List[SearchDocument]:
        with self._lock:
            return [doc for doc in self._documents.values() if predicate(doc)]

    def find_by_tenant_and_name_contains(self, tenant_id: str, substring: str) -> List[SearchDocument]:
        needle = substring.lower()
        return self._select(lambda d: d.tenant_id == tenant_id and needle in d.name.lower())

    def find_by_tenant(self, tenant_id: str) -> List[SearchDocument]:
        return self._select(lambda d: d.tenant_id == tenant_id)

    def find_by_name_contains(self, substring: str) -> List[SearchDocument]:
        needle = substring.lower()
        return self._select(lambda d: needle in d.name.lower())

    def find_all(self) -> List[SearchDocument]:
        return self._select(lambda d: True)

    def delete_all(self) -> None:
        with self._lock:
            self._documents.clear()

    def count(self) -> int:
        with self._lock:
            return len(self._documents)


class InMemoryIndexStore(IndexStore):
    """One InMemoryTypeIndex per entity type."""

    def __init__(self):
        self._indices = {t: InMemoryTypeIndex(t) for t in EntityType}

    def index_for(self, entity_type: EntityType) -> InMemoryTypeIndex:
        return self._indices[entity_type]
