"""
Index store interfaces.

The index store is split into one TypeIndex per entity type, mirroring a
search engine with one index per document type. An IndexStore hands out
the TypeIndex for a given type.
"""

from abc import ABC, abstractmethod
from typing import Dict, List

from ..models.documents import SearchDocument
from ..models.entities import EntityType


class TypeIndex(ABC):
    """Abstract base class for the index of one entity type."""

    entity_type: EntityType

    @abstractmethod
    def upsert(self, document: SearchDocument) -> None:
        """Insert or replace a document keyed by its id.

        Args:
            document: The document to store

        Raises:
            IndexWriteFailure: If the backend rejects the write
        """
        pass

    @abstractmethod
    def delete_by_id(self, doc_id: int) -> bool:
        """Remove a document.

        Deleting an id that is not indexed is not an error.

        Args:
            doc_id: Identifier of the source entity

        Returns:
            True if a document was removed, False if none existed

        Raises:
            IndexWriteFailure: If the backend rejects the delete
        """
        pass

    @abstractmethod
    def find_by_tenant_and_name_contains(self, tenant_id: str, substring: str) -> List[SearchDocument]:
        """Documents of ``tenant_id`` whose name contains ``substring``, ignoring case."""
        pass

    @abstractmethod
    def find_by_tenant(self, tenant_id: str) -> List[SearchDocument]:
        """All documents of ``tenant_id``."""
        pass

    @abstractmethod
    def find_by_name_contains(self, substring: str) -> List[SearchDocument]:
        """Documents of every tenant whose name contains ``substring`` (admin mode)."""
        pass

    @abstractmethod
    def find_all(self) -> List[SearchDocument]:
        """All documents of every tenant (admin mode)."""
        pass

    @abstractmethod
    def delete_all(self) -> None:
        """Remove every document of this type."""
        pass

    @abstractmethod
    def count(self) -> int:
        """Number of documents of this type."""
        pass


class IndexStore(ABC):
    """A set of per-type indices."""

    @abstractmethod
    def index_for(self, entity_type: EntityType) -> TypeIndex:
        """Return the index holding documents of ``entity_type``."""
        pass

    def counts(self) -> Dict[EntityType, int]:
        """Document count per entity type."""
        return {t: self.index_for(t).count() for t in EntityType}

    def is_available(self) -> bool:
        """Whether the backend is reachable. In-process stores always are."""
        return True

    def close(self) -> None:
        """Release backend resources."""
        pass
