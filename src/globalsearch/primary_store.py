"""
Primary store collaborator.

The search subsystem only reads from the primary store: ``find_all`` for
resyncs and ``find_by_id`` for point lookups. Persistence layers notify the
synchronization pipeline through an explicitly injected LifecycleListener
after each successful commit.

InMemoryPrimaryStore is a small, thread-safe implementation used by tests
and local tooling.
"""

import threading
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from .logger_config import logger
from .models.entities import EntityType, SourceEntity


class PrimaryStore(ABC):
    """Read interface of the authoritative entity store."""

    @abstractmethod
    def find_all(self, entity_type: EntityType) -> List[SourceEntity]:
        """Return every entity of ``entity_type``."""
        pass

    @abstractmethod
    def find_by_id(self, entity_type: EntityType, entity_id: int) -> Optional[SourceEntity]:
        """Return one entity, or None if it does not exist."""
        pass

    def count(self, entity_type: EntityType) -> int:
        return len(self.find_all(entity_type))


class LifecycleListener(ABC):
    """Receives entity lifecycle events after the primary store commits."""

    @abstractmethod
    async def on_create(self, entity: SourceEntity) -> bool:
        pass

    @abstractmethod
    async def on_update(self, entity: SourceEntity) -> bool:
        pass

    @abstractmethod
    async def on_delete(self, entity_type: EntityType, entity_id: int) -> bool:
        pass


class InMemoryPrimaryStore(PrimaryStore):
    """
    Dictionary-backed primary store.

    ``save`` and ``delete`` commit first and only then notify the listener,
    mirroring a post-commit persistence callback. A failing listener never
    undoes the commit.
    """

    def __init__(self, listener: Optional[LifecycleListener] = None):
        self._entities: Dict[EntityType, Dict[int, SourceEntity]] = {t: {} for t in EntityType}
        self._lock = threading.Lock()
        self._listener = listener

    def set_listener(self, listener: Optional[LifecycleListener]) -> None:
        self._listener = listener

    def find_all(self, entity_type: EntityType) -> List[SourceEntity]:
        with self._lock:
            return list(self._entities[entity_type].values())

    def find_by_id(self, entity_type: EntityType, entity_id: int) -> Optional[SourceEntity]:
        with self._lock:
            return self._entities[entity_type].get(entity_id)

    def put(self, entity: SourceEntity) -> None:
        """Store ``entity`` without notifying the listener (bulk loads)."""
        with self._lock:
            self._entities[entity.entity_type][entity.id] = entity

    async def save(self, entity: SourceEntity) -> SourceEntity:
        """Insert or replace ``entity``, then emit a create or update event."""
        with self._lock:
            existed = entity.id in self._entities[entity.entity_type]
            self._entities[entity.entity_type][entity.id] = entity

        if self._listener is not None:
            try:
                if existed:
                    await self._listener.on_update(entity)
                else:
                    await self._listener.on_create(entity)
            except Exception as e:
                logger.error(
                    f"Lifecycle listener failed for {entity.entity_type.label} {entity.id}: {e}",
                    extra={'component': 'InMemoryPrimaryStore', 'action': 'listener_error'}
                )
        return entity

    async def delete(self, entity_type: EntityType, entity_id: int) -> bool:
        """Remove an entity, then emit a delete event. Returns whether it existed."""
        with self._lock:
            removed = self._entities[entity_type].pop(entity_id, None)

        if self._listener is not None:
            try:
                await self._listener.on_delete(entity_type, entity_id)
            except Exception as e:
                logger.error(
                    f"Lifecycle listener failed for delete of {entity_type.label} {entity_id}: {e}",
                    extra={'component': 'InMemoryPrimaryStore', 'action': 'listener_error'}
                )
        return removed is not None
