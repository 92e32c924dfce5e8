"""
Synchronization Pipeline.

Propagates primary-store lifecycle events into the per-type search indices
and rebuilds the indices from the primary store on demand.

Delivery is best-effort: lifecycle events are queued and applied by a
worker pool off the caller's path. A failed write is logged and dropped;
it is repaired by the next event for the same entity or the next resync.
Concurrent events for the same entity are not ordered; the last write to
reach the index wins.
"""

import asyncio
import time
from typing import Any, Dict, Iterable, Optional

from .task_queue import AsyncBoundedQueue, AsyncTaskProcessor, SyncOperation, SyncTask
from ..config.settings import SyncConfig
from ..error_handling import IndexWriteFailure, wrap_error
from ..index_store.store_interface import IndexStore
from ..logger_config import logger
from ..models.entities import EntityType, SourceEntity
from ..monitoring import MetricsRegistry, log_search_operation
from ..primary_store import LifecycleListener, PrimaryStore
from ..projector import project


class SyncPipeline(LifecycleListener):
    """
    Keeps the index store in line with the primary store.

    Lifecycle hooks (``on_create``, ``on_update``, ``on_delete``) only
    enqueue work and return whether the task was accepted. ``resync_all``
    and ``resync_type`` run on the calling thread and return the number of
    entities indexed per type.

    When ``enabled`` is False every operation returns immediately without
    touching either store.
    """

    def __init__(
        self,
        primary_store: PrimaryStore,
        index_store: IndexStore,
        config: Optional[SyncConfig] = None,
        metrics: Optional[MetricsRegistry] = None,
        enabled: bool = True,
    ):
        self.primary_store = primary_store
        self.index_store = index_store
        self.config = config or SyncConfig()
        self.enabled = enabled

        self.queue = AsyncBoundedQueue(max_size=self.config.queue_max_size)
        self.processor = AsyncTaskProcessor(
            self.queue,
            handler=self._apply,
            worker_count=self.config.worker_count,
        )

        self.metrics = metrics or MetricsRegistry()
        self._indexed = self.metrics.counter('sync_documents_indexed', 'Documents upserted into the index')
        self._deleted = self.metrics.counter('sync_documents_deleted', 'Documents removed from the index')
        self._failures = self.metrics.counter('sync_write_failures', 'Index writes that failed and were skipped')
        self._dropped = self.metrics.counter('sync_events_dropped', 'Lifecycle events rejected by the full queue')
        self._queue_depth = self.metrics.gauge('sync_queue_depth', 'Lifecycle tasks waiting in the sync queue')

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start the worker pool. Optionally resyncs everything first."""
        if not self.enabled:
            logger.info("Index subsystem disabled, sync pipeline not started",
                        extra={'component': 'sync_pipeline', 'action': 'disabled'})
            return
        await self.queue.reopen()
        if self.config.resync_on_startup:
            await asyncio.to_thread(self.resync_all)
        await self.processor.start()

    async def drain(self, timeout: Optional[float] = None) -> bool:
        """Wait until every accepted lifecycle task has been applied."""
        if not self.enabled:
            return True
        return await self.queue.wait_until_empty(timeout=timeout)

    async def stop(self, drain: bool = True, timeout: Optional[float] = None) -> None:
        """
        Stop accepting events and shut the worker pool down.

        Args:
            drain: Apply queued tasks before stopping; otherwise they are discarded
            timeout: Seconds to wait for the drain and for workers to exit
        """
        if not self.enabled:
            return
        if timeout is None:
            timeout = self.config.shutdown_timeout_seconds

        await self.queue.close()
        if drain and self.processor.is_running:
            if not await self.queue.wait_until_empty(timeout=timeout):
                logger.warning("Sync queue did not drain before shutdown timeout",
                               extra={'component': 'sync_pipeline', 'action': 'drain_timeout'})
        await self.processor.stop(timeout=timeout)
        await self.queue.discard_pending()
        self._queue_depth.set(0)

    # ------------------------------------------------------------------
    # Lifecycle hooks
    # ------------------------------------------------------------------

    async def on_create(self, entity: SourceEntity) -> bool:
        return await self._enqueue(SyncTask(
            operation=SyncOperation.UPSERT,
            entity_type=entity.entity_type,
            entity_id=entity.id,
            entity=entity,
            event="create",
        ))

    async def on_update(self, entity: SourceEntity) -> bool:
        return await self._enqueue(SyncTask(
            operation=SyncOperation.UPSERT,
            entity_type=entity.entity_type,
            entity_id=entity.id,
            entity=entity,
            event="update",
        ))

    async def on_delete(self, entity_type: EntityType, entity_id: int) -> bool:
        return await self._enqueue(SyncTask(
            operation=SyncOperation.DELETE,
            entity_type=EntityType.from_string(entity_type),
            entity_id=entity_id,
            event="delete",
        ))

    async def _enqueue(self, task: SyncTask) -> bool:
        if not self.enabled:
            return False
        accepted = await self.queue.push(task)
        if not accepted:
            self._dropped.inc()
        self._queue_depth.set(len(self.queue))
        return accepted

    async def _apply(self, task: SyncTask) -> None:
        """Worker handler: run the blocking index write in a thread."""
        self._queue_depth.set(len(self.queue))
        if task.operation is SyncOperation.UPSERT:
            await asyncio.to_thread(self._index_entity, task.entity)
        else:
            await asyncio.to_thread(self._remove_document, task.entity_type, task.entity_id)

    # ------------------------------------------------------------------
    # Index writes
    # ------------------------------------------------------------------

    def _index_entity(self, entity: SourceEntity) -> bool:
        """
        Project and upsert one entity. Failures are logged and swallowed.

        Returns:
            True if the document was written
        """
        try:
            document = project(entity)
            self.index_store.index_for(entity.entity_type).upsert(document)
        except Exception as e:
            failure = e if isinstance(e, IndexWriteFailure) else wrap_error(
                e, f"Failed to index {entity.entity_type.label} {entity.id}", IndexWriteFailure,
                entity_type=entity.entity_type.value, entity_id=entity.id
            )
            self._failures.inc()
            logger.error(
                f"Failed to index {entity.entity_type.label} {entity.id}: {failure}",
                extra={'component': 'sync_pipeline', 'action': 'index_failed',
                       'entity_type': entity.entity_type.value, 'entity_id': entity.id}
            )
            return False

        self._indexed.inc()
        logger.debug(
            f"Indexed {entity.entity_type.label} {entity.id} for tenant '{document.tenant_id}'",
            extra={'component': 'sync_pipeline', 'action': 'indexed'}
        )
        return True

    def _remove_document(self, entity_type: EntityType, entity_id: int) -> bool:
        """Delete one document. Absent documents are not an error."""
        try:
            removed = self.index_store.index_for(entity_type).delete_by_id(entity_id)
        except Exception as e:
            self._failures.inc()
            logger.error(
                f"Failed to delete {entity_type.label} {entity_id} from index: {e}",
                extra={'component': 'sync_pipeline', 'action': 'delete_failed',
                       'entity_type': entity_type.value, 'entity_id': entity_id}
            )
            return False

        if removed:
            self._deleted.inc()
        return True

    # ------------------------------------------------------------------
    # Resync
    # ------------------------------------------------------------------

    def resync_type(self, entity_type) -> int:
        """
        Re-index every entity of one type from the primary store.

        Per-entity failures are logged and skipped.

        Returns:
            Number of entities successfully indexed
        """
        if not self.enabled:
            return 0

        entity_type = EntityType.from_string(entity_type)
        start = time.perf_counter()
        try:
            entities = self.primary_store.find_all(entity_type)
        except Exception as e:
            log_search_operation(
                operation='resync_type', component='sync_pipeline', status='error',
                duration_ms=(time.perf_counter() - start) * 1000,
                entity_type=entity_type.value, error=str(e)
            )
            return 0

        processed = sum(1 for entity in entities if self._index_entity(entity))
        failed = len(entities) - processed

        log_search_operation(
            operation='resync_type',
            component='sync_pipeline',
            status='warning' if failed else 'success',
            duration_ms=(time.perf_counter() - start) * 1000,
            entity_type=entity_type.value,
            processed=processed,
            failed=failed,
        )
        return processed

    def resync_all(self, entity_types: Optional[Iterable[EntityType]] = None) -> Dict[EntityType, int]:
        """
        Re-index every entity of every type (or of ``entity_types``).

        Returns:
            Entities indexed per type
        """
        if not self.enabled:
            return {}

        start = time.perf_counter()
        types = list(entity_types) if entity_types is not None else list(EntityType)
        counts = {t: self.resync_type(t) for t in types}

        log_search_operation(
            operation='resync_all',
            component='sync_pipeline',
            duration_ms=(time.perf_counter() - start) * 1000,
            processed=sum(counts.values()),
            per_type={t.value: n for t, n in counts.items()},
        )
        return counts

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    def index_counts(self) -> Dict[EntityType, int]:
        if not self.enabled:
            return {}
        return self.index_store.counts()

    def clear_index(self, entity_type: Optional[EntityType] = None) -> None:
        """Delete every document of one type, or of all types."""
        if not self.enabled:
            return
        types = [EntityType.from_string(entity_type)] if entity_type is not None else list(EntityType)
        for t in types:
            self.index_store.index_for(t).delete_all()
        logger.info(
            f"Cleared index for {', '.join(t.value for t in types)}",
            extra={'component': 'sync_pipeline', 'action': 'clear_index'}
        )

    async def get_stats(self) -> Dict[str, Any]:
        stats = await self.processor.get_stats()
        stats.update({
            'enabled': self.enabled,
            'documents_indexed': self._indexed.get(),
            'documents_deleted': self._deleted.get(),
            'write_failures': self._failures.get(),
            'events_dropped': self._dropped.get(),
            'queue_depth': int(self._queue_depth.get()),
        })
        return stats
