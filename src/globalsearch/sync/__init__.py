"""Synchronization pipeline: lifecycle events and resync into the index store."""

from .task_queue import (
    AsyncBoundedQueue,
    AsyncTaskProcessor,
    SyncOperation,
    SyncTask,
)
from .pipeline import SyncPipeline

__all__ = [
    'AsyncBoundedQueue',
    'AsyncTaskProcessor',
    'SyncOperation',
    'SyncPipeline',
    'SyncTask',
]
