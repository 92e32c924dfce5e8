"""Per-type index stores: interface, in-memory backend and Elasticsearch backend."""

from .store_interface import IndexStore, TypeIndex
from .memory_store import InMemoryIndexStore, InMemoryTypeIndex
from .elasticsearch_store import ElasticsearchIndexStore, ElasticsearchTypeIndex

__all__ = [
    'ElasticsearchIndexStore',
    'ElasticsearchTypeIndex',
    'InMemoryIndexStore',
    'InMemoryTypeIndex',
    'IndexStore',
    'TypeIndex',
]
