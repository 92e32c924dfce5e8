"""
globalsearch - tenant-partitioned search index synchronization and
federated search.

A denormalized, per-entity-type search index is kept in step with a primary
store by the synchronization pipeline and queried by the federated search
aggregator, with every search timed by the query performance monitor.
"""

__version__ = "0.1.0"

from .config import Settings, SettingsManager
from .error_handling import (
    AuthenticationRequired,
    AuthorizationDenied,
    ConfigurationError,
    ConfigurationUnavailable,
    GlobalSearchError,
    IndexWriteFailure,
    PerTypeQueryFailure,
    ProjectionFailure,
)
from .models import (
    CallerIdentity,
    EntityType,
    InvalidSearchRequest,
    SearchDocument,
    SearchRequest,
    SearchResponse,
    SearchResultItem,
    UserRole,
)
from .monitoring import QueryPerformanceMonitor
from .projector import project
from .search import FederatedSearchAggregator
from .service import GlobalSearchService, create_index_store
from .sync import SyncPipeline

__all__ = [
    'AuthenticationRequired',
    'AuthorizationDenied',
    'CallerIdentity',
    'ConfigurationError',
    'ConfigurationUnavailable',
    'EntityType',
    'FederatedSearchAggregator',
    'GlobalSearchError',
    'GlobalSearchService',
    'IndexWriteFailure',
    'InvalidSearchRequest',
    'PerTypeQueryFailure',
    'ProjectionFailure',
    'QueryPerformanceMonitor',
    'SearchDocument',
    'SearchRequest',
    'SearchResponse',
    'SearchResultItem',
    'Settings',
    'SettingsManager',
    'SyncPipeline',
    'UserRole',
    'create_index_store',
    'project',
]
