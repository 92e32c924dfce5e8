"""Data model: primary-store entities, search documents and search records."""

from .entities import (
    Dashboard,
    EntityType,
    Location,
    Organization,
    OrganizationStatus,
    Report,
    Sensor,
    SensorStatus,
    SensorType,
    SiteStatus,
    SourceEntity,
    Zone,
)
from .documents import SearchDocument
from .search import (
    CallerIdentity,
    InvalidSearchRequest,
    SearchRequest,
    SearchResponse,
    SearchResultItem,
    SortField,
    UserRole,
    page_count,
)

__all__ = [
    'CallerIdentity',
    'Dashboard',
    'EntityType',
    'InvalidSearchRequest',
    'Location',
    'Organization',
    'OrganizationStatus',
    'Report',
    'SearchDocument',
    'SearchRequest',
    'SearchResponse',
    'SearchResultItem',
    'Sensor',
    'SensorStatus',
    'SensorType',
    'SiteStatus',
    'SortField',
    'SourceEntity',
    'UserRole',
    'Zone',
    'page_count',
]
