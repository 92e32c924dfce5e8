"""
Federated Search Aggregator.

Fans one search out across the per-type indices, merges the typed results
into a single ranked list and slices out the requested page.

Key Features:
- Parallel per-type sub-queries via asyncio.gather()
- Per-type timeout; a failed or slow type contributes zero results
- Tenant scoping at query time plus a second tenant check on every
  returned document
- Optional synonym expansion, fuzzy matching and highlighting
- Latency of every search recorded with the QueryPerformanceMonitor

Architecture:
    search()
        ├── _run_type_query() - one per selected type, concurrently
        │     └── _query_type() - blocking index reads, in a worker thread
        ├── rank_results() - stable merge sort
        └── monitor.record()

Merging is done in memory over every match of every type before the page
is sliced, so the cost of a query grows with the total number of matches.
"""

import asyncio
import time
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

from .ranking import RelevanceScorer, rank_results
from .text_utils import (
    expand_with_synonyms,
    highlight_multiple,
    is_fuzzy_match,
    matched_terms,
    snippet,
)
from ..config.settings import SearchConfig
from ..constants import QUERY_TYPE_GLOBAL
from ..error_handling import PerTypeQueryFailure
from ..index_store.store_interface import IndexStore, TypeIndex
from ..logger_config import logger
from ..models.documents import SearchDocument
from ..models.entities import EntityType
from ..models.search import SearchRequest, SearchResponse, SearchResultItem, page_count
from ..monitoring import QueryPerformanceMonitor


# =============================================================================
# FILTERS AND METADATA
# =============================================================================

ALL_TYPES = frozenset(EntityType)

FILTER_SCOPES: Dict[str, frozenset] = {
    'city': frozenset({EntityType.LOCATION}),
    'country': frozenset({EntityType.LOCATION}),
    'organization_id': frozenset({EntityType.LOCATION, EntityType.ZONE}),
    'location_id': frozenset({EntityType.ZONE}),
    'zone_id': frozenset({EntityType.SENSOR}),
    'sensor_type': frozenset({EntityType.SENSOR}),
    'status': ALL_TYPES,
}
"""Request filter -> entity types it applies to. Other types ignore it."""

METADATA_FIELDS: Dict[EntityType, Tuple[Tuple[str, str], ...]] = {
    EntityType.ORGANIZATION: (('industry', 'industry'), ('city', 'city')),
    EntityType.LOCATION: (('organizationId', 'organization_id'), ('city', 'city'),
                          ('country', 'country')),
    EntityType.ZONE: (('locationId', 'location_id'), ('type', 'zone_type')),
    EntityType.SENSOR: (('serialNumber', 'serial_number'), ('sensorType', 'sensor_type'),
                        ('zoneId', 'zone_id')),
    EntityType.REPORT: (('reportType', 'report_type'), ('createdBy', 'created_by')),
    EntityType.DASHBOARD: (('dashboardType', 'dashboard_type'), ('isShared', 'is_shared')),
}
"""Metadata key in results -> document attribute, per entity type."""


def _filter_value(document: SearchDocument, name: str) -> Any:
    if name == 'status':
        return document.status
    return document.get(name)


def _same_value(actual: Any, wanted: Any) -> bool:
    if actual is None:
        return False
    return str(actual).lower() == str(wanted).lower()


def passes_filters(document: SearchDocument, request: SearchRequest) -> bool:
    """Apply the request's attribute filters that are in scope for the document's type."""
    for name, scope in FILTER_SCOPES.items():
        wanted = getattr(request, name)
        if wanted is None or document.entity_type not in scope:
            continue
        if not _same_value(_filter_value(document, name), wanted):
            return False
    return True


def build_metadata(document: SearchDocument) -> Dict[str, Any]:
    metadata: Dict[str, Any] = {'tenantId': document.tenant_id}
    for key, attribute in METADATA_FIELDS[document.entity_type]:
        metadata[key] = document.get(attribute)
    return metadata


# =============================================================================
# AGGREGATOR
# =============================================================================

class FederatedSearchAggregator:
    """
    Runs federated searches against an IndexStore.

    Authorization is the caller's concern: this class trusts ``tenant_id``
    and ``admin_mode`` as given.

    Example:
        >>> aggregator = FederatedSearchAggregator(store, monitor)
        >>> response = await aggregator.search(SearchRequest(query="Acme"), tenant_id="T1")
        >>> [item.name for item in response.results]
        ['Acme Corp']
    """

    def __init__(
        self,
        index_store: IndexStore,
        monitor: QueryPerformanceMonitor,
        config: Optional[SearchConfig] = None,
        scorer: Optional[RelevanceScorer] = None,
        enabled: bool = True,
    ):
        self.index_store = index_store
        self.monitor = monitor
        self.config = config or SearchConfig()
        self.scorer = scorer or RelevanceScorer(self.config)
        self.enabled = enabled

    async def search(
        self,
        request: SearchRequest,
        tenant_id: str,
        admin_mode: bool = False,
        query_type: str = QUERY_TYPE_GLOBAL,
        metrics_tenant: Optional[str] = None,
    ) -> SearchResponse:
        """
        Execute one federated search.

        Args:
            request: The search request
            tenant_id: Tenant to scope to (ignored in admin mode)
            admin_mode: Search across all tenants
            query_type: Label recorded with the latency sample
            metrics_tenant: Tenant recorded with the latency sample; defaults to tenant_id

        Returns:
            SearchResponse; partial if some types failed (see failed_types)

        Raises:
            InvalidSearchRequest: If paging or sort parameters are invalid
        """
        if not self.enabled:
            return SearchResponse.empty(request.page, request.size or self.config.default_page_size)

        size = request.validate(self.config.max_page_size, self.config.default_page_size)
        start_time = time.perf_counter()

        entity_types = request.selected_types()
        terms = self._search_terms(request)

        outcomes = await asyncio.gather(
            *(self._run_type_query(t, request, terms, tenant_id, admin_mode) for t in entity_types),
            return_exceptions=True
        )

        merged: List[SearchResultItem] = []
        failed_types: List[EntityType] = []
        for entity_type, outcome in zip(entity_types, outcomes):
            if isinstance(outcome, BaseException) or outcome is None:
                failed_types.append(entity_type)
                if isinstance(outcome, BaseException):
                    logger.error(
                        f"Unexpected error in {entity_type.label} sub-query: {outcome}",
                        extra={'component': 'aggregator', 'action': 'type_query_error',
                               'entity_type': entity_type.value}
                    )
                continue
            merged.extend(outcome)

        ranked = rank_results(
            merged,
            request.sort_field,
            descending=request.sort_direction.upper() == "DESC",
        )

        total = len(ranked)
        offset = request.page * size
        page_items = ranked[offset:offset + size]

        duration_ms = int((time.perf_counter() - start_time) * 1000)
        self.monitor.record(metrics_tenant or tenant_id, query_type, duration_ms)

        logger.debug(
            f"Search '{request.query}' matched {total} documents across "
            f"{len(entity_types) - len(failed_types)}/{len(entity_types)} types in {duration_ms}ms",
            extra={'component': 'aggregator', 'action': 'search_complete',
                   'admin_mode': admin_mode, 'total_results': total}
        )

        return SearchResponse(
            results=page_items,
            total_results=total,
            current_page=request.page,
            total_pages=page_count(total, size),
            page_size=size,
            search_duration_ms=duration_ms,
            failed_types=failed_types,
        )

    def _search_terms(self, request: SearchRequest) -> List[str]:
        """Query plus synonyms, or nothing for a match-all request."""
        if not request.query:
            return []
        if request.enable_synonyms:
            return expand_with_synonyms(request.query)
        return [request.query]

    async def _run_type_query(
        self,
        entity_type: EntityType,
        request: SearchRequest,
        terms: Sequence[str],
        tenant_id: str,
        admin_mode: bool,
    ) -> Optional[List[SearchResultItem]]:
        """
        Run one type's sub-query in a worker thread under the per-type timeout.

        Returns:
            The type's result items, or None if the sub-query failed. A timed
            out thread is abandoned, not interrupted.
        """
        timeout = self.config.per_type_timeout_seconds
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self._query_type, entity_type, request, terms, tenant_id, admin_mode),
                timeout=timeout
            )
        except asyncio.TimeoutError:
            failure = PerTypeQueryFailure(
                f"{entity_type.label} sub-query timed out after {timeout}s",
                context={'entity_type': entity_type.value, 'timeout': timeout}
            )
        except Exception as e:
            failure = e if isinstance(e, PerTypeQueryFailure) else PerTypeQueryFailure(
                f"{entity_type.label} sub-query failed: {e}",
                context={'entity_type': entity_type.value, 'original_type': type(e).__name__}
            )

        logger.error(
            str(failure),
            extra={'component': 'aggregator', 'action': 'type_query_failed',
                   'entity_type': entity_type.value}
        )
        return None

    def _query_type(
        self,
        entity_type: EntityType,
        request: SearchRequest,
        terms: Sequence[str],
        tenant_id: str,
        admin_mode: bool,
    ) -> List[SearchResultItem]:
        """Blocking per-type query: match, fuzzy-extend, tenant-check, filter, convert."""
        index = self.index_store.index_for(entity_type)
        matches: Dict[int, SearchDocument] = {}
        fuzzy_ids: Set[int] = set()

        if not terms:
            for document in self._scope(index, tenant_id, admin_mode):
                matches.setdefault(document.id, document)
        else:
            for term in terms:
                found = (index.find_by_name_contains(term) if admin_mode
                         else index.find_by_tenant_and_name_contains(tenant_id, term))
                for document in found:
                    matches.setdefault(document.id, document)

            if request.enable_fuzzy_search:
                for document in self._scope(index, tenant_id, admin_mode):
                    if document.id in matches:
                        continue
                    if is_fuzzy_match(document.name, request.query, request.fuzzy_max_edits):
                        matches[document.id] = document
                        fuzzy_ids.add(document.id)

        documents = list(matches.values())
        if not admin_mode:
            documents = self._enforce_tenant(entity_type, documents, tenant_id)

        return [
            self._to_item(document, request, terms, document.id in fuzzy_ids)
            for document in documents
            if passes_filters(document, request)
        ]

    @staticmethod
    def _scope(index: TypeIndex, tenant_id: str, admin_mode: bool) -> List[SearchDocument]:
        return index.find_all() if admin_mode else index.find_by_tenant(tenant_id)

    @staticmethod
    def _enforce_tenant(entity_type: EntityType, documents: List[SearchDocument],
                        tenant_id: str) -> List[SearchDocument]:
        """
        Drop documents whose tenant tag does not match, whatever the index returned.

        Untagged documents (orphans) never match, even for an empty ``tenant_id``.
        """
        kept = [d for d in documents if d.tenant_id and d.tenant_id == tenant_id]
        if len(kept) != len(documents):
            logger.warning(
                f"{entity_type.label} index returned {len(documents) - len(kept)} "
                f"documents outside tenant '{tenant_id}', discarded",
                extra={'component': 'aggregator', 'action': 'tenant_mismatch',
                       'entity_type': entity_type.value}
            )
        return kept

    def _to_item(self, document: SearchDocument, request: SearchRequest,
                 terms: Sequence[str], fuzzy_only: bool) -> SearchResultItem:
        terms = list(terms)
        item = SearchResultItem(
            entity_type=document.entity_type,
            id=document.id,
            name=document.name,
            tenant_id=document.tenant_id,
            description=document.description,
            status=document.status,
            relevance_score=self.scorer.score(document.entity_type, document.name, terms, fuzzy_only),
            metadata=build_metadata(document),
            matched_terms=matched_terms(f"{document.name} {document.description or ''}", terms),
            is_fuzzy_match=fuzzy_only,
        )

        if terms and request.enable_highlighting:
            item.highlighted_name = highlight_multiple(document.name, terms)
            item.highlighted_description = highlight_multiple(document.description, terms)
        if terms and document.description:
            item.snippet = snippet(document.description, request.query, self.config.snippet_length)
        return item
