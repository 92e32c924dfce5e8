"""
Global search service facade.

Wires the primary store, index store, synchronization pipeline, federated
search aggregator, query performance monitor and side channels together and
exposes the surface used by the surrounding application:

- search(request, identity) / admin_search(request, identity)
- resync_all() / resync_type(type)
- get_overall_stats(), get_tenant_stats(tenant), get_slow_queries(limit),
  get_latency_distribution(), check_sla_compliance(), clear_metrics()
- start() / stop() / health()

Transport layers (HTTP controllers, WebSocket push) are out of scope; they
call into this class with an already-authenticated CallerIdentity or None.
"""

from typing import Any, Dict, List, Optional

from .config.settings import IndexConfig, Settings, SettingsManager
from .constants import ADMIN_METRICS_TENANT, QUERY_TYPE_ADMIN, QUERY_TYPE_GLOBAL
from .error_handling import (
    AuthenticationRequired,
    AuthorizationDenied,
    ConfigurationError,
    ConfigurationUnavailable,
    handle_error,
)
from .index_store import ElasticsearchIndexStore, InMemoryIndexStore, IndexStore
from .logger_config import logger
from .models.entities import EntityType
from .models.search import CallerIdentity, SearchRequest, SearchResponse
from .monitoring import (
    HealthChecker,
    MetricsRegistry,
    PerformanceStats,
    QueryMetric,
    QueryPerformanceMonitor,
    SLAComplianceReport,
    log_search_operation,
)
from .primary_store import InMemoryPrimaryStore, PrimaryStore
from .search.aggregator import FederatedSearchAggregator
from .side_channels import AuditSink, Notifier, SideChannelDispatcher
from .sync.pipeline import SyncPipeline

# Queue utilisation above which the sync health check reports unhealthy
QUEUE_HEALTH_THRESHOLD = 0.9


def create_index_store(config: IndexConfig) -> IndexStore:
    """
    Build the index store selected by ``config.backend``.

    Raises:
        ConfigurationError: If the backend is unknown
    """
    backend = config.backend.lower()
    if backend == "memory":
        return InMemoryIndexStore()
    if backend == "elasticsearch":
        http_auth = (config.username, config.password) if config.username else None
        return ElasticsearchIndexStore(
            hosts=config.hosts,
            prefix=config.prefix,
            use_ssl=config.use_ssl,
            verify_certs=config.verify_certs,
            http_auth=http_auth,
            api_key=config.api_key,
        )
    raise ConfigurationError(f"Unknown index backend: {config.backend}",
                             context={'backend': config.backend})


class GlobalSearchService:
    """
    Entry point of the search subsystem.

    When ``settings.index.enabled`` is False the service stays constructible
    and every operation no-ops: searches return empty responses and resyncs
    index nothing. Authentication and authorization are still enforced.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        primary_store: Optional[PrimaryStore] = None,
        index_store: Optional[IndexStore] = None,
        audit_sink: Optional[AuditSink] = None,
        notifier: Optional[Notifier] = None,
        monitor: Optional[QueryPerformanceMonitor] = None,
    ):
        self.settings = settings or Settings()
        self.enabled = self.settings.index.enabled

        self.primary_store = primary_store if primary_store is not None else InMemoryPrimaryStore()
        if index_store is None:
            index_store = create_index_store(self.settings.index) if self.enabled else InMemoryIndexStore()
        self.index_store = index_store

        monitor_config = self.settings.monitor
        self.monitor = monitor or QueryPerformanceMonitor(
            capacity=monitor_config.buffer_capacity,
            slow_query_threshold_ms=monitor_config.slow_query_threshold_ms,
            sla_average_ms=monitor_config.sla_average_ms,
            sla_p99_ms=monitor_config.sla_p99_ms,
        )
        self.metrics = MetricsRegistry()

        self.pipeline = SyncPipeline(
            self.primary_store,
            self.index_store,
            config=self.settings.sync,
            metrics=self.metrics,
            enabled=self.enabled,
        )
        self.aggregator = FederatedSearchAggregator(
            self.index_store,
            self.monitor,
            config=self.settings.search,
            enabled=self.enabled,
        )
        self.side_channels = SideChannelDispatcher(audit_sink, notifier)

        # Post-commit hooks go straight to the pipeline instance
        set_listener = getattr(self.primary_store, 'set_listener', None)
        if self.enabled and set_listener is not None:
            set_listener(self.pipeline)

        self.health_checker = HealthChecker()
        self.health_checker.register_check('index_store', self._check_index_store)
        self.health_checker.register_check('sync_pipeline', self._check_sync_pipeline)
        self.health_checker.register_check('query_latency', self._check_query_latency)

        self._searches = self.metrics.counter('searches_total', 'Searches executed')
        self._partial_searches = self.metrics.counter(
            'searches_partial', 'Searches where at least one entity type failed'
        )

    @classmethod
    def from_config(cls, config_path: Optional[str] = None, **kwargs) -> 'GlobalSearchService':
        """Build a service from the YAML configuration file."""
        settings = SettingsManager(config_path).get_settings()
        return cls(settings=settings, **kwargs)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        await self.pipeline.start()
        logger.info(
            f"Global search service started (enabled={self.enabled})",
            extra={'component': 'GlobalSearchService', 'action': 'start'}
        )

    async def stop(self, timeout: Optional[float] = None) -> None:
        await self.pipeline.stop(timeout=timeout)
        await self.side_channels.drain()
        self.index_store.close()
        logger.info("Global search service stopped",
                    extra={'component': 'GlobalSearchService', 'action': 'stop'})

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    async def search(self, request: SearchRequest,
                     identity: Optional[CallerIdentity]) -> SearchResponse:
        """
        Tenant-scoped search. Super-admins are routed to admin_search.

        Raises:
            AuthenticationRequired: If ``identity`` is None
            AuthorizationDenied: If a super-admin routed to admin search lacks an
                admin role, or the caller belongs to no tenant
            InvalidSearchRequest: If paging or sort parameters are invalid
        """
        if identity is None:
            raise AuthenticationRequired()

        if identity.is_super_admin:
            logger.info(
                f"Super-admin {identity.username} routed to cross-tenant search",
                extra={'component': 'GlobalSearchService', 'action': 'route_admin'}
            )
            return await self.admin_search(request, identity)

        if not identity.tenant_id:
            logger.warning(
                f"User {identity.username} has no tenant, search denied",
                extra={'component': 'GlobalSearchService', 'action': 'no_tenant_denied'}
            )
            raise AuthorizationDenied(
                "Tenant-scoped search requires a tenant",
                context={'username': identity.username}
            )

        if not self.enabled:
            return self._disabled_response(request, 'search')

        response = await self.aggregator.search(
            request,
            tenant_id=identity.tenant_id,
            admin_mode=False,
            query_type=QUERY_TYPE_GLOBAL,
        )
        self._after_search(request, identity, identity.tenant_id, response, QUERY_TYPE_GLOBAL)
        return response

    async def admin_search(self, request: SearchRequest,
                           identity: Optional[CallerIdentity]) -> SearchResponse:
        """
        Cross-tenant search for SUPER_ADMIN and TENANT_ADMIN callers.

        Raises:
            AuthenticationRequired: If ``identity`` is None
            AuthorizationDenied: If the caller has no admin role
        """
        if identity is None:
            raise AuthenticationRequired()
        if not identity.is_admin:
            logger.warning(
                f"User {identity.username} denied cross-tenant search",
                extra={'component': 'GlobalSearchService', 'action': 'admin_denied',
                       'tenant_id': identity.tenant_id}
            )
            raise AuthorizationDenied(context={'username': identity.username})

        if not self.enabled:
            return self._disabled_response(request, 'admin_search')

        response = await self.aggregator.search(
            request,
            tenant_id=identity.tenant_id,
            admin_mode=True,
            query_type=QUERY_TYPE_ADMIN,
            metrics_tenant=ADMIN_METRICS_TENANT,
        )
        self._after_search(request, identity, ADMIN_METRICS_TENANT, response, QUERY_TYPE_ADMIN)
        return response

    def _after_search(self, request: SearchRequest, identity: CallerIdentity, audit_tenant: str,
                      response: SearchResponse, query_type: str) -> None:
        self._searches.inc()
        if response.is_partial:
            self._partial_searches.inc()

        self.side_channels.audit_search(identity, audit_tenant, request.query, response.total_results)
        self.side_channels.notify_search_completed(
            identity, request.query, response.total_results, response.search_duration_ms
        )

        log_search_operation(
            operation=query_type,
            component='search_service',
            status='warning' if response.is_partial else 'success',
            duration_ms=response.search_duration_ms,
            tenant_id=audit_tenant,
            query=request.query,
            total_results=response.total_results,
            failed_types=[t.value for t in response.failed_types],
        )

    def _disabled_response(self, request: SearchRequest, operation: str) -> SearchResponse:
        handle_error(ConfigurationUnavailable(context={'operation': operation}), level="debug")
        return SearchResponse.empty(request.page, request.size or self.settings.search.default_page_size)

    # ------------------------------------------------------------------
    # Sync administration
    # ------------------------------------------------------------------

    def resync_all(self) -> Dict[EntityType, int]:
        """Rebuild every index from the primary store. Blocks until done."""
        return self.pipeline.resync_all()

    def resync_type(self, entity_type) -> int:
        """Rebuild one type's index. Accepts an EntityType or a type name."""
        return self.pipeline.resync_type(entity_type)

    def index_counts(self) -> Dict[EntityType, int]:
        return self.pipeline.index_counts()

    def clear_index(self, entity_type=None) -> None:
        self.pipeline.clear_index(entity_type)

    async def get_sync_stats(self) -> Dict[str, Any]:
        return await self.pipeline.get_stats()

    # ------------------------------------------------------------------
    # Query performance
    # ------------------------------------------------------------------

    def get_overall_stats(self) -> PerformanceStats:
        return self.monitor.overall_stats()

    def get_tenant_stats(self, tenant_id: str) -> PerformanceStats:
        return self.monitor.tenant_stats(tenant_id)

    def get_slow_queries(self, limit: int = 10) -> List[QueryMetric]:
        return self.monitor.slow_queries(limit)

    def get_latency_distribution(self) -> Dict[str, int]:
        return self.monitor.latency_distribution()

    def check_sla_compliance(self) -> SLAComplianceReport:
        return self.monitor.sla_compliance()

    def get_tenant_summary(self) -> Dict[str, Dict[str, Any]]:
        return self.monitor.tenant_summary()

    def clear_metrics(self) -> None:
        self.monitor.clear()

    def get_metrics(self) -> Dict[str, Any]:
        """Counters and gauges of the sync pipeline and search path."""
        return self.metrics.get_all_metrics()

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    def health(self) -> Dict[str, Any]:
        return self.health_checker.run_checks()

    def _check_index_store(self) -> Dict[str, Any]:
        if not self.enabled:
            return {'healthy': True, 'message': 'Index subsystem disabled'}
        available = self.index_store.is_available()
        return {
            'healthy': available,
            'message': 'Index store reachable' if available else 'Index store unavailable',
            'backend': type(self.index_store).__name__,
        }

    def _check_sync_pipeline(self) -> Dict[str, Any]:
        if not self.enabled:
            return {'healthy': True, 'message': 'Index subsystem disabled'}
        queue = self.pipeline.queue
        utilization = len(queue) / queue.max_size
        running = self.pipeline.processor.is_running
        healthy = running and utilization < QUEUE_HEALTH_THRESHOLD
        if not running:
            message = 'Sync workers not running'
        elif not healthy:
            message = f'Sync queue {utilization:.0%} full'
        else:
            message = 'Sync pipeline running'
        return {'healthy': healthy, 'message': message,
                'queue_size': len(queue), 'utilization': utilization}

    def _check_query_latency(self) -> Dict[str, Any]:
        report = self.monitor.sla_compliance()
        return {
            'healthy': report.is_compliant,
            'message': 'Search latency within SLA' if report.is_compliant else 'Search latency SLA violated',
            'average_ms': report.actual_average_ms,
            'p99_ms': report.actual_p99_ms,
        }
