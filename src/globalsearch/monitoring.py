"""
Monitoring and Observability Module

This module provides the Query Performance Monitor that backs SLA reporting,
plus a small metrics registry (counters and gauges) and a health checker
used by the synchronization pipeline and the search service.

QUERY PERFORMANCE MONITOR:
- Fixed-capacity ring buffer of QueryMetric samples (oldest evicted first)
- Overall and per-tenant statistics with nearest-rank percentiles
- Slow query listing, latency distribution and SLA compliance
- Running per-tenant totals that survive buffer eviction

CONCURRENCY:
- Appends claim a slot through an atomic sequence counter and write a
  single list element, so concurrent searches never wait on each other
- Readers take a snapshot of the slot list and compute on the copy

USAGE EXAMPLE:
    monitor = QueryPerformanceMonitor(capacity=1000)
    monitor.record("T1", "global_search", 42)
    monitor.overall_stats().p99_ms
"""

import itertools
import json
import math
import threading
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from .constants import (
    LATENCY_BUCKETS,
    METRICS_BUFFER_CAPACITY,
    SLA_AVERAGE_THRESHOLD_MS,
    SLA_P99_THRESHOLD_MS,
    SLOW_QUERY_THRESHOLD_MS,
)
from .logger_config import logger


@dataclass(frozen=True)
class QueryMetric:
    """One completed query. Immutable once recorded."""
    sequence: int
    timestamp: float
    tenant_id: str
    query_type: str
    duration_ms: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class PerformanceStats:
    """Latency statistics over a set of samples (all zero when empty)."""
    count: int = 0
    average_ms: float = 0.0
    min_ms: float = 0.0
    max_ms: float = 0.0
    p50_ms: float = 0.0
    p95_ms: float = 0.0
    p99_ms: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class SLAComplianceReport:
    """
    SLA check over the whole buffer.

    Attributes:
        meets_average_latency: average below the 'should' threshold
        meets_p99_latency: p99 below the 'must' threshold
        queries_exceeding_threshold: samples slower than the slow-query threshold
        violation_percentage: share of those samples, 0-100
    """
    meets_average_latency: bool
    meets_p99_latency: bool
    actual_average_ms: float
    actual_p99_ms: float
    queries_exceeding_threshold: int
    violation_percentage: float

    @property
    def is_compliant(self) -> bool:
        return self.meets_average_latency and self.meets_p99_latency

    def to_dict(self) -> Dict[str, Any]:
        result = asdict(self)
        result['is_compliant'] = self.is_compliant
        return result


@dataclass
class TenantTotals:
    """Running totals for one tenant, independent of buffer eviction."""
    tenant_id: str
    query_count: int = 0
    total_duration_ms: float = 0.0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def add(self, duration_ms: float) -> None:
        with self._lock:
            self.query_count += 1
            self.total_duration_ms += duration_ms

    @property
    def average_ms(self) -> float:
        with self._lock:
            if self.query_count == 0:
                return 0.0
            return self.total_duration_ms / self.query_count

    def to_dict(self) -> Dict[str, Any]:
        return {
            'tenant_id': self.tenant_id,
            'query_count': self.query_count,
            'total_duration_ms': self.total_duration_ms,
            'average_ms': self.average_ms,
        }


def percentile(sorted_values: List[float], p: float) -> float:
    """
    Nearest-rank percentile of an ascending list.

    index = ceil(p/100 * n) - 1, clamped to [0, n-1]. Returns 0.0 for an
    empty list.
    """
    n = len(sorted_values)
    if n == 0:
        return 0.0
    index = math.ceil(p / 100.0 * n) - 1
    index = max(0, min(index, n - 1))
    return sorted_values[index]


def compute_stats(durations: List[float]) -> PerformanceStats:
    if not durations:
        return PerformanceStats()
    ordered = sorted(durations)
    return PerformanceStats(
        count=len(ordered),
        average_ms=sum(ordered) / len(ordered),
        min_ms=ordered[0],
        max_ms=ordered[-1],
        p50_ms=percentile(ordered, 50),
        p95_ms=percentile(ordered, 95),
        p99_ms=percentile(ordered, 99),
    )


class MetricRingBuffer:
    """
    Fixed-capacity circular buffer of QueryMetric with an index cursor.

    Each append takes the next sequence number and writes slot
    ``sequence % capacity``. ``next()`` on an itertools.count and a single
    list item assignment are both atomic, so no lock is taken on append.
    """

    def __init__(self, capacity: int = METRICS_BUFFER_CAPACITY):
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self.capacity = capacity
        self._slots: List[Optional[QueryMetric]] = [None] * capacity
        self._cursor = itertools.count()

    def append(self, tenant_id: str, query_type: str, duration_ms: float) -> QueryMetric:
        sequence = next(self._cursor)
        metric = QueryMetric(
            sequence=sequence,
            timestamp=time.time(),
            tenant_id=tenant_id,
            query_type=query_type,
            duration_ms=float(duration_ms),
        )
        self._slots[sequence % self.capacity] = metric
        return metric

    def snapshot(self) -> List[QueryMetric]:
        """Current samples, oldest first."""
        slots = list(self._slots)
        return sorted((m for m in slots if m is not None), key=lambda m: m.sequence)

    def __len__(self) -> int:
        return sum(1 for m in list(self._slots) if m is not None)

    def clear(self) -> None:
        self._slots = [None] * self.capacity
        self._cursor = itertools.count()


class QueryPerformanceMonitor:
    """
    Records search latencies and derives statistics and SLA compliance.

    In-memory only; samples do not survive a process restart.
    """

    def __init__(
        self,
        capacity: int = METRICS_BUFFER_CAPACITY,
        slow_query_threshold_ms: float = SLOW_QUERY_THRESHOLD_MS,
        sla_average_ms: float = SLA_AVERAGE_THRESHOLD_MS,
        sla_p99_ms: float = SLA_P99_THRESHOLD_MS,
    ):
        self._buffer = MetricRingBuffer(capacity)
        self.slow_query_threshold_ms = slow_query_threshold_ms
        self.sla_average_ms = sla_average_ms
        self.sla_p99_ms = sla_p99_ms
        self._tenants: Dict[str, TenantTotals] = {}

    @property
    def capacity(self) -> int:
        return self._buffer.capacity

    def record(self, tenant_id: str, query_type: str, duration_ms: float) -> QueryMetric:
        """Append one sample; logs a warning when the query was slow."""
        metric = self._buffer.append(tenant_id, query_type, duration_ms)

        totals = self._tenants.get(tenant_id)
        if totals is None:
            totals = self._tenants.setdefault(tenant_id, TenantTotals(tenant_id))
        totals.add(metric.duration_ms)

        if metric.duration_ms > self.slow_query_threshold_ms:
            logger.warning(
                f"Slow query detected: {metric.duration_ms:.0f}ms for tenant {tenant_id} ({query_type})",
                extra={'component': 'QueryPerformanceMonitor', 'action': 'slow_query',
                       'tenant_id': tenant_id, 'query_type': query_type,
                       'duration_ms': metric.duration_ms}
            )
        return metric

    def overall_stats(self) -> PerformanceStats:
        return compute_stats([m.duration_ms for m in self._buffer.snapshot()])

    def tenant_stats(self, tenant_id: str) -> PerformanceStats:
        return compute_stats([
            m.duration_ms for m in self._buffer.snapshot() if m.tenant_id == tenant_id
        ])

    def slow_queries(self, limit: int = 10) -> List[QueryMetric]:
        """Most recent samples above the slow-query threshold, newest first."""
        if limit <= 0:
            return []
        slow = [m for m in self._buffer.snapshot() if m.duration_ms > self.slow_query_threshold_ms]
        slow.reverse()
        return slow[:limit]

    def latency_distribution(self) -> Dict[str, int]:
        distribution = {label: 0 for label, _, _ in LATENCY_BUCKETS}
        for metric in self._buffer.snapshot():
            for label, lower, upper in LATENCY_BUCKETS:
                if lower <= metric.duration_ms < upper:
                    distribution[label] += 1
                    break
        return distribution

    def sla_compliance(self) -> SLAComplianceReport:
        samples = self._buffer.snapshot()
        stats = compute_stats([m.duration_ms for m in samples])
        exceeding = sum(1 for m in samples if m.duration_ms > self.slow_query_threshold_ms)
        violation = (exceeding / len(samples) * 100) if samples else 0.0
        return SLAComplianceReport(
            meets_average_latency=stats.average_ms < self.sla_average_ms,
            meets_p99_latency=stats.p99_ms < self.sla_p99_ms,
            actual_average_ms=stats.average_ms,
            actual_p99_ms=stats.p99_ms,
            queries_exceeding_threshold=exceeding,
            violation_percentage=violation,
        )

    def tenant_summary(self) -> Dict[str, Dict[str, Any]]:
        """Running totals per tenant since the last clear."""
        return {tenant: totals.to_dict() for tenant, totals in list(self._tenants.items())}

    def buffer_stats(self) -> Dict[str, int]:
        return {'size': len(self._buffer), 'capacity': self._buffer.capacity}

    def clear(self) -> None:
        self._buffer.clear()
        self._tenants = {}
        logger.info("Query metrics cleared",
                    extra={'component': 'QueryPerformanceMonitor', 'action': 'clear'})


@dataclass
class Counter:
    """A monotonically increasing value (e.g. documents indexed)."""
    name: str
    description: str
    _value: float = 0.0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def inc(self, amount: float = 1.0) -> None:
        if amount < 0:
            raise ValueError("Counter increment must be non-negative")
        with self._lock:
            self._value += amount

    def get(self) -> float:
        return self._value

    def reset(self) -> None:
        with self._lock:
            self._value = 0.0


@dataclass
class Gauge:
    """A value that can go up and down (e.g. queue depth)."""
    name: str
    description: str
    _value: float = 0.0

    def set(self, value: float) -> None:
        self._value = value

    def get(self) -> float:
        return self._value


class MetricsRegistry:
    """
    Central registry for counters and gauges.

    THREAD SAFETY: creation is guarded by a lock; counters lock on update.
    """

    def __init__(self):
        self._counters: Dict[str, Counter] = {}
        self._gauges: Dict[str, Gauge] = {}
        self._lock = threading.Lock()

    def counter(self, name: str, description: str) -> Counter:
        """Get or create a counter metric."""
        with self._lock:
            if name not in self._counters:
                self._counters[name] = Counter(name=name, description=description)
            return self._counters[name]

    def gauge(self, name: str, description: str) -> Gauge:
        """Get or create a gauge metric."""
        with self._lock:
            if name not in self._gauges:
                self._gauges[name] = Gauge(name=name, description=description)
            return self._gauges[name]

    def get_all_metrics(self) -> Dict[str, Any]:
        with self._lock:
            metrics = {}
            for name, counter in self._counters.items():
                metrics[name] = {
                    'type': 'counter',
                    'description': counter.description,
                    'value': counter.get()
                }
            for name, gauge in self._gauges.items():
                metrics[name] = {
                    'type': 'gauge',
                    'description': gauge.description,
                    'value': gauge.get()
                }
            return metrics

    def reset_all(self) -> None:
        """Reset all metrics (mainly for testing)."""
        with self._lock:
            for counter in self._counters.values():
                counter.reset()
            for gauge in self._gauges.values():
                gauge.set(0)


class HealthChecker:
    """
    Runs registered health checks.

    Each check returns a dict with at least:
    - healthy: True/False
    - message: Human-readable status
    """

    def __init__(self):
        self._checks: Dict[str, Callable[[], Dict[str, Any]]] = {}
        self._lock = threading.Lock()

    def register_check(self, name: str, check_func: Callable[[], Dict[str, Any]]) -> None:
        with self._lock:
            self._checks[name] = check_func

    def run_checks(self) -> Dict[str, Any]:
        """
        Run all registered health checks.

        A check that raises is reported as unhealthy rather than propagating.

        Returns:
            Dictionary with overall health status and individual check results
        """
        current_time = time.time()
        with self._lock:
            checks = dict(self._checks)

        overall_healthy = True
        check_results = {}
        for name, check_func in checks.items():
            try:
                result = check_func()
            except Exception as e:
                result = {'healthy': False, 'message': f'Check failed with exception: {e}'}
            result['timestamp'] = current_time
            check_results[name] = result
            if not result.get('healthy', False):
                overall_healthy = False

        return {
            'healthy': overall_healthy,
            'timestamp': current_time,
            'checks': check_results
        }


@dataclass
class OperationLogEntry:
    """
    Structured log entry for search and sync operations.

    FIELDS:
    - timestamp: ISO 8601 timestamp
    - operation: Type of operation performed
    - component: Component that performed the operation
    - status: success / warning / error
    - duration_ms: Operation duration in milliseconds
    - metadata: Additional operation-specific data
    """
    timestamp: str
    operation: str
    component: str
    status: str
    duration_ms: float
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_json(self) -> str:
        return json.dumps(asdict(self), default=str)


def log_search_operation(
    operation: str,
    component: str,
    status: str = "success",
    duration_ms: float = 0.0,
    **metadata
) -> None:
    """
    Log an operation as a single structured JSON record.

    Example:
        log_search_operation(
            operation='resync_all',
            component='sync_pipeline',
            duration_ms=1830.4,
            processed=12
        )
    """
    entry = OperationLogEntry(
        timestamp=datetime.now().isoformat(),
        operation=operation,
        component=component,
        status=status,
        duration_ms=duration_ms,
        metadata=metadata
    )

    log_json = entry.to_json()
    if status == 'error':
        logger.error(f"[GLOBAL_SEARCH] {log_json}")
    elif status == 'warning':
        logger.warning(f"[GLOBAL_SEARCH] {log_json}")
    else:
        logger.info(f"[GLOBAL_SEARCH] {log_json}")
