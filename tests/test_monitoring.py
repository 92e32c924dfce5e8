"""Tests for the query performance monitor and the metrics helpers."""

import threading

import pytest

from globalsearch.monitoring import (
    HealthChecker,
    MetricRingBuffer,
    MetricsRegistry,
    QueryPerformanceMonitor,
    compute_stats,
    percentile,
)


class TestPercentile:

    def test_empty_sample_is_zero(self):
        assert percentile([], 99) == 0.0

    def test_nearest_rank(self):
        values = [float(v) for v in range(1, 101)]
        assert percentile(values, 50) == 50.0
        assert percentile(values, 95) == 95.0
        assert percentile(values, 99) == 99.0

    def test_single_value(self):
        assert percentile([42.0], 1) == 42.0
        assert percentile([42.0], 100) == 42.0

    @pytest.mark.parametrize("sample", [
        [5.0],
        [1.0, 2.0],
        [50.0, 150.0, 1200.0],
        [3.0, 3.0, 3.0, 9.0, 1.0, 700.0, 12.0],
    ])
    def test_percentiles_are_monotonic(self, sample):
        stats = compute_stats(sample)
        assert stats.p50_ms <= stats.p95_ms <= stats.p99_ms


class TestMetricRingBuffer:

    def test_evicts_oldest_when_full(self):
        buffer = MetricRingBuffer(capacity=3)
        for duration in [10, 20, 30, 40, 50]:
            buffer.append("T1", "global_search", duration)

        assert len(buffer) == 3
        assert [m.duration_ms for m in buffer.snapshot()] == [30.0, 40.0, 50.0]

    def test_rejects_zero_capacity(self):
        with pytest.raises(ValueError):
            MetricRingBuffer(capacity=0)

    def test_concurrent_appends_keep_capacity(self):
        buffer = MetricRingBuffer(capacity=100)

        def worker():
            for i in range(250):
                buffer.append("T1", "global_search", i)

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        snapshot = buffer.snapshot()
        assert len(snapshot) == 100
        sequences = [m.sequence for m in snapshot]
        assert sequences == sorted(sequences)
        assert len(set(sequences)) == 100


class TestQueryPerformanceMonitor:

    @pytest.fixture
    def monitor(self):
        return QueryPerformanceMonitor()

    def test_tenant_stats_scenario(self, monitor):
        for duration in [50, 150, 1200]:
            monitor.record("T1", "global_search", duration)

        stats = monitor.tenant_stats("T1")

        assert stats.count == 3
        assert stats.average_ms == pytest.approx(466.67, abs=0.01)
        assert stats.min_ms == 50
        assert stats.max_ms == 1200
        assert [m.duration_ms for m in monitor.slow_queries(10)] == [1200.0]

    def test_empty_stats_are_zero(self, monitor):
        stats = monitor.overall_stats()
        assert stats.count == 0
        assert stats.average_ms == 0.0
        assert stats.p99_ms == 0.0

    def test_tenant_stats_filters_other_tenants(self, monitor):
        monitor.record("T1", "global_search", 100)
        monitor.record("T2", "global_search", 900)

        assert monitor.tenant_stats("T1").max_ms == 100
        assert monitor.tenant_stats("T2").max_ms == 900
        assert monitor.tenant_stats("T3").count == 0
        assert monitor.overall_stats().count == 2

    def test_slow_queries_newest_first_and_limited(self, monitor):
        for duration in [1500, 20, 1100, 3000, 1001]:
            monitor.record("T1", "global_search", duration)

        slow = monitor.slow_queries(3)

        assert [m.duration_ms for m in slow] == [1001.0, 3000.0, 1100.0]
        assert monitor.slow_queries(0) == []

    def test_threshold_itself_is_not_slow(self, monitor):
        monitor.record("T1", "global_search", 1000)
        assert monitor.slow_queries(10) == []

    def test_latency_distribution(self, monitor):
        for duration in [0, 99, 100, 499, 500, 999, 1000, 1999, 2000, 8000]:
            monitor.record("T1", "global_search", duration)

        assert monitor.latency_distribution() == {
            "< 100ms": 2,
            "100-500ms": 2,
            "500-1000ms": 2,
            "1000-2000ms": 2,
            "> 2000ms": 2,
        }

    def test_sla_compliant(self, monitor):
        for duration in [50, 100, 200]:
            monitor.record("T1", "global_search", duration)

        report = monitor.sla_compliance()

        assert report.meets_average_latency
        assert report.meets_p99_latency
        assert report.is_compliant
        assert report.queries_exceeding_threshold == 0
        assert report.violation_percentage == 0.0

    def test_sla_violation(self, monitor):
        for duration in [50, 150, 1200, 1300]:
            monitor.record("T1", "global_search", duration)

        report = monitor.sla_compliance()

        assert not report.meets_average_latency
        assert not report.meets_p99_latency
        assert report.queries_exceeding_threshold == 2
        assert report.violation_percentage == 50.0
        assert report.to_dict()['is_compliant'] is False

    def test_empty_buffer_is_compliant(self, monitor):
        assert monitor.sla_compliance().is_compliant

    def test_tenant_summary_survives_eviction(self):
        monitor = QueryPerformanceMonitor(capacity=2)
        for duration in [100, 200, 300]:
            monitor.record("T1", "global_search", duration)

        summary = monitor.tenant_summary()["T1"]

        assert monitor.overall_stats().count == 2
        assert summary['query_count'] == 3
        assert summary['average_ms'] == 200.0

    def test_clear(self, monitor):
        monitor.record("T1", "global_search", 1200)
        monitor.clear()

        assert monitor.overall_stats().count == 0
        assert monitor.slow_queries(10) == []
        assert monitor.tenant_summary() == {}
        assert monitor.buffer_stats() == {'size': 0, 'capacity': 1000}


class TestMetricsRegistry:

    def test_counter_is_shared_by_name(self):
        registry = MetricsRegistry()
        registry.counter('docs', 'Documents').inc()
        registry.counter('docs', 'Documents').inc(2)

        assert registry.get_all_metrics()['docs']['value'] == 3.0

    def test_counter_rejects_negative(self):
        with pytest.raises(ValueError):
            MetricsRegistry().counter('docs', 'Documents').inc(-1)

    def test_reset_all(self):
        registry = MetricsRegistry()
        registry.counter('docs', 'Documents').inc()
        registry.gauge('depth', 'Queue depth').set(7)

        registry.reset_all()

        metrics = registry.get_all_metrics()
        assert metrics['docs']['value'] == 0.0
        assert metrics['depth']['value'] == 0


class TestHealthChecker:

    def test_failing_check_marks_unhealthy(self):
        checker = HealthChecker()
        checker.register_check('ok', lambda: {'healthy': True, 'message': 'fine'})

        def broken():
            raise RuntimeError("boom")

        checker.register_check('broken', broken)

        result = checker.run_checks()

        assert result['healthy'] is False
        assert result['checks']['ok']['healthy'] is True
        assert 'boom' in result['checks']['broken']['message']
