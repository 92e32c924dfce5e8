"""Tests for the federated search aggregator."""

import itertools
import time
from unittest.mock import patch

import pytest

from globalsearch.config import SearchConfig
from globalsearch.index_store import InMemoryIndexStore, InMemoryTypeIndex
from globalsearch.models import (
    EntityType,
    InvalidSearchRequest,
    Organization,
    SearchRequest,
    Sensor,
)
from globalsearch.projector import project
from globalsearch.search import FederatedSearchAggregator


def index_entities(index_store, *entities):
    for entity in entities:
        index_store.index_for(entity.entity_type).upsert(project(entity))


def index_tree(index_store, tree):
    index_entities(index_store, *tree.values())


class LeakyTypeIndex(InMemoryTypeIndex):
    """Sensor index that ignores the tenant predicate."""

    def find_by_tenant_and_name_contains(self, tenant_id, substring):
        return self.find_by_name_contains(substring)


class LeakyIndexStore(InMemoryIndexStore):

    def __init__(self):
        super().__init__()
        self.leaky = LeakyTypeIndex(EntityType.SENSOR)

    def index_for(self, entity_type):
        if entity_type is EntityType.SENSOR:
            return self.leaky
        return super().index_for(entity_type)


@pytest.fixture
def aggregator(index_store, monitor, settings):
    return FederatedSearchAggregator(index_store, monitor, config=settings.search)


class TestTenantSearch:

    @pytest.mark.asyncio
    async def test_finds_organization_by_name(self, aggregator, index_store, t1_tree):
        index_entities(index_store, t1_tree['organization'])

        response = await aggregator.search(SearchRequest(query="Acme"), tenant_id="T1")

        assert response.total_results == 1
        result = response.results[0]
        assert result.name == "Acme Corp"
        assert result.entity_type is EntityType.ORGANIZATION
        assert result.to_dict()['entity_type'] == "Organization"
        assert response.failed_types == []

    @pytest.mark.asyncio
    async def test_results_never_cross_tenants(self, aggregator, index_store, t1_tree, t2_tree):
        index_tree(index_store, t1_tree)
        index_tree(index_store, t2_tree)

        response = await aggregator.search(SearchRequest(query="Widget"), tenant_id="T1")

        assert response.total_results == 1
        assert response.results[0].id == t1_tree['sensor'].id
        assert response.results[0].tenant_id == "T1"

    @pytest.mark.asyncio
    async def test_mis_tagged_documents_are_dropped(self, monitor, settings, t1_tree, t2_tree):
        store = LeakyIndexStore()
        index_tree(store, t1_tree)
        index_tree(store, t2_tree)
        aggregator = FederatedSearchAggregator(store, monitor, config=settings.search)

        response = await aggregator.search(SearchRequest(query="Widget"), tenant_id="T1")

        assert [r.tenant_id for r in response.results] == ["T1"]

    @pytest.mark.asyncio
    async def test_orphans_unreachable_with_empty_tenant(self, aggregator, index_store):
        index_entities(index_store,
                       Sensor(id=1, name="Secret Sensor A", zone=None),
                       Sensor(id=2, name="Secret Sensor B", zone=None))

        for request in (SearchRequest(query="secret"), SearchRequest()):
            response = await aggregator.search(request, tenant_id="")
            assert response.results == []
            assert response.total_results == 0

        admin = await aggregator.search(SearchRequest(query="secret"), tenant_id="", admin_mode=True)
        assert admin.total_results == 2

    @pytest.mark.asyncio
    async def test_empty_query_matches_whole_tenant(self, aggregator, index_store, t1_tree, t2_tree):
        index_tree(index_store, t1_tree)
        index_tree(index_store, t2_tree)

        response = await aggregator.search(SearchRequest(query="   "), tenant_id="T1")

        assert response.total_results == 6
        assert response.results[0].entity_type is EntityType.ORGANIZATION
        assert all(r.highlighted_name is None for r in response.results)

    @pytest.mark.asyncio
    async def test_entity_type_selection(self, aggregator, index_store, t1_tree):
        index_tree(index_store, t1_tree)

        response = await aggregator.search(
            SearchRequest(query="", entity_types=["sensors", EntityType.ZONE]), tenant_id="T1"
        )

        assert {r.entity_type for r in response.results} == {EntityType.ZONE, EntityType.SENSOR}

    @pytest.mark.asyncio
    async def test_metadata(self, aggregator, index_store, t1_tree):
        index_tree(index_store, t1_tree)

        response = await aggregator.search(
            SearchRequest(query="Widget", entity_types=[EntityType.SENSOR]), tenant_id="T1"
        )

        metadata = response.results[0].metadata
        assert metadata['tenantId'] == "T1"
        assert metadata['sensorType'] == "TEMPERATURE"
        assert metadata['serialNumber'] == "SN-100"
        assert metadata['zoneId'] == t1_tree['zone'].id


class TestAdminSearch:

    @pytest.mark.asyncio
    async def test_spans_every_tenant(self, aggregator, index_store, t1_tree, t2_tree):
        index_tree(index_store, t1_tree)
        index_tree(index_store, t2_tree)

        response = await aggregator.search(SearchRequest(query="Widget"), tenant_id="T1",
                                           admin_mode=True)

        assert sorted(r.tenant_id for r in response.results) == ["T1", "T2"]

    @pytest.mark.asyncio
    async def test_empty_query_returns_everything(self, aggregator, index_store, t1_tree, t2_tree):
        index_tree(index_store, t1_tree)
        index_tree(index_store, t2_tree)

        response = await aggregator.search(SearchRequest(size=100), tenant_id="T1", admin_mode=True)

        assert response.total_results == 12


class TestPagination:

    @pytest.mark.asyncio
    async def test_second_page(self, aggregator, index_store):
        index_entities(index_store, *[
            Organization(id=i, name=f"Plant {i:02d}", tenant_id="T1") for i in range(1, 26)
        ])

        response = await aggregator.search(SearchRequest(query="Plant", page=1, size=10),
                                           tenant_id="T1")

        assert response.total_results == 25
        assert response.total_pages == 3
        assert response.current_page == 1
        assert [r.id for r in response.results] == list(range(11, 21))

    @pytest.mark.asyncio
    async def test_page_past_the_end_is_empty(self, aggregator, index_store, t1_tree):
        index_tree(index_store, t1_tree)

        response = await aggregator.search(SearchRequest(page=5, size=10), tenant_id="T1")

        assert response.results == []
        assert response.total_results == 6
        assert response.total_pages == 1

    @pytest.mark.asyncio
    async def test_default_page_size_from_config(self, index_store, monitor, t1_tree):
        index_tree(index_store, t1_tree)
        aggregator = FederatedSearchAggregator(index_store, monitor,
                                               config=SearchConfig(default_page_size=4))

        response = await aggregator.search(SearchRequest(), tenant_id="T1")

        assert response.page_size == 4
        assert len(response.results) == 4
        assert response.total_pages == 2

    @pytest.mark.asyncio
    async def test_request_is_not_modified(self, index_store, monitor, t1_tree):
        index_tree(index_store, t1_tree)
        aggregator = FederatedSearchAggregator(index_store, monitor,
                                               config=SearchConfig(default_page_size=4))
        request = SearchRequest()

        first = await aggregator.search(request, tenant_id="T1")
        second = await aggregator.search(request, tenant_id="T1")

        assert request.size is None
        assert first.page_size == second.page_size == 4

    @pytest.mark.asyncio
    @pytest.mark.parametrize("request_kwargs", [
        {'size': 0},
        {'size': 101},
        {'page': -1},
        {'sort_by': 'colour'},
        {'sort_direction': 'sideways'},
    ])
    async def test_invalid_requests_rejected(self, aggregator, request_kwargs):
        with pytest.raises(InvalidSearchRequest):
            await aggregator.search(SearchRequest(query="Acme", **request_kwargs), tenant_id="T1")


class TestPartialFailure:

    @pytest.mark.asyncio
    async def test_failed_type_contributes_nothing(self, aggregator, index_store, t1_tree):
        index_tree(index_store, t1_tree)
        zones = index_store.index_for(EntityType.ZONE)

        with patch.object(zones, 'find_by_tenant_and_name_contains',
                          side_effect=RuntimeError("shard unavailable")):
            response = await aggregator.search(SearchRequest(query="Acme"), tenant_id="T1")

        assert response.failed_types == [EntityType.ZONE]
        assert response.is_partial
        assert {r.name for r in response.results} == {"Acme Corp", "Acme Corp HQ"}

    @pytest.mark.asyncio
    async def test_slow_type_times_out(self, index_store, monitor, t1_tree):
        index_tree(index_store, t1_tree)
        aggregator = FederatedSearchAggregator(
            index_store, monitor, config=SearchConfig(per_type_timeout_seconds=0.1)
        )
        sensors = index_store.index_for(EntityType.SENSOR)

        def slow_query(tenant_id, substring):
            time.sleep(0.5)
            return []

        with patch.object(sensors, 'find_by_tenant_and_name_contains', side_effect=slow_query):
            response = await aggregator.search(SearchRequest(query="Acme"), tenant_id="T1")

        assert response.failed_types == [EntityType.SENSOR]
        assert response.total_results == 2

    @pytest.mark.asyncio
    async def test_every_type_failing_gives_empty_response(self, aggregator, index_store):
        with patch.object(InMemoryTypeIndex, 'find_by_tenant',
                          side_effect=RuntimeError("cluster down")):
            response = await aggregator.search(SearchRequest(), tenant_id="T1")

        assert response.results == []
        assert response.failed_types == list(EntityType)


class TestMatchingOptions:

    @pytest.mark.asyncio
    async def test_synonyms_widen_the_match(self, aggregator, index_store, tree_factory):
        index_tree(index_store, tree_factory("T1", 100, sensor_name="Thermal Probe"))

        plain = await aggregator.search(SearchRequest(query="sensor"), tenant_id="T1")
        expanded = await aggregator.search(SearchRequest(query="sensor", enable_synonyms=True),
                                           tenant_id="T1")

        assert plain.total_results == 0
        assert [r.name for r in expanded.results] == ["Thermal Probe"]
        assert expanded.results[0].matched_terms == ["probe"]

    @pytest.mark.asyncio
    async def test_fuzzy_match_is_flagged_and_penalised(self, aggregator, index_store, t1_tree):
        index_tree(index_store, t1_tree)

        plain = await aggregator.search(SearchRequest(query="Widgt"), tenant_id="T1")
        fuzzy = await aggregator.search(SearchRequest(query="Widgt", enable_fuzzy_search=True),
                                        tenant_id="T1")

        assert plain.total_results == 0
        assert fuzzy.total_results == 1
        result = fuzzy.results[0]
        assert result.name == "Widget Sensor"
        assert result.is_fuzzy_match
        assert result.relevance_score == pytest.approx(0.7 * 0.7)

    @pytest.mark.asyncio
    async def test_highlighting(self, aggregator, index_store, t1_tree):
        index_tree(index_store, t1_tree)

        response = await aggregator.search(
            SearchRequest(query="acme", entity_types=[EntityType.ORGANIZATION],
                          enable_highlighting=True),
            tenant_id="T1"
        )

        assert response.results[0].highlighted_name == "<mark>Acme</mark> Corp"

    @pytest.mark.asyncio
    async def test_snippet_from_description(self, aggregator, index_store, t1_tree):
        index_tree(index_store, t1_tree)

        response = await aggregator.search(SearchRequest(query="Energy"), tenant_id="T1")

        report = response.results[0]
        assert report.entity_type is EntityType.REPORT
        assert report.snippet == "Energy readings for every site"
        assert report.highlighted_name is None

    @pytest.mark.asyncio
    async def test_exact_match_ranks_first(self, aggregator, index_store, t1_tree):
        index_tree(index_store, t1_tree)

        response = await aggregator.search(SearchRequest(query="Acme Corp"), tenant_id="T1")

        assert [r.name for r in response.results] == ["Acme Corp", "Acme Corp HQ"]
        assert response.results[0].relevance_score == pytest.approx(3.0)


class TestFilters:

    @pytest.mark.asyncio
    async def test_city_filter_only_applies_to_locations(self, aggregator, index_store, t1_tree):
        index_tree(index_store, t1_tree)

        response = await aggregator.search(SearchRequest(city="Paris"), tenant_id="T1")

        assert response.total_results == 5
        assert EntityType.LOCATION not in {r.entity_type for r in response.results}

    @pytest.mark.asyncio
    async def test_filters_compare_case_insensitively(self, aggregator, index_store, t1_tree):
        index_tree(index_store, t1_tree)

        response = await aggregator.search(
            SearchRequest(sensor_type="temperature", entity_types=[EntityType.SENSOR]),
            tenant_id="T1"
        )

        assert response.total_results == 1

    @pytest.mark.asyncio
    async def test_status_filter_applies_to_every_type(self, aggregator, index_store, t1_tree):
        index_tree(index_store, t1_tree)

        response = await aggregator.search(SearchRequest(status="INACTIVE"), tenant_id="T1")

        assert response.total_results == 0

    @pytest.mark.asyncio
    async def test_parent_id_filter(self, aggregator, index_store, t1_tree, tree_factory):
        index_tree(index_store, t1_tree)
        index_tree(index_store, tree_factory("T1", 300, org_name="Initech"))

        response = await aggregator.search(
            SearchRequest(zone_id=t1_tree['zone'].id, entity_types=[EntityType.SENSOR]),
            tenant_id="T1"
        )

        assert [r.id for r in response.results] == [t1_tree['sensor'].id]


class TestRecording:

    @pytest.mark.asyncio
    async def test_latency_recorded_per_search(self, aggregator, monitor):
        await aggregator.search(SearchRequest(query="x"), tenant_id="T1")
        await aggregator.search(SearchRequest(query="x"), tenant_id="T1", admin_mode=True,
                                query_type="admin_cross_tenant_search",
                                metrics_tenant="ADMIN_CROSS_TENANT")

        assert monitor.tenant_stats("T1").count == 1
        assert monitor.tenant_stats("ADMIN_CROSS_TENANT").count == 1

    @pytest.mark.asyncio
    async def test_latency_ignores_wall_clock_steps(self, aggregator, monitor):
        wall_clock = itertools.count(start=1_000_000.0, step=-3600.0)

        with patch.object(time, 'time', side_effect=lambda: next(wall_clock)):
            response = await aggregator.search(SearchRequest(query="x"), tenant_id="T1")

        assert 0 <= response.search_duration_ms < 1000
        assert 0 <= monitor.tenant_stats("T1").max_ms < 1000

    @pytest.mark.asyncio
    async def test_disabled_aggregator_records_nothing(self, index_store, monitor, t1_tree):
        index_tree(index_store, t1_tree)
        aggregator = FederatedSearchAggregator(index_store, monitor, enabled=False)

        response = await aggregator.search(SearchRequest(query="Acme"), tenant_id="T1")

        assert response.total_results == 0
        assert response.page_size == 20
        assert monitor.overall_stats().count == 0
