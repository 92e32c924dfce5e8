"""Pytest configuration and shared fixtures."""

from typing import Any, Dict, List, Tuple

import pytest
import pytest_asyncio

from globalsearch.config import Settings
from globalsearch.index_store import InMemoryIndexStore
from globalsearch.models import (
    CallerIdentity,
    Dashboard,
    Location,
    Organization,
    Report,
    Sensor,
    SensorType,
    UserRole,
    Zone,
)
from globalsearch.monitoring import QueryPerformanceMonitor
from globalsearch.primary_store import InMemoryPrimaryStore
from globalsearch.service import GlobalSearchService
from globalsearch.side_channels import AuditSink, Notifier


class RecordingAuditSink(AuditSink):
    """Audit sink that keeps every record in memory."""

    def __init__(self):
        self.events: List[Dict[str, Any]] = []

    async def log_search_event(self, identity, tenant_id, query, result_count):
        self.events.append({
            'username': identity.username,
            'tenant_id': tenant_id,
            'query': query,
            'resultCount': result_count,
        })


class RecordingNotifier(Notifier):
    """Notifier that keeps every notification in memory."""

    def __init__(self):
        self.notifications: List[Tuple[int, str, str, Dict[str, Any]]] = []

    async def notify_user(self, user_id, title, message, data):
        self.notifications.append((user_id, title, message, data))


def build_tenant_tree(tenant_id: str, base_id: int, org_name: str = "Acme Corp",
                      sensor_name: str = "Widget Sensor") -> Dict[str, Any]:
    """Organization -> location -> zone -> sensor, plus a report and a dashboard."""
    organization = Organization(id=base_id, name=org_name, tenant_id=tenant_id,
                                industry="Manufacturing", city="Berlin", country="Germany")
    location = Location(id=base_id + 1, name=f"{org_name} HQ", organization=organization,
                        city="Berlin", country="Germany", latitude=52.52, longitude=13.40)
    zone = Zone(id=base_id + 2, name="Server Room", location=location,
                zone_type="INDOOR", floor_number=2)
    sensor = Sensor(id=base_id + 3, name=sensor_name, zone=zone, serial_number=f"SN-{base_id}",
                    sensor_type=SensorType.TEMPERATURE, manufacturer="Bosch")
    report = Report(id=base_id + 4, name="Monthly Energy Report", tenant_id=tenant_id,
                    description="Energy readings for every site", report_type="ENERGY",
                    created_by="alice")
    dashboard = Dashboard(id=base_id + 5, name="Operations Overview", tenant_id=tenant_id,
                          dashboard_type="OPERATIONS", is_shared=True, created_by="alice")
    return {
        'organization': organization,
        'location': location,
        'zone': zone,
        'sensor': sensor,
        'report': report,
        'dashboard': dashboard,
    }


@pytest.fixture
def t1_tree() -> Dict[str, Any]:
    return build_tenant_tree("T1", 100)


@pytest.fixture
def t2_tree() -> Dict[str, Any]:
    return build_tenant_tree("T2", 200, org_name="Globex Industries")


@pytest.fixture
def t1_user() -> CallerIdentity:
    return CallerIdentity(user_id=1, username="alice", tenant_id="T1",
                          roles=frozenset({UserRole.OPERATOR}))


@pytest.fixture
def t2_user() -> CallerIdentity:
    return CallerIdentity(user_id=2, username="bob", tenant_id="T2",
                          roles=frozenset({UserRole.VIEWER}))


@pytest.fixture
def tenant_admin() -> CallerIdentity:
    return CallerIdentity(user_id=3, username="carol", tenant_id="T1",
                          roles=frozenset({UserRole.TENANT_ADMIN}))


@pytest.fixture
def super_admin() -> CallerIdentity:
    return CallerIdentity(user_id=4, username="root", tenant_id="T1",
                          roles=frozenset({UserRole.SUPER_ADMIN}))


@pytest.fixture
def settings() -> Settings:
    settings = Settings()
    settings.sync.worker_count = 2
    settings.sync.shutdown_timeout_seconds = 5.0
    settings.search.per_type_timeout_seconds = 2.0
    return settings


@pytest.fixture
def primary_store() -> InMemoryPrimaryStore:
    return InMemoryPrimaryStore()


@pytest.fixture
def index_store() -> InMemoryIndexStore:
    return InMemoryIndexStore()


@pytest.fixture
def monitor() -> QueryPerformanceMonitor:
    return QueryPerformanceMonitor()


@pytest.fixture
def audit_sink() -> RecordingAuditSink:
    return RecordingAuditSink()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def service(settings, primary_store, index_store, audit_sink, notifier) -> GlobalSearchService:
    return GlobalSearchService(
        settings=settings,
        primary_store=primary_store,
        index_store=index_store,
        audit_sink=audit_sink,
        notifier=notifier,
    )


@pytest_asyncio.fixture
async def running_service(service):
    """Service with its sync workers started; stopped after the test."""
    await service.start()
    yield service
    await service.stop(timeout=5.0)


@pytest.fixture
def load_trees(primary_store):
    """Bulk load entity trees into the primary store without lifecycle events."""
    def _load(*trees: Dict[str, Any]) -> None:
        for tree in trees:
            for entity in tree.values():
                primary_store.put(entity)
    return _load


@pytest.fixture
def tree_factory():
    return build_tenant_tree
