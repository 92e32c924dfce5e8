"""
Primary-store entity model.

These dataclasses mirror the rows owned by the primary store. The search
subsystem reads them but never mutates them. Child entities hold a direct
reference to their parent, so the tenant of a sensor is found by walking
sensor -> zone -> location -> organization.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import ClassVar, Optional


class EntityType(Enum):
    """
    Searchable entity types, primary entity first.

    The value is the canonical lower-case name used in configuration
    (weight tables) and request filters.
    """

    ORGANIZATION = "organization"
    LOCATION = "location"
    ZONE = "zone"
    SENSOR = "sensor"
    REPORT = "report"
    DASHBOARD = "dashboard"

    @property
    def label(self) -> str:
        """Display name used in search results (e.g. 'Organization')."""
        return self.value.capitalize()

    @property
    def plural(self) -> str:
        """Plural form, used for index names (e.g. 'organizations')."""
        return f"{self.value}s"

    @classmethod
    def from_string(cls, value: str) -> 'EntityType':
        """
        Parse a type name, accepting singular, plural and 'company' aliases.

        Raises:
            ValueError: If the name matches no entity type
        """
        if isinstance(value, EntityType):
            return value
        name = str(value).strip().lower()
        if name in ("company", "companies"):
            return cls.ORGANIZATION
        for entity_type in cls:
            if name in (entity_type.value, entity_type.plural):
                return entity_type
        raise ValueError(f"Unknown entity type: {value!r}")


class OrganizationStatus(Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    SUSPENDED = "SUSPENDED"


class SiteStatus(Enum):
    """Status shared by locations and zones."""
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    MAINTENANCE = "MAINTENANCE"


class SensorStatus(Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    MAINTENANCE = "MAINTENANCE"
    FAULTY = "FAULTY"
    OFFLINE = "OFFLINE"


class SensorType(Enum):
    TEMPERATURE = "TEMPERATURE"
    HUMIDITY = "HUMIDITY"
    PRESSURE = "PRESSURE"
    MOTION = "MOTION"
    LIGHT = "LIGHT"
    SMOKE = "SMOKE"
    DOOR_WINDOW = "DOOR_WINDOW"
    WATER_LEAK = "WATER_LEAK"
    CO2 = "CO2"
    ENERGY = "ENERGY"
    OTHER = "OTHER"


@dataclass
class SourceEntity:
    """
    Common shape of every primary-store entity.

    Attributes:
        id: Numeric identifier, unique within the entity type
        name: Display name (the primary searchable field)
        description: Optional free text
    """

    entity_type: ClassVar[EntityType]

    # Name of the attribute holding the parent entity, or None for
    # entities that carry their tenant directly.
    parent_attribute: ClassVar[Optional[str]] = None

    id: int
    name: str
    description: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    @property
    def parent(self) -> Optional['SourceEntity']:
        if self.parent_attribute is None:
            return None
        return getattr(self, self.parent_attribute)

    @property
    def status_value(self) -> Optional[str]:
        status = getattr(self, 'status', None)
        if isinstance(status, Enum):
            return status.value
        return status


@dataclass
class Organization(SourceEntity):
    entity_type: ClassVar[EntityType] = EntityType.ORGANIZATION

    tenant_id: Optional[str] = None
    industry: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    status: OrganizationStatus = OrganizationStatus.ACTIVE


@dataclass
class Location(SourceEntity):
    entity_type: ClassVar[EntityType] = EntityType.LOCATION
    parent_attribute: ClassVar[Optional[str]] = "organization"

    organization: Optional[Organization] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    status: SiteStatus = SiteStatus.ACTIVE


@dataclass
class Zone(SourceEntity):
    entity_type: ClassVar[EntityType] = EntityType.ZONE
    parent_attribute: ClassVar[Optional[str]] = "location"

    location: Optional[Location] = None
    zone_type: Optional[str] = None
    floor_number: Optional[int] = None
    status: SiteStatus = SiteStatus.ACTIVE


@dataclass
class Sensor(SourceEntity):
    entity_type: ClassVar[EntityType] = EntityType.SENSOR
    parent_attribute: ClassVar[Optional[str]] = "zone"

    zone: Optional[Zone] = None
    serial_number: Optional[str] = None
    sensor_type: SensorType = SensorType.OTHER
    manufacturer: Optional[str] = None
    model: Optional[str] = None
    status: SensorStatus = SensorStatus.ACTIVE


@dataclass
class Report(SourceEntity):
    entity_type: ClassVar[EntityType] = EntityType.REPORT

    tenant_id: Optional[str] = None
    report_type: Optional[str] = None
    created_by: Optional[str] = None


@dataclass
class Dashboard(SourceEntity):
    entity_type: ClassVar[EntityType] = EntityType.DASHBOARD

    tenant_id: Optional[str] = None
    dashboard_type: Optional[str] = None
    is_shared: bool = False
    created_by: Optional[str] = None
