"""
Document projection.

Turns one primary-store entity into one flat SearchDocument. The tenant is
resolved by walking the entity's parent references up to the entity that
owns a tenant id. A broken chain never aborts the projection: the document
is still produced, with an empty tenant, so that orphaned entities remain
removable from the index.
"""

from typing import Any, Callable, Dict

from .error_handling import ProjectionFailure
from .logger_config import logger
from .models.documents import SearchDocument
from .models.entities import (
    Dashboard,
    EntityType,
    Location,
    Organization,
    Report,
    Sensor,
    SourceEntity,
    Zone,
)


# Report and dashboard rows carry no status of their own
DEFAULT_STATUS = "ACTIVE"

MAX_CHAIN_DEPTH = 8


def resolve_tenant(entity: SourceEntity) -> str:
    """
    Walk the ownership chain of ``entity`` and return its tenant id.

    Raises:
        ProjectionFailure: If a parent reference along the chain is missing
    """
    current = entity
    for _ in range(MAX_CHAIN_DEPTH):
        if current.parent_attribute is None:
            return getattr(current, 'tenant_id', None) or ""
        parent = current.parent
        if parent is None:
            raise ProjectionFailure(
                f"{current.entity_type.label} {current.id} has no {current.parent_attribute}",
                context={
                    'entity_type': entity.entity_type.value,
                    'entity_id': entity.id,
                    'broken_at': f"{current.entity_type.value}:{current.id}",
                    'missing': current.parent_attribute,
                }
            )
        current = parent
    raise ProjectionFailure(
        "Ownership chain too deep",
        context={'entity_type': entity.entity_type.value, 'entity_id': entity.id}
    )


def _parent_id(entity: SourceEntity):
    parent = entity.parent
    return parent.id if parent is not None else None


def _organization_attributes(entity: Organization) -> Dict[str, Any]:
    return {
        'industry': entity.industry,
        'city': entity.city,
        'country': entity.country,
    }


def _location_attributes(entity: Location) -> Dict[str, Any]:
    return {
        'organization_id': _parent_id(entity),
        'address': entity.address,
        'city': entity.city,
        'state': entity.state,
        'country': entity.country,
        'latitude': entity.latitude,
        'longitude': entity.longitude,
    }


def _zone_attributes(entity: Zone) -> Dict[str, Any]:
    location = entity.location
    return {
        'location_id': _parent_id(entity),
        'organization_id': location.organization.id if location and location.organization else None,
        'zone_type': entity.zone_type,
        'floor_number': entity.floor_number,
    }


def _sensor_attributes(entity: Sensor) -> Dict[str, Any]:
    zone = entity.zone
    return {
        'zone_id': _parent_id(entity),
        'location_id': zone.location.id if zone and zone.location else None,
        'serial_number': entity.serial_number,
        'sensor_type': entity.sensor_type.value if entity.sensor_type else None,
        'manufacturer': entity.manufacturer,
        'model': entity.model,
    }


def _report_attributes(entity: Report) -> Dict[str, Any]:
    return {
        'report_type': entity.report_type,
        'created_by': entity.created_by,
    }


def _dashboard_attributes(entity: Dashboard) -> Dict[str, Any]:
    return {
        'dashboard_type': entity.dashboard_type,
        'is_shared': entity.is_shared,
        'created_by': entity.created_by,
    }


ATTRIBUTE_BUILDERS: Dict[EntityType, Callable[[Any], Dict[str, Any]]] = {
    EntityType.ORGANIZATION: _organization_attributes,
    EntityType.LOCATION: _location_attributes,
    EntityType.ZONE: _zone_attributes,
    EntityType.SENSOR: _sensor_attributes,
    EntityType.REPORT: _report_attributes,
    EntityType.DASHBOARD: _dashboard_attributes,
}


def project(entity: SourceEntity) -> SearchDocument:
    """
    Project ``entity`` into its SearchDocument.

    Deterministic and side-effect free apart from a warning log when the
    ownership chain is broken.
    """
    try:
        tenant_id = resolve_tenant(entity)
    except ProjectionFailure as e:
        logger.warning(
            f"Projecting {entity.entity_type.label} {entity.id} without tenant: {e.message}",
            extra={'component': 'projector', 'action': 'broken_ownership_chain', **e.context}
        )
        tenant_id = ""

    return SearchDocument(
        id=entity.id,
        entity_type=entity.entity_type,
        tenant_id=tenant_id,
        name=entity.name or "",
        description=entity.description,
        status=entity.status_value or DEFAULT_STATUS,
        attributes=ATTRIBUTE_BUILDERS[entity.entity_type](entity),
    )
