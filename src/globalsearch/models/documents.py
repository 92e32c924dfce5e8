"""Flat, tenant-tagged search documents stored in the per-type indices."""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .entities import EntityType


@dataclass
class SearchDocument:
    """
    Denormalized projection of one source entity.

    The tenant is copied onto the document so that queries never need a
    join. ``tenant_id`` is the empty string when the ownership chain of the
    source entity was broken at projection time.

    Attributes:
        id: Identifier of the source entity
        entity_type: Type of the source entity (selects the index)
        tenant_id: Tenant of the source entity
        name: Searchable display name
        description: Searchable free text
        status: Status value as a string
        attributes: Type-specific filterable fields (city, zone_id, ...)
    """
    id: int
    entity_type: EntityType
    tenant_id: str
    name: str
    description: Optional[str] = None
    status: Optional[str] = None
    attributes: Dict[str, Any] = field(default_factory=dict)

    @property
    def doc_id(self) -> str:
        return str(self.id)

    def get(self, key: str, default: Any = None) -> Any:
        """Look up a type-specific attribute."""
        return self.attributes.get(key, default)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-compatible dict (Elasticsearch _source)."""
        return {
            "id": self.id,
            "entity_type": self.entity_type.value,
            "tenant_id": self.tenant_id,
            "name": self.name,
            "description": self.description,
            "status": self.status,
            "attributes": dict(self.attributes),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SearchDocument':
        return cls(
            id=int(data["id"]),
            entity_type=EntityType.from_string(data["entity_type"]),
            tenant_id=data.get("tenant_id") or "",
            name=data.get("name") or "",
            description=data.get("description"),
            status=data.get("status"),
            attributes=dict(data.get("attributes") or {}),
        )
