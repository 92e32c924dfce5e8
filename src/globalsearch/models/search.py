"""
Request, response and identity records for the search surface.

These are data-only records. Transport layers are expected to build a
SearchRequest from their own wire format and serialize SearchResponse
through ``to_dict()``.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional

from .entities import EntityType
from ..constants import (
    DEFAULT_FUZZY_MAX_EDITS,
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    SYSTEM_TENANT,
)
from ..error_handling import GlobalSearchError


class InvalidSearchRequest(GlobalSearchError):
    """A search request failed validation (bad page, size or sort)."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message, component="search", context=context)


class UserRole(Enum):
    SUPER_ADMIN = "SUPER_ADMIN"
    TENANT_ADMIN = "TENANT_ADMIN"
    MANAGER = "MANAGER"
    OPERATOR = "OPERATOR"
    VIEWER = "VIEWER"


@dataclass(frozen=True)
class CallerIdentity:
    """
    The authenticated caller of a search.

    Attributes:
        user_id: Numeric user id (notifications are addressed to it)
        username: Login name, used for audit records
        tenant_id: The caller's tenant
        roles: Granted roles
    """
    user_id: int
    username: str
    tenant_id: str
    roles: FrozenSet[UserRole] = field(default_factory=frozenset)

    def has_role(self, role: UserRole) -> bool:
        return role in self.roles

    @property
    def is_admin(self) -> bool:
        """SUPER_ADMIN or TENANT_ADMIN."""
        return self.has_role(UserRole.SUPER_ADMIN) or self.has_role(UserRole.TENANT_ADMIN)

    @property
    def is_super_admin(self) -> bool:
        """SUPER_ADMIN role, or any account of the SYSTEM tenant."""
        return self.has_role(UserRole.SUPER_ADMIN) or self.tenant_id == SYSTEM_TENANT


class SortField(Enum):
    RELEVANCE = "relevance"
    NAME = "name"
    ENTITY_TYPE = "entity_type"


@dataclass
class SearchRequest:
    """
    A federated search request.

    An empty ``query`` matches every document in scope. ``entity_types``
    of None searches all types.
    """
    query: str = ""
    entity_types: Optional[List[EntityType]] = None
    page: int = 0
    # None means the configured default page size
    size: Optional[int] = None

    sort_by: Optional[str] = None
    sort_direction: str = "ASC"

    # Filters
    city: Optional[str] = None
    country: Optional[str] = None
    status: Optional[str] = None
    sensor_type: Optional[str] = None
    organization_id: Optional[int] = None
    location_id: Optional[int] = None
    zone_id: Optional[int] = None

    # Matching options
    enable_fuzzy_search: bool = False
    enable_synonyms: bool = False
    enable_highlighting: bool = False
    fuzzy_max_edits: int = DEFAULT_FUZZY_MAX_EDITS

    def __post_init__(self) -> None:
        self.query = (self.query or "").strip()
        if self.entity_types is not None:
            self.entity_types = [EntityType.from_string(t) for t in self.entity_types]

    def selected_types(self) -> List[EntityType]:
        """Entity types to query, in declaration order."""
        if not self.entity_types:
            return list(EntityType)
        wanted = set(self.entity_types)
        return [t for t in EntityType if t in wanted]

    @property
    def sort_field(self) -> SortField:
        if not self.sort_by:
            return SortField.RELEVANCE
        return SortField(self.sort_by.lower())

    def validate(self, max_page_size: int = MAX_PAGE_SIZE,
                 default_size: int = DEFAULT_PAGE_SIZE) -> int:
        """
        Check paging and sort parameters. The request is not modified.

        Returns:
            The effective page size: ``size``, or ``default_size`` when unset

        Raises:
            InvalidSearchRequest: If a parameter is out of range
        """
        size = self.size if self.size is not None else default_size
        if self.page < 0:
            raise InvalidSearchRequest("page must be >= 0", context={'page': self.page})
        if size < 1 or size > max_page_size:
            raise InvalidSearchRequest(
                f"size must be between 1 and {max_page_size}",
                context={'size': size}
            )
        if self.fuzzy_max_edits < 0:
            raise InvalidSearchRequest(
                "fuzzy_max_edits must be >= 0",
                context={'fuzzy_max_edits': self.fuzzy_max_edits}
            )
        if self.sort_direction.upper() not in ("ASC", "DESC"):
            raise InvalidSearchRequest(
                "sort_direction must be ASC or DESC",
                context={'sort_direction': self.sort_direction}
            )
        try:
            self.sort_field
        except ValueError:
            raise InvalidSearchRequest(
                f"unsupported sort_by {self.sort_by!r}",
                context={'sort_by': self.sort_by}
            ) from None
        return size


@dataclass
class SearchResultItem:
    """One merged, scored result. Produced per query, never persisted."""
    entity_type: EntityType
    id: int
    name: str
    tenant_id: str
    description: Optional[str] = None
    status: Optional[str] = None
    relevance_score: float = 0.0
    metadata: Dict[str, Any] = field(default_factory=dict)
    highlighted_name: Optional[str] = None
    highlighted_description: Optional[str] = None
    snippet: Optional[str] = None
    matched_terms: List[str] = field(default_factory=list)
    is_fuzzy_match: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entity_type": self.entity_type.label,
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "status": self.status,
            "relevance_score": self.relevance_score,
            "metadata": dict(self.metadata),
            "highlighted_name": self.highlighted_name,
            "highlighted_description": self.highlighted_description,
            "snippet": self.snippet,
            "matched_terms": list(self.matched_terms),
            "is_fuzzy_match": self.is_fuzzy_match,
        }


@dataclass
class SearchResponse:
    """
    A page of merged results.

    Attributes:
        results: Items of the requested page
        total_results: Number of matches across all queried types
        current_page: Requested page (0-based)
        total_pages: ceil(total_results / page_size)
        page_size: Requested page size
        search_duration_ms: Wall-clock duration of the search
        failed_types: Types whose sub-query failed or timed out
    """
    results: List[SearchResultItem] = field(default_factory=list)
    total_results: int = 0
    current_page: int = 0
    total_pages: int = 0
    page_size: int = DEFAULT_PAGE_SIZE
    search_duration_ms: int = 0
    failed_types: List[EntityType] = field(default_factory=list)

    @classmethod
    def empty(cls, page: int = 0, size: int = DEFAULT_PAGE_SIZE) -> 'SearchResponse':
        return cls(current_page=page, page_size=size)

    @property
    def is_partial(self) -> bool:
        return bool(self.failed_types)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "results": [item.to_dict() for item in self.results],
            "total_results": self.total_results,
            "current_page": self.current_page,
            "total_pages": self.total_pages,
            "page_size": self.page_size,
            "search_duration_ms": self.search_duration_ms,
            "failed_types": [t.value for t in self.failed_types],
        }


def page_count(total: int, size: int) -> int:
    """Number of pages needed for ``total`` items at ``size`` per page."""
    if size <= 0:
        return 0
    return math.ceil(total / size)
