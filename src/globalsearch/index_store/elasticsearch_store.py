"""
Elasticsearch-backed index store.

Each entity type lives in its own index named ``<prefix>-<type plural>``
(e.g. ``globalsearch-sensors``). Tenant ids and statuses are keyword
fields; names are analyzed text with a keyword sub-field used for
case-insensitive substring matching.
"""

import threading
import time
from typing import Any, Dict, List, Optional

from elasticsearch import Elasticsearch, NotFoundError, ConnectionError

from .store_interface import IndexStore, TypeIndex
from ..constants import (
    DEFAULT_INDEX_PREFIX,
    ES_CONNECTION_TEST_TIMEOUT,
    ES_RECONNECT_INTERVAL,
    ES_SEARCH_PAGE_SIZE,
)
from ..error_handling import IndexWriteFailure, PerTypeQueryFailure, wrap_error
from ..logger_config import logger
from ..models.documents import SearchDocument
from ..models.entities import EntityType


INDEX_SETTINGS = {
    "index": {
        "number_of_shards": 1,
        "number_of_replicas": 0,
        "refresh_interval": "1s",
    }
}

INDEX_MAPPINGS = {
    "dynamic_templates": [
        {
            "attribute_strings": {
                "path_match": "attributes.*",
                "match_mapping_type": "string",
                "mapping": {"type": "keyword"},
            }
        }
    ],
    "properties": {
        "id": {"type": "long"},
        "entity_type": {"type": "keyword"},
        "tenant_id": {"type": "keyword"},
        "name": {
            "type": "text",
            "fields": {"keyword": {"type": "keyword", "ignore_above": 512}},
        },
        "description": {"type": "text"},
        "status": {"type": "keyword"},
        "attributes": {"type": "object"},
    },
}


def _escape_wildcard(value: str) -> str:
    """Escape characters with special meaning in a wildcard query."""
    return value.replace("\\", "\\\\").replace("*", "\\*").replace("?", "\\?")


class ElasticsearchTypeIndex(TypeIndex):
    """TypeIndex over a single Elasticsearch index."""

    def __init__(self, store: 'ElasticsearchIndexStore', entity_type: EntityType, index_name: str):
        self._store = store
        self.entity_type = entity_type
        self.index_name = index_name

    @property
    def es(self) -> Elasticsearch:
        return self._store.es

    def _require_connection(self, error_class) -> None:
        if not self._store.is_available():
            raise error_class(
                f"Elasticsearch not connected, index {self.index_name} unavailable",
                context={'index': self.index_name}
            )

    def upsert(self, document: SearchDocument) -> None:
        self._require_connection(IndexWriteFailure)
        try:
            self.es.index(index=self.index_name, id=document.doc_id, document=document.to_dict())
            logger.debug(
                f"Indexed {self.entity_type.label} {document.id} into {self.index_name}",
                extra={'component': 'ElasticsearchTypeIndex', 'action': 'upsert'}
            )
        except Exception as e:
            raise wrap_error(
                e, f"Failed to index document {document.id}", IndexWriteFailure,
                index=self.index_name, doc_id=document.id
            )

    def delete_by_id(self, doc_id: int) -> bool:
        self._require_connection(IndexWriteFailure)
        try:
            response = self.es.delete(index=self.index_name, id=str(doc_id))
            return response['result'] == 'deleted'
        except NotFoundError:
            logger.debug(
                f"Document {doc_id} not found in {self.index_name}, nothing to delete",
                extra={'component': 'ElasticsearchTypeIndex', 'action': 'delete_missing'}
            )
            return False
        except Exception as e:
            raise wrap_error(
                e, f"Failed to delete document {doc_id}", IndexWriteFailure,
                index=self.index_name, doc_id=doc_id
            )

    def _name_contains(self, substring: str) -> Dict[str, Any]:
        return {
            "wildcard": {
                "name.keyword": {
                    "value": f"*{_escape_wildcard(substring)}*",
                    "case_insensitive": True,
                }
            }
        }

    def _search(self, filters: List[Dict[str, Any]]) -> List[SearchDocument]:
        """
        Fetch every matching document, paging with search_after on ``id``.

        Results are not capped at the index's max_result_window.
        """
        self._require_connection(PerTypeQueryFailure)
        query = {"bool": {"filter": filters}} if filters else {"match_all": {}}
        page_size = self._store.page_size
        documents: List[SearchDocument] = []
        params: Dict[str, Any] = {
            "index": self.index_name,
            "query": query,
            "size": page_size,
            "sort": [{"id": "asc"}],
        }
        try:
            while True:
                response = self.es.search(**params)
                hits = response['hits']['hits']
                documents.extend(SearchDocument.from_dict(hit['_source']) for hit in hits)
                if len(hits) < page_size:
                    break
                params["search_after"] = [documents[-1].id]
        except NotFoundError:
            # Index not created yet means no documents
            return []
        except Exception as e:
            raise wrap_error(
                e, f"Query against {self.index_name} failed", PerTypeQueryFailure,
                index=self.index_name
            )
        return documents

    def find_by_tenant_and_name_contains(self, tenant_id: str, substring: str) -> List[SearchDocument]:
        return self._search([{"term": {"tenant_id": tenant_id}}, self._name_contains(substring)])

    def find_by_tenant(self, tenant_id: str) -> List[SearchDocument]:
        return self._search([{"term": {"tenant_id": tenant_id}}])

    def find_by_name_contains(self, substring: str) -> List[SearchDocument]:
        return self._search([self._name_contains(substring)])

    def find_all(self) -> List[SearchDocument]:
        return self._search([])

    def delete_all(self) -> None:
        self._require_connection(IndexWriteFailure)
        try:
            self.es.delete_by_query(
                index=self.index_name,
                query={"match_all": {}},
                refresh=True
            )
            logger.info(
                f"Cleared Elasticsearch index: {self.index_name}",
                extra={'component': 'ElasticsearchTypeIndex', 'action': 'delete_all'}
            )
        except NotFoundError:
            return
        except Exception as e:
            raise wrap_error(e, f"Failed to clear {self.index_name}", IndexWriteFailure,
                             index=self.index_name)

    def count(self) -> int:
        self._require_connection(PerTypeQueryFailure)
        try:
            return int(self.es.count(index=self.index_name)['count'])
        except NotFoundError:
            return 0
        except Exception as e:
            raise wrap_error(e, f"Failed to count {self.index_name}", PerTypeQueryFailure,
                             index=self.index_name)


class ElasticsearchIndexStore(IndexStore):
    """
    One Elasticsearch index per entity type.

    A failed connection does not raise: the store reports itself unavailable
    and every per-type operation fails with the matching error, which the
    pipeline and aggregator absorb. While unavailable, the connection is
    retried on use, at most once every ``reconnect_interval`` seconds.
    """

    def __init__(self, hosts: Optional[List[str]] = None,
                 prefix: str = DEFAULT_INDEX_PREFIX,
                 use_ssl: bool = False,
                 verify_certs: bool = True,
                 http_auth: Optional[tuple] = None,  # (username, password)
                 api_key: Optional[str] = None,
                 client: Optional[Elasticsearch] = None,
                 page_size: int = ES_SEARCH_PAGE_SIZE,
                 reconnect_interval: float = ES_RECONNECT_INTERVAL) -> None:
        if page_size < 1:
            raise ValueError("page_size must be >= 1")
        self.prefix = prefix
        self.page_size = page_size
        self.reconnect_interval = reconnect_interval
        self.es: Optional[Elasticsearch] = client
        self._connected = False
        self._last_attempt: Optional[float] = None
        self._connect_lock = threading.Lock()

        if self.es is None:
            formatted_hosts = []
            for host in hosts or []:
                if not host.startswith(('http://', 'https://')):
                    scheme = "https" if use_ssl else "http"
                    formatted_hosts.append(f"{scheme}://{host}")
                else:
                    formatted_hosts.append(host)

            connection_params: Dict[str, Any] = {
                "hosts": formatted_hosts,
                "verify_certs": verify_certs,
            }
            if api_key:
                connection_params["api_key"] = api_key
            elif http_auth:
                connection_params["basic_auth"] = http_auth
            self.es = Elasticsearch(**connection_params)

        self._indices = {
            t: ElasticsearchTypeIndex(self, t, f"{prefix}-{t.plural}")
            for t in EntityType
        }

        self._connect()

    def _connect(self) -> bool:
        """Check the cluster and create missing indices. Returns the new connection state."""
        with self._connect_lock:
            if self._connected:
                return True
            reconnecting = self._last_attempt is not None
            self._last_attempt = time.monotonic()
            try:
                self.es.info(request_timeout=ES_CONNECTION_TEST_TIMEOUT)
                self._ensure_indices()
                self._connected = True
                logger.info(
                    f"{'Reconnected' if reconnecting else 'Connected'} to Elasticsearch, "
                    f"using index prefix '{self.prefix}'",
                    extra={'component': 'ElasticsearchIndexStore',
                           'action': 'reconnected' if reconnecting else 'connected'}
                )
            except ConnectionError as e:
                logger.warning(
                    f"Could not connect to Elasticsearch: {e}. Search indexing unavailable until reconnect.",
                    extra={'component': 'ElasticsearchIndexStore', 'action': 'connect_failed'}
                )
            except Exception as e:
                logger.warning(
                    f"Unexpected error during Elasticsearch setup: {e}",
                    extra={'component': 'ElasticsearchIndexStore', 'action': 'connect_failed'}
                )
            return self._connected

    def _ensure_indices(self) -> None:
        """Create any missing per-type index with the document mapping."""
        for type_index in self._indices.values():
            if self.es.indices.exists(index=type_index.index_name):
                continue
            self.es.indices.create(
                index=type_index.index_name,
                settings=INDEX_SETTINGS,
                mappings=INDEX_MAPPINGS,
            )
            logger.info(
                f"Created Elasticsearch index: {type_index.index_name}",
                extra={'component': 'ElasticsearchIndexStore', 'action': 'create_index'}
            )

    def index_for(self, entity_type: EntityType) -> ElasticsearchTypeIndex:
        return self._indices[entity_type]

    def is_available(self) -> bool:
        if self._connected:
            return True
        if self._last_attempt is not None and \
                time.monotonic() - self._last_attempt < self.reconnect_interval:
            return False
        return self._connect()

    def close(self) -> None:
        if self.es is not None:
            self.es.close()
            logger.info("Elasticsearch client closed",
                        extra={'component': 'ElasticsearchIndexStore', 'action': 'close'})
