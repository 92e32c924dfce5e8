"""
Shared constants for the global search subsystem.

This module contains the configuration defaults and fixed labels used
throughout the codebase. Each constant includes documentation explaining
its purpose and usage.
"""

# ============================================================================
# Configuration
# ============================================================================

"""Default configuration file path."""
DEFAULT_CONFIG_PATH = "~/.globalsearch/config.yaml"

"""Environment variable that overrides the configuration file path."""
CONFIG_PATH_ENV_VAR = "GLOBALSEARCH_CONFIG"

"""Current configuration schema version."""
CONFIG_VERSION = "1.0"

# ============================================================================
# Index Store
# ============================================================================

"""Prefix for per-type index names (e.g. globalsearch-sensors)."""
DEFAULT_INDEX_PREFIX = "globalsearch"

"""Default Elasticsearch hosts."""
DEFAULT_ES_HOSTS = ["http://localhost:9200"]

"""Connection test timeout for Elasticsearch (seconds)."""
ES_CONNECTION_TEST_TIMEOUT = 5

"""Hits fetched per search_after page from Elasticsearch (the default max_result_window)."""
ES_SEARCH_PAGE_SIZE = 10000

"""Minimum seconds between reconnect attempts while Elasticsearch is unreachable."""
ES_RECONNECT_INTERVAL = 5.0

# ============================================================================
# Synchronization Pipeline
# ============================================================================

"""Maximum number of pending lifecycle tasks before new ones are dropped."""
SYNC_QUEUE_MAX_SIZE = 10000

"""Number of worker tasks draining the lifecycle queue."""
SYNC_WORKER_COUNT = 4

"""Seconds a worker waits on an empty queue before re-checking shutdown."""
SYNC_QUEUE_POP_TIMEOUT = 0.5

"""Seconds to wait for workers during shutdown before cancelling them."""
SYNC_SHUTDOWN_TIMEOUT = 30.0

# ============================================================================
# Search
# ============================================================================

"""Per-type sub-query timeout (seconds)."""
SEARCH_PER_TYPE_TIMEOUT = 5.0

"""Default page size."""
DEFAULT_PAGE_SIZE = 20

"""Maximum page size accepted in a request."""
MAX_PAGE_SIZE = 100

"""Default maximum Levenshtein edits for fuzzy matching."""
DEFAULT_FUZZY_MAX_EDITS = 1

"""Default characters of context kept around a match in snippets."""
DEFAULT_SNIPPET_LENGTH = 150

"""Multiplier applied when the name equals a search term."""
EXACT_MATCH_BOOST = 2.0

"""Multiplier applied when the name starts with a search term."""
PREFIX_MATCH_BOOST = 1.5

"""Multiplier applied when only the fuzzy path matched."""
FUZZY_MATCH_PENALTY = 0.7

"""Upper bound on any relevance score."""
MAX_RELEVANCE_SCORE = 10.0

"""Opening tag used for highlighting."""
HIGHLIGHT_PRE_TAG = "<mark>"

"""Closing tag used for highlighting."""
HIGHLIGHT_POST_TAG = "</mark>"

"""Query-type label for tenant-scoped searches."""
QUERY_TYPE_GLOBAL = "global_search"

"""Query-type label for cross-tenant admin searches."""
QUERY_TYPE_ADMIN = "admin_cross_tenant_search"

"""Tenant label under which admin searches are recorded in metrics."""
ADMIN_METRICS_TENANT = "ADMIN_CROSS_TENANT"

"""Tenant identifier that marks system-level (super admin) accounts."""
SYSTEM_TENANT = "SYSTEM"

# ============================================================================
# Query Performance Monitor
# ============================================================================

"""Ring buffer capacity (number of query samples kept)."""
METRICS_BUFFER_CAPACITY = 1000

"""Queries slower than this (ms) count as slow."""
SLOW_QUERY_THRESHOLD_MS = 1000

"""SLA 'should' threshold for the average latency (ms)."""
SLA_AVERAGE_THRESHOLD_MS = 500

"""SLA 'must' threshold for the p99 latency (ms)."""
SLA_P99_THRESHOLD_MS = 1000

"""Latency distribution buckets as (label, lower bound inclusive, upper bound exclusive)."""
LATENCY_BUCKETS = (
    ("< 100ms", 0, 100),
    ("100-500ms", 100, 500),
    ("500-1000ms", 500, 1000),
    ("1000-2000ms", 1000, 2000),
    ("> 2000ms", 2000, float('inf')),
)
