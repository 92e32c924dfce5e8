"""
Configuration management for the global search subsystem.

Settings live in a YAML file, are deep-merged over the defaults below and
validated before being turned into dataclasses.

Key Features:
- YAML-based configuration
- Deep merge of user config with defaults
- Validation against min/max limits
- Path override through the GLOBALSEARCH_CONFIG environment variable
"""

import copy
import os
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

import yaml

from .validation import ConfigValidator, ValidationError
from ..constants import (
    CONFIG_PATH_ENV_VAR,
    CONFIG_VERSION,
    DEFAULT_CONFIG_PATH,
    DEFAULT_ES_HOSTS,
    DEFAULT_INDEX_PREFIX,
    DEFAULT_PAGE_SIZE,
    DEFAULT_SNIPPET_LENGTH,
    EXACT_MATCH_BOOST,
    FUZZY_MATCH_PENALTY,
    MAX_PAGE_SIZE,
    MAX_RELEVANCE_SCORE,
    METRICS_BUFFER_CAPACITY,
    PREFIX_MATCH_BOOST,
    SEARCH_PER_TYPE_TIMEOUT,
    SLA_AVERAGE_THRESHOLD_MS,
    SLA_P99_THRESHOLD_MS,
    SLOW_QUERY_THRESHOLD_MS,
    SYNC_QUEUE_MAX_SIZE,
    SYNC_SHUTDOWN_TIMEOUT,
    SYNC_WORKER_COUNT,
)
from ..error_handling import ConfigurationError
from ..logger_config import logger


def default_weights() -> Dict[str, float]:
    """Base relevance weight per entity type, primary entity first."""
    return {
        'organization': 1.0,
        'location': 0.9,
        'zone': 0.8,
        'sensor': 0.7,
        'report': 0.6,
        'dashboard': 0.6,
    }


@dataclass
class IndexConfig:
    """Index store configuration.

    Attributes:
        enabled: When False the whole search subsystem no-ops
        backend: 'memory' or 'elasticsearch'
        hosts: Elasticsearch hosts
        prefix: Prefix for per-type index names
    """

    enabled: bool = True
    backend: str = "memory"
    hosts: List[str] = field(default_factory=lambda: list(DEFAULT_ES_HOSTS))
    prefix: str = DEFAULT_INDEX_PREFIX
    use_ssl: bool = False
    verify_certs: bool = True
    username: Optional[str] = None
    password: Optional[str] = None
    api_key: Optional[str] = None


@dataclass
class SyncConfig:
    """Synchronization pipeline configuration."""

    queue_max_size: int = SYNC_QUEUE_MAX_SIZE
    worker_count: int = SYNC_WORKER_COUNT
    shutdown_timeout_seconds: float = SYNC_SHUTDOWN_TIMEOUT
    resync_on_startup: bool = False


@dataclass
class SearchConfig:
    """Federated search configuration.

    Attributes:
        per_type_timeout_seconds: Timeout applied to each per-type sub-query
        weights: Entity type value -> base relevance weight
    """

    per_type_timeout_seconds: float = SEARCH_PER_TYPE_TIMEOUT
    default_page_size: int = DEFAULT_PAGE_SIZE
    max_page_size: int = MAX_PAGE_SIZE
    weights: Dict[str, float] = field(default_factory=default_weights)
    exact_match_boost: float = EXACT_MATCH_BOOST
    prefix_match_boost: float = PREFIX_MATCH_BOOST
    fuzzy_match_penalty: float = FUZZY_MATCH_PENALTY
    max_score: float = MAX_RELEVANCE_SCORE
    snippet_length: int = DEFAULT_SNIPPET_LENGTH


@dataclass
class MonitorConfig:
    """Query performance monitor configuration."""

    buffer_capacity: int = METRICS_BUFFER_CAPACITY
    slow_query_threshold_ms: float = SLOW_QUERY_THRESHOLD_MS
    sla_average_ms: float = SLA_AVERAGE_THRESHOLD_MS
    sla_p99_ms: float = SLA_P99_THRESHOLD_MS


@dataclass
class Settings:
    """Complete configuration structure with defaults."""

    version: str = CONFIG_VERSION
    index: IndexConfig = field(default_factory=IndexConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)
    search: SearchConfig = field(default_factory=SearchConfig)
    monitor: MonitorConfig = field(default_factory=MonitorConfig)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class SettingsManager:
    """Loads, validates and saves the YAML configuration.

    Example:
        >>> manager = SettingsManager("/etc/globalsearch/config.yaml")
        >>> settings = manager.get_settings()
        >>> settings.sync.worker_count
        4
    """

    def __init__(self, config_path: Optional[str] = None):
        """Initialize the settings manager.

        Args:
            config_path: Path to the YAML file. Falls back to the
                GLOBALSEARCH_CONFIG environment variable, then to
                ~/.globalsearch/config.yaml
        """
        if config_path is None:
            config_path = os.environ.get(CONFIG_PATH_ENV_VAR, DEFAULT_CONFIG_PATH)

        self.config_path = os.path.expanduser(config_path)
        self.validator = ConfigValidator()
        self._settings_cache: Optional[Settings] = None

    def get_settings(self, force_reload: bool = False) -> Settings:
        """Get the current settings, loading from file if needed."""
        if self._settings_cache is None or force_reload:
            self._settings_cache = self.load_settings()
        return self._settings_cache

    def load_settings(self) -> Settings:
        """Load settings from the YAML file.

        A missing or empty file yields the defaults; nothing is written.

        Returns:
            Validated Settings

        Raises:
            ConfigurationError: If the file cannot be parsed or a value is invalid
        """
        if not os.path.exists(self.config_path):
            logger.info(
                f"No configuration file at {self.config_path}, using defaults",
                extra={'component': 'SettingsManager', 'action': 'defaults'}
            )
            return Settings()

        try:
            with open(self.config_path, 'r', encoding='utf-8') as f:
                config_dict = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Failed to parse YAML config: {e}",
                context={'path': self.config_path}
            ) from e
        except OSError as e:
            raise ConfigurationError(
                f"Failed to read config: {e}",
                context={'path': self.config_path}
            ) from e

        if config_dict is None:
            return Settings()

        return self.from_dict(config_dict)

    def from_dict(self, config_dict: Dict[str, Any]) -> Settings:
        """Validate a (possibly partial) config dict and merge it over defaults.

        Raises:
            ValidationError: If a value is invalid
        """
        self.validator.validate_config(config_dict)
        merged = self._deep_merge(Settings().to_dict(), config_dict)
        return self._dict_to_dataclass(merged)

    def save_settings(self, settings: Settings) -> None:
        """Save settings to the YAML file with owner-only permissions.

        Raises:
            ValidationError: If the settings are invalid
            ConfigurationError: If the file cannot be written
        """
        config_dict = settings.to_dict()
        self.validator.validate_config(config_dict)

        config_dir = os.path.dirname(self.config_path)
        if config_dir:
            os.makedirs(config_dir, mode=0o700, exist_ok=True)

        try:
            with open(self.config_path, 'w', encoding='utf-8') as f:
                f.write("# Global search configuration\n\n")
                yaml.dump(
                    config_dict,
                    f,
                    default_flow_style=False,
                    sort_keys=False,
                    allow_unicode=True
                )
            os.chmod(self.config_path, 0o600)
        except OSError as e:
            raise ConfigurationError(
                f"Failed to write config file: {e}",
                context={'path': self.config_path}
            ) from e

        self._settings_cache = settings

    def _deep_merge(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Deep merge override dict into base dict."""
        result = copy.deepcopy(base)

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result

    def _dict_to_dataclass(self, config_dict: Dict[str, Any]) -> Settings:
        return Settings(
            version=config_dict.get('version', CONFIG_VERSION),
            index=IndexConfig(**config_dict.get('index', {})),
            sync=SyncConfig(**config_dict.get('sync', {})),
            search=SearchConfig(**config_dict.get('search', {})),
            monitor=MonitorConfig(**config_dict.get('monitor', {})),
        )


__all__ = [
    'IndexConfig',
    'MonitorConfig',
    'SearchConfig',
    'Settings',
    'SettingsManager',
    'SyncConfig',
    'ValidationError',
    'default_weights',
]
