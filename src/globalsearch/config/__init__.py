"""
Configuration package for the global search subsystem.

Modules:
    settings: YAML-backed settings manager with dataclass structures
    validation: Validation rules and error type

Example Usage:
    >>> from globalsearch.config import SettingsManager
    >>> settings = SettingsManager().get_settings()
    >>> settings.search.per_type_timeout_seconds
    5.0
"""

from .settings import (
    IndexConfig,
    MonitorConfig,
    SearchConfig,
    Settings,
    SettingsManager,
    SyncConfig,
    default_weights,
)
from .validation import ConfigValidator, ValidationError

__all__ = [
    'ConfigValidator',
    'IndexConfig',
    'MonitorConfig',
    'SearchConfig',
    'Settings',
    'SettingsManager',
    'SyncConfig',
    'ValidationError',
    'default_weights',
]
