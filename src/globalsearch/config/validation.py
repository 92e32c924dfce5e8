"""
Configuration Validation for the global search subsystem.

This module validates configuration values, ensuring they meet minimum
and maximum limits and belong to the expected types.
"""

from typing import Any, Dict, List

from ..error_handling import ConfigurationError
from ..models.entities import EntityType


class ValidationError(ConfigurationError):
    """Exception raised when configuration validation fails."""

    def __init__(self, message: str, field: str = None):
        """Initialize validation error.

        Args:
            message: Error message
            field: Optional field name that caused the error
        """
        self.field = field
        if field:
            message = f"{field}: {message}"
        super().__init__(message, context={'field': field} if field else None)


class ConfigValidator:
    """Validates configuration values and structure.

    Example:
        >>> validator = ConfigValidator()
        >>> validator.validate_config(config_dict)
        >>> validator.validate_value('sync.worker_count', 4)
    """

    VALIDATION_RULES = {
        'version': {
            'type': str,
            'allowed_values': ['1.0'],
        },
        'index.enabled': {
            'type': bool,
        },
        'index.backend': {
            'type': str,
            'allowed_values': ['memory', 'elasticsearch'],
        },
        'index.hosts': {
            'type': list,
        },
        'index.prefix': {
            'type': str,
        },
        'index.use_ssl': {
            'type': bool,
        },
        'index.verify_certs': {
            'type': bool,
        },
        'index.username': {
            'type': (str, type(None)),
        },
        'index.password': {
            'type': (str, type(None)),
        },
        'index.api_key': {
            'type': (str, type(None)),
        },
        'sync.queue_max_size': {
            'type': int,
            'min': 1,
            'max': 1000000,
        },
        'sync.worker_count': {
            'type': int,
            'min': 1,
            'max': 64,
        },
        'sync.shutdown_timeout_seconds': {
            'type': (int, float),
            'min': 0,
            'max': 3600,
        },
        'sync.resync_on_startup': {
            'type': bool,
        },
        'search.per_type_timeout_seconds': {
            'type': (int, float),
            'min': 0.01,
            'max': 300,
        },
        'search.default_page_size': {
            'type': int,
            'min': 1,
            'max': 1000,
        },
        'search.max_page_size': {
            'type': int,
            'min': 1,
            'max': 1000,
        },
        'search.weights': {
            'type': dict,
        },
        'search.exact_match_boost': {
            'type': (int, float),
            'min': 1,
            'max': 100,
        },
        'search.prefix_match_boost': {
            'type': (int, float),
            'min': 1,
            'max': 100,
        },
        'search.fuzzy_match_penalty': {
            'type': (int, float),
            'min': 0,
            'max': 1,
        },
        'search.max_score': {
            'type': (int, float),
            'min': 0.1,
            'max': 1000,
        },
        'search.snippet_length': {
            'type': int,
            'min': 10,
            'max': 10000,
        },
        'monitor.buffer_capacity': {
            'type': int,
            'min': 1,
            'max': 1000000,
        },
        'monitor.slow_query_threshold_ms': {
            'type': (int, float),
            'min': 1,
        },
        'monitor.sla_average_ms': {
            'type': (int, float),
            'min': 1,
        },
        'monitor.sla_p99_ms': {
            'type': (int, float),
            'min': 1,
        },
    }

    SECTIONS = ['index', 'sync', 'search', 'monitor']

    def validate_config(self, config: Dict[str, Any]) -> None:
        """Validate complete configuration structure and values.

        Only keys present in ``config`` are checked, so partial user files
        validate before being merged over defaults.

        Args:
            config: Configuration dictionary to validate

        Raises:
            ValidationError: If validation fails
        """
        if not isinstance(config, dict):
            raise ValidationError("Configuration must be a dictionary")

        if 'version' in config:
            self.validate_value('version', config['version'])

        for section in self.SECTIONS:
            if section not in config:
                continue
            values = config[section]
            if not isinstance(values, dict):
                raise ValidationError("Section must be a mapping", field=section)
            for key, value in values.items():
                path = f"{section}.{key}"
                if path not in self.VALIDATION_RULES:
                    raise ValidationError("Unknown configuration key", field=path)
                self.validate_value(path, value)

        search = config.get('search', {})
        if 'weights' in search:
            self._validate_weights(search['weights'])

        default_size = search.get('default_page_size')
        max_size = search.get('max_page_size')
        if default_size is not None and max_size is not None and default_size > max_size:
            raise ValidationError(
                f"default_page_size ({default_size}) exceeds max_page_size ({max_size})",
                field='search.default_page_size'
            )

    def validate_value(self, path: str, value: Any) -> None:
        """Validate a single configuration value against its rule.

        Args:
            path: Dotted configuration path (e.g. 'sync.worker_count')
            value: Value to validate

        Raises:
            ValidationError: If the value violates the rule
        """
        rule = self.VALIDATION_RULES.get(path)
        if rule is None:
            raise ValidationError("Unknown configuration key", field=path)

        expected = rule['type']
        # bool is a subclass of int; numeric fields must not accept it
        if isinstance(value, bool) and expected is not bool:
            raise ValidationError(f"Expected {self._type_name(expected)}, got bool", field=path)
        if not isinstance(value, expected):
            raise ValidationError(
                f"Expected {self._type_name(expected)}, got {type(value).__name__}",
                field=path
            )

        if 'min' in rule and value < rule['min']:
            raise ValidationError(f"Value {value} is below minimum {rule['min']}", field=path)
        if 'max' in rule and value > rule['max']:
            raise ValidationError(f"Value {value} is above maximum {rule['max']}", field=path)
        if 'allowed_values' in rule and value not in rule['allowed_values']:
            raise ValidationError(
                f"Value {value!r} not in {rule['allowed_values']}",
                field=path
            )

    def _validate_weights(self, weights: Dict[str, Any]) -> None:
        known: List[str] = [t.value for t in EntityType]
        for name, weight in weights.items():
            field = f"search.weights.{name}"
            if name not in known:
                raise ValidationError(f"Unknown entity type, expected one of {known}", field=field)
            if isinstance(weight, bool) or not isinstance(weight, (int, float)):
                raise ValidationError("Weight must be a number", field=field)
            if weight < 0:
                raise ValidationError("Weight must be non-negative", field=field)

    @staticmethod
    def _type_name(expected: Any) -> str:
        if isinstance(expected, tuple):
            return " or ".join(t.__name__ for t in expected)
        return expected.__name__
