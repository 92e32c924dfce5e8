"""Tests for YAML configuration loading and validation."""

import os
import stat

import pytest

from globalsearch.config import ConfigValidator, Settings, SettingsManager, ValidationError
from globalsearch.error_handling import ConfigurationError


class TestSettingsManager:

    def test_missing_file_gives_defaults(self, tmp_path):
        settings = SettingsManager(str(tmp_path / "absent.yaml")).get_settings()

        assert settings == Settings()
        assert settings.search.per_type_timeout_seconds == 5.0
        assert settings.search.weights['organization'] == 1.0

    def test_empty_file_gives_defaults(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("")

        assert SettingsManager(str(config_file)).get_settings() == Settings()

    def test_partial_file_is_merged_over_defaults(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text(
            "index:\n"
            "  backend: elasticsearch\n"
            "  hosts: ['http://es-1:9200', 'http://es-2:9200']\n"
            "search:\n"
            "  weights:\n"
            "    sensor: 0.95\n"
            "monitor:\n"
            "  slow_query_threshold_ms: 750\n"
        )

        settings = SettingsManager(str(config_file)).get_settings()

        assert settings.index.backend == "elasticsearch"
        assert settings.index.hosts == ['http://es-1:9200', 'http://es-2:9200']
        assert settings.search.weights['sensor'] == 0.95
        assert settings.search.weights['zone'] == 0.8
        assert settings.monitor.slow_query_threshold_ms == 750
        assert settings.sync.worker_count == 4

    def test_environment_variable_selects_file(self, tmp_path, monkeypatch):
        config_file = tmp_path / "env.yaml"
        config_file.write_text("sync:\n  queue_max_size: 50\n")
        monkeypatch.setenv("GLOBALSEARCH_CONFIG", str(config_file))

        assert SettingsManager().get_settings().sync.queue_max_size == 50

    def test_malformed_yaml(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("search: [unclosed\n")

        with pytest.raises(ConfigurationError):
            SettingsManager(str(config_file)).load_settings()

    def test_settings_are_cached(self, tmp_path):
        manager = SettingsManager(str(tmp_path / "absent.yaml"))
        assert manager.get_settings() is manager.get_settings()
        assert manager.get_settings(force_reload=True) is not None

    def test_save_and_reload(self, tmp_path):
        path = tmp_path / "nested" / "config.yaml"
        manager = SettingsManager(str(path))
        settings = Settings()
        settings.sync.worker_count = 8

        manager.save_settings(settings)

        assert stat.S_IMODE(os.stat(path).st_mode) == 0o600
        reloaded = SettingsManager(str(path)).get_settings()
        assert reloaded.sync.worker_count == 8


class TestConfigValidator:

    @pytest.fixture
    def validator(self):
        return ConfigValidator()

    @pytest.mark.parametrize("config", [
        {'sync': {'worker_count': 0}},
        {'sync': {'worker_count': "four"}},
        {'sync': {'worker_count': True}},
        {'search': {'per_type_timeout_seconds': 0}},
        {'search': {'fuzzy_match_penalty': 1.5}},
        {'index': {'backend': 'solr'}},
        {'version': '2.0'},
    ])
    def test_invalid_values(self, validator, config):
        with pytest.raises(ValidationError):
            validator.validate_config(config)

    def test_unknown_key(self, validator):
        with pytest.raises(ValidationError) as exc_info:
            validator.validate_config({'search': {'page_size': 10}})
        assert exc_info.value.field == 'search.page_size'

    def test_section_must_be_mapping(self, validator):
        with pytest.raises(ValidationError):
            validator.validate_config({'monitor': [1, 2]})

    def test_weights(self, validator):
        validator.validate_config({'search': {'weights': {'report': 0.2}}})
        with pytest.raises(ValidationError):
            validator.validate_config({'search': {'weights': {'widget': 0.2}}})
        with pytest.raises(ValidationError):
            validator.validate_config({'search': {'weights': {'report': -1}}})

    def test_default_page_size_within_max(self, validator):
        with pytest.raises(ValidationError):
            validator.validate_config({'search': {'default_page_size': 50, 'max_page_size': 10}})

    def test_defaults_are_valid(self, validator):
        validator.validate_config(Settings().to_dict())

    def test_validation_error_is_configuration_error(self):
        error = ValidationError("bad", field='sync.worker_count')
        assert isinstance(error, ConfigurationError)
        assert "sync.worker_count: bad" in str(error)
