"""Tests for configuration validator."""

import os
from unittest.mock import patch

from gemini_relay.config_validator import ConfigError, Severity, has_errors, validate_config


class TestValidateConfig:
    """Tests for validate_config()."""

    def _valid_config(self) -> dict:
        """Return a minimal valid config."""
        return {
            "api_key": "test-key-123",
            "model": "gemini-2.5-flash",
            "temperature": 0.7,
            "retry": {"max_retries": 2, "initial_backoff": 1, "max_backoff": 10},
            "files": {"max_file_size": 1024, "allowed_types": ["text/plain"]},
            "caching": {"enabled": True, "default_ttl": "1h"},
        }

    @patch.dict(os.environ, {}, clear=True)
    def test_valid_config_no_errors(self):
        issues = validate_config(self._valid_config())
        assert issues == []

    @patch.dict(os.environ, {}, clear=True)
    def test_missing_api_key(self):
        config = self._valid_config()
        config["api_key"] = ""
        issues = validate_config(config)
        assert has_errors(issues)
        api_errors = [e for e in issues if e.field == "api_key"]
        assert len(api_errors) == 1
        assert api_errors[0].severity == Severity.ERROR

    @patch.dict(os.environ, {"GEMINI_API_KEY": "env-key"}, clear=True)
    def test_env_var_overrides_missing_config_key(self):
        config = self._valid_config()
        config["api_key"] = "${GEMINI_API_KEY}"
        issues = validate_config(config)
        assert not [e for e in issues if e.field == "api_key"]

    @patch.dict(os.environ, {}, clear=True)
    def test_placeholder_without_env_var(self):
        config = self._valid_config()
        config["api_key"] = "${GEMINI_API_KEY}"
        assert has_errors(validate_config(config))

    @patch.dict(os.environ, {}, clear=True)
    def test_missing_model(self):
        config = self._valid_config()
        config["model"] = ""
        issues = validate_config(config)
        assert any(e.field == "model" and e.severity == Severity.ERROR for e in issues)

    @patch.dict(os.environ, {}, clear=True)
    def test_unknown_model_is_warning_only(self):
        config = self._valid_config()
        config["model"] = "gpt-4o"
        issues = validate_config(config)
        assert not has_errors(issues)
        model_issues = [e for e in issues if e.field == "model"]
        assert model_issues[0].severity == Severity.WARNING
        assert "Unknown model ID" in model_issues[0].message

    @patch.dict(os.environ, {}, clear=True)
    def test_temperature_out_of_range(self):
        config = self._valid_config()
        config["temperature"] = 1.7
        issues = validate_config(config)
        assert any(e.field == "temperature" and e.severity == Severity.ERROR for e in issues)

    @patch.dict(os.environ, {"GEMINI_TEMPERATURE": "warm"}, clear=True)
    def test_bad_temperature_from_env(self):
        issues = validate_config(self._valid_config())
        assert any(e.field == "temperature" for e in issues)

    @patch.dict(os.environ, {}, clear=True)
    def test_retry_fields(self):
        config = self._valid_config()
        config["retry"] = {"max_retries": -1, "initial_backoff": 0, "max_backoff": "ten"}
        fields = {e.field for e in validate_config(config)}
        assert {"retry.max_retries", "retry.initial_backoff", "retry.max_backoff"} <= fields

    @patch.dict(os.environ, {}, clear=True)
    def test_file_fields(self):
        config = self._valid_config()
        config["files"] = {"max_file_size": 0, "allowed_types": "text/plain"}
        fields = {e.field for e in validate_config(config)}
        assert {"files.max_file_size", "files.allowed_types"} <= fields

    @patch.dict(os.environ, {}, clear=True)
    def test_http_timeout(self):
        config = self._valid_config()
        config["http_timeout"] = None
        assert validate_config(config) == []

        for bad in (0, -1, "soon"):
            config["http_timeout"] = bad
            assert [e.field for e in validate_config(config)] == ["http_timeout"]

    @patch.dict(os.environ, {}, clear=True)
    def test_empty_values_use_defaults(self):
        config = self._valid_config()
        config["temperature"] = None
        config["retry"] = {"max_retries": None, "initial_backoff": None, "max_backoff": None}
        config["files"]["max_file_size"] = None
        assert validate_config(config) == []

    @patch.dict(os.environ, {}, clear=True)
    def test_bad_cache_ttl(self):
        config = self._valid_config()
        config["caching"]["default_ttl"] = "a while"
        issues = validate_config(config)
        assert [e.field for e in issues] == ["caching.default_ttl"]


class TestHasErrors:
    """Tests for has_errors()."""

    def test_empty_list(self):
        assert has_errors([]) is False

    def test_only_warnings(self):
        issues = [ConfigError(field="model", message="unknown", severity=Severity.WARNING)]
        assert has_errors(issues) is False

    def test_has_error(self):
        issues = [
            ConfigError(field="model", message="unknown", severity=Severity.WARNING),
            ConfigError(field="api_key", message="missing", severity=Severity.ERROR),
        ]
        assert has_errors(issues) is True
