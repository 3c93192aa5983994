"""Configuration validator for relay startup checks."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from .config import DEFAULT_HTTP_TIMEOUT, apply_env_overrides, resolve_api_key, setting
from .durations import parse_duration
from .models import ModelCatalog


class Severity(Enum):
    ERROR = "error"
    WARNING = "warning"


@dataclass
class ConfigError:
    """A single configuration issue."""

    field: str
    message: str
    severity: Severity


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_config(
    raw_config: Dict[str, Any],
    catalog: Optional[ModelCatalog] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> List[ConfigError]:
    """Validate raw configuration and return a list of issues.

    Args:
        raw_config: Raw config dict from YAML
        catalog: Model catalog used to flag unknown models (warning only)
        environ: Environment mapping, defaults to ``os.environ``

    Returns:
        List of ConfigError (empty = valid)
    """
    errors: List[ConfigError] = []
    data = apply_env_overrides(raw_config, environ)

    # --- API Key ---
    if not resolve_api_key(str(data.get("api_key", "") or ""), environ):
        errors.append(
            ConfigError(
                field="api_key",
                message="GEMINI_API_KEY not set. Set the env var or add api_key to config/config.local.yaml",
                severity=Severity.ERROR,
            )
        )

    # --- Model ---
    model = data.get("model", "gemini-2.5-pro")
    if not model or not isinstance(model, str):
        errors.append(ConfigError(field="model", message="model must be a non-empty string", severity=Severity.ERROR))
    else:
        warning = (catalog or ModelCatalog()).validate(model)
        if warning:
            errors.append(ConfigError(field="model", message=warning, severity=Severity.WARNING))

    # --- Temperature ---
    temperature = setting(data, "temperature", 0.4)
    if isinstance(temperature, str):
        try:
            temperature = float(temperature)
        except ValueError:
            pass
    if not _is_number(temperature) or temperature < 0 or temperature > 1:
        errors.append(
            ConfigError(
                field="temperature",
                message=f"temperature must be a number between 0.0 and 1.0, got {temperature!r}",
                severity=Severity.ERROR,
            )
        )

    # --- HTTP timeout ---
    http_timeout = setting(data, "http_timeout", DEFAULT_HTTP_TIMEOUT)
    if not _is_number(http_timeout) or http_timeout <= 0:
        errors.append(
            ConfigError(
                field="http_timeout",
                message=f"http_timeout must be a positive number of seconds, got {http_timeout!r}",
                severity=Severity.ERROR,
            )
        )

    # --- Retry ---
    retry = data.get("retry") or {}
    max_retries = setting(retry, "max_retries", 2)
    if not isinstance(max_retries, int) or isinstance(max_retries, bool) or max_retries < 0:
        errors.append(
            ConfigError(
                field="retry.max_retries",
                message=f"retry.max_retries must be a non-negative integer, got {max_retries!r}",
                severity=Severity.ERROR,
            )
        )
    for key in ("initial_backoff", "max_backoff"):
        value = setting(retry, key, 1)
        if not _is_number(value) or value <= 0:
            errors.append(
                ConfigError(
                    field=f"retry.{key}",
                    message=f"retry.{key} must be a positive number of seconds, got {value!r}",
                    severity=Severity.ERROR,
                )
            )

    # --- Files ---
    files = data.get("files") or {}
    max_file_size = setting(files, "max_file_size", 1)
    if not isinstance(max_file_size, int) or isinstance(max_file_size, bool) or max_file_size <= 0:
        errors.append(
            ConfigError(
                field="files.max_file_size",
                message=f"files.max_file_size must be a positive integer, got {max_file_size!r}",
                severity=Severity.ERROR,
            )
        )
    allowed = files.get("allowed_types", [])
    if not isinstance(allowed, list) or not all(isinstance(t, str) and t for t in allowed):
        errors.append(
            ConfigError(
                field="files.allowed_types",
                message="files.allowed_types must be a list of MIME type strings",
                severity=Severity.ERROR,
            )
        )

    # --- Caching ---
    caching = data.get("caching") or {}
    ttl = caching.get("default_ttl")
    if ttl:
        try:
            valid_ttl = parse_duration(str(ttl)).total_seconds() > 0
        except ValueError:
            valid_ttl = False
        if not valid_ttl:
            errors.append(
                ConfigError(
                    field="caching.default_ttl",
                    message=f'caching.default_ttl must be a positive duration like "1h" or "30m", got {ttl!r}',
                    severity=Severity.ERROR,
                )
            )

    return errors


def has_errors(issues: List[ConfigError]) -> bool:
    """Check if any issues are errors (not just warnings)."""
    return any(e.severity == Severity.ERROR for e in issues)
