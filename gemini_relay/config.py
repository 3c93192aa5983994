"""Relay configuration: YAML files overlaid with GEMINI_* environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

import yaml

from .durations import parse_duration

DEFAULT_CONFIG_PATH = "config/config.local.yaml"
DEFAULT_MODEL = "gemini-2.5-pro"
DEFAULT_TEMPERATURE = 0.4
DEFAULT_HTTP_TIMEOUT = 90.0
DEFAULT_MAX_FILE_SIZE = 10 * 1024 * 1024
DEFAULT_CACHE_TTL = timedelta(hours=1)
DEFAULT_ALLOWED_FILE_TYPES = [
    "text/plain",
    "text/javascript",
    "text/typescript",
    "text/markdown",
    "text/html",
    "text/css",
    "application/json",
    "text/yaml",
    "application/octet-stream",
]


@dataclass
class RelayConfig:
    """Configuration for the relay service."""

    api_key: str
    model: str = DEFAULT_MODEL
    system_prompt: str = ""
    temperature: float = DEFAULT_TEMPERATURE
    http_timeout: float = DEFAULT_HTTP_TIMEOUT  # seconds

    # Retry settings
    max_retries: int = 2
    initial_backoff: float = 1.0  # seconds
    max_backoff: float = 10.0  # seconds

    # File handling
    max_file_size: int = DEFAULT_MAX_FILE_SIZE
    allowed_file_types: List[str] = field(default_factory=lambda: list(DEFAULT_ALLOWED_FILE_TYPES))

    # Caching
    enable_caching: bool = True
    default_cache_ttl: timedelta = DEFAULT_CACHE_TTL


def _positive_int(value: str) -> Optional[int]:
    try:
        parsed = int(value)
    except ValueError:
        return None
    return parsed if parsed > 0 else None


def _non_negative_int(value: str) -> Optional[int]:
    try:
        parsed = int(value)
    except ValueError:
        return None
    return parsed if parsed >= 0 else None


def _positive_duration(value: str) -> Optional[str]:
    try:
        parsed = parse_duration(value)
    except ValueError:
        return None
    return value if parsed > timedelta(0) else None


# env var -> (raw config path, parser). A parser returning None ignores the value.
ENV_OVERRIDES: Dict[str, Tuple[Tuple[str, ...], Callable[[str], Any]]] = {
    "GEMINI_MODEL": (("model",), lambda v: v),
    "GEMINI_SYSTEM_PROMPT": (("system_prompt",), lambda v: v),
    # Kept as text so validation can report a bad value
    "GEMINI_TEMPERATURE": (("temperature",), lambda v: v),
    "GEMINI_TIMEOUT": (("http_timeout",), _positive_int),
    "GEMINI_MAX_RETRIES": (("retry", "max_retries"), _non_negative_int),
    "GEMINI_INITIAL_BACKOFF": (("retry", "initial_backoff"), _positive_int),
    "GEMINI_MAX_BACKOFF": (("retry", "max_backoff"), _positive_int),
    "GEMINI_MAX_FILE_SIZE": (("files", "max_file_size"), _positive_int),
    "GEMINI_ALLOWED_FILE_TYPES": (("files", "allowed_types"), lambda v: [t.strip() for t in v.split(",") if t.strip()]),
    "GEMINI_ENABLE_CACHING": (("caching", "enabled"), lambda v: v.lower() == "true"),
    "GEMINI_DEFAULT_CACHE_TTL": (("caching", "default_ttl"), _positive_duration),
}


def load_raw_config(config_path: str = DEFAULT_CONFIG_PATH) -> dict:
    """Read the relay's YAML settings as a plain mapping.

    With the default path the shared ``config/config.yaml`` is read first and
    ``config/config.local.yaml`` (where the API key usually lives) is merged
    over it, so a checkout without a local file still gets the shared
    defaults. Any other path is read on its own. Relative paths that do not
    exist in the working directory are looked up under the project root.

    Raises:
        FileNotFoundError: if no settings could be read
        ValueError: if a file holds something other than a mapping
    """
    project_root = Path(__file__).resolve().parents[1]

    def _locate(candidate: str) -> Path:
        path = Path(candidate)
        if not path.exists() and (project_root / candidate).exists():
            return project_root / candidate
        return path

    def _read(path: Path) -> dict:
        if not path.exists():
            return {}
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"relay config must be a YAML mapping: {path}")
        return data

    if Path(config_path).name == "config.local.yaml":
        merged = deep_merge(_read(_locate("config/config.yaml")), _read(_locate(config_path)))
        if not merged:
            raise FileNotFoundError(
                f"No relay settings in {config_path} or config/config.yaml; "
                "copy config/config.yaml to config/config.local.yaml or set GEMINI_API_KEY"
            )
        return merged

    data = _read(_locate(config_path))
    if not data:
        raise FileNotFoundError(f"No relay settings in {config_path}; pass an existing YAML file with --config")
    return data


def deep_merge(base: dict, override: dict) -> dict:
    """Overlay ``override`` on ``base`` section by section, without mutating either."""
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        merged[key] = deep_merge(current, value) if isinstance(current, dict) and isinstance(value, dict) else value
    return merged


def apply_env_overrides(raw: dict, environ: Optional[Mapping[str, str]] = None) -> dict:
    """Return a copy of ``raw`` with GEMINI_* environment values applied."""
    env = os.environ if environ is None else environ
    result = deep_merge({}, raw)
    for env_key, (path, parse) in ENV_OVERRIDES.items():
        text = env.get(env_key, "")
        if not text:
            continue
        value = parse(text)
        if value is None:
            continue
        target = result
        for part in path[:-1]:
            section = target.get(part)
            if not isinstance(section, dict):
                section = {}
                target[part] = section
            target = section
        target[path[-1]] = value
    return result


def resolve_api_key(config_api_key: str, environ: Optional[Mapping[str, str]] = None) -> str:
    """Resolve the API key from GEMINI_API_KEY or the config value.

    Returns the resolved key string, or empty string if unresolvable.
    """
    env = os.environ if environ is None else environ
    env_value = env.get("GEMINI_API_KEY", "")
    if env_value:
        return env_value

    if not config_api_key:
        return ""

    if not config_api_key.startswith("${"):
        return config_api_key

    # Resolve ${VAR_NAME} placeholder
    if config_api_key.endswith("}"):
        return env.get(config_api_key[2:-1], "")

    return ""


def _section(raw: dict, name: str) -> dict:
    value = raw.get(name) or {}
    return value if isinstance(value, dict) else {}


def setting(section: Mapping[str, Any], key: str, default: Any) -> Any:
    """Value of ``key``, or ``default`` when it is missing or left empty (``key:`` in YAML)."""
    value = section.get(key)
    return default if value is None else value


def build_config(raw: dict, environ: Optional[Mapping[str, str]] = None) -> RelayConfig:
    """
    Build a RelayConfig from a raw mapping plus environment overrides.

    Raises:
        ValueError: if a present value cannot be parsed
    """
    data = apply_env_overrides(raw, environ)
    retry = _section(data, "retry")
    files = _section(data, "files")
    caching = _section(data, "caching")

    try:
        temperature = float(setting(data, "temperature", DEFAULT_TEMPERATURE))
    except (TypeError, ValueError) as e:
        raise ValueError(f"invalid temperature value: {data.get('temperature')!r}") from e
    if temperature < 0.0 or temperature > 1.0:
        raise ValueError(f"temperature must be between 0.0 and 1.0, got {temperature}")

    try:
        http_timeout = float(setting(data, "http_timeout", DEFAULT_HTTP_TIMEOUT))
    except (TypeError, ValueError) as e:
        raise ValueError(f"invalid http_timeout value: {data.get('http_timeout')!r}") from e
    if http_timeout <= 0:
        raise ValueError(f"http_timeout must be a positive number of seconds, got {http_timeout}")

    ttl_value = caching.get("default_ttl")
    default_ttl = parse_duration(str(ttl_value)) if ttl_value else DEFAULT_CACHE_TTL
    if default_ttl <= timedelta(0):
        raise ValueError(f"caching.default_ttl must be positive, got {ttl_value!r}")

    allowed = files.get("allowed_types") or DEFAULT_ALLOWED_FILE_TYPES

    return RelayConfig(
        api_key=resolve_api_key(str(data.get("api_key", "") or ""), environ),
        model=str(data.get("model") or DEFAULT_MODEL),
        system_prompt=str(data.get("system_prompt") or ""),
        temperature=temperature,
        http_timeout=http_timeout,
        max_retries=int(setting(retry, "max_retries", 2)),
        initial_backoff=float(setting(retry, "initial_backoff", 1)),
        max_backoff=float(setting(retry, "max_backoff", 10)),
        max_file_size=int(setting(files, "max_file_size", DEFAULT_MAX_FILE_SIZE)),
        allowed_file_types=list(allowed),
        enable_caching=bool(setting(caching, "enabled", True)),
        default_cache_ttl=default_ttl,
    )


def load_config(config_path: str = DEFAULT_CONFIG_PATH, environ: Optional[Mapping[str, str]] = None) -> RelayConfig:
    """Load relay configuration from YAML file and environment."""
    return build_config(load_raw_config(config_path), environ)
