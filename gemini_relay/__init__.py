"""Gemini Relay - file and cached-context management for Gemini."""

from .config import RelayConfig, load_config
from .errors import BackendError, CachingDisabledError, RelayError, ResourceNotFoundError, ValidationError
from .models import ModelCatalog, ModelFamily, ModelVersion, TaskKind
from .retry import RetryPolicy, TransientError, execute_with_retry, is_retryable_error
from .service import AskResult, GeminiRelay

__version__ = "0.1.0"

__all__ = [
    "AskResult",
    "BackendError",
    "CachingDisabledError",
    "GeminiRelay",
    "ModelCatalog",
    "ModelFamily",
    "ModelVersion",
    "RelayConfig",
    "RelayError",
    "ResourceNotFoundError",
    "RetryPolicy",
    "TaskKind",
    "TransientError",
    "ValidationError",
    "execute_with_retry",
    "is_retryable_error",
    "load_config",
]
