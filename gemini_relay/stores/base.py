"""Helpers shared by the resource stores."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional, TypeVar

from ..errors import BackendError, RelayError
from ..retry import RetryPolicy, execute_with_retry

T = TypeVar("T")


def strip_prefix(name: str, prefix: str) -> str:
    """Derive a local id from a resource name: ``files/abc`` -> ``abc``."""
    return name[len(prefix):] if name.startswith(prefix) else name


def with_prefix(resource_id: str, prefix: str) -> str:
    return resource_id if resource_id.startswith(prefix) else prefix + resource_id


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


async def remote_call(op_name: str, operation: Callable[[], Awaitable[T]], policy: RetryPolicy) -> T:
    """Run a backend call through the retry executor.

    Relay errors (validation, not found) pass through unchanged; anything else
    that survives the retry budget is wrapped in ``BackendError``.
    """
    try:
        return await execute_with_retry(operation, policy, op_name=op_name)
    except RelayError:
        raise
    except Exception as e:
        raise BackendError(op_name, e) from e
