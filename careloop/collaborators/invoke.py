from __future__ import annotations

"""
Bounded-duration invocation of external collaborators.

Design intent:
- Treat absence, exceptions, and deadline expiry identically as "unavailable".
- Never retry; the caller owns the fallback path.
- Log only the collaborator name and failure class, never payloads.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, Callable, TypeVar

from careloop.errors import CollaboratorUnavailableError

T = TypeVar("T")

DEFAULT_TIMEOUT_SEC = 20.0
MAX_COLLABORATOR_WORKERS = 8

logger = logging.getLogger(__name__)

# Shared pool; a call that outlives its deadline keeps its worker until it returns.
_EXECUTOR = ThreadPoolExecutor(max_workers=MAX_COLLABORATOR_WORKERS, thread_name_prefix="careloop-collaborator")


def invoke_collaborator(
    collaborator: str,
    fn: Callable[..., T] | None,
    *args: Any,
    timeout_sec: float = DEFAULT_TIMEOUT_SEC,
) -> T:
    if fn is None:
        raise CollaboratorUnavailableError(f"{collaborator} is not configured.", collaborator=collaborator)

    future = _EXECUTOR.submit(fn, *args)
    try:
        return future.result(timeout=timeout_sec)
    except FutureTimeoutError as exc:
        future.cancel()
        logger.warning("collaborator_timeout collaborator=%s timeout_sec=%s", collaborator, timeout_sec)
        raise CollaboratorUnavailableError(
            f"{collaborator} timed out after {timeout_sec}s.", collaborator=collaborator
        ) from exc
    except CollaboratorUnavailableError:
        raise
    except Exception as exc:
        logger.warning("collaborator_failed collaborator=%s error=%s", collaborator, type(exc).__name__)
        raise CollaboratorUnavailableError(
            f"{collaborator} failed: {type(exc).__name__}", collaborator=collaborator
        ) from exc
