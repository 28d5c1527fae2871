"""Bounded calls to external collaborators.

Vendor SDK calls are blocking and carry no deadline of their own, so each one
runs on a worker thread and the caller stops waiting after ``timeout``
seconds. The worker is not interrupted; a late result is discarded.
"""

import concurrent.futures
import contextvars
from collections.abc import Callable
from typing import Any

_executor = concurrent.futures.ThreadPoolExecutor(max_workers=8, thread_name_prefix="external-call")


class ExternalCallTimeout(TimeoutError):
    """An external call did not answer within its time budget."""

    def __init__(self, operation: str, timeout: float) -> None:
        super().__init__(f"{operation} timed out after {timeout:.1f}s")
        self.operation = operation
        self.timeout = timeout


def call_with_timeout(operation: str, timeout: float | None, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    """Run ``fn(*args, **kwargs)`` and wait at most ``timeout`` seconds.

    ``timeout=None`` calls inline. Exceptions raised by ``fn`` propagate
    unchanged; only the deadline is translated into ``ExternalCallTimeout``.
    """
    if timeout is None:
        return fn(*args, **kwargs)

    # The worker thread must see the caller's structlog context and domain context
    ctx = contextvars.copy_context()
    future = _executor.submit(ctx.run, fn, *args, **kwargs)
    try:
        return future.result(timeout=timeout)
    except concurrent.futures.TimeoutError as exc:
        future.cancel()
        raise ExternalCallTimeout(operation, timeout) from exc
