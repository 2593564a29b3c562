"""
Deadline enforcement for blocking collaborator calls.

Content generation and sending run on a helper thread; the caller waits at
most ``timeout_seconds`` and then treats the call as failed. A thread cannot
be killed, so a timed-out call keeps running in the background and its
result is discarded.
"""

import concurrent.futures
import time
from typing import Callable, TypeVar

from shared.errors import OperationTimeout

T = TypeVar("T")


def call_with_timeout(
    func: Callable[..., T],
    timeout_seconds: float,
    *args,
    operation: str = "operation",
    **kwargs,
) -> T:
    """
    Run func(*args, **kwargs) and wait at most timeout_seconds for it.

    Exceptions raised by func propagate unchanged.

    Raises:
        OperationTimeout: If func did not finish in time
    """
    executor = concurrent.futures.ThreadPoolExecutor(
        max_workers=1, thread_name_prefix=f"deadline-{operation}"
    )
    started = time.monotonic()
    future = executor.submit(func, *args, **kwargs)
    try:
        return future.result(timeout=timeout_seconds)
    except concurrent.futures.TimeoutError as e:
        future.cancel()
        elapsed = time.monotonic() - started
        raise OperationTimeout(
            f"Operation '{operation}' timed out after {timeout_seconds}s",
            {"operation": operation, "timeout": timeout_seconds, "elapsed": round(elapsed, 2)},
        ) from e
    finally:
        executor.shutdown(wait=False)
