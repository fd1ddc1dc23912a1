"""Async helpers for calling the blocking client and store from the worker."""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Mapping, TypeVar

T = TypeVar("T")
K = TypeVar("K")
logger = logging.getLogger(__name__)


async def run_sync(
    func: Callable[..., T], *args: Any, **kwargs: Any
) -> T:
    """Run a synchronous function in a thread pool without blocking the event loop.

    Args:
        func: Synchronous function to call
        *args: Positional arguments for func
        **kwargs: Keyword arguments for func

    Returns:
        Result of func(*args, **kwargs)

    Example:
        entries = await run_sync(store.list_pending_entries, ActionKind.READ, 10)
    """
    return await asyncio.to_thread(func, *args, **kwargs)


async def gather_isolated(
    jobs: Mapping[K, Awaitable[T]],
) -> dict[K, T | Exception]:
    """Run awaitables concurrently; one failure does not cancel the others.

    Every job is awaited to completion. Ordinary exceptions are returned in
    place of the result. Cancellation of the caller still propagates and
    cancels the jobs that are still running.

    Args:
        jobs: Awaitables keyed by a caller-chosen name.

    Returns:
        Mapping from key to result or raised ``Exception``.
    """
    keys = list(jobs)
    results = await asyncio.gather(
        *(jobs[k] for k in keys), return_exceptions=True
    )
    outcome: dict[K, T | Exception] = {}
    for key, result in zip(keys, results):
        if isinstance(result, BaseException) and not isinstance(
            result, Exception
        ):
            # CancelledError / KeyboardInterrupt from inside a job
            raise result
        outcome[key] = result
    return outcome
