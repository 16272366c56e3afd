"""Run an async operation over many paths with a fixed concurrency ceiling."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Iterable, TypeVar

from .errors import FatalError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_JOBS = 8


class BulkDispatcher:
    """Bounded pool of concurrent operations.

    ``jobs`` workers pull items from a shared iterator, so operations
    start in input order while completing in any order. A failing item
    is logged and left out of the results. A ``FatalError`` stops the
    workers from taking new items; operations already in flight finish,
    then the error is re-raised.
    """

    def __init__(self, jobs: int = DEFAULT_JOBS, *, label: str = "resource") -> None:
        if jobs < 1:
            raise ValueError(f"jobs must be at least 1, got {jobs}")
        self.jobs = jobs
        self.label = label

    async def run(
        self,
        items: Iterable[str],
        operation: Callable[[str], Awaitable[T]],
    ) -> list[T]:
        """Apply *operation* to every item and return the successful results."""
        queue = list(items)
        if not queue:
            return []

        results: list[T] = []
        fatal: list[FatalError] = []
        pending = iter(queue)

        async def worker() -> None:
            for item in pending:
                if fatal:
                    return
                try:
                    results.append(await operation(item))
                except FatalError as exc:
                    fatal.append(exc)
                    return
                except Exception as exc:
                    logger.warning("Failed while fetching %s %s: %s", self.label, item, exc)

        await asyncio.gather(*(worker() for _ in range(min(self.jobs, len(queue)))))
        if fatal:
            raise fatal[0]
        return results
