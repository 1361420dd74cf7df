"""Thread pool backend for the pair loop."""

from __future__ import annotations

import os
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from typing import Any, TypeVar

from .base import ParallelBackend

T = TypeVar("T")


class ThreadBackend(ParallelBackend):
    """
    Thread pool backend.

    NumPy releases the GIL inside its array kernels, so chunks of the
    vectorized pair loop overlap on multiple cores. Each chunk writes only
    to its own partial accumulator; the caller merges them.

    Attributes:
        _n_workers: Number of worker threads.
        _executor: Lazily created thread pool.
    """

    def __init__(self, n_workers: int | None = None) -> None:
        """
        Initialize thread backend.

        Args:
            n_workers: Number of threads. Defaults to CPU count.
        """
        self._n_workers = n_workers if n_workers is not None else (os.cpu_count() or 1)
        self._executor: ThreadPoolExecutor | None = None

    @property
    def name(self) -> str:
        """Return backend name."""
        return "threads"

    @property
    def n_workers(self) -> int:
        """Return number of worker threads."""
        return self._n_workers

    def _get_executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=self._n_workers)
        return self._executor

    def map(self, fn: Callable[[Any], T], items: Sequence[Any]) -> list[T]:
        """Apply ``fn`` to the items on the pool, preserving input order."""
        if len(items) <= 1 or self._n_workers == 1:
            return [fn(item) for item in items]
        return list(self._get_executor().map(fn, items))

    def close(self) -> None:
        """Shut down the thread pool."""
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
