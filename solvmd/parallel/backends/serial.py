"""Serial (single-thread) backend."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any, TypeVar

from .base import ParallelBackend

T = TypeVar("T")


class SerialBackend(ParallelBackend):
    """
    Serial backend for single-thread execution.

    This is the default backend and provides the reference results the
    other backends must reproduce.
    """

    @property
    def name(self) -> str:
        """Return backend name."""
        return "serial"

    @property
    def n_workers(self) -> int:
        """Return number of parallel workers."""
        return 1

    def map(self, fn: Callable[[Any], T], items: Sequence[Any]) -> list[T]:
        """Apply ``fn`` to each item in turn."""
        return [fn(item) for item in items]
