"""Abstract base class for parallel backends."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from typing import Any, TypeVar

T = TypeVar("T")


class ParallelBackend(ABC):
    """
    Abstract base class for parallelization backends.

    The pair loop hands independent chunks of work to ``map`` and reduces
    the results itself, so every backend must return results in the order
    of its inputs.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Return backend name."""
        ...

    @property
    @abstractmethod
    def n_workers(self) -> int:
        """Return number of parallel workers."""
        ...

    @abstractmethod
    def map(self, fn: Callable[[Any], T], items: Sequence[Any]) -> list[T]:
        """
        Apply ``fn`` to every item.

        Args:
            fn: Function of one argument.
            items: Work items.

        Returns:
            Results in the same order as ``items``.
        """
        ...

    def close(self) -> None:
        """Release worker resources (no-op by default)."""
        pass

    def __enter__(self) -> ParallelBackend:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
