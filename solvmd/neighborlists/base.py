"""Pair cache interface shared by the neighbor list builders."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

import numpy as np
from numpy.typing import ArrayLike, NDArray

if TYPE_CHECKING:
    from ..system import Box


class NeighborList(ABC):
    """
    Cache of the particle pairs closer than cutoff + skin.

    The cached pairs stay a superset of the interacting pairs until some
    particle has moved more than half the skin since the last build.
    """

    def __init__(self, cutoff: float, skin: float = 0.3) -> None:
        if cutoff < 0 or skin < 0:
            raise ValueError(f"cutoff and skin must be non-negative: {cutoff}, {skin}")
        self._cutoff = cutoff
        self.skin = skin
        self._pairs: NDArray[np.integer] = np.empty((0, 2), dtype=np.int64)
        self._positions_at_build: NDArray[np.floating] | None = None
        self._box: Box | None = None
        self.n_builds = 0

    @property
    def cutoff(self) -> float:
        """Return the largest pair cutoff the list serves."""
        return self._cutoff

    @property
    def list_cutoff(self) -> float:
        """Return the build radius, cutoff + skin."""
        return self._cutoff + self.skin

    @property
    def n_pairs(self) -> int:
        """Return the number of cached pairs."""
        return len(self._pairs)

    @property
    def positions_at_build(self) -> NDArray[np.floating] | None:
        """Return the positions the list was last built from."""
        return self._positions_at_build

    @abstractmethod
    def build(self, positions: ArrayLike, box: Box) -> None:
        """
        Rebuild the pair cache at ``positions``.

        Args:
            positions: Particle positions, shape (N, 3).
            box: Periodic box; pairs are found under the minimum image.
        """
        ...

    def get_pairs(self) -> NDArray[np.integer]:
        """
        Get all neighbor pairs.

        Returns:
            Array of shape (N_pairs, 2) with (i, j) pairs where i < j,
            sorted lexicographically.
        """
        return self._pairs

    def needs_rebuild(self, positions: ArrayLike) -> bool:
        """
        Check whether any particle moved more than skin/2 since the last build.

        Displacements use the minimum image, so wrapping across the box
        boundary does not count as motion.
        """
        if self._positions_at_build is None or self._box is None:
            raise RuntimeError("Neighbor list has not been built yet")

        positions = np.asarray(positions, dtype=np.float64)
        if len(positions) == 0:
            return False
        dr = self._box.minimum_image(self._positions_at_build, positions)
        max_sq = float(np.max(np.sum(dr**2, axis=1)))

        # factor of 2 because two particles could move toward each other
        return max_sq > (0.5 * self.skin) ** 2

    def update_if_needed(self, positions: ArrayLike) -> bool:
        """
        Rebuild the list if particles have moved too far.

        Returns:
            True if the list was rebuilt.
        """
        if self.needs_rebuild(positions):
            self.build(positions, self._box)
            return True
        return False
