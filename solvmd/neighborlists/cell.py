"""Cell list neighbor list implementation."""

from __future__ import annotations

import itertools
import logging
from typing import TYPE_CHECKING

import numpy as np
from numpy.typing import ArrayLike, NDArray

from ..errors import ConfigurationError
from .base import NeighborList

if TYPE_CHECKING:
    from ..system import Box

logger = logging.getLogger(__name__)

# The 13 neighbor offsets lexicographically after (0, 0, 0). Together with the
# home cell they visit each unordered pair of adjacent cells exactly once.
HALF_STENCIL: tuple[tuple[int, int, int], ...] = tuple(
    offset
    for offset in itertools.product((-1, 0, 1), repeat=3)
    if offset > (0, 0, 0)
)


class CellList(NeighborList):
    """
    Cell list (binning) neighbor list.

    Divides the simulation box into cells of side >= cutoff + skin. Only
    particles in the same or adjacent cells (27-cell neighborhood with
    periodic wrap) are distance-checked, reducing the search from O(N^2)
    to O(N).

    When fewer than 3 cells fit along some axis, adjacent cells on either
    side coincide and the list falls back to an all-pairs search.

    Attributes:
        skin: Additional buffer distance.
        n_builds: Number of times the list has been built.
    """

    def __init__(self, cutoff: float, skin: float = 0.3) -> None:
        """
        Initialize cell list.

        Args:
            cutoff: Interaction cutoff distance.
            skin: Buffer distance for neighbor list validity.
        """
        super().__init__(cutoff, skin)
        self._n_cells: NDArray[np.integer] = np.ones(3, dtype=np.int64)

    @property
    def n_cells(self) -> tuple[int, int, int]:
        """Return number of cells in each dimension (1s after an all-pairs build)."""
        return tuple(int(n) for n in self._n_cells)

    def build(self, positions: ArrayLike, box: Box) -> None:
        """
        Build the neighbor list.

        Args:
            positions: Particle positions, shape (N, 3).
            box: Simulation box.

        Raises:
            ConfigurationError: If cutoff + skin exceeds half the shortest box
                side, where the minimum image convention breaks down.
        """
        list_cutoff = self.list_cutoff
        if list_cutoff > 0.5 * float(np.min(box.lengths)):
            raise ConfigurationError(
                f"cutoff + skin = {list_cutoff:.4g} exceeds half the box side "
                f"({0.5 * float(np.min(box.lengths)):.4g})"
            )

        positions = box.wrap_positions(np.asarray(positions, dtype=np.float64))
        self._positions_at_build = positions.copy()
        self._box = box

        self._n_cells = np.ones(3, dtype=np.int64)
        if len(positions) < 2 or list_cutoff <= 0:
            i_idx = j_idx = np.empty(0, dtype=np.int64)
        else:
            n_cells = np.floor(box.lengths / list_cutoff).astype(np.int64)
            if np.any(n_cells < 3):
                i_idx, j_idx = np.triu_indices(len(positions), k=1)
            else:
                self._n_cells = n_cells
                i_idx, j_idx = self._candidate_pairs(positions, box)

        if len(i_idx):
            dr = box.minimum_image(positions[i_idx], positions[j_idx])
            within = np.sum(dr**2, axis=1) < list_cutoff**2
            i_idx, j_idx = i_idx[within], j_idx[within]

        if len(i_idx):
            pairs = np.stack([np.minimum(i_idx, j_idx), np.maximum(i_idx, j_idx)], axis=1)
            self._pairs = np.unique(pairs.astype(np.int64), axis=0)
        else:
            self._pairs = np.empty((0, 2), dtype=np.int64)

        self.n_builds += 1
        logger.debug(
            "Built neighbor list: %d pairs, cells %s", len(self._pairs), self.n_cells
        )

    def _candidate_pairs(
        self, positions: NDArray[np.floating], box: Box
    ) -> tuple[NDArray[np.integer], NDArray[np.integer]]:
        """Collect (i, j) candidates from the home cell and the half stencil."""
        n_cells = self._n_cells
        cell_size = box.lengths / n_cells

        # Bin particles: O(N)
        coords = np.floor((positions - box.origin) / cell_size).astype(np.int64)
        coords = np.clip(coords, 0, n_cells - 1)
        linear = (coords[:, 0] * n_cells[1] + coords[:, 1]) * n_cells[2] + coords[:, 2]

        order = np.argsort(linear, kind="stable")
        counts = np.bincount(linear, minlength=int(np.prod(n_cells)))
        starts = np.concatenate(([0], np.cumsum(counts)[:-1]))

        def members(cx: int, cy: int, cz: int) -> NDArray[np.integer]:
            cx, cy, cz = cx % n_cells[0], cy % n_cells[1], cz % n_cells[2]
            cell = (cx * n_cells[1] + cy) * n_cells[2] + cz
            return order[starts[cell] : starts[cell] + counts[cell]]

        i_parts: list[NDArray[np.integer]] = []
        j_parts: list[NDArray[np.integer]] = []
        for cx, cy, cz in itertools.product(*(range(int(n)) for n in n_cells)):
            home = members(cx, cy, cz)
            if len(home) == 0:
                continue

            # Same cell: each pair once
            a, b = np.triu_indices(len(home), k=1)
            i_parts.append(home[a])
            j_parts.append(home[b])

            for dx, dy, dz in HALF_STENCIL:
                other = members(cx + dx, cy + dy, cz + dz)
                if len(other) == 0:
                    continue
                i_parts.append(np.repeat(home, len(other)))
                j_parts.append(np.tile(other, len(home)))

        if not i_parts:
            empty = np.empty(0, dtype=np.int64)
            return empty, empty
        return np.concatenate(i_parts), np.concatenate(j_parts)
