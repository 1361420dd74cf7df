"""Shifted Lennard-Jones pair force."""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np
from numpy.typing import ArrayLike, NDArray

from ..parallel import ParallelBackend, get_backend
from .base import ForceProvider
from .pair_table import PairTable

if TYPE_CHECKING:
    from ..neighborlists import NeighborList
    from ..system import Box, ParticleState


class LennardJonesForce(ForceProvider):
    """
    Lennard-Jones 12-6 potential, energy-shifted to zero at each pair's cutoff.

    V(r) = 4 * epsilon * [(sigma/r)^12 - (sigma/r)^6] - V(r_c)   for r < r_c

    Parameters come from a :class:`PairTable` indexed by particle type. Pairs
    with a WCA cutoff are purely repulsive and null pairs never interact.

    The pair loop is vectorized and split into ``n_chunks`` contiguous
    chunks of the neighbor list. Each chunk accumulates into its own force
    array; the partial arrays are summed in chunk order, so results depend
    on ``n_chunks`` but not on the backend that evaluated the chunks.

    No minimum distance is enforced unless ``min_distance`` is set: particles
    that overlap produce huge or non-finite forces, which the engine reports
    as a numeric instability.

    Attributes:
        table: Pair interaction table.
        types: Type index of each particle, shape (N,).
        n_chunks: Number of pair chunks.
        min_distance: Optional floor on the distance used for evaluation.
    """

    def __init__(
        self,
        table: PairTable,
        types: ArrayLike,
        backend: ParallelBackend | str | None = None,
        n_chunks: int = 1,
        min_distance: float | None = None,
    ) -> None:
        """
        Initialize Lennard-Jones force.

        Args:
            table: Complete pair interaction table.
            types: Type index for each particle, shape (N,).
            backend: Parallel backend (instance or name) for the pair chunks.
            n_chunks: Number of chunks the pair list is split into.
            min_distance: Clamp pair distances below this value (None: no clamp).
        """
        self.table = table
        self.types = np.asarray(types, dtype=np.int64)
        self.backend = get_backend(backend)
        self.n_chunks = max(1, int(n_chunks))
        self.min_distance = min_distance

        if len(self.types) and (self.types.min() < 0 or self.types.max() >= table.n_types):
            raise ValueError(f"particle types must lie in [0, {table.n_types})")

        params = table.as_arrays()
        self._epsilon = params["epsilon"]
        self._sigma_sq = params["sigma"] ** 2
        self._cutoff_sq = params["cutoff_sq"]
        self._shift = params["shift"]

    @property
    def cutoff(self) -> float:
        """Return the largest pair cutoff."""
        return self.table.max_cutoff

    def _evaluate(
        self,
        positions: NDArray[np.floating],
        box: Box,
        pairs: NDArray[np.integer],
    ) -> tuple[NDArray[np.floating], float, float]:
        """Evaluate one chunk of pairs into a private force accumulator."""
        forces = np.zeros((len(positions), 3), dtype=np.float64)
        if len(pairs) == 0:
            return forces, 0.0, 0.0

        i_indices = pairs[:, 0]
        j_indices = pairs[:, 1]
        dr = box.minimum_image(positions[i_indices], positions[j_indices])
        r_sq = np.sum(dr**2, axis=1)

        type_i = self.types[i_indices]
        type_j = self.types[j_indices]

        # Apply per-pair cutoff; null pairs have zero cutoff
        mask = r_sq < self._cutoff_sq[type_i, type_j]
        if not np.any(mask):
            return forces, 0.0, 0.0

        i_indices = i_indices[mask]
        j_indices = j_indices[mask]
        dr = dr[mask]
        r_sq = r_sq[mask]
        type_i = type_i[mask]
        type_j = type_j[mask]

        epsilon = self._epsilon[type_i, type_j]
        sigma_sq = self._sigma_sq[type_i, type_j]
        shift = self._shift[type_i, type_j]

        if self.min_distance is None:
            sr2 = sigma_sq / r_sq
            sr6 = sr2**3
            sr12 = sr6**2
            # F/r = 24 * epsilon * [2*(sigma/r)^12 - (sigma/r)^6] / r^2
            force_over_r = 24.0 * epsilon * (2.0 * sr12 - sr6) / r_sq
            force_vectors = force_over_r[:, np.newaxis] * dr
            virial = float(np.sum(force_over_r * r_sq))
        else:
            r = np.sqrt(r_sq)
            r_eval = np.maximum(r, self.min_distance)
            sr2 = sigma_sq / r_eval**2
            sr6 = sr2**3
            sr12 = sr6**2
            force_mag = 24.0 * epsilon * (2.0 * sr12 - sr6) / r_eval
            unit_dr = dr / np.where(r > 0, r, 1.0)[:, np.newaxis]
            force_vectors = force_mag[:, np.newaxis] * unit_dr
            virial = float(np.sum(force_mag * r))

        energy = float(np.sum(4.0 * epsilon * (sr12 - sr6) - shift))

        # Force vectors point from i to j; Newton's third law
        np.add.at(forces, j_indices, force_vectors)
        np.add.at(forces, i_indices, -force_vectors)

        return forces, energy, virial

    def compute_with_virial(
        self, state: ParticleState, neighbors: NeighborList | None = None
    ) -> tuple[NDArray[np.floating], float, float]:
        """
        Compute Lennard-Jones forces, potential energy and virial.

        Args:
            state: Current particle state.
            neighbors: Neighbor list built with cutoff >= the largest pair
                cutoff. If None, all N(N-1)/2 pairs are evaluated.

        Returns:
            Tuple of (forces, potential energy, virial).
        """
        n = state.n_particles
        if neighbors is not None:
            pairs = neighbors.get_pairs()
        else:
            i_indices, j_indices = np.triu_indices(n, k=1)
            pairs = np.stack([i_indices, j_indices], axis=1)

        positions = state.positions
        box = state.box
        chunks = np.array_split(pairs, min(self.n_chunks, max(len(pairs), 1)))
        results = self.backend.map(lambda chunk: self._evaluate(positions, box, chunk), chunks)

        # Ordered reduction of the partial accumulators
        total_forces = np.zeros((n, 3), dtype=np.float64)
        total_energy = 0.0
        total_virial = 0.0
        for forces, energy, virial in results:
            total_forces += forces
            total_energy += energy
            total_virial += virial

        return total_forces, total_energy, total_virial
