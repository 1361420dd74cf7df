"""Composite force field combining multiple force providers."""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np
from numpy.typing import NDArray

from .base import ForceProvider

if TYPE_CHECKING:
    from ..neighborlists import NeighborList
    from ..system import ParticleState


class ForceField(ForceProvider):
    """
    Composite force field combining multiple force providers.

    A ForceField is itself a ForceProvider that sums the forces, energies
    and virials of its terms.

    Example:
        ff = ForceField([LennardJonesForce(table, state.types)])
        forces, energy = ff.compute_with_energy(state, neighbors)
    """

    def __init__(self, terms: list[ForceProvider] | None = None) -> None:
        """
        Initialize composite force field.

        Args:
            terms: List of force providers to combine.
        """
        self.terms: list[ForceProvider] = terms if terms is not None else []

    def add_term(self, term: ForceProvider) -> None:
        """Add a force term to the force field."""
        self.terms.append(term)

    @property
    def cutoff(self) -> float:
        """Return the largest cutoff of any term."""
        return max((term.cutoff for term in self.terms), default=0.0)

    def compute_with_virial(
        self, state: ParticleState, neighbors: NeighborList | None = None
    ) -> tuple[NDArray[np.floating], float, float]:
        """
        Compute total forces, potential energy and virial from all terms.

        Args:
            state: Current particle state.
            neighbors: Optional neighbor list for pair terms.

        Returns:
            Tuple of (total forces array, total potential energy, total virial).
        """
        total_forces = np.zeros((state.n_particles, 3), dtype=np.float64)
        total_energy = 0.0
        total_virial = 0.0

        for term in self.terms:
            forces, energy, virial = term.compute_with_virial(state, neighbors)
            total_forces += forces
            total_energy += energy
            total_virial += virial

        return total_forces, total_energy, total_virial
