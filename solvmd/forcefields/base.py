"""Base interface for force providers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

import numpy as np
from numpy.typing import NDArray

if TYPE_CHECKING:
    from ..neighborlists import NeighborList
    from ..system import ParticleState


class ForceProvider(ABC):
    """
    Abstract base class for all force computation modules.

    Subclasses return forces, potential energy and the pair virial
    W = sum over pairs of r_ij . F_ij (used for the pressure).
    """

    @abstractmethod
    def compute_with_virial(
        self, state: ParticleState, neighbors: NeighborList | None = None
    ) -> tuple[NDArray[np.floating], float, float]:
        """
        Compute forces, potential energy and virial.

        Args:
            state: Current particle state.
            neighbors: Optional neighbor list; all pairs are used if None.

        Returns:
            Tuple of (forces array (N, 3), potential energy, virial).
        """
        ...

    def compute_with_energy(
        self, state: ParticleState, neighbors: NeighborList | None = None
    ) -> tuple[NDArray[np.floating], float]:
        """Compute forces and potential energy."""
        forces, energy, _ = self.compute_with_virial(state, neighbors)
        return forces, energy

    def compute(
        self, state: ParticleState, neighbors: NeighborList | None = None
    ) -> NDArray[np.floating]:
        """Compute forces on all particles."""
        return self.compute_with_virial(state, neighbors)[0]

    @property
    def cutoff(self) -> float:
        """Return the largest interaction range (0 for non-pair terms)."""
        return 0.0
