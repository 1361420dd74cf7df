"""Interfaces for integrators, thermostats and constraints."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import TYPE_CHECKING

import numpy as np
from numpy.typing import NDArray

if TYPE_CHECKING:
    from ..context import SimulationContext
    from ..system import ParticleState

ForceFunction = Callable[["ParticleState"], NDArray[np.floating]]


class Integrator(ABC):
    """
    Abstract base class for time integration algorithms.

    Integrators advance the particle state in place by one timestep.
    """

    @abstractmethod
    def step(
        self,
        state: ParticleState,
        forces: NDArray[np.floating],
        force_fn: ForceFunction,
    ) -> NDArray[np.floating]:
        """
        Advance the system by one time step.

        Args:
            state: Current particle state (mutated in place).
            forces: Forces at the current positions, shape (N, 3).
            force_fn: Computes forces at the updated positions.

        Returns:
            Forces at the new positions.
        """
        ...

    @property
    @abstractmethod
    def timestep(self) -> float:
        """Return the integration timestep."""
        ...


class Thermostat(ABC):
    """
    Abstract base class for force-based thermostats.

    A thermostat adds coupling forces to the force array after the pair
    forces have been evaluated.
    """

    @abstractmethod
    def apply(
        self,
        state: ParticleState,
        forces: NDArray[np.floating],
        context: SimulationContext,
    ) -> None:
        """
        Add thermostat forces to ``forces`` in place.

        Args:
            state: Current particle state.
            forces: Force array to modify, shape (N, 3).
            context: Run context providing the random streams.
        """
        ...

    @property
    @abstractmethod
    def target_temperature(self) -> float:
        """Return target temperature."""
        ...


class Constraint(ABC):
    """
    Abstract base class for constraints on particle motion.

    Constraints edit forces before every velocity update and velocities
    after it.
    """

    @abstractmethod
    def constrain_forces(self, forces: NDArray[np.floating]) -> None:
        """Modify ``forces`` in place."""
        ...

    @abstractmethod
    def constrain_velocities(self, velocities: NDArray[np.floating]) -> None:
        """Modify ``velocities`` in place."""
        ...

    @property
    def n_immobile(self) -> int:
        """Return the number of particles held completely still."""
        return 0
