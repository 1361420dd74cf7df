"""Particle state representation."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from numpy.typing import ArrayLike, NDArray

from .box import Box


@dataclass
class ParticleState:
    """
    Per-particle arrays of the simulated system.

    A structure-of-arrays container. Only positions, velocities and forces
    change during a run; ids, types, masses and the box are fixed at setup.

    Attributes:
        ids: Stable particle ids, shape (N,).
        types: Type index of each particle, shape (N,).
        positions: Wrapped positions, shape (N, 3).
        velocities: Velocities, shape (N, 3).
        forces: Forces from the last evaluation, shape (N, 3).
        masses: Particle masses, shape (N,).
        box: Simulation box.
    """

    ids: NDArray[np.integer]
    types: NDArray[np.integer]
    positions: NDArray[np.floating]
    velocities: NDArray[np.floating]
    forces: NDArray[np.floating]
    masses: NDArray[np.floating]
    box: Box

    def __post_init__(self) -> None:
        """Validate and convert arrays."""
        self.ids = np.asarray(self.ids, dtype=np.int64)
        self.types = np.asarray(self.types, dtype=np.int64)
        self.positions = np.asarray(self.positions, dtype=np.float64)
        self.velocities = np.asarray(self.velocities, dtype=np.float64)
        self.forces = np.asarray(self.forces, dtype=np.float64)
        self.masses = np.asarray(self.masses, dtype=np.float64)

        n = len(self.masses)
        for name in ("positions", "velocities", "forces"):
            shape = getattr(self, name).shape
            if shape != (n, 3):
                raise ValueError(f"{name} shape {shape} incompatible with {n} particles")
        for name in ("ids", "types"):
            shape = getattr(self, name).shape
            if shape != (n,):
                raise ValueError(f"{name} shape {shape} incompatible with {n} particles")
        if np.any(self.masses <= 0):
            raise ValueError("particle masses must be positive")
        if len(np.unique(self.ids)) != n:
            raise ValueError("particle ids must be unique")

    @property
    def n_particles(self) -> int:
        """Return number of particles."""
        return len(self.masses)

    @classmethod
    def create(
        cls,
        positions: ArrayLike,
        masses: ArrayLike,
        box: Box,
        types: ArrayLike | None = None,
        ids: ArrayLike | None = None,
        velocities: ArrayLike | None = None,
    ) -> ParticleState:
        """
        Create a ParticleState with defaults for the optional arrays.

        Ids default to ``1..N`` in array order, types to 0 and velocities
        and forces to zero. Positions are wrapped into the box.
        """
        positions = box.wrap_positions(np.asarray(positions, dtype=np.float64))
        masses = np.asarray(masses, dtype=np.float64)
        n = len(masses)

        if ids is None:
            ids = np.arange(1, n + 1)
        if types is None:
            types = np.zeros(n, dtype=np.int64)
        if velocities is None:
            velocities = np.zeros((n, 3), dtype=np.float64)

        return cls(
            ids=ids,
            types=types,
            positions=positions,
            velocities=velocities,
            forces=np.zeros((n, 3), dtype=np.float64),
            masses=masses,
            box=box,
        )

    def copy(self) -> ParticleState:
        """Create a deep copy of this state."""
        return ParticleState(
            ids=self.ids.copy(),
            types=self.types.copy(),
            positions=self.positions.copy(),
            velocities=self.velocities.copy(),
            forces=self.forces.copy(),
            masses=self.masses.copy(),
            box=self.box,  # Box is immutable
        )

    def id_order(self) -> NDArray[np.integer]:
        """Return the permutation that sorts particles by id."""
        return np.argsort(self.ids, kind="stable")

    @property
    def kinetic_energy(self) -> float:
        """Compute total kinetic energy: sum(0.5 * m * v^2)."""
        return float(0.5 * np.sum(self.masses[:, np.newaxis] * self.velocities**2))

    @property
    def center_of_mass_velocity(self) -> NDArray[np.floating]:
        """Compute center of mass velocity."""
        total_mass = np.sum(self.masses)
        return np.sum(self.masses[:, np.newaxis] * self.velocities, axis=0) / total_mass
