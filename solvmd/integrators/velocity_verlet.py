"""Velocity Verlet integrator implementation."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

import numpy as np
from numpy.typing import NDArray

from .base import Constraint, ForceFunction, Integrator

if TYPE_CHECKING:
    from ..system import ParticleState


class VelocityVerletIntegrator(Integrator):
    """
    Velocity Verlet integrator (kick-drift-kick formulation).

    The standard symplectic integrator for molecular dynamics with
    excellent energy conservation and time-reversibility.

    Algorithm:
        v(t + dt/2) = v(t) + 0.5 * dt * F(t) / m          # First kick
        r(t + dt) = r(t) + dt * v(t + dt/2)               # Drift (wrapped)
        F(t + dt) = force_fn(r(t + dt))                   # New forces
        v(t + dt) = v(t + dt/2) + 0.5 * dt * F(t + dt) / m  # Second kick

    Constraints zero the forces of constrained particles before each kick,
    so e.g. a frozen solute keeps exactly its initial position.

    Attributes:
        dt: Integration timestep.
        constraints: Constraints applied around each velocity update.
    """

    def __init__(self, dt: float, constraints: Sequence[Constraint] = ()) -> None:
        """
        Initialize Velocity Verlet integrator.

        Args:
            dt: Integration timestep.
            constraints: Constraints on particle motion.
        """
        if not dt > 0:
            raise ValueError(f"timestep must be positive, got {dt}")
        self._dt = dt
        self.constraints = list(constraints)

    @property
    def timestep(self) -> float:
        """Return the integration timestep."""
        return self._dt

    def constrain(self, state: ParticleState, forces: NDArray[np.floating]) -> None:
        """Apply every constraint to ``forces`` and the state's velocities."""
        for constraint in self.constraints:
            constraint.constrain_forces(forces)
            constraint.constrain_velocities(state.velocities)

    def half_kick(self, state: ParticleState, forces: NDArray[np.floating]) -> None:
        """Advance velocities by half a timestep: v += 0.5 * dt * F / m."""
        self.constrain(state, forces)
        state.velocities += 0.5 * self._dt * forces / state.masses[:, np.newaxis]

    def drift(self, state: ParticleState) -> None:
        """Advance positions by a full timestep and wrap them into the box."""
        state.positions = state.box.wrap_positions(
            state.positions + self._dt * state.velocities
        )

    def step(
        self,
        state: ParticleState,
        forces: NDArray[np.floating],
        force_fn: ForceFunction,
    ) -> NDArray[np.floating]:
        """
        Perform one Velocity Verlet step, mutating ``state`` in place.

        Args:
            state: Current particle state with synchronized velocities v(t).
            forces: Forces at the current positions r(t), shape (N, 3).
            force_fn: Computes forces at the drifted positions.

        Returns:
            Forces at the new positions (also stored in ``state.forces``).
        """
        # First kick
        self.half_kick(state, forces)

        # Drift
        self.drift(state)

        # Compute new forces at new positions
        forces_new = force_fn(state)

        # Second kick
        self.half_kick(state, forces_new)
        state.forces = forces_new

        return forces_new
