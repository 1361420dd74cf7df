"""Langevin thermostat implementation."""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np
from numpy.typing import NDArray

from .base import Thermostat

if TYPE_CHECKING:
    from ..context import SimulationContext
    from ..system import Group, ParticleState


# Boltzmann constant in reduced (LJ) units
K_BOLTZMANN = 1.0


class LangevinThermostat(Thermostat):
    """
    Langevin thermostat acting through forces on a particle group.

    Each particle of the group receives a drag force and a random force:

        F_drag = -m * v / damping
        F_rand ~ Normal(0, 2 * m * k_B * T / (damping * dt))  per component

    The variance follows the fluctuation-dissipation relation, so the group
    relaxes to temperature T on a time scale of ``damping``.

    With ``zero_drift`` the group mean of the random forces is removed each
    step, so the noise injects no net momentum into the group.

    Attributes:
        group: Thermostatted particles.
        damping: Relaxation time (inverse friction).
        dt: Integration timestep the noise amplitude is scaled for.
        zero_drift: Remove the mean random force each step.
        stream: Name of the context random stream used for the noise.
    """

    def __init__(
        self,
        group: Group,
        temperature: float,
        damping: float,
        dt: float,
        zero_drift: bool = True,
        stream: str = "langevin",
    ) -> None:
        """
        Initialize Langevin thermostat.

        Args:
            group: Particles to thermostat.
            temperature: Target temperature (reduced units).
            damping: Relaxation time (time units).
            dt: Integration timestep.
            zero_drift: Remove net random force on the group each step.
            stream: Random stream name in the simulation context.
        """
        if not damping > 0:
            raise ValueError(f"damping must be positive, got {damping}")
        if not dt > 0:
            raise ValueError(f"timestep must be positive, got {dt}")
        self.group = group
        self._temperature = temperature
        self.damping = damping
        self.dt = dt
        self.zero_drift = zero_drift
        self.stream = stream

    @property
    def target_temperature(self) -> float:
        """Return target temperature."""
        return self._temperature

    @target_temperature.setter
    def target_temperature(self, value: float) -> None:
        """Set target temperature."""
        self._temperature = value

    def apply(
        self,
        state: ParticleState,
        forces: NDArray[np.floating],
        context: SimulationContext,
    ) -> None:
        """Add drag and random forces for the group to ``forces`` in place."""
        idx = self.group.indices
        if len(idx) == 0:
            return

        masses = state.masses[idx, np.newaxis]
        drag = -masses * state.velocities[idx] / self.damping

        sigma = np.sqrt(
            2.0 * masses * K_BOLTZMANN * self._temperature / (self.damping * self.dt)
        )
        noise = sigma * context.rng(self.stream).standard_normal((len(idx), 3))
        if self.zero_drift:
            noise -= noise.mean(axis=0)

        forces[idx] += drag + noise
