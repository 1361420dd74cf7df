"""Thermodynamic observables in reduced units (k_B = 1)."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from .groups import Group
from .state import ParticleState


def degrees_of_freedom(n_mobile: int) -> int:
    """
    Return the number of kinetic degrees of freedom.

    Uses N_dof = 3*N - 3 (center of mass motion removed) for N > 1 mobile
    particles and 3 for a single one.
    """
    if n_mobile <= 0:
        return 0
    if n_mobile == 1:
        return 3
    return 3 * n_mobile - 3


def kinetic_energy(state: ParticleState, group: Group | None = None) -> float:
    """Compute kinetic energy, optionally restricted to ``group``."""
    if group is None:
        return state.kinetic_energy
    idx = group.indices
    return float(0.5 * np.sum(state.masses[idx, np.newaxis] * state.velocities[idx] ** 2))


def temperature(
    state: ParticleState,
    group: Group | None = None,
    n_frozen: int = 0,
) -> float:
    """
    Compute instantaneous temperature T = 2 * KE / N_dof.

    Args:
        state: Current particle state.
        group: Restrict to this group (default: all particles).
        n_frozen: Number of the counted particles held immobile; they carry
            no kinetic degrees of freedom.

    Returns:
        Temperature, 0 if there are no degrees of freedom.
    """
    n = state.n_particles if group is None else len(group)
    n_dof = degrees_of_freedom(n - n_frozen)
    if n_dof == 0:
        return 0.0
    return 2.0 * kinetic_energy(state, group) / n_dof


def pressure(state: ParticleState, virial: float) -> float:
    """
    Compute the virial pressure P = (2 * KE + W) / (3 * V).

    Args:
        state: Current particle state.
        virial: Pair virial W = sum over pairs of r_ij . F_ij.
    """
    return (2.0 * state.kinetic_energy + virial) / (3.0 * state.box.volume)


@dataclass(frozen=True)
class ThermoSample:
    """Thermodynamic observables at one step."""

    step: int
    time: float
    temperature: float
    kinetic_energy: float
    potential_energy: float
    pressure: float
    com_velocity: NDArray[np.floating]

    @property
    def total_energy(self) -> float:
        """Return kinetic plus potential energy."""
        return self.kinetic_energy + self.potential_energy


def sample(
    state: ParticleState,
    step: int,
    time: float,
    potential_energy: float,
    virial: float,
    n_frozen: int = 0,
) -> ThermoSample:
    """Collect a :class:`ThermoSample` for the whole system."""
    return ThermoSample(
        step=step,
        time=time,
        temperature=temperature(state, n_frozen=n_frozen),
        kinetic_energy=state.kinetic_energy,
        potential_energy=potential_energy,
        pressure=pressure(state, virial),
        com_velocity=state.center_of_mass_velocity,
    )
