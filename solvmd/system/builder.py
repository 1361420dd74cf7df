"""Initial particle placement and velocity assignment."""

from __future__ import annotations

import logging
from collections.abc import Sequence

import numpy as np
from numpy.typing import NDArray

from ..config import SpeciesConfig
from .box import Box
from .groups import Group, GroupRegistry
from .state import ParticleState

logger = logging.getLogger(__name__)


def initialize_particles(
    box: Box,
    species: Sequence[SpeciesConfig],
    rng: np.random.Generator,
) -> ParticleState:
    """
    Create the particles of every species.

    Species with fixed coordinates are placed there (wrapped into the box);
    the others are drawn independently and uniformly over the box. Overlaps
    are not rejected: minimization is expected to remove close contacts.
    Ids run from 1 in creation order; the type of a particle is the index of
    its species.

    Args:
        box: Simulation box.
        species: Particle types, in type-index order.
        rng: Random stream used for the uniform placement.

    Returns:
        New ParticleState with zero velocities and forces.
    """
    positions: list[NDArray[np.floating]] = []
    types: list[NDArray[np.integer]] = []
    masses: list[NDArray[np.floating]] = []

    for type_index, entry in enumerate(species):
        if entry.positions is not None:
            coords = np.asarray(entry.positions, dtype=np.float64).reshape(entry.count, 3)
        else:
            coords = box.origin + rng.uniform(0.0, 1.0, (entry.count, 3)) * box.lengths
        positions.append(coords)
        types.append(np.full(entry.count, type_index, dtype=np.int64))
        masses.append(np.full(entry.count, entry.mass, dtype=np.float64))
        logger.debug(
            "Placed %d %s particle(s) %s",
            entry.count,
            entry.name,
            "at fixed coordinates" if entry.positions is not None else "at random",
        )

    return ParticleState.create(
        positions=np.concatenate(positions) if positions else np.empty((0, 3)),
        masses=np.concatenate(masses) if masses else np.empty(0),
        types=np.concatenate(types) if types else np.empty(0, dtype=np.int64),
        box=box,
    )


def build_groups(state: ParticleState, species: Sequence[SpeciesConfig]) -> GroupRegistry:
    """Return the registry holding ``all`` and one group per species name."""
    registry = GroupRegistry()
    registry.add(Group("all", np.arange(state.n_particles)))
    for type_index, entry in enumerate(species):
        registry.add(Group(entry.name, np.flatnonzero(state.types == type_index)))
    return registry


def assign_velocities(
    state: ParticleState,
    temperature: float,
    rng: np.random.Generator,
    mobile: Group | None = None,
) -> None:
    """
    Draw Maxwell-Boltzmann velocities at ``temperature`` (k_B = 1).

    Only particles in ``mobile`` (default: all) receive velocities; the others
    are set to rest. The mobile particles' total momentum is removed and the
    velocities are rescaled so their temperature is exactly ``temperature``.
    Mutates ``state.velocities`` in place.
    """
    n = state.n_particles
    mask = np.ones(n, dtype=bool) if mobile is None else mobile.mask(n)
    velocities = np.zeros((n, 3))

    n_mobile = int(mask.sum())
    if n_mobile == 0 or temperature <= 0:
        state.velocities = velocities
        return

    masses = state.masses[mask][:, np.newaxis]
    v = rng.normal(0.0, 1.0, (n_mobile, 3)) * np.sqrt(temperature / masses)
    if n_mobile > 1:
        v -= np.sum(masses * v, axis=0) / np.sum(masses)
        n_dof = 3 * n_mobile - 3
    else:
        n_dof = 3
    current = np.sum(masses * v**2) / n_dof
    if current > 0:
        v *= np.sqrt(temperature / current)

    velocities[mask] = v
    state.velocities = velocities
