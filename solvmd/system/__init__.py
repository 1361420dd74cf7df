"""Particle state, box, groups and initialization."""

from .box import Box
from .builder import assign_velocities, build_groups, initialize_particles
from .groups import Group, GroupRegistry
from .state import ParticleState
from .thermo import ThermoSample

__all__ = [
    "Box",
    "ParticleState",
    "Group",
    "GroupRegistry",
    "ThermoSample",
    "initialize_particles",
    "assign_velocities",
    "build_groups",
]
