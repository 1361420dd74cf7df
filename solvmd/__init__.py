"""
solvmd - Lennard-Jones molecular dynamics of a solute in a solvent.

A run places the particles, removes close contacts by minimization,
equilibrates under a Langevin thermostat and then samples a production
trajectory.

Quick Start:
    >>> from solvmd import load_config, simulate
    >>> result = simulate.run(load_config("examples/solute_in_solvent.yaml"))
    >>> print(f"Mean temperature: {result.mean_temperature:.3f}")
"""

__version__ = "0.1.0"

# High-level APIs
from . import simulate
from .config import SimulationConfig, load_config
from .context import RunPhase, SimulationContext
from .engines import MDEngine
from .errors import ConfigurationError, NumericInstabilityError, OutputError, SolvMDError

# Core components for advanced users
from .forcefields import LennardJonesForce, PairInteraction, PairTable
from .integrators import FrozenGroup, LangevinThermostat, VelocityVerletIntegrator
from .neighborlists import CellList
from .system import Box, ParticleState

__all__ = [
    "simulate",
    "SimulationConfig",
    "load_config",
    "RunPhase",
    "SimulationContext",
    "MDEngine",
    "SolvMDError",
    "ConfigurationError",
    "NumericInstabilityError",
    "OutputError",
    "LennardJonesForce",
    "PairInteraction",
    "PairTable",
    "FrozenGroup",
    "LangevinThermostat",
    "VelocityVerletIntegrator",
    "CellList",
    "Box",
    "ParticleState",
]
