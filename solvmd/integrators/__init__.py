"""Integrator, thermostat and constraint implementations."""

from .base import Constraint, Integrator, Thermostat
from .constraints import FrozenGroup
from .langevin import LangevinThermostat
from .velocity_verlet import VelocityVerletIntegrator

__all__ = [
    "Integrator",
    "Thermostat",
    "Constraint",
    "FrozenGroup",
    "LangevinThermostat",
    "VelocityVerletIntegrator",
]
