"""Simulation engine, minimizer and reporters."""

from .engine import MDEngine
from .minimizer import MinimizationResult, SteepestDescentMinimizer
from .reporters import (
    EnergyReporter,
    FileReporter,
    Reporter,
    ReporterGroup,
    ThermoReporter,
    TrajectoryReporter,
)

__all__ = [
    "MDEngine",
    "MinimizationResult",
    "SteepestDescentMinimizer",
    "Reporter",
    "ReporterGroup",
    "FileReporter",
    "TrajectoryReporter",
    "EnergyReporter",
    "ThermoReporter",
]
