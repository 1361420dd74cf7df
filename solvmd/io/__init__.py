"""Trajectory, energy and checkpoint I/O."""

from .base import OutputFile
from .checkpoint import Checkpoint, CheckpointManager
from .dump import DumpWriter, read_dump
from .energy import EnergyWriter, read_energy

__all__ = [
    "OutputFile",
    "Checkpoint",
    "CheckpointManager",
    "DumpWriter",
    "EnergyWriter",
    "read_dump",
    "read_energy",
]
