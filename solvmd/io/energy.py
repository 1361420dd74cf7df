"""Averaged potential energy log."""

from __future__ import annotations

from pathlib import Path

import numpy as np
from numpy.typing import NDArray

from .base import OutputFile


class EnergyWriter(OutputFile):
    """Writer of ``step averaged_potential_energy`` rows."""

    def write(self, step: int, energy: float) -> None:
        """Append one row."""
        self.write_block(f"{step} {energy:.10g}\n")


def read_energy(filename: str | Path) -> tuple[NDArray[np.integer], NDArray[np.floating]]:
    """Return the (steps, energies) columns of an energy log."""
    data = np.loadtxt(filename, ndmin=2)
    if data.size == 0:
        return np.empty(0, dtype=np.int64), np.empty(0)
    return data[:, 0].astype(np.int64), data[:, 1]
