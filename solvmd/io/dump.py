"""Trajectory snapshot format."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path
from typing import TYPE_CHECKING

import numpy as np

from .base import OutputFile

if TYPE_CHECKING:
    from ..system import ParticleState


class DumpWriter(OutputFile):
    """
    Trajectory writer.

    Each snapshot is a block:
        N
        step S
        id type x y z
        ...

    Records are sorted by particle id, independent of storage order, so
    that trajectories of equivalent runs diff cleanly.
    """

    def __init__(
        self,
        filename: str | Path,
        precision: int = 6,
        append: bool = False,
    ) -> None:
        """
        Initialize dump writer.

        Args:
            filename: Output file path.
            precision: Decimal places for coordinates.
            append: Keep existing content.
        """
        super().__init__(filename, append=append)
        self.precision = precision

    def format_snapshot(self, state: ParticleState, step: int) -> str:
        """Render one snapshot as text."""
        order = state.id_order()
        ids = state.ids[order]
        types = state.types[order]
        positions = state.positions[order]

        p = self.precision
        fmt = f"{{}} {{}} {{:.{p}f}} {{:.{p}f}} {{:.{p}f}}\n"
        lines = [f"{state.n_particles}\n", f"step {step}\n"]
        lines.extend(
            fmt.format(pid, ptype, *pos) for pid, ptype, pos in zip(ids, types, positions)
        )
        return "".join(lines)

    def write(self, state: ParticleState, step: int) -> None:
        """
        Write a single snapshot atomically.

        Args:
            state: Particle state to write.
            step: Step number recorded in the block header.
        """
        self.write_block(self.format_snapshot(state, step))


def read_dump(filename: str | Path) -> Iterator[dict]:
    """
    Iterate over the snapshots of a dump file.

    Yields:
        Dictionaries with ``step``, ``ids``, ``types`` and ``positions``.
    """
    with Path(filename).open(encoding="utf-8") as handle:
        while True:
            line = handle.readline()
            if not line.strip():
                return
            n = int(line)
            header = handle.readline().split()
            step = int(header[1])

            ids = np.empty(n, dtype=np.int64)
            types = np.empty(n, dtype=np.int64)
            positions = np.empty((n, 3))
            for k in range(n):
                parts = handle.readline().split()
                ids[k] = int(parts[0])
                types[k] = int(parts[1])
                positions[k] = [float(parts[2]), float(parts[3]), float(parts[4])]

            yield {"step": step, "ids": ids, "types": types, "positions": positions}
