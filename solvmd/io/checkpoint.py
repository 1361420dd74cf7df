"""Checkpointing for deterministic restart at step boundaries."""

from __future__ import annotations

import gzip
import hashlib
import pickle
import struct
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

import numpy as np
from numpy.typing import NDArray

from ..context import RunPhase, SimulationContext
from ..system import Box, ParticleState

# Bumped whenever the pickled field set changes
CHECKPOINT_VERSION = 1
CHECKPOINT_MAGIC = b"SVCK"  # Magic bytes for file identification
_HEADER_SIZE = 4 + 4 + 32


@dataclass
class Checkpoint:
    """
    Everything needed to continue a run bit-for-bit.

    Attributes:
        version: File format version the checkpoint was written with.
        timestamp: ISO creation time.
        step: Completed steps.
        time: Simulated time.
        phase: Name of the run phase.
        ids, types, positions, velocities, forces, masses: Particle arrays.
        box_lengths, box_origin: Simulation box.
        rng_states: Bit-generator state of every context random stream.
        metadata: Extra restart data, e.g. neighbor list reference positions.
    """

    version: int
    timestamp: str
    step: int
    time: float
    phase: str
    ids: NDArray[np.integer]
    types: NDArray[np.integer]
    positions: NDArray[np.floating]
    velocities: NDArray[np.floating]
    forces: NDArray[np.floating]
    masses: NDArray[np.floating]
    box_lengths: NDArray[np.floating]
    box_origin: NDArray[np.floating]
    rng_states: dict[str, Any] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def capture(
        cls,
        state: ParticleState,
        context: SimulationContext,
        metadata: dict[str, Any] | None = None,
    ) -> Checkpoint:
        """Create a checkpoint from the current state and context."""
        return cls(
            version=CHECKPOINT_VERSION,
            timestamp=datetime.now().isoformat(),
            step=context.step,
            time=context.time,
            phase=context.phase.name,
            ids=state.ids.copy(),
            types=state.types.copy(),
            positions=state.positions.copy(),
            velocities=state.velocities.copy(),
            forces=state.forces.copy(),
            masses=state.masses.copy(),
            box_lengths=state.box.lengths.copy(),
            box_origin=state.box.origin.copy(),
            rng_states=context.rng_states(),
            metadata=metadata or {},
        )

    def to_state(self) -> ParticleState:
        """Rebuild the particle state."""
        return ParticleState(
            ids=self.ids.copy(),
            types=self.types.copy(),
            positions=self.positions.copy(),
            velocities=self.velocities.copy(),
            forces=self.forces.copy(),
            masses=self.masses.copy(),
            box=Box(self.box_lengths, self.box_origin),
        )

    def restore_context(self, context: SimulationContext) -> None:
        """Restore step, time, phase and random streams into ``context``."""
        context.step = self.step
        context.time = self.time
        context.phase = RunPhase[self.phase]
        context.restore_rng_states(self.rng_states)


class CheckpointManager:
    """
    Reads and writes checkpoint files in one directory.

    A file is a 40 byte header (magic, format version, sha256 of the
    payload) followed by the pickled checkpoint fields, optionally gzipped.

    Example:
        manager = CheckpointManager("restart/")
        manager.save(Checkpoint.capture(state, context), "run.chk")
        checkpoint = manager.load("run.chk")
    """

    def __init__(self, directory: str | Path = ".", compress: bool = True) -> None:
        """
        Args:
            directory: Where checkpoint files live (created if missing).
            compress: Write gzip-compressed files.
        """
        self.directory = Path(directory)
        self.compress = compress
        self.directory.mkdir(parents=True, exist_ok=True)

    def save(self, checkpoint: Checkpoint, filename: str = "checkpoint.chk") -> Path:
        """
        Save checkpoint to file.

        The file is written under a temporary name and renamed into place,
        so an interrupted save never replaces a good checkpoint.

        Returns:
            Path to saved checkpoint.
        """
        filepath = self.directory / filename
        tmp_path = filepath.with_name(filepath.name + ".tmp")

        data = pickle.dumps(checkpoint.__dict__, protocol=pickle.HIGHEST_PROTOCOL)
        checksum = hashlib.sha256(data).digest()

        open_func = gzip.open if self.compress else open
        with open_func(tmp_path, "wb") as f:
            # Header: magic + version + checksum
            f.write(CHECKPOINT_MAGIC)
            f.write(struct.pack("<I", CHECKPOINT_VERSION))
            f.write(checksum)
            f.write(data)

        tmp_path.replace(filepath)
        return filepath

    def load(self, filename: str = "checkpoint.chk") -> Checkpoint:
        """
        Read and verify a checkpoint.

        Compressed and uncompressed files are both accepted.

        Raises:
            ValueError: If the header, checksum or version does not match.
            FileNotFoundError: If there is no such file.
        """
        filepath = self.directory / filename
        if not filepath.exists():
            raise FileNotFoundError(f"no checkpoint at {filepath}")

        try:
            with gzip.open(filepath, "rb") as f:
                content = f.read()
        except gzip.BadGzipFile:
            content = filepath.read_bytes()

        if len(content) < _HEADER_SIZE:
            raise ValueError(f"{filepath} is too small to be a checkpoint")
        if content[:4] != CHECKPOINT_MAGIC:
            raise ValueError(f"{filepath} is not a checkpoint (bad magic)")

        version = struct.unpack("<I", content[4:8])[0]
        stored_checksum = content[8:_HEADER_SIZE]
        data = content[_HEADER_SIZE:]

        if hashlib.sha256(data).digest() != stored_checksum:
            raise ValueError(f"{filepath} is corrupted (checksum mismatch)")
        if version > CHECKPOINT_VERSION:
            raise ValueError(
                f"{filepath} has format version {version}, "
                f"newer than the supported {CHECKPOINT_VERSION}"
            )

        return Checkpoint(**pickle.loads(data))
