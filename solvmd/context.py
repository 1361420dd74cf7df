"""Explicit run context: step counter, elapsed time, phase and RNG streams."""

from __future__ import annotations

import zlib
from enum import Enum

import numpy as np


class RunPhase(Enum):
    """Phases of a run, in the only order they may be entered."""

    UNINITIALIZED = 0
    MINIMIZING = 1
    EQUILIBRATING = 2
    PRODUCING = 3
    FINISHED = 4


class SimulationContext:
    """
    Mutable run state passed to every component call.

    Random numbers come from named streams derived from a single seed, so
    that particle placement and thermostat noise are reproducible
    independently of each other and of the order in which the streams are
    first requested.

    Attributes:
        seed: Root seed of all random streams.
        dt: Integration timestep.
        step: Number of completed dynamics steps (all phases).
        time: Elapsed simulated time.
        phase: Current run phase.
    """

    def __init__(self, seed: int, dt: float = 0.0) -> None:
        self.seed = int(seed)
        self.dt = dt
        self.step = 0
        self.time = 0.0
        self.phase = RunPhase.UNINITIALIZED
        self._streams: dict[str, np.random.Generator] = {}

    def rng(self, name: str) -> np.random.Generator:
        """Return the random stream called ``name``, creating it on first use."""
        if name not in self._streams:
            sequence = np.random.SeedSequence(
                self.seed, spawn_key=(zlib.crc32(name.encode("utf-8")),)
            )
            self._streams[name] = np.random.default_rng(sequence)
        return self._streams[name]

    def advance(self) -> None:
        """Count one completed timestep."""
        self.step += 1
        self.time += self.dt

    def enter(self, phase: RunPhase) -> None:
        """
        Move to ``phase``.

        Phases are entered one after another without skipping; a run may be
        finished from any phase.

        Raises:
            RuntimeError: If ``phase`` is not the next phase.
        """
        if phase is RunPhase.FINISHED:
            allowed = self.phase is not RunPhase.FINISHED
        else:
            allowed = phase.value == self.phase.value + 1
        if not allowed:
            raise RuntimeError(
                f"cannot enter {phase.name} from {self.phase.name}: "
                "phases run once, in order"
            )
        self.phase = phase

    def rng_states(self) -> dict[str, dict]:
        """Return the bit-generator state of every stream (for checkpoints)."""
        return {name: gen.bit_generator.state for name, gen in self._streams.items()}

    def restore_rng_states(self, states: dict[str, dict]) -> None:
        """Restore streams saved by :meth:`rng_states`."""
        for name, state in states.items():
            self.rng(name).bit_generator.state = state
