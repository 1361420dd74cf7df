"""Reporter implementations for simulation output."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING, Any

import numpy as np
from numpy.typing import NDArray

from ..errors import OutputError
from ..io import DumpWriter, EnergyWriter
from ..io.base import OutputFile
from ..system import thermo

if TYPE_CHECKING:
    from ..context import SimulationContext
    from ..system import ParticleState, ThermoSample

logger = logging.getLogger(__name__)


class Reporter(ABC):
    """
    Abstract base class for simulation reporters.

    The engine calls :meth:`on_step` after every completed dynamics step.
    :meth:`observe` sees every step; :meth:`report` runs only when the step
    is a multiple of :attr:`frequency`.
    """

    def __init__(self, frequency: int) -> None:
        if frequency < 1:
            raise ValueError(f"reporting frequency must be >= 1, got {frequency}")
        self._frequency = int(frequency)

    @property
    def frequency(self) -> int:
        """Return reporting frequency (every N steps)."""
        return self._frequency

    def should_report(self, step: int) -> bool:
        """Check if reporter should run at this step."""
        return step % self._frequency == 0

    def on_step(
        self, state: ParticleState, context: SimulationContext, **observables: Any
    ) -> None:
        """
        Observe a completed step and report on interval boundaries.

        Args:
            state: Current particle state.
            context: Run context (step, time, phase).
            **observables: Step observables, e.g. ``potential_energy``,
                ``virial`` and ``n_frozen``.
        """
        self.observe(state, context, **observables)
        if self.should_report(context.step):
            self.report(state, context, **observables)

    def observe(
        self, state: ParticleState, context: SimulationContext, **observables: Any
    ) -> None:
        """Called every step (default: nothing)."""
        pass

    @abstractmethod
    def report(
        self, state: ParticleState, context: SimulationContext, **observables: Any
    ) -> None:
        """Generate the report for the current step."""
        ...

    def initialize(self, state: ParticleState) -> None:
        """Initialize reporter (called before the first dynamics phase)."""
        pass

    def finalize(self, state: ParticleState) -> None:
        """Finalize reporter (called after the run)."""
        pass

    def checkpoint_data(self) -> dict[str, Any]:
        """Return running sums a restarted run needs (default: none)."""
        return {}

    def restore_data(self, data: dict[str, Any]) -> None:
        """Restore data saved by :meth:`checkpoint_data`."""
        pass


class ReporterGroup:
    """
    Collection of reporters with automatic frequency handling.
    """

    def __init__(self, reporters: list[Reporter] | None = None) -> None:
        """
        Initialize reporter group.

        Args:
            reporters: List of reporters to manage.
        """
        self._reporters: list[Reporter] = list(reporters) if reporters else []

    def __iter__(self):
        return iter(self._reporters)

    def __len__(self) -> int:
        return len(self._reporters)

    def add(self, reporter: Reporter) -> None:
        """Add a reporter to the group."""
        self._reporters.append(reporter)

    def remove(self, reporter: Reporter) -> None:
        """Remove a reporter from the group."""
        self._reporters.remove(reporter)

    def initialize(self, state: ParticleState) -> None:
        """Initialize all reporters."""
        for reporter in self._reporters:
            reporter.initialize(state)

    def on_step(
        self, state: ParticleState, context: SimulationContext, **observables: Any
    ) -> None:
        """Pass a completed step to every reporter."""
        for reporter in self._reporters:
            reporter.on_step(state, context, **observables)

    def finalize(self, state: ParticleState) -> None:
        """Finalize all reporters."""
        for reporter in self._reporters:
            reporter.finalize(state)

    def checkpoint_data(self) -> list[dict[str, Any]]:
        """Return the checkpoint data of every reporter, in order."""
        return [reporter.checkpoint_data() for reporter in self._reporters]

    def restore_data(self, data: list[dict[str, Any]]) -> None:
        """
        Restore data saved by :meth:`checkpoint_data`.

        Raises:
            ValueError: If the saved data belongs to a different set of reporters.
        """
        if len(data) != len(self._reporters):
            raise ValueError(
                f"checkpoint holds data of {len(data)} reporters, engine has {len(self._reporters)}"
            )
        for reporter, entry in zip(self._reporters, data):
            reporter.restore_data(entry)


class FileReporter(Reporter):
    """
    Reporter writing whole blocks to an :class:`~solvmd.io.base.OutputFile`.

    A failed write is retried ``retries`` times. When every attempt fails
    the reporter raises :class:`~solvmd.errors.OutputError`, or, with
    ``best_effort``, logs a warning and drops the sample.
    """

    def __init__(
        self,
        writer: OutputFile,
        frequency: int,
        retries: int = 2,
        best_effort: bool = False,
    ) -> None:
        super().__init__(frequency)
        self.writer = writer
        self.retries = max(0, int(retries))
        self.best_effort = best_effort
        self.n_written = 0
        self.n_skipped = 0

    @property
    def path(self) -> Path:
        """Return the output file path."""
        return self.writer.filename

    def initialize(self, state: ParticleState) -> None:
        """Open the output file."""
        if self.writer.is_open:
            return
        try:
            self.writer.open()
        except OSError as exc:
            raise OutputError(f"cannot open {self.path}: {exc}") from exc

    def finalize(self, state: ParticleState) -> None:
        """Close the output file."""
        self.writer.close()

    def _write(self, write_fn: Callable[[], None], step: int) -> bool:
        """Run ``write_fn`` with retries; return whether the sample was written."""
        error: OSError | None = None
        for attempt in range(self.retries + 1):
            try:
                write_fn()
            except OSError as exc:
                error = exc
                logger.debug(
                    "write to %s failed at step %d (attempt %d/%d): %s",
                    self.path, step, attempt + 1, self.retries + 1, exc,
                )
                continue
            self.n_written += 1
            return True

        if self.best_effort:
            self.n_skipped += 1
            logger.warning("skipping sample at step %d, %s not writable: %s", step, self.path, error)
            return False
        raise OutputError(
            f"failed to write {self.path} at step {step} after "
            f"{self.retries + 1} attempts: {error}"
        ) from error


class TrajectoryReporter(FileReporter):
    """
    Reporter that appends wrapped particle snapshots to a dump file.

    Records within a snapshot are sorted by particle id.
    """

    def __init__(
        self,
        path: str | Path,
        frequency: int = 1000,
        precision: int = 6,
        retries: int = 2,
        best_effort: bool = False,
        append: bool = False,
    ) -> None:
        """
        Initialize trajectory reporter.

        Args:
            path: Trajectory file.
            frequency: Snapshot interval in steps.
            precision: Decimal places for coordinates.
            retries: Retries of a failed write.
            best_effort: Skip failed snapshots instead of raising.
            append: Append to an existing file.
        """
        super().__init__(
            DumpWriter(path, precision=precision, append=append),
            frequency,
            retries=retries,
            best_effort=best_effort,
        )

    def report(
        self, state: ParticleState, context: SimulationContext, **observables: Any
    ) -> None:
        """Write one snapshot."""
        block = self.writer.format_snapshot(state, context.step)
        self._write(lambda: self.writer.write_block(block), context.step)


class EnergyReporter(FileReporter):
    """
    Reporter of windowed potential energy averages.

    The potential energy is accumulated every step. At each interval the
    mean over the steps since the previous row is written and the window
    restarts, so each row averages ``frequency`` samples.
    """

    def __init__(
        self,
        path: str | Path,
        frequency: int = 1000,
        retries: int = 2,
        best_effort: bool = False,
        append: bool = False,
    ) -> None:
        super().__init__(
            EnergyWriter(path, append=append),
            frequency,
            retries=retries,
            best_effort=best_effort,
        )
        self._sum = 0.0
        self._count = 0
        self.steps: list[int] = []
        self.averages: list[float] = []

    def observe(
        self, state: ParticleState, context: SimulationContext, **observables: Any
    ) -> None:
        """Add this step's potential energy to the window."""
        self._sum += observables.get("potential_energy", 0.0)
        self._count += 1

    def checkpoint_data(self) -> dict[str, Any]:
        """Return the open window."""
        return {"window_sum": self._sum, "window_count": self._count}

    def restore_data(self, data: dict[str, Any]) -> None:
        """Resume the window saved at the checkpoint."""
        self._sum = float(data["window_sum"])
        self._count = int(data["window_count"])

    def report(
        self, state: ParticleState, context: SimulationContext, **observables: Any
    ) -> None:
        """Write the window average and start a new window."""
        if self._count == 0:
            return
        average = self._sum / self._count
        self._sum = 0.0
        self._count = 0

        if self._write(lambda: self.writer.write(context.step, average), context.step):
            self.steps.append(context.step)
            self.averages.append(average)


class ThermoReporter(Reporter):
    """
    Reporter that keeps thermodynamic samples in memory and logs them.

    Samples carry the run phase so that equilibration and production
    series can be separated afterwards.
    """

    def __init__(self, frequency: int = 1000, log: bool = True) -> None:
        """
        Initialize thermo reporter.

        Args:
            frequency: Sampling interval in steps.
            log: Emit each sample at INFO level.
        """
        super().__init__(frequency)
        self.log = log
        self.samples: list[ThermoSample] = []
        self.phases: list[str] = []

    def report(
        self, state: ParticleState, context: SimulationContext, **observables: Any
    ) -> None:
        """Record one thermodynamic sample."""
        sample = thermo.sample(
            state,
            step=context.step,
            time=context.time,
            potential_energy=observables.get("potential_energy", 0.0),
            virial=observables.get("virial", 0.0),
            n_frozen=observables.get("n_frozen", 0),
        )
        self.samples.append(sample)
        self.phases.append(context.phase.name)
        if self.log:
            logger.info(
                "%-13s step %9d  T %8.4f  PE %12.4f  KE %12.4f  E %12.4f  P %9.4f",
                context.phase.name,
                sample.step,
                sample.temperature,
                sample.potential_energy,
                sample.kinetic_energy,
                sample.total_energy,
                sample.pressure,
            )

    def series(self, name: str, phase: str | None = None) -> NDArray[np.floating]:
        """
        Return one observable as an array.

        Args:
            name: Attribute of :class:`~solvmd.system.ThermoSample`
                (e.g. ``"temperature"``).
            phase: Keep only samples taken in this phase (e.g. ``"PRODUCING"``).
        """
        return np.array(
            [
                getattr(sample, name)
                for sample, sample_phase in zip(self.samples, self.phases)
                if phase is None or sample_phase == phase
            ],
            dtype=np.float64,
        )
