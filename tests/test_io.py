"""Tests for trajectory, energy and checkpoint I/O and the file reporters."""

import logging

import numpy as np
import pytest

from solvmd.context import RunPhase, SimulationContext
from solvmd.engines import EnergyReporter, ThermoReporter, TrajectoryReporter
from solvmd.errors import OutputError
from solvmd.io import (
    Checkpoint,
    CheckpointManager,
    DumpWriter,
    EnergyWriter,
    read_dump,
    read_energy,
)
from solvmd.system import Box, ParticleState


class FlakyFile:
    """File wrapper whose next ``failures`` writes stop halfway and raise."""

    def __init__(self, handle, failures):
        self._handle = handle
        self.failures = failures

    def write(self, text):
        if self.failures > 0:
            self.failures -= 1
            self._handle.write(text[: len(text) // 2])
            raise OSError("No space left on device")
        return self._handle.write(text)

    def __getattr__(self, name):
        return getattr(self._handle, name)


def make_flaky(writer, failures):
    writer._file = FlakyFile(writer._file, failures)


@pytest.fixture
def state():
    """Three particles stored out of id order."""
    return ParticleState.create(
        positions=[[1.0, 2.0, 3.0], [4.0, 5.0, 6.0], [7.0, 8.0, 9.0]],
        masses=np.ones(3),
        box=Box.cubic(10.0),
        types=[0, 1, 0],
        ids=[3, 1, 2],
        velocities=[[1.0, 0.0, 0.0], [0.0, 1.0, 0.0], [0.0, 0.0, 1.0]],
    )


def drive(reporter, state, steps, phase=RunPhase.PRODUCING, energies=None):
    """Feed completed steps to a reporter the way the engine does."""
    context = SimulationContext(seed=0, dt=0.01)
    context.phase = phase
    reporter.initialize(state)
    for step in steps:
        context.step = step
        energy = 0.0 if energies is None else energies[step]
        reporter.on_step(state, context, potential_energy=energy, virial=0.0, n_frozen=0)
    return context


class TestOutputFile:
    """Test atomic block writes."""

    def test_write_requires_open(self, tmp_path):
        """Test writing to a closed file."""
        writer = EnergyWriter(tmp_path / "energy.dat")
        with pytest.raises(RuntimeError):
            writer.write(1, 0.0)

    def test_failed_block_leaves_no_partial_record(self, tmp_path):
        """Test that a failed write is cut back to the last whole block."""
        path = tmp_path / "energy.dat"
        with EnergyWriter(path) as writer:
            writer.write(1, -1.5)
            make_flaky(writer, failures=1)
            with pytest.raises(OSError):
                writer.write(2, -2.5)
            writer.write(3, -3.5)
            assert writer.n_blocks == 2

        assert path.read_text() == "1 -1.5\n3 -3.5\n"

    def test_append(self, tmp_path):
        """Test that append mode keeps earlier content."""
        path = tmp_path / "energy.dat"
        with EnergyWriter(path) as writer:
            writer.write(1, 1.0)
        with EnergyWriter(path, append=True) as writer:
            writer.write(2, 2.0)
        assert path.read_text() == "1 1\n2 2\n"

        with EnergyWriter(path):
            pass
        assert path.read_text() == ""

    def test_creates_parent_directory(self, tmp_path):
        """Test that missing output directories are created."""
        path = tmp_path / "nested" / "dir" / "energy.dat"
        with EnergyWriter(path) as writer:
            writer.write(1, 1.0)
        assert path.exists()


class TestDumpWriter:
    """Test the trajectory format."""

    def test_snapshot_sorted_by_id(self, tmp_path, state):
        """Test records in id order with the configured precision."""
        writer = DumpWriter(tmp_path / "traj.dump", precision=3)
        text = writer.format_snapshot(state, 5)
        assert text == (
            "3\n"
            "step 5\n"
            "1 1 4.000 5.000 6.000\n"
            "2 0 7.000 8.000 9.000\n"
            "3 0 1.000 2.000 3.000\n"
        )

    def test_read_dump(self, tmp_path, state):
        """Test reading back several snapshots."""
        path = tmp_path / "traj.dump"
        with DumpWriter(path) as writer:
            writer.write(state, 0)
            state.positions[:, 0] += 0.5
            writer.write(state, 10)

        snapshots = list(read_dump(path))
        assert [s["step"] for s in snapshots] == [0, 10]
        assert np.array_equal(snapshots[1]["ids"], [1, 2, 3])
        assert np.array_equal(snapshots[1]["types"], [1, 0, 0])
        assert np.allclose(snapshots[1]["positions"][2], [1.5, 2.0, 3.0])

    def test_read_energy(self, tmp_path):
        """Test the energy log columns."""
        path = tmp_path / "energy.dat"
        with EnergyWriter(path) as writer:
            writer.write(100, -3.25)
            writer.write(200, -3.5)
        steps, energies = read_energy(path)
        assert np.array_equal(steps, [100, 200])
        assert np.allclose(energies, [-3.25, -3.5])


class TestTrajectoryReporter:
    """Test trajectory reporting and write failure handling."""

    def test_interval(self, tmp_path, state):
        """Test that snapshots are written every ``frequency`` steps."""
        reporter = TrajectoryReporter(tmp_path / "traj.dump", frequency=5)
        drive(reporter, state, range(1, 16))
        reporter.finalize(state)

        assert [s["step"] for s in read_dump(reporter.path)] == [5, 10, 15]
        assert reporter.n_written == 3

    def test_retry_recovers(self, tmp_path, state):
        """Test that a transient failure is retried."""
        reporter = TrajectoryReporter(tmp_path / "traj.dump", frequency=1, retries=2)
        reporter.initialize(state)
        make_flaky(reporter.writer, failures=2)
        drive(reporter, state, [1])
        reporter.finalize(state)

        assert [s["step"] for s in read_dump(reporter.path)] == [1]
        assert reporter.n_written == 1

    def test_exhausted_retries_raise(self, tmp_path, state):
        """Test OutputError after every attempt failed, with no partial snapshot."""
        reporter = TrajectoryReporter(tmp_path / "traj.dump", frequency=1, retries=2)
        drive(reporter, state, [1])
        make_flaky(reporter.writer, failures=3)

        context = SimulationContext(seed=0)
        context.step = 2
        with pytest.raises(OutputError, match="after 3 attempts"):
            reporter.on_step(state, context)
        reporter.finalize(state)

        assert [s["step"] for s in read_dump(reporter.path)] == [1]

    def test_best_effort_skips(self, tmp_path, state, caplog):
        """Test that best-effort mode drops the sample and warns."""
        reporter = TrajectoryReporter(
            tmp_path / "traj.dump", frequency=1, retries=1, best_effort=True
        )
        reporter.initialize(state)
        make_flaky(reporter.writer, failures=2)

        with caplog.at_level(logging.WARNING, logger="solvmd"):
            drive(reporter, state, [1, 2])
        reporter.finalize(state)

        assert reporter.n_skipped == 1
        assert [s["step"] for s in read_dump(reporter.path)] == [2]
        assert "skipping sample at step 1" in caplog.text

    def test_unwritable_path(self, tmp_path, state):
        """Test that a file that cannot be opened raises OutputError."""
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        reporter = TrajectoryReporter(blocker / "traj.dump")
        with pytest.raises(OutputError):
            reporter.initialize(state)

    def test_invalid_frequency(self, tmp_path):
        """Test that the interval must be positive."""
        with pytest.raises(ValueError):
            TrajectoryReporter(tmp_path / "traj.dump", frequency=0)


class TestEnergyReporter:
    """Test windowed potential energy averages."""

    def test_window_averages(self, tmp_path, state):
        """Test that each row averages the steps since the previous row."""
        reporter = EnergyReporter(tmp_path / "energy.dat", frequency=5)
        energies = {step: float(step) for step in range(1, 11)}
        drive(reporter, state, range(1, 11), energies=energies)
        reporter.finalize(state)

        assert reporter.steps == [5, 10]
        assert reporter.averages == [3.0, 8.0]
        steps, averages = read_energy(reporter.path)
        assert np.array_equal(steps, [5, 10])
        assert np.allclose(averages, [3.0, 8.0])

    def test_skipped_row_not_recorded(self, tmp_path, state):
        """Test that a dropped row is missing from the in-memory series too."""
        reporter = EnergyReporter(
            tmp_path / "energy.dat", frequency=2, retries=0, best_effort=True
        )
        reporter.initialize(state)
        make_flaky(reporter.writer, failures=1)
        energies = {step: 1.0 for step in range(1, 5)}
        drive(reporter, state, range(1, 5), energies=energies)
        reporter.finalize(state)

        assert reporter.steps == [4]
        assert reporter.n_skipped == 1


class TestThermoReporter:
    """Test in-memory thermodynamic samples."""

    def test_samples_and_series(self, state):
        """Test sampling interval and observables."""
        reporter = ThermoReporter(frequency=2, log=False)
        drive(reporter, state, range(1, 7))

        assert [s.step for s in reporter.samples] == [2, 4, 6]
        kinetic = reporter.series("kinetic_energy")
        assert np.allclose(kinetic, 1.5)
        # 3 particles: 6 degrees of freedom
        assert np.allclose(reporter.series("temperature"), 0.5)

    def test_series_by_phase(self, state):
        """Test filtering samples by run phase."""
        reporter = ThermoReporter(frequency=1, log=False)
        drive(reporter, state, [1, 2], phase=RunPhase.EQUILIBRATING)
        drive(reporter, state, [3, 4, 5], phase=RunPhase.PRODUCING)

        assert reporter.phases == ["EQUILIBRATING"] * 2 + ["PRODUCING"] * 3
        assert len(reporter.series("temperature", phase="PRODUCING")) == 3
        assert len(reporter.series("temperature", phase="EQUILIBRATING")) == 2
        assert len(reporter.series("temperature")) == 5

    def test_logs_samples(self, state, caplog):
        """Test that samples are logged at INFO level."""
        reporter = ThermoReporter(frequency=1)
        with caplog.at_level(logging.INFO, logger="solvmd"):
            drive(reporter, state, [1])
        assert "PRODUCING" in caplog.text


class TestCheckpointManager:
    """Test checkpoint files."""

    @pytest.fixture
    def checkpoint(self, state):
        context = SimulationContext(seed=11, dt=0.002)
        context.phase = RunPhase.EQUILIBRATING
        context.step = 42
        context.time = 0.084
        context.rng("langevin").standard_normal(5)
        return Checkpoint.capture(state, context, metadata={"note": "test"})

    @pytest.mark.parametrize("compress", [True, False])
    def test_round_trip(self, tmp_path, state, checkpoint, compress):
        """Test save and load with and without compression."""
        manager = CheckpointManager(tmp_path, compress=compress)
        manager.save(checkpoint, "run.chk")
        loaded = manager.load("run.chk")

        restored = loaded.to_state()
        assert np.array_equal(restored.ids, state.ids)
        assert np.array_equal(restored.positions, state.positions)
        assert np.array_equal(restored.velocities, state.velocities)
        assert np.array_equal(restored.box.lengths, state.box.lengths)
        assert loaded.metadata == {"note": "test"}

        original = SimulationContext(seed=11)
        original.rng("langevin").standard_normal(5)
        context = SimulationContext(seed=11)
        loaded.restore_context(context)
        assert context.step == 42
        assert context.phase is RunPhase.EQUILIBRATING
        assert np.array_equal(
            context.rng("langevin").standard_normal(3),
            original.rng("langevin").standard_normal(3),
        )

    def test_no_temporary_file_left(self, tmp_path, checkpoint):
        """Test that the file is renamed into place."""
        manager = CheckpointManager(tmp_path)
        manager.save(checkpoint, "run.chk")
        assert [p.name for p in tmp_path.iterdir()] == ["run.chk"]

    def test_missing(self, tmp_path):
        """Test loading a checkpoint that does not exist."""
        with pytest.raises(FileNotFoundError):
            CheckpointManager(tmp_path).load("missing.chk")

    def test_corrupted(self, tmp_path, checkpoint):
        """Test checksum verification."""
        manager = CheckpointManager(tmp_path, compress=False)
        path = manager.save(checkpoint, "run.chk")
        content = bytearray(path.read_bytes())
        content[-10] ^= 0xFF
        path.write_bytes(bytes(content))

        with pytest.raises(ValueError, match="checksum"):
            manager.load("run.chk")

    def test_bad_magic(self, tmp_path):
        """Test that foreign files are rejected."""
        (tmp_path / "run.chk").write_bytes(b"XXXX" + bytes(100))
        with pytest.raises(ValueError, match="magic"):
            CheckpointManager(tmp_path).load("run.chk")

    def test_too_small(self, tmp_path):
        """Test that truncated files are rejected."""
        (tmp_path / "run.chk").write_bytes(b"SV")
        with pytest.raises(ValueError, match="too small"):
            CheckpointManager(tmp_path).load("run.chk")
