"""MD simulation engine implementation."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import TYPE_CHECKING

import numpy as np
from numpy.typing import NDArray

from ..context import RunPhase, SimulationContext
from ..errors import NumericInstabilityError
from ..io import Checkpoint
from ..system import thermo
from .minimizer import MinimizationResult, SteepestDescentMinimizer
from .reporters import Reporter, ReporterGroup

if TYPE_CHECKING:
    from ..forcefields import ForceProvider
    from ..integrators import Integrator, Thermostat
    from ..neighborlists import NeighborList
    from ..system import ParticleState, ThermoSample

logger = logging.getLogger(__name__)

_DYNAMICS_PHASES = (RunPhase.EQUILIBRATING, RunPhase.PRODUCING)


class MDEngine:
    """
    Molecular dynamics simulation engine.

    Orchestrates the run and its phases:

        UNINITIALIZED -> MINIMIZING -> EQUILIBRATING -> PRODUCING -> FINISHED

    Phases are entered once and in order. Each dynamics step is:

    1. Half-kick with the forces of the previous step
    2. Drift and wrap positions
    3. Neighbor list check (every ``neighbor_check_every`` steps)
    4. Pair forces plus thermostat forces
    5. Half-kick with the new forces (constraints applied before each kick)
    6. Finite check of positions, velocities and forces
    7. Step counter advance and reporters

    Example usage:
        engine = MDEngine(
            state=state,
            force_provider=LennardJonesForce(table, state.types),
            integrator=VelocityVerletIntegrator(dt=0.002),
            context=SimulationContext(seed=1234, dt=0.002),
            neighbor_list=CellList(cutoff=2.5, skin=0.3),
        )
        engine.add_reporter(ThermoReporter(frequency=1000))
        engine.minimize(SteepestDescentMinimizer())
        engine.equilibrate(10000)
        engine.produce(10000)
        engine.finish()

    Attributes:
        state: Current particle state.
        context: Run context (step, time, phase, random streams).
        integrator: Time integration algorithm.
        force_provider: Force computation module.
        neighbor_list: Neighbor list for pair interactions.
        thermostat: Optional force-based thermostat.
    """

    def __init__(
        self,
        state: ParticleState,
        force_provider: ForceProvider,
        integrator: Integrator,
        context: SimulationContext,
        neighbor_list: NeighborList | None = None,
        thermostat: Thermostat | None = None,
        neighbor_check_every: int = 1,
    ) -> None:
        """
        Initialize MD engine.

        Args:
            state: Initial particle state (copied).
            force_provider: Force computation module.
            integrator: Time integrator.
            context: Run context.
            neighbor_list: Optional neighbor list; all pairs are used if None.
            thermostat: Optional thermostat adding forces each step.
            neighbor_check_every: Interval in steps of neighbor list checks.
        """
        if neighbor_check_every < 1:
            raise ValueError(f"neighbor_check_every must be >= 1, got {neighbor_check_every}")
        self._state = state.copy()
        self._force_provider = force_provider
        self._integrator = integrator
        self._context = context
        self._neighbor_list = neighbor_list
        self._thermostat = thermostat
        self._neighbor_check_every = int(neighbor_check_every)

        self._reporters = ReporterGroup()
        self._reporters_ready = False

        # Tracking
        self._running = False
        self._total_steps = 0
        self._wall_time = 0.0
        self._last_potential_energy = 0.0
        self._last_virial = 0.0

        constraints = getattr(integrator, "constraints", ())
        self._n_frozen = sum(c.n_immobile for c in constraints)

        # Initialize neighbor list
        if self._neighbor_list is not None:
            self._neighbor_list.build(self._state.positions, self._state.box)

        self._state.forces = self._compute_forces(self._state)

    @property
    def state(self) -> ParticleState:
        """Return current particle state."""
        return self._state

    @property
    def context(self) -> SimulationContext:
        """Return the run context."""
        return self._context

    @property
    def phase(self) -> RunPhase:
        """Return the current run phase."""
        return self._context.phase

    @property
    def integrator(self) -> Integrator:
        """Return integrator."""
        return self._integrator

    @property
    def force_provider(self) -> ForceProvider:
        """Return force provider."""
        return self._force_provider

    @property
    def neighbor_list(self) -> NeighborList | None:
        """Return neighbor list."""
        return self._neighbor_list

    @property
    def thermostat(self) -> Thermostat | None:
        """Return thermostat."""
        return self._thermostat

    @property
    def reporters(self) -> ReporterGroup:
        """Return the attached reporters."""
        return self._reporters

    @property
    def n_frozen(self) -> int:
        """Return the number of particles held immobile by constraints."""
        return self._n_frozen

    @property
    def potential_energy(self) -> float:
        """Return last computed potential energy."""
        return self._last_potential_energy

    @property
    def virial(self) -> float:
        """Return last computed pair virial."""
        return self._last_virial

    @property
    def kinetic_energy(self) -> float:
        """Return current kinetic energy."""
        return self._state.kinetic_energy

    @property
    def total_energy(self) -> float:
        """Return total energy."""
        return self.kinetic_energy + self.potential_energy

    @property
    def temperature(self) -> float:
        """Return current temperature (frozen particles carry no degrees of freedom)."""
        return thermo.temperature(self._state, n_frozen=self._n_frozen)

    @property
    def performance(self) -> dict[str, float]:
        """Return performance statistics."""
        if self._wall_time == 0:
            return {"steps_per_second": 0.0, "wall_time": 0.0, "total_steps": 0}

        return {
            "steps_per_second": self._total_steps / self._wall_time,
            "wall_time": self._wall_time,
            "total_steps": self._total_steps,
        }

    def thermo_sample(self) -> ThermoSample:
        """Return the thermodynamic observables of the current state."""
        return thermo.sample(
            self._state,
            step=self._context.step,
            time=self._context.time,
            potential_energy=self._last_potential_energy,
            virial=self._last_virial,
            n_frozen=self._n_frozen,
        )

    def add_reporter(self, reporter: Reporter) -> None:
        """Add a reporter."""
        self._reporters.add(reporter)

    def remove_reporter(self, reporter: Reporter) -> None:
        """Remove a reporter."""
        self._reporters.remove(reporter)

    def _compute_forces(self, state: ParticleState) -> NDArray[np.floating]:
        """Compute pair forces, potential energy and virial for ``state``."""
        forces, energy, virial = self._force_provider.compute_with_virial(
            state, self._neighbor_list
        )
        self._last_potential_energy = energy
        self._last_virial = virial
        return forces

    def _dynamics_forces(self, state: ParticleState) -> NDArray[np.floating]:
        """Pair forces plus thermostat forces at the current positions."""
        forces = self._compute_forces(state)
        if self._thermostat is not None:
            self._thermostat.apply(state, forces, self._context)
        return forces

    def _step_forces(self, state: ParticleState) -> NDArray[np.floating]:
        """Force callback of the integrator: neighbor check, then forces."""
        if (
            self._neighbor_list is not None
            and (self._context.step + 1) % self._neighbor_check_every == 0
        ):
            self._neighbor_list.update_if_needed(state.positions)
        return self._dynamics_forces(state)

    def _prime_forces(self) -> None:
        """Recompute forces at the current positions before a dynamics phase."""
        if self._neighbor_list is not None:
            self._neighbor_list.update_if_needed(self._state.positions)
        self._state.forces = self._dynamics_forces(self._state)

    def _check_finite(self, step: int) -> None:
        """Raise NumericInstabilityError on the first non-finite particle in id order."""
        state = self._state
        for quantity in ("positions", "velocities", "forces"):
            bad = ~np.all(np.isfinite(getattr(state, quantity)), axis=1)
            if np.any(bad):
                order = state.id_order()
                first = order[bad[order]][0]
                raise NumericInstabilityError(step, int(state.ids[first]), quantity[:-1])

    def step(self) -> None:
        """
        Perform a single dynamics step.

        Raises:
            NumericInstabilityError: If any position, velocity or force is
                no longer finite.
        """
        self._integrator.step(self._state, self._state.forces, self._step_forces)
        self._check_finite(self._context.step + 1)
        self._context.advance()

        self._reporters.on_step(
            self._state,
            self._context,
            potential_energy=self._last_potential_energy,
            virial=self._last_virial,
            n_frozen=self._n_frozen,
        )

    def run(
        self,
        nsteps: int,
        callback: Callable[[MDEngine], bool] | None = None,
    ) -> ParticleState:
        """
        Run dynamics for a fixed number of steps.

        Args:
            nsteps: Number of steps to run.
            callback: Optional callback called each step.
                     Return True to stop simulation early.

        Returns:
            Final particle state.

        Raises:
            RuntimeError: Outside the equilibration and production phases.
        """
        if self._context.phase not in _DYNAMICS_PHASES:
            raise RuntimeError(f"cannot run dynamics in phase {self._context.phase.name}")
        self._initialize_reporters()
        self._running = True

        start_time = time.perf_counter()

        try:
            for _ in range(nsteps):
                if not self._running:
                    logger.info("stopped at step %d", self._context.step)
                    break

                self.step()
                self._total_steps += 1

                if callback is not None and callback(self):
                    break
        finally:
            self._wall_time += time.perf_counter() - start_time
            self._running = False

        return self._state

    def stop(self) -> None:
        """Stop the running loop before the next step begins."""
        self._running = False

    def minimize(self, minimizer: SteepestDescentMinimizer | None = None) -> MinimizationResult:
        """
        Enter the minimization phase and remove bad contacts.

        Args:
            minimizer: Minimizer to use; default settings if None.

        Returns:
            Minimization summary.
        """
        self._context.enter(RunPhase.MINIMIZING)
        if minimizer is None:
            minimizer = SteepestDescentMinimizer(
                constraints=getattr(self._integrator, "constraints", ())
            )

        def energy_fn(state: ParticleState) -> tuple[NDArray[np.floating], float]:
            if self._neighbor_list is not None:
                self._neighbor_list.update_if_needed(state.positions)
            forces = self._compute_forces(state)
            return forces, self._last_potential_energy

        result = minimizer.minimize(self._state, energy_fn)
        # Leave energy and virial consistent with the final positions
        self._state.forces = energy_fn(self._state)[0]
        return result

    def equilibrate(self, nsteps: int) -> ParticleState:
        """Enter the equilibration phase and run ``nsteps`` dynamics steps."""
        return self._run_phase(RunPhase.EQUILIBRATING, nsteps)

    def produce(self, nsteps: int) -> ParticleState:
        """Enter the production phase and run ``nsteps`` dynamics steps."""
        return self._run_phase(RunPhase.PRODUCING, nsteps)

    def _run_phase(self, phase: RunPhase, nsteps: int) -> ParticleState:
        self._context.enter(phase)
        logger.info("%s: %d steps from step %d", phase.name.lower(), nsteps, self._context.step)
        self._prime_forces()
        return self.run(nsteps)

    def finish(self) -> None:
        """Enter the finished phase and close all reporters."""
        self._context.enter(RunPhase.FINISHED)
        self.close()

    def _initialize_reporters(self) -> None:
        if not self._reporters_ready:
            self._reporters.initialize(self._state)
            self._reporters_ready = True

    def close(self) -> None:
        """Finalize reporters (flush and close output files)."""
        if self._reporters_ready:
            self._reporters.finalize(self._state)
            self._reporters_ready = False

    def get_checkpoint(self) -> Checkpoint:
        """Capture state, context, neighbor list and reporter windows for a later restart."""
        metadata = {"reporters": self._reporters.checkpoint_data()}
        if self._neighbor_list is not None and self._neighbor_list.positions_at_build is not None:
            metadata["neighbor_positions"] = self._neighbor_list.positions_at_build.copy()
        return Checkpoint.capture(self._state, self._context, metadata=metadata)

    def restore_checkpoint(self, checkpoint: Checkpoint) -> None:
        """
        Continue from ``checkpoint``.

        Forces are restored as saved (they include the thermostat forces of
        the last step), so the continuation matches an uninterrupted run.
        """
        self._state = checkpoint.to_state()
        checkpoint.restore_context(self._context)
        if self._neighbor_list is not None:
            positions = checkpoint.metadata.get("neighbor_positions", self._state.positions)
            self._neighbor_list.build(positions, self._state.box)
        if "reporters" in checkpoint.metadata:
            self._reporters.restore_data(checkpoint.metadata["reporters"])
        forces = self._state.forces.copy()
        self._compute_forces(self._state)
        self._state.forces = forces
