"""
High-level simulation API.

Builds every component of a solute-in-solvent run from a
:class:`~solvmd.config.SimulationConfig` and drives the
minimize/equilibrate/produce workflow.

Example:
    >>> from solvmd import load_config, simulate
    >>> result = simulate.run(load_config("examples/solute_in_solvent.yaml"))
    >>> print(result.mean_temperature)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

import numpy as np
from numpy.typing import NDArray

from .config import SimulationConfig, load_config
from .context import SimulationContext
from .engines import (
    EnergyReporter,
    MDEngine,
    MinimizationResult,
    SteepestDescentMinimizer,
    ThermoReporter,
    TrajectoryReporter,
)
from .forcefields import LennardJonesForce, PairTable
from .integrators import FrozenGroup, LangevinThermostat, VelocityVerletIntegrator
from .neighborlists import CellList
from .parallel import get_backend
from .system import Box, Group, GroupRegistry, ParticleState
from .system import assign_velocities, build_groups, initialize_particles

logger = logging.getLogger(__name__)


@dataclass
class Simulation:
    """
    A fully assembled run, ready to be driven phase by phase.

    Attributes:
        config: The configuration it was built from.
        engine: MD engine owning state and context.
        minimizer: Minimizer for the first phase.
        groups: Named particle groups.
        frozen: Union of the frozen groups (possibly empty).
        thermo: In-memory thermodynamic samples.
        energy: Averaged potential energy reporter, if enabled.
        trajectory: Trajectory reporter, if enabled.
    """

    config: SimulationConfig
    engine: MDEngine
    minimizer: SteepestDescentMinimizer
    groups: GroupRegistry
    frozen: Group
    thermo: ThermoReporter
    energy: EnergyReporter | None = None
    trajectory: TrajectoryReporter | None = None


@dataclass
class SimulationResult:
    """Results from a simulation run."""

    # Thermodynamic series (every thermo_every steps, both dynamics phases)
    steps: NDArray[np.integer] = field(default_factory=lambda: np.array([], dtype=np.int64))
    phases: list[str] = field(default_factory=list)
    temperature: NDArray[np.floating] = field(default_factory=lambda: np.array([]))
    kinetic_energy: NDArray[np.floating] = field(default_factory=lambda: np.array([]))
    potential_energy: NDArray[np.floating] = field(default_factory=lambda: np.array([]))
    total_energy: NDArray[np.floating] = field(default_factory=lambda: np.array([]))
    pressure: NDArray[np.floating] = field(default_factory=lambda: np.array([]))

    # Windowed potential energy averages written to the energy file
    energy_steps: NDArray[np.integer] = field(default_factory=lambda: np.array([], dtype=np.int64))
    energy_averages: NDArray[np.floating] = field(default_factory=lambda: np.array([]))

    # Summary statistics
    mean_temperature: float = 0.0
    mean_potential_energy: float = 0.0
    minimization: MinimizationResult | None = None

    # Final configuration
    final_state: ParticleState | None = None
    frozen_positions: NDArray[np.floating] = field(default_factory=lambda: np.empty((0, 3)))

    # Metadata
    n_particles: int = 0
    n_steps: int = 0
    timestep: float = 0.0
    box_length: float = 0.0
    wall_time: float = 0.0


def build_simulation(config: SimulationConfig, write_output: bool = True) -> Simulation:
    """
    Assemble particles, force field, integrator, thermostat and reporters.

    Every configuration problem surfaces here, before any stepping.

    Args:
        config: Validated configuration.
        write_output: Attach trajectory and energy file reporters.

    Returns:
        Assembled simulation in the UNINITIALIZED phase.

    Raises:
        ConfigurationError: If the setup is inconsistent.
    """
    context = SimulationContext(config.seed, dt=config.timestep)
    box = Box.cubic(config.box_length, centered=config.box_centered)

    state = initialize_particles(box, config.species, context.rng("placement"))
    groups = build_groups(state, config.species)

    frozen_indices = [groups[name].indices for name in config.frozen]
    frozen = groups.define("frozen", np.concatenate(frozen_indices) if frozen_indices else [])
    mobile = Group("mobile", np.flatnonzero(~frozen.mask(state.n_particles)))
    assign_velocities(state, config.temperature, context.rng("velocity"), mobile=mobile)

    table = PairTable.from_config(config.pairs, config.type_names)
    style = config.pair_style
    backend_options = {"n_workers": style.n_workers} if style.backend == "threads" else {}
    backend = get_backend(style.backend, **backend_options)
    force = LennardJonesForce(
        table,
        state.types,
        backend=backend,
        n_chunks=style.n_chunks,
        min_distance=style.min_distance,
    )

    constraints = [FrozenGroup(frozen)] if len(frozen) else []
    integrator = VelocityVerletIntegrator(config.timestep, constraints=constraints)

    thermostat = None
    if config.thermostat.enabled:
        thermostat = LangevinThermostat(
            groups[config.thermostat.group],
            temperature=config.temperature,
            damping=config.thermostat.damping,
            dt=config.timestep,
            zero_drift=config.thermostat.zero_drift,
        )

    neighbor_list = CellList(cutoff=force.cutoff, skin=config.neighbor.skin)
    engine = MDEngine(
        state,
        force,
        integrator,
        context,
        neighbor_list=neighbor_list,
        thermostat=thermostat,
        neighbor_check_every=config.neighbor.check_every,
    )

    mc = config.minimize
    minimizer = SteepestDescentMinimizer(
        energy_tolerance=mc.energy_tolerance,
        force_tolerance=mc.force_tolerance,
        max_iterations=mc.max_iterations,
        dmax=mc.dmax,
        constraints=constraints,
    )

    out = config.output
    thermo_reporter = ThermoReporter(frequency=out.thermo_every)
    engine.add_reporter(thermo_reporter)
    simulation = Simulation(
        config=config,
        engine=engine,
        minimizer=minimizer,
        groups=groups,
        frozen=frozen,
        thermo=thermo_reporter,
    )

    if write_output:
        directory = Path(out.directory)
        if out.trajectory:
            simulation.trajectory = TrajectoryReporter(
                directory / out.trajectory,
                frequency=out.trajectory_every,
                precision=out.precision,
                retries=out.retries,
                best_effort=out.best_effort,
            )
            engine.add_reporter(simulation.trajectory)
        if out.energy:
            simulation.energy = EnergyReporter(
                directory / out.energy,
                frequency=out.energy_every,
                retries=out.retries,
                best_effort=out.best_effort,
            )
            engine.add_reporter(simulation.energy)

    logger.info(
        "built system: %d particles, box %.4f, %d frozen, %d neighbor cells per axis",
        state.n_particles, config.box_length, len(frozen), neighbor_list.n_cells[0],
    )
    return simulation


def run(
    config: SimulationConfig | str | Path,
    verbose: bool = False,
    write_output: bool = True,
) -> SimulationResult:
    """
    Run the full minimize -> equilibrate -> produce workflow.

    Args:
        config: Configuration or path of a YAML configuration file.
        verbose: Print progress (default: False).
        write_output: Write trajectory and energy files.

    Returns:
        SimulationResult with thermodynamic series and the final state.

    Raises:
        ConfigurationError: Invalid configuration.
        NumericInstabilityError: Non-finite values during dynamics.
        OutputError: Output could not be written.
    """
    if not isinstance(config, SimulationConfig):
        config = load_config(config)

    simulation = build_simulation(config, write_output=write_output)
    engine = simulation.engine
    initial_frozen = engine.state.positions[simulation.frozen.indices].copy()

    if verbose:
        print(
            f"Solute in solvent: N={config.n_particles}, L={config.box_length}, "
            f"T*={config.temperature}, seed={config.seed}"
        )

    try:
        if verbose:
            print("Minimizing...", end=" ", flush=True)
        minimization = engine.minimize(simulation.minimizer)
        if verbose:
            print(f"done ({minimization.iterations} iterations, E={minimization.energy:.4f})")

        if verbose:
            print(f"Equilibrating ({config.run.equilibration_steps} steps)...", end=" ", flush=True)
        engine.equilibrate(config.run.equilibration_steps)
        if verbose:
            print("done")

        if verbose:
            print(f"Running production ({config.run.production_steps} steps)...", end=" ", flush=True)
        engine.produce(config.run.production_steps)
        if verbose:
            print("done")

        engine.finish()
    finally:
        engine.close()
        engine.force_provider.backend.close()

    result = _collect_result(simulation, minimization)
    moved = float(np.max(np.abs(result.frozen_positions - initial_frozen), initial=0.0))
    if moved != 0.0:
        logger.warning("frozen particles moved by up to %g", moved)

    if verbose:
        print("\nResults:")
        print(f"  Mean T*: {result.mean_temperature:.3f}")
        print(f"  Mean PE: {result.mean_potential_energy:.4f}")
        print(f"  Wall time: {result.wall_time:.1f} s")

    return result


def _collect_result(simulation: Simulation, minimization: MinimizationResult) -> SimulationResult:
    """Gather the reporters' series into a SimulationResult."""
    config = simulation.config
    engine = simulation.engine
    thermo_reporter = simulation.thermo

    # Average over production; fall back to equilibration for production-less runs
    averaging_phase = "PRODUCING" if "PRODUCING" in thermo_reporter.phases else "EQUILIBRATING"
    temperatures = thermo_reporter.series("temperature", phase=averaging_phase)
    potentials = thermo_reporter.series("potential_energy", phase=averaging_phase)

    result = SimulationResult(
        steps=np.array([s.step for s in thermo_reporter.samples], dtype=np.int64),
        phases=list(thermo_reporter.phases),
        temperature=thermo_reporter.series("temperature"),
        kinetic_energy=thermo_reporter.series("kinetic_energy"),
        potential_energy=thermo_reporter.series("potential_energy"),
        total_energy=thermo_reporter.series("total_energy"),
        pressure=thermo_reporter.series("pressure"),
        mean_temperature=float(np.mean(temperatures)) if len(temperatures) else 0.0,
        mean_potential_energy=float(np.mean(potentials)) if len(potentials) else 0.0,
        minimization=minimization,
        final_state=engine.state.copy(),
        frozen_positions=engine.state.positions[simulation.frozen.indices].copy(),
        n_particles=engine.state.n_particles,
        n_steps=engine.context.step,
        timestep=config.timestep,
        box_length=config.box_length,
        wall_time=engine.performance["wall_time"],
    )
    if simulation.energy is not None:
        result.energy_steps = np.array(simulation.energy.steps, dtype=np.int64)
        result.energy_averages = np.array(simulation.energy.averages)
    return result
