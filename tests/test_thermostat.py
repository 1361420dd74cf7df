"""Tests for the Langevin thermostat."""

import numpy as np
import pytest

from solvmd.context import SimulationContext
from solvmd.engines import MDEngine, ThermoReporter
from solvmd.forcefields import LennardJonesForce, PairInteraction, PairTable
from solvmd.integrators import LangevinThermostat, VelocityVerletIntegrator
from solvmd.system import Box, Group, ParticleState, assign_velocities


@pytest.fixture
def gas_state():
    """100 non-interacting particles of mass 2 at rest."""
    rng = np.random.default_rng(41)
    return ParticleState.create(
        positions=rng.uniform(0.0, 8.0, (100, 3)),
        masses=np.full(100, 2.0),
        box=Box.cubic(8.0),
    )


@pytest.fixture
def everyone(gas_state):
    return Group("all", np.arange(gas_state.n_particles))


class TestLangevinForces:
    """Test the forces added by the thermostat."""

    def test_invalid_parameters(self, everyone):
        """Test that damping and timestep must be positive."""
        with pytest.raises(ValueError):
            LangevinThermostat(everyone, 1.0, damping=0.0, dt=0.002)
        with pytest.raises(ValueError):
            LangevinThermostat(everyone, 1.0, damping=1.0, dt=-0.002)

    def test_pure_drag_at_zero_temperature(self, gas_state, everyone):
        """Test F = -m v / damping without noise."""
        gas_state.velocities[:] = 0.3
        thermostat = LangevinThermostat(everyone, 0.0, damping=0.5, dt=0.002)
        forces = np.zeros((100, 3))
        thermostat.apply(gas_state, forces, SimulationContext(seed=1))
        assert np.allclose(forces, -2.0 * 0.3 / 0.5)

    def test_noise_variance(self, gas_state, everyone):
        """Test the fluctuation-dissipation noise amplitude."""
        thermostat = LangevinThermostat(
            everyone, 1.5, damping=0.5, dt=0.002, zero_drift=False
        )
        context = SimulationContext(seed=2)
        samples = []
        for _ in range(50):
            forces = np.zeros((100, 3))
            thermostat.apply(gas_state, forces, context)
            samples.append(forces)
        expected = 2.0 * 2.0 * 1.5 / (0.5 * 0.002)
        assert np.var(np.array(samples)) == pytest.approx(expected, rel=0.05)

    def test_zero_drift(self, gas_state, everyone):
        """Test that the group receives no net random force."""
        thermostat = LangevinThermostat(everyone, 1.0, damping=1.0, dt=0.002)
        forces = np.zeros((100, 3))
        thermostat.apply(gas_state, forces, SimulationContext(seed=3))
        assert np.allclose(forces.sum(axis=0), 0.0, atol=1e-9)
        assert np.any(forces != 0.0)

    def test_only_group_affected(self, gas_state):
        """Test that particles outside the group get no thermostat force."""
        solvent = Group("solvent", np.arange(1, 100))
        thermostat = LangevinThermostat(solvent, 1.0, damping=1.0, dt=0.002)
        forces = np.zeros((100, 3))
        thermostat.apply(gas_state, forces, SimulationContext(seed=4))
        assert np.all(forces[0] == 0.0)
        assert np.all(forces[1:] != 0.0)

    def test_reproducible_per_seed(self, gas_state, everyone):
        """Test that the noise depends only on the seed and stream."""
        thermostat = LangevinThermostat(everyone, 1.0, damping=1.0, dt=0.002)

        def draw(context):
            forces = np.zeros((100, 3))
            thermostat.apply(gas_state, forces, context)
            return forces

        a = SimulationContext(seed=1234)
        b = SimulationContext(seed=1234)
        b.rng("placement").uniform(size=10)  # other streams do not interfere
        assert np.array_equal(draw(a), draw(b))
        assert not np.array_equal(draw(SimulationContext(seed=1234)), draw(a))
        assert not np.array_equal(draw(SimulationContext(seed=99)), draw(SimulationContext(seed=1234)))

    def test_target_temperature(self, everyone):
        """Test the target temperature property."""
        thermostat = LangevinThermostat(everyone, 1.0, damping=1.0, dt=0.002)
        thermostat.target_temperature = 2.0
        assert thermostat.target_temperature == 2.0


class TestTemperatureControl:
    """Test sampling of the target temperature."""

    def test_ideal_gas_converges(self, gas_state, everyone):
        """Test that the time-averaged temperature approaches the target."""
        table = PairTable(1)
        table.set(0, 0, PairInteraction.null())
        context = SimulationContext(seed=5, dt=0.005)
        engine = MDEngine(
            gas_state,
            LennardJonesForce(table, gas_state.types),
            VelocityVerletIntegrator(dt=0.005),
            context,
            thermostat=LangevinThermostat(everyone, 1.5, damping=0.5, dt=0.005),
        )
        reporter = ThermoReporter(frequency=10, log=False)
        engine.add_reporter(reporter)

        engine.minimize()
        engine.equilibrate(1000)
        engine.produce(3000)

        temperatures = reporter.series("temperature", phase="PRODUCING")
        assert len(temperatures) == 300
        assert np.mean(temperatures) == pytest.approx(1.5, rel=0.05)

    def test_heats_and_cools(self, gas_state, everyone):
        """Test relaxation from above the target temperature."""
        assign_velocities(gas_state, 4.0, np.random.default_rng(6))
        table = PairTable(1)
        table.set(0, 0, PairInteraction.null())
        engine = MDEngine(
            gas_state,
            LennardJonesForce(table, gas_state.types),
            VelocityVerletIntegrator(dt=0.005),
            SimulationContext(seed=6, dt=0.005),
            thermostat=LangevinThermostat(everyone, 1.0, damping=0.1, dt=0.005),
        )
        assert engine.temperature == pytest.approx(4.0)
        engine.minimize()
        engine.equilibrate(400)
        assert engine.temperature < 2.0
