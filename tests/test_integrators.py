"""Tests for the velocity Verlet integrator and constraints."""

import numpy as np
import pytest

from solvmd.forcefields import LennardJonesForce, PairInteraction, PairTable
from solvmd.integrators import FrozenGroup, VelocityVerletIntegrator
from solvmd.neighborlists import CellList
from solvmd.system import Box, Group, ParticleState, assign_velocities


@pytest.fixture
def free_state():
    """Two particles moving freely in a large box."""
    return ParticleState.create(
        positions=np.array([[4.5, 5.0, 5.0], [5.5, 5.0, 5.0]]),
        masses=np.array([1.0, 2.0]),
        box=Box.cubic(10.0),
        velocities=np.array([[0.1, 0.0, 0.0], [-0.1, 0.2, 0.0]]),
    )


def zero_forces(state):
    return np.zeros((state.n_particles, 3))


def harmonic_forces(k=1.0, center=50.0):
    """Force callback of independent springs tethered at ``center``."""

    def force_fn(state):
        return -k * (state.positions - center)

    return force_fn


@pytest.fixture
def lj_lattice():
    """64 LJ particles on a jittered lattice with thermal velocities."""
    rng = np.random.default_rng(31)
    grid = np.arange(4) * 1.5 + 0.75
    positions = np.array(np.meshgrid(grid, grid, grid, indexing="ij")).reshape(3, -1).T
    positions += rng.uniform(-0.05, 0.05, positions.shape)
    state = ParticleState.create(positions=positions, masses=np.ones(64), box=Box.cubic(6.0))
    assign_velocities(state, 0.5, rng)
    return state


class TestVelocityVerletIntegrator:
    """Test the kick-drift-kick integrator."""

    def test_timestep_property(self):
        """Test timestep property."""
        assert VelocityVerletIntegrator(dt=0.002).timestep == 0.002

    def test_invalid_timestep(self):
        """Test that the timestep must be positive."""
        with pytest.raises(ValueError):
            VelocityVerletIntegrator(dt=0.0)

    def test_constant_velocity_no_force(self, free_state):
        """Test uniform motion without forces."""
        integrator = VelocityVerletIntegrator(dt=0.01)
        start = free_state.positions.copy()
        velocities = free_state.velocities.copy()

        forces = zero_forces(free_state)
        for _ in range(100):
            forces = integrator.step(free_state, forces, zero_forces)

        assert np.allclose(free_state.positions, start + 1.0 * velocities)
        assert np.array_equal(free_state.velocities, velocities)

    def test_positions_wrapped(self, free_state):
        """Test that drifting across the boundary wraps positions."""
        free_state.velocities[:] = [[10.0, 0.0, 0.0], [0.0, 0.0, 0.0]]
        integrator = VelocityVerletIntegrator(dt=0.1)
        forces = zero_forces(free_state)
        for _ in range(10):
            forces = integrator.step(free_state, forces, zero_forces)
        assert free_state.box.contains(free_state.positions)
        assert free_state.positions[0, 0] == pytest.approx(4.5)

    def test_returns_and_stores_new_forces(self, free_state):
        """Test that the new forces are returned and stored on the state."""
        integrator = VelocityVerletIntegrator(dt=0.01)
        force_fn = harmonic_forces(center=5.0)
        new = integrator.step(free_state, force_fn(free_state), force_fn)
        assert new is free_state.forces
        assert np.allclose(new, force_fn(free_state))

    def test_harmonic_energy_conservation(self):
        """Test bounded energy error for a harmonic oscillator."""
        state = ParticleState.create(
            positions=np.array([[51.0, 50.0, 50.0]]),
            masses=np.ones(1),
            box=Box.cubic(100.0),
        )
        force_fn = harmonic_forces()
        integrator = VelocityVerletIntegrator(dt=0.01)

        def energy(s):
            return s.kinetic_energy + 0.5 * np.sum((s.positions - 50.0) ** 2)

        e0 = energy(state)
        forces = force_fn(state)
        errors = []
        for _ in range(2000):
            forces = integrator.step(state, forces, force_fn)
            errors.append(abs(energy(state) - e0))

        assert max(errors) / e0 < 1e-4

    def test_lj_nve_energy_drift(self, lj_lattice):
        """Test total energy conservation of an LJ system over a few hundred steps."""
        table = PairTable(1)
        table.set(0, 0, PairInteraction(1.0, 1.0, 2.5))
        lj = LennardJonesForce(table, lj_lattice.types)
        nlist = CellList(cutoff=2.5, skin=0.3)
        nlist.build(lj_lattice.positions, lj_lattice.box)
        energies = {}

        def force_fn(state):
            nlist.update_if_needed(state.positions)
            forces, energies["pe"] = lj.compute_with_energy(state, nlist)
            return forces

        integrator = VelocityVerletIntegrator(dt=0.001)
        forces = force_fn(lj_lattice)
        e0 = lj_lattice.kinetic_energy + energies["pe"]
        for _ in range(300):
            forces = integrator.step(lj_lattice, forces, force_fn)
        e1 = lj_lattice.kinetic_energy + energies["pe"]

        assert abs(e1 - e0) / abs(e0) < 1e-3


class TestFrozenGroup:
    """Test immobilization of a group."""

    def test_frozen_particle_never_moves(self, free_state):
        """Test that a frozen particle keeps its exact position under force."""
        frozen = FrozenGroup(Group("solute", [0]))
        frozen.constrain_velocities(free_state.velocities)
        integrator = VelocityVerletIntegrator(dt=0.01, constraints=[frozen])
        start = free_state.positions[0].copy()

        force_fn = harmonic_forces(k=3.0, center=7.0)
        forces = force_fn(free_state)
        for _ in range(200):
            forces = integrator.step(free_state, forces, force_fn)

        assert np.array_equal(free_state.positions[0], start)
        assert np.all(free_state.velocities[0] == 0.0)
        assert np.all(free_state.forces[0] == 0.0)
        assert not np.allclose(free_state.positions[1], [5.5, 5.0, 5.0])

    def test_n_immobile(self):
        """Test the count of immobile particles."""
        assert FrozenGroup(Group("g", [1, 4, 4])).n_immobile == 2

    def test_constrain_in_place(self):
        """Test that forces and velocities are zeroed in place."""
        frozen = FrozenGroup(Group("g", [1]))
        forces = np.ones((3, 3))
        velocities = np.ones((3, 3))
        frozen.constrain_forces(forces)
        frozen.constrain_velocities(velocities)
        assert np.all(forces[1] == 0.0) and np.all(forces[[0, 2]] == 1.0)
        assert np.all(velocities[1] == 0.0)
