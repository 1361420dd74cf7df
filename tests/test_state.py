"""Tests for particle state, groups, initialization and thermodynamics."""

import numpy as np
import pytest

from solvmd.config import SpeciesConfig
from solvmd.errors import ConfigurationError
from solvmd.system import (
    Box,
    Group,
    GroupRegistry,
    ParticleState,
    assign_velocities,
    build_groups,
    initialize_particles,
)
from solvmd.system import thermo


@pytest.fixture
def box():
    """Create a cubic box."""
    return Box.cubic(10.0)


@pytest.fixture
def species():
    """One fixed solute and a random solvent."""
    return (
        SpeciesConfig("solute", count=1, mass=2.0, positions=((0.0, 0.0, 0.0),)),
        SpeciesConfig("solvent", count=20, mass=1.0),
    )


class TestParticleState:
    """Test ParticleState creation and properties."""

    def test_create_defaults(self, box):
        """Test default ids, types, velocities and forces."""
        state = ParticleState.create(
            positions=np.array([[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]]),
            masses=np.ones(2),
            box=box,
        )
        assert state.n_particles == 2
        assert np.array_equal(state.ids, [1, 2])
        assert np.array_equal(state.types, [0, 0])
        assert np.allclose(state.velocities, 0.0)
        assert np.allclose(state.forces, 0.0)

    def test_create_wraps_positions(self, box):
        """Test that positions are wrapped into the box."""
        state = ParticleState.create(
            positions=np.array([[11.0, -1.0, 5.0]]), masses=np.ones(1), box=box
        )
        assert np.allclose(state.positions, [[1.0, 9.0, 5.0]])

    def test_shape_mismatch(self, box):
        """Test that inconsistent array shapes raise errors."""
        with pytest.raises(ValueError):
            ParticleState.create(positions=np.zeros((3, 3)), masses=np.ones(2), box=box)

    def test_non_positive_mass(self, box):
        """Test that masses must be positive."""
        with pytest.raises(ValueError):
            ParticleState.create(positions=np.zeros((1, 3)), masses=np.zeros(1), box=box)

    def test_duplicate_ids(self, box):
        """Test that ids must be unique."""
        with pytest.raises(ValueError):
            ParticleState.create(
                positions=np.zeros((2, 3)), masses=np.ones(2), box=box, ids=[3, 3]
            )

    def test_copy_is_independent(self, box):
        """Test that copies do not share arrays."""
        state = ParticleState.create(positions=np.ones((2, 3)), masses=np.ones(2), box=box)
        clone = state.copy()
        clone.positions[0, 0] = 5.0
        assert state.positions[0, 0] == 1.0

    def test_id_order(self, box):
        """Test sorting permutation by id."""
        state = ParticleState.create(
            positions=np.zeros((3, 3)), masses=np.ones(3), box=box, ids=[7, 2, 5]
        )
        assert np.array_equal(state.ids[state.id_order()], [2, 5, 7])

    def test_kinetic_energy_and_com_velocity(self, box):
        """Test kinetic energy and center of mass velocity."""
        state = ParticleState.create(
            positions=np.zeros((2, 3)),
            masses=np.array([1.0, 3.0]),
            box=box,
            velocities=np.array([[2.0, 0.0, 0.0], [0.0, 1.0, 0.0]]),
        )
        assert state.kinetic_energy == pytest.approx(0.5 * 4.0 + 0.5 * 3.0)
        assert np.allclose(state.center_of_mass_velocity, [0.5, 0.75, 0.0])


class TestGroups:
    """Test named groups."""

    def test_indices_sorted_unique_readonly(self):
        """Test group index normalization."""
        group = Group("g", [3, 1, 3, 2])
        assert np.array_equal(group.indices, [1, 2, 3])
        assert len(group) == 3
        assert 2 in group
        with pytest.raises(ValueError):
            group.indices[0] = 0

    def test_mask_and_union(self):
        """Test membership masks and unions."""
        a = Group("a", [0, 1])
        b = Group("b", [1, 4])
        both = a.union("both", b)
        assert np.array_equal(both.indices, [0, 1, 4])
        assert np.array_equal(both.mask(5), [True, True, False, False, True])

    def test_registry(self):
        """Test group lookup and duplicate names."""
        registry = GroupRegistry()
        registry.define("solute", [0])
        assert "solute" in registry
        assert registry.names() == ["solute"]
        with pytest.raises(ConfigurationError):
            registry.define("solute", [1])
        with pytest.raises(ConfigurationError):
            registry["missing"]


class TestInitialization:
    """Test particle placement and velocity assignment."""

    def test_ids_types_masses(self, box, species):
        """Test ids in creation order and per-species types and masses."""
        state = initialize_particles(box, species, np.random.default_rng(1))
        assert state.n_particles == 21
        assert np.array_equal(state.ids, np.arange(1, 22))
        assert state.types[0] == 0
        assert np.all(state.types[1:] == 1)
        assert state.masses[0] == 2.0
        assert np.all(state.masses[1:] == 1.0)

    def test_fixed_and_random_positions(self, box, species):
        """Test that the solute is placed exactly and the solvent inside the box."""
        state = initialize_particles(box, species, np.random.default_rng(1))
        assert np.array_equal(state.positions[0], [0.0, 0.0, 0.0])
        assert box.contains(state.positions)

    def test_placement_reproducible(self, box, species):
        """Test that the same seed gives the same configuration."""
        a = initialize_particles(box, species, np.random.default_rng(1234))
        b = initialize_particles(box, species, np.random.default_rng(1234))
        c = initialize_particles(box, species, np.random.default_rng(4321))
        assert np.array_equal(a.positions, b.positions)
        assert not np.array_equal(a.positions, c.positions)

    def test_build_groups(self, box, species):
        """Test the all and per-species groups."""
        state = initialize_particles(box, species, np.random.default_rng(1))
        groups = build_groups(state, species)
        assert groups.names() == ["all", "solute", "solvent"]
        assert np.array_equal(groups["solute"].indices, [0])
        assert len(groups["solvent"]) == 20
        assert len(groups["all"]) == 21

    def test_assign_velocities(self, box, species):
        """Test exact temperature, zero momentum and resting frozen particles."""
        state = initialize_particles(box, species, np.random.default_rng(1))
        groups = build_groups(state, species)
        assign_velocities(state, 1.5, np.random.default_rng(2), mobile=groups["solvent"])

        assert np.all(state.velocities[0] == 0.0)
        momentum = np.sum(state.masses[:, np.newaxis] * state.velocities, axis=0)
        assert np.allclose(momentum, 0.0, atol=1e-12)
        assert thermo.temperature(state, n_frozen=1) == pytest.approx(1.5)

    def test_assign_zero_temperature(self, box, species):
        """Test that zero temperature leaves everything at rest."""
        state = initialize_particles(box, species, np.random.default_rng(1))
        assign_velocities(state, 0.0, np.random.default_rng(2))
        assert np.all(state.velocities == 0.0)


class TestThermo:
    """Test thermodynamic observables."""

    def test_degrees_of_freedom(self):
        """Test N_dof = 3N - 3 with the single-particle and empty cases."""
        assert thermo.degrees_of_freedom(0) == 0
        assert thermo.degrees_of_freedom(1) == 3
        assert thermo.degrees_of_freedom(126) == 375

    def test_temperature_excludes_frozen(self, box):
        """Test that frozen particles do not count as degrees of freedom."""
        velocities = np.zeros((3, 3))
        velocities[1] = [1.0, 0.0, 0.0]
        velocities[2] = [-1.0, 0.0, 0.0]
        state = ParticleState.create(
            positions=np.zeros((3, 3)), masses=np.ones(3), box=box, velocities=velocities
        )
        # KE = 1, two mobile particles: N_dof = 3
        assert thermo.temperature(state, n_frozen=1) == pytest.approx(2.0 / 3.0)
        assert thermo.temperature(state) == pytest.approx(2.0 / 6.0)

    def test_ideal_gas_pressure(self, box):
        """Test P = N T / V without interactions."""
        rng = np.random.default_rng(5)
        state = ParticleState.create(
            positions=rng.uniform(0.0, 10.0, (50, 3)), masses=np.ones(50), box=box
        )
        assign_velocities(state, 2.0, rng)
        expected = 2.0 * state.kinetic_energy / (3.0 * box.volume)
        assert thermo.pressure(state, virial=0.0) == pytest.approx(expected)

    def test_sample(self, box):
        """Test sample fields and total energy."""
        state = ParticleState.create(
            positions=np.zeros((2, 3)),
            masses=np.ones(2),
            box=box,
            velocities=np.array([[1.0, 0.0, 0.0], [-1.0, 0.0, 0.0]]),
        )
        sample = thermo.sample(state, step=10, time=0.02, potential_energy=-3.0, virial=0.0)
        assert sample.step == 10
        assert sample.kinetic_energy == pytest.approx(1.0)
        assert sample.total_energy == pytest.approx(-2.0)
        assert np.allclose(sample.com_velocity, 0.0)
