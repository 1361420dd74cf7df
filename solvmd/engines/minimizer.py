"""Steepest-descent energy minimization."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np
from numpy.typing import NDArray

if TYPE_CHECKING:
    from ..integrators import Constraint
    from ..system import ParticleState

logger = logging.getLogger(__name__)

EnergyFunction = Callable[["ParticleState"], tuple[NDArray[np.floating], float]]

# Guards the relative energy test when the energy crosses zero
_ENERGY_EPS = 1e-8
_MIN_STEP = 1e-12


@dataclass(frozen=True)
class MinimizationResult:
    """
    Outcome of a minimization.

    Attributes:
        iterations: Accepted plus rejected line-search iterations.
        initial_energy: Potential energy before minimization.
        energy: Final potential energy.
        max_force: Largest per-particle force norm at the end.
        reason: Stopping criterion that ended the search.
    """

    iterations: int
    initial_energy: float
    energy: float
    max_force: float
    reason: str

    @property
    def converged(self) -> bool:
        """True unless the iteration budget ran out."""
        return self.reason != "max iterations"


class SteepestDescentMinimizer:
    """
    Steepest descent with a capped, adaptive step.

    Each iteration moves every particle along its force. The step is scaled
    so the most strongly pushed particle moves ``step`` distance units; the
    step grows by 1.2 after an accepted move (up to ``dmax``) and halves
    after a rejected one. This removes overlaps from random initial
    configurations without the huge displacements raw forces would cause.

    The search stops when

    - the relative energy change of an accepted move is below
      ``energy_tolerance``,
    - the largest force norm is below ``force_tolerance``,
    - the step has shrunk to nothing, or
    - ``max_iterations`` is reached.

    Constraints are applied to the forces, so frozen particles stay put.
    """

    def __init__(
        self,
        energy_tolerance: float = 1e-4,
        force_tolerance: float = 1e-6,
        max_iterations: int = 10000,
        dmax: float = 0.1,
        constraints: Sequence[Constraint] = (),
    ) -> None:
        """
        Initialize minimizer.

        Args:
            energy_tolerance: Relative energy change that counts as converged.
            force_tolerance: Largest force norm that counts as converged.
            max_iterations: Iteration budget.
            dmax: Largest displacement of any particle in one iteration.
            constraints: Constraints applied to the forces.
        """
        if not dmax > 0:
            raise ValueError(f"dmax must be positive, got {dmax}")
        self.energy_tolerance = energy_tolerance
        self.force_tolerance = force_tolerance
        self.max_iterations = max_iterations
        self.dmax = dmax
        self.constraints = list(constraints)

    def _constrained(self, forces: NDArray[np.floating]) -> NDArray[np.floating]:
        for constraint in self.constraints:
            constraint.constrain_forces(forces)
        return forces

    def minimize(self, state: ParticleState, energy_fn: EnergyFunction) -> MinimizationResult:
        """
        Minimize the potential energy of ``state`` in place.

        Args:
            state: Particle state; positions are updated.
            energy_fn: Returns (forces, potential energy) for a state.

        Returns:
            Summary of the minimization.
        """
        forces, energy = energy_fn(state)
        forces = self._constrained(forces)
        initial_energy = energy
        step = self.dmax
        reason = "max iterations"

        iteration = 0
        while iteration < self.max_iterations:
            max_force = float(np.max(np.linalg.norm(forces, axis=1), initial=0.0))
            if max_force < self.force_tolerance:
                reason = "force tolerance"
                break

            old_positions = state.positions.copy()
            state.positions = state.box.wrap_positions(
                old_positions + (step / max_force) * forces
            )
            new_forces, new_energy = energy_fn(state)
            iteration += 1

            if np.isfinite(new_energy) and new_energy <= energy:
                delta = abs(energy - new_energy)
                scale = 0.5 * (abs(energy) + abs(new_energy) + _ENERGY_EPS)
                forces = self._constrained(new_forces)
                energy = new_energy
                step = min(step * 1.2, self.dmax)
                if delta < self.energy_tolerance * scale:
                    reason = "energy tolerance"
                    break
            else:
                # Reject
                state.positions = old_positions
                step *= 0.5
                if step < _MIN_STEP:
                    reason = "step vanished"
                    break

        state.forces = forces
        max_force = float(np.max(np.linalg.norm(forces, axis=1), initial=0.0))
        logger.info(
            "minimization: %d iterations, energy %.6g -> %.6g, max force %.3g (%s)",
            iteration, initial_energy, energy, max_force, reason,
        )
        return MinimizationResult(
            iterations=iteration,
            initial_energy=initial_energy,
            energy=energy,
            max_force=max_force,
            reason=reason,
        )
