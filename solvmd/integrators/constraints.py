"""Constraints on particle motion."""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray

from ..system import Group
from .base import Constraint


class FrozenGroup(Constraint):
    """
    Hold every particle of a group fixed in place.

    The net force on the group's particles is zeroed before each velocity
    update, and their velocities are kept at zero. The particles still take
    part in the pair force evaluation, so they repel and attract the others
    without moving.

    Attributes:
        group: The immobile particles.
    """

    def __init__(self, group: Group) -> None:
        self.group = group

    def constrain_forces(self, forces: NDArray[np.floating]) -> None:
        """Zero the forces on the group."""
        forces[self.group.indices] = 0.0

    def constrain_velocities(self, velocities: NDArray[np.floating]) -> None:
        """Zero the velocities of the group."""
        velocities[self.group.indices] = 0.0

    @property
    def n_immobile(self) -> int:
        """Return the group size."""
        return len(self.group)
