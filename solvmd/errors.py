"""Exception hierarchy for solvmd."""

from __future__ import annotations


class SolvMDError(Exception):
    """Base class for all errors raised by solvmd."""


class ConfigurationError(SolvMDError, ValueError):
    """Missing or inconsistent simulation parameters, detected at setup."""


class NumericInstabilityError(SolvMDError, ArithmeticError):
    """
    Non-finite position, velocity or force after an integration step.

    Attributes:
        step: Step at which the non-finite value was detected.
        particle_id: Stable id of the first offending particle.
        quantity: Which array held the bad value.
    """

    def __init__(self, step: int, particle_id: int, quantity: str) -> None:
        self.step = step
        self.particle_id = particle_id
        self.quantity = quantity
        super().__init__(
            f"non-finite {quantity} for particle {particle_id} at step {step}"
        )


class OutputError(SolvMDError, OSError):
    """Writing a trajectory or energy sample failed."""
