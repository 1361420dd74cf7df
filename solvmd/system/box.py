"""Periodic simulation box."""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np
from numpy.typing import ArrayLike, NDArray


@dataclass(frozen=True)
class Box:
    """
    Axis-aligned periodic simulation box.

    The canonical image along each axis is ``[origin, origin + length)``.

    Attributes:
        lengths: Side lengths, shape (3,).
        origin: Lower corner, shape (3,).
    """

    lengths: NDArray[np.floating]
    origin: NDArray[np.floating] = field(default_factory=lambda: np.zeros(3))

    def __post_init__(self) -> None:
        """Validate and convert lengths/origin to float arrays."""
        lengths = np.asarray(self.lengths, dtype=np.float64)
        if lengths.shape == ():
            lengths = np.full(3, float(lengths))
        origin = np.asarray(self.origin, dtype=np.float64)
        if lengths.shape != (3,):
            raise ValueError(f"Box lengths must have shape (3,), got {lengths.shape}")
        if origin.shape != (3,):
            raise ValueError(f"Box origin must have shape (3,), got {origin.shape}")
        if np.any(lengths <= 0) or not np.all(np.isfinite(lengths)):
            raise ValueError(f"Box lengths must be positive and finite, got {lengths}")
        # Use object.__setattr__ since dataclass is frozen
        object.__setattr__(self, "lengths", lengths)
        object.__setattr__(self, "origin", origin)

    @classmethod
    def cubic(cls, length: float, centered: bool = False) -> Box:
        """
        Create a cubic box with given side length.

        Args:
            length: Side length.
            centered: Place the box at ``[-L/2, L/2)`` instead of ``[0, L)``.
        """
        origin = np.full(3, -0.5 * length) if centered else np.zeros(3)
        return cls(np.full(3, float(length)), origin)

    @property
    def upper(self) -> NDArray[np.floating]:
        """Return the (exclusive) upper corner."""
        return self.origin + self.lengths

    @property
    def volume(self) -> float:
        """Return box volume."""
        return float(np.prod(self.lengths))

    def wrap_positions(self, positions: ArrayLike) -> NDArray[np.floating]:
        """
        Wrap positions into the canonical image.

        Idempotent: wrapping an already wrapped position returns it unchanged.

        Args:
            positions: Positions array of shape (N, 3) or (3,).

        Returns:
            Wrapped positions with the same shape.
        """
        positions = np.asarray(positions, dtype=np.float64)
        upper = self.upper
        inside = (positions >= self.origin) & (positions < upper)

        shifted = positions - self.origin
        shifted = shifted - self.lengths * np.floor(shifted / self.lengths)
        shifted = np.where(shifted < 0.0, shifted + self.lengths, shifted)
        wrapped = shifted + self.origin
        # Rounding can land a tiny negative offset exactly on the upper edge
        wrapped = np.where(wrapped >= upper, self.origin, wrapped)

        return np.where(inside, positions, wrapped)

    def minimum_image(self, r1: ArrayLike, r2: ArrayLike) -> NDArray[np.floating]:
        """
        Compute minimum image displacement vector r2 - r1.

        Args:
            r1: First position(s), shape (3,) or (N, 3).
            r2: Second position(s), shape (3,) or (N, 3).

        Returns:
            Displacement vector(s) under minimum image convention.
        """
        dr = np.asarray(r2, dtype=np.float64) - np.asarray(r1, dtype=np.float64)
        return dr - self.lengths * np.round(dr / self.lengths)

    def minimum_image_distance(
        self, r1: ArrayLike, r2: ArrayLike
    ) -> float | NDArray[np.floating]:
        """Compute minimum image distance(s) between positions."""
        return np.linalg.norm(self.minimum_image(r1, r2), axis=-1)

    def contains(self, positions: ArrayLike) -> bool:
        """Check that every position lies in the canonical image."""
        positions = np.asarray(positions, dtype=np.float64)
        return bool(np.all(positions >= self.origin) and np.all(positions < self.upper))
