"""Pair interaction parameters keyed by unordered type pairs."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass

import numpy as np
from numpy.typing import ArrayLike, NDArray

from ..config import PairConfig
from ..errors import ConfigurationError

# r_min / sigma of the 12-6 potential
WCA_CUTOFF_FACTOR = 2.0 ** (1.0 / 6.0)


@dataclass(frozen=True)
class PairInteraction:
    """
    Lennard-Jones parameters of one type pair.

    Attributes:
        epsilon: Energy scale (well depth). Zero means no interaction.
        sigma: Length scale.
        cutoff: Distance beyond which the interaction is exactly zero.
    """

    epsilon: float
    sigma: float
    cutoff: float

    def __post_init__(self) -> None:
        if self.epsilon < 0 or self.sigma <= 0 or self.cutoff < 0:
            raise ConfigurationError(
                f"invalid LJ parameters epsilon={self.epsilon}, sigma={self.sigma}, "
                f"cutoff={self.cutoff}"
            )

    @classmethod
    def wca(cls, epsilon: float, sigma: float) -> PairInteraction:
        """Purely repulsive WCA pair: cutoff at the potential minimum."""
        return cls(epsilon, sigma, WCA_CUTOFF_FACTOR * sigma)

    @classmethod
    def null(cls) -> PairInteraction:
        """Pair that never interacts."""
        return cls(0.0, 1.0, 0.0)

    @property
    def is_null(self) -> bool:
        """Check if this pair has no interaction."""
        return self.epsilon == 0.0 or self.cutoff == 0.0

    @property
    def energy_shift(self) -> float:
        """Return the unshifted LJ energy at the cutoff."""
        if self.is_null:
            return 0.0
        sr6 = (self.sigma / self.cutoff) ** 6
        return 4.0 * self.epsilon * (sr6 * sr6 - sr6)

    def energy(self, r: ArrayLike) -> NDArray[np.floating]:
        """
        Shifted pair energy at separation(s) ``r``; zero at and beyond the cutoff.

        V(r) = 4 * epsilon * [(sigma/r)^12 - (sigma/r)^6] - V(r_c)
        """
        r = np.asarray(r, dtype=np.float64)
        sr6 = (self.sigma / r) ** 6
        v = 4.0 * self.epsilon * (sr6 * sr6 - sr6) - self.energy_shift
        return np.where(r < self.cutoff, v, 0.0)

    def force(self, r: ArrayLike) -> NDArray[np.floating]:
        """
        Pair force magnitude -dV/dr at separation(s) ``r`` (positive = repulsive).

        F(r) = 24 * epsilon * [2*(sigma/r)^12 - (sigma/r)^6] / r
        """
        r = np.asarray(r, dtype=np.float64)
        sr6 = (self.sigma / r) ** 6
        f = 24.0 * self.epsilon * (2.0 * sr6 * sr6 - sr6) / r
        return np.where(r < self.cutoff, f, 0.0)


class PairTable:
    """
    Symmetric table of pair interactions between type indices.

    Setting ``(i, j)`` also sets ``(j, i)``. Before use the table is checked
    for completeness and turned into dense ``(n_types, n_types)`` arrays.
    """

    def __init__(self, n_types: int) -> None:
        if n_types < 1:
            raise ConfigurationError("pair table needs at least one type")
        self.n_types = n_types
        self._entries: dict[tuple[int, int], PairInteraction] = {}

    @staticmethod
    def _key(type_i: int, type_j: int) -> tuple[int, int]:
        return (min(type_i, type_j), max(type_i, type_j))

    def set(self, type_i: int, type_j: int, interaction: PairInteraction) -> None:
        """Set the interaction of the unordered pair (type_i, type_j)."""
        for t in (type_i, type_j):
            if not 0 <= t < self.n_types:
                raise ConfigurationError(f"type index {t} out of range [0, {self.n_types})")
        self._entries[self._key(type_i, type_j)] = interaction

    def get(self, type_i: int, type_j: int) -> PairInteraction:
        """Return the interaction of the unordered pair (type_i, type_j)."""
        try:
            return self._entries[self._key(type_i, type_j)]
        except KeyError:
            raise ConfigurationError(
                f"no pair interaction defined for types ({type_i}, {type_j})"
            ) from None

    def __iter__(self) -> Iterator[tuple[tuple[int, int], PairInteraction]]:
        return iter(sorted(self._entries.items()))

    def missing_pairs(self) -> list[tuple[int, int]]:
        """Return every unordered type pair without an entry."""
        return [
            (i, j)
            for i in range(self.n_types)
            for j in range(i, self.n_types)
            if (i, j) not in self._entries
        ]

    def validate(self) -> None:
        """Raise ConfigurationError unless every type pair is specified."""
        missing = self.missing_pairs()
        if missing:
            raise ConfigurationError(f"pair table missing type pairs {missing}")

    @property
    def max_cutoff(self) -> float:
        """Return the largest cutoff of any interacting pair."""
        cutoffs = [p.cutoff for _, p in self._entries.items() if not p.is_null]
        return max(cutoffs, default=0.0)

    def as_arrays(self) -> dict[str, NDArray[np.floating]]:
        """
        Return dense symmetric parameter matrices.

        Keys are ``epsilon``, ``sigma``, ``cutoff_sq`` and ``shift``; null
        pairs have zero epsilon and zero cutoff.
        """
        self.validate()
        n = self.n_types
        arrays = {
            "epsilon": np.zeros((n, n)),
            "sigma": np.ones((n, n)),
            "cutoff_sq": np.zeros((n, n)),
            "shift": np.zeros((n, n)),
        }
        for (i, j), pair in self._entries.items():
            if pair.is_null:
                continue
            for a, b in ((i, j), (j, i)):
                arrays["epsilon"][a, b] = pair.epsilon
                arrays["sigma"][a, b] = pair.sigma
                arrays["cutoff_sq"][a, b] = pair.cutoff**2
                arrays["shift"][a, b] = pair.energy_shift
        return arrays

    @classmethod
    def from_config(
        cls, pairs: tuple[PairConfig, ...], type_names: tuple[str, ...]
    ) -> PairTable:
        """
        Build and validate a table from configured pairs.

        Raises:
            ConfigurationError: If a type is unknown or a type pair is missing.
        """
        index = {name: i for i, name in enumerate(type_names)}
        table = cls(len(type_names))
        for pair in pairs:
            try:
                ti, tj = index[pair.types[0]], index[pair.types[1]]
            except KeyError as exc:
                raise ConfigurationError(f"pair names unknown type {exc.args[0]!r}") from None
            if pair.null:
                interaction = PairInteraction.null()
            elif pair.wca:
                interaction = PairInteraction.wca(pair.epsilon, pair.sigma)
            else:
                interaction = PairInteraction(pair.epsilon, pair.sigma, pair.cutoff)
            table.set(ti, tj, interaction)
        table.validate()
        return table
