"""Named particle groups."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass

import numpy as np
from numpy.typing import ArrayLike, NDArray

from ..errors import ConfigurationError


@dataclass(frozen=True)
class Group:
    """
    Named subset of particles with immutable membership.

    Attributes:
        name: Group name (e.g. "solute", "solvent").
        indices: Sorted, unique particle indices (read-only array).
    """

    name: str
    indices: NDArray[np.integer]

    def __post_init__(self) -> None:
        indices = np.unique(np.asarray(self.indices, dtype=np.int64))
        indices.flags.writeable = False
        object.__setattr__(self, "indices", indices)

    def __len__(self) -> int:
        return len(self.indices)

    def __contains__(self, index: object) -> bool:
        return bool(np.any(self.indices == index))

    def mask(self, n_particles: int) -> NDArray[np.bool_]:
        """Return a boolean membership mask over ``n_particles``."""
        mask = np.zeros(n_particles, dtype=bool)
        mask[self.indices] = True
        return mask

    def union(self, name: str, *others: Group) -> Group:
        """Return a new group containing this group's and ``others``' members."""
        parts = [self.indices, *(g.indices for g in others)]
        return Group(name, np.concatenate(parts))


class GroupRegistry:
    """Lookup of groups by name."""

    def __init__(self, groups: Iterable[Group] = ()) -> None:
        self._groups: dict[str, Group] = {}
        for group in groups:
            self.add(group)

    def add(self, group: Group) -> None:
        """Register ``group``; names are unique."""
        if group.name in self._groups:
            raise ConfigurationError(f"group {group.name!r} already defined")
        self._groups[group.name] = group

    def define(self, name: str, indices: ArrayLike) -> Group:
        """Create and register a group from indices."""
        group = Group(name, np.asarray(indices))
        self.add(group)
        return group

    def __getitem__(self, name: str) -> Group:
        try:
            return self._groups[name]
        except KeyError:
            raise ConfigurationError(
                f"unknown group {name!r}; defined: {sorted(self._groups)}"
            ) from None

    def __contains__(self, name: object) -> bool:
        return name in self._groups

    def __iter__(self) -> Iterator[Group]:
        return iter(self._groups.values())

    def names(self) -> list[str]:
        """Return group names in definition order."""
        return list(self._groups)
