"""Neighbor list implementations."""

from .base import NeighborList
from .cell import CellList

__all__ = ["NeighborList", "CellList"]
