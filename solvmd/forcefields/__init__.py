"""Force field implementations."""

from .base import ForceProvider
from .composite import ForceField
from .lj import LennardJonesForce
from .pair_table import PairInteraction, PairTable

__all__ = [
    "ForceProvider",
    "ForceField",
    "LennardJonesForce",
    "PairInteraction",
    "PairTable",
]
