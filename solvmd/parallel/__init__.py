"""Parallel execution of the pair loop."""

from .backends import ParallelBackend, SerialBackend, ThreadBackend
from .dispatcher import create_backend, get_backend

__all__ = [
    "ParallelBackend",
    "SerialBackend",
    "ThreadBackend",
    "get_backend",
    "create_backend",
]
