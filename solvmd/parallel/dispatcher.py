"""Selection of the backend that runs the pair-loop chunks."""

from __future__ import annotations

from typing import Literal

from ..errors import ConfigurationError
from .backends.base import ParallelBackend
from .backends.serial import SerialBackend
from .backends.threads import ThreadBackend

# Available backend types
BackendType = Literal["serial", "threads"]


def get_backend(
    backend: BackendType | ParallelBackend | None = None,
    **kwargs,
) -> ParallelBackend:
    """
    Resolve ``backend`` to a backend instance.

    Args:
        backend: None for the serial backend, a backend name, or an
            instance, which is returned unchanged.
        **kwargs: Passed to the constructor of a named backend.

    Returns:
        ParallelBackend instance.

    Examples:
        >>> backend = get_backend()  # Serial
        >>> backend = get_backend("threads", n_workers=4)
    """
    if isinstance(backend, ParallelBackend):
        return backend
    if backend is None:
        return SerialBackend()
    return create_backend(backend, **kwargs)


def create_backend(name: BackendType, **kwargs) -> ParallelBackend:
    """
    Instantiate the backend called ``name``.

    Raises:
        ConfigurationError: If backend name is unknown.
    """
    if name == "serial":
        return SerialBackend()
    elif name == "threads":
        return ThreadBackend(**kwargs)
    else:
        raise ConfigurationError(f"Unknown backend: {name}. Available: serial, threads")
