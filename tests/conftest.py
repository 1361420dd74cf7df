"""Shared fixtures."""

import pytest


@pytest.fixture
def config_data(tmp_path):
    """A small solute-in-solvent run as a plain mapping, writing into tmp_path."""
    return {
        "seed": 7,
        "timestep": 0.002,
        "temperature": 1.0,
        "box": {"length": 6.29},
        "species": [
            {"name": "solute", "count": 1, "positions": [[0.0, 0.0, 0.0]]},
            {"name": "solvent", "count": 40},
        ],
        "pairs": [
            {"types": ["solvent", "solvent"], "epsilon": 1.0, "sigma": 1.0, "cutoff": 2.5},
            {"types": ["solute", "solvent"], "epsilon": 1.0, "sigma": 1.0, "wca": True},
            {"types": ["solute", "solute"], "null": True},
        ],
        "frozen": ["solute"],
        "thermostat": {"group": "solvent", "damping": 0.5},
        "minimize": {"max_iterations": 500},
        "run": {"equilibration_steps": 50, "production_steps": 100},
        "output": {
            "directory": str(tmp_path / "out"),
            "trajectory_every": 20,
            "energy_every": 25,
            "thermo_every": 10,
        },
    }
