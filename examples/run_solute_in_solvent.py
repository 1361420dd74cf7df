#!/usr/bin/env python
"""
Solute in solvent example.

Runs a shortened version of examples/solute_in_solvent.yaml and prints the
production averages.

Usage:
    python examples/run_solute_in_solvent.py
"""

import dataclasses
import logging
from pathlib import Path

from solvmd import load_config, simulate


def main():
    logging.basicConfig(level=logging.WARNING)

    config = load_config(Path(__file__).with_name("solute_in_solvent.yaml"))
    # Shorter budget than the reference run
    config = dataclasses.replace(
        config,
        run=dataclasses.replace(config.run, equilibration_steps=5000, production_steps=20000),
        output=dataclasses.replace(
            config.output, trajectory_every=1000, energy_every=500, thermo_every=100
        ),
    )

    print("=" * 60)
    print("Solute in Lennard-Jones Solvent")
    print("=" * 60)

    result = simulate.run(config, verbose=True)

    print(f"\nSolute position: {result.frozen_positions[0]}")
    print(f"Temperature within 5%: {abs(result.mean_temperature - config.temperature) < 0.05 * config.temperature}")
    print(f"Mean potential energy: {result.mean_potential_energy:.4f}")
    print(f"Output written to {config.output.directory}")


if __name__ == "__main__":
    main()
