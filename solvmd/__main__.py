"""
Command-line entry point: ``python -m solvmd config.yaml``.

Exit status:
    0    all phases completed
    2    configuration error
    3    numerical instability
    4    output could not be written
    130  interrupted
"""

from __future__ import annotations

import argparse
import dataclasses
import logging
import pathlib
import sys

from . import simulate
from .config import load_config
from .errors import ConfigurationError, NumericInstabilityError, OutputError

logger = logging.getLogger("solvmd")

EXIT_OK = 0
EXIT_CONFIGURATION = 2
EXIT_INSTABILITY = 3
EXIT_OUTPUT = 4
EXIT_INTERRUPTED = 130


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="solvmd",
        description="Run a solute-in-solvent Lennard-Jones simulation.",
    )
    parser.add_argument(
        "config",
        type=pathlib.Path,
        help="YAML configuration file.",
    )
    parser.add_argument(
        "--output-dir",
        type=pathlib.Path,
        default=None,
        help="Write output files here instead of the configured directory.",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Override the configured random seed.",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity (default: INFO).",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = load_config(args.config)
        if args.seed is not None:
            config = dataclasses.replace(config, seed=args.seed)
        if args.output_dir is not None:
            output = dataclasses.replace(config.output, directory=str(args.output_dir))
            config = dataclasses.replace(config, output=output)
        result = simulate.run(config)
    except ConfigurationError as exc:
        logger.error("configuration error: %s", exc)
        return EXIT_CONFIGURATION
    except NumericInstabilityError as exc:
        logger.error("numerical instability: %s", exc)
        return EXIT_INSTABILITY
    except OutputError as exc:
        logger.error("output error: %s", exc)
        return EXIT_OUTPUT
    except KeyboardInterrupt:
        logger.warning("interrupted")
        return EXIT_INTERRUPTED

    logger.info(
        "finished %d steps: mean temperature %.4f, mean potential energy %.4f",
        result.n_steps, result.mean_temperature, result.mean_potential_energy,
    )
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
