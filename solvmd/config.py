"""
Simulation configuration.

A run is described by a :class:`SimulationConfig`, normally loaded from a
YAML file::

    seed: 1234
    timestep: 0.002
    temperature: 1.0
    box: {length: 6.29}
    species:
      - {name: solute, mass: 1.0, count: 1, positions: [[0.0, 0.0, 0.0]]}
      - {name: solvent, mass: 1.0, count: 125}
    pairs:
      - {types: [solvent, solvent], epsilon: 1.0, sigma: 1.0, cutoff: 2.5}
      - {types: [solute, solvent], epsilon: 1.0, sigma: 1.0, wca: true}
      - {types: [solute, solute], null: true}
    frozen: [solute]
    thermostat: {group: solvent, damping: 1.0, zero_drift: true}

Every problem found while reading the configuration is reported as a
:class:`~solvmd.errors.ConfigurationError` before any stepping begins.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SpeciesConfig:
    """
    One particle type.

    Attributes:
        name: Type name, also the name of the group holding these particles.
        count: Number of particles.
        mass: Particle mass.
        positions: Fixed coordinates, one per particle; ``None`` places the
            particles uniformly at random.
    """

    name: str
    count: int
    mass: float = 1.0
    positions: tuple[tuple[float, float, float], ...] | None = None


@dataclass(frozen=True)
class PairConfig:
    """Interaction parameters for one unordered pair of type names."""

    types: tuple[str, str]
    epsilon: float = 1.0
    sigma: float = 1.0
    cutoff: float | None = None
    wca: bool = False
    null: bool = False


@dataclass(frozen=True)
class PairStyleConfig:
    """
    Evaluation settings shared by all pairs.

    Attributes:
        min_distance: Optional floor on the pair distance used in the force
            evaluation; ``None`` applies no clamp.
        backend: Parallel backend for the pair loop ("serial" or "threads").
        n_workers: Worker count for the threaded backend.
        n_chunks: Number of pair chunks reduced in order.
    """

    min_distance: float | None = None
    backend: str = "serial"
    n_workers: int = 1
    n_chunks: int = 1


@dataclass(frozen=True)
class NeighborConfig:
    """Neighbor list tunables: skin distance and rebuild-check interval."""

    skin: float = 0.3
    check_every: int = 1


@dataclass(frozen=True)
class ThermostatConfig:
    """Langevin thermostat coupled to ``group``."""

    group: str = "all"
    damping: float = 1.0
    zero_drift: bool = True
    enabled: bool = True


@dataclass(frozen=True)
class MinimizeConfig:
    """Steepest-descent minimization budget and tolerances."""

    energy_tolerance: float = 1.0e-4
    force_tolerance: float = 1.0e-6
    max_iterations: int = 10000
    dmax: float = 0.1


@dataclass(frozen=True)
class RunConfig:
    """Step budget of the two dynamics phases."""

    equilibration_steps: int = 10000
    production_steps: int = 10000


@dataclass(frozen=True)
class OutputConfig:
    """
    Output files and sampling intervals.

    Attributes:
        directory: Directory for all output files.
        trajectory: Trajectory file name (``None`` disables it).
        trajectory_every: Snapshot interval in steps.
        energy: Averaged potential energy file name (``None`` disables it).
        energy_every: Averaging window in steps.
        thermo_every: Interval of logged thermodynamic samples.
        precision: Decimal places for coordinates.
        retries: Retries of a failed write before giving up.
        best_effort: Skip a sample whose write failed instead of stopping.
    """

    directory: str = "."
    trajectory: str | None = "trajectory.dump"
    trajectory_every: int = 1000
    energy: str | None = "energy.dat"
    energy_every: int = 1000
    thermo_every: int = 1000
    precision: int = 6
    retries: int = 2
    best_effort: bool = False


@dataclass(frozen=True)
class SimulationConfig:
    """Complete parameter set of a minimize/equilibrate/produce run."""

    box_length: float
    species: tuple[SpeciesConfig, ...]
    pairs: tuple[PairConfig, ...]
    seed: int = 1234
    timestep: float = 0.002
    temperature: float = 1.0
    box_centered: bool = False
    frozen: tuple[str, ...] = ()
    pair_style: PairStyleConfig = field(default_factory=PairStyleConfig)
    neighbor: NeighborConfig = field(default_factory=NeighborConfig)
    thermostat: ThermostatConfig = field(default_factory=ThermostatConfig)
    minimize: MinimizeConfig = field(default_factory=MinimizeConfig)
    run: RunConfig = field(default_factory=RunConfig)
    output: OutputConfig = field(default_factory=OutputConfig)

    def __post_init__(self) -> None:
        self.validate()

    @property
    def type_names(self) -> tuple[str, ...]:
        """Return species names in type-index order."""
        return tuple(s.name for s in self.species)

    @property
    def n_particles(self) -> int:
        """Return the total particle count."""
        return sum(s.count for s in self.species)

    def validate(self) -> None:
        """Check internal consistency; raise ConfigurationError on failure."""
        if not self.box_length > 0:
            raise ConfigurationError(f"box length must be positive, got {self.box_length}")
        if not self.timestep > 0:
            raise ConfigurationError(f"timestep must be positive, got {self.timestep}")
        if not self.temperature >= 0:
            raise ConfigurationError(
                f"temperature must be non-negative, got {self.temperature}"
            )
        if not self.species:
            raise ConfigurationError("at least one species is required")

        names = self.type_names
        if len(set(names)) != len(names):
            raise ConfigurationError(f"duplicate species names in {names}")
        for species in self.species:
            if species.count < 0:
                raise ConfigurationError(f"species {species.name!r} has negative count")
            if not species.mass > 0:
                raise ConfigurationError(f"species {species.name!r} needs a positive mass")
            if species.positions is not None and len(species.positions) != species.count:
                raise ConfigurationError(
                    f"species {species.name!r}: {len(species.positions)} fixed positions "
                    f"for {species.count} particles"
                )

        seen: set[frozenset[str]] = set()
        for pair in self.pairs:
            for name in pair.types:
                if name not in names:
                    raise ConfigurationError(f"pair {pair.types} names unknown type {name!r}")
            key = frozenset(pair.types)
            if key in seen:
                raise ConfigurationError(f"pair {pair.types} defined twice")
            seen.add(key)
            if pair.wca and pair.null:
                raise ConfigurationError(f"pair {pair.types} cannot be both wca and null")
            if not (pair.wca or pair.null) and pair.cutoff is None:
                raise ConfigurationError(f"pair {pair.types} needs a cutoff")

        groups = {"all", *names}
        for name in self.frozen:
            if name not in groups:
                raise ConfigurationError(f"frozen group {name!r} is not defined")
        if self.thermostat.enabled:
            if self.thermostat.group not in groups:
                raise ConfigurationError(
                    f"thermostat group {self.thermostat.group!r} is not defined"
                )
            if not self.thermostat.damping > 0:
                raise ConfigurationError("thermostat damping must be positive")

        if self.neighbor.skin < 0 or self.neighbor.check_every < 1:
            raise ConfigurationError(f"invalid neighbor settings {self.neighbor}")
        if self.pair_style.n_chunks < 1 or self.pair_style.n_workers < 1:
            raise ConfigurationError(f"invalid pair settings {self.pair_style}")
        if self.run.equilibration_steps < 0 or self.run.production_steps < 0:
            raise ConfigurationError(f"step budgets must be non-negative: {self.run}")
        for name in ("trajectory_every", "energy_every", "thermo_every"):
            if getattr(self.output, name) < 1:
                raise ConfigurationError(f"output.{name} must be >= 1")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SimulationConfig:
        """
        Build a configuration from a plain mapping (parsed YAML/JSON).

        Raises:
            ConfigurationError: On missing keys, unknown keys or bad values.
        """
        if not isinstance(data, dict):
            raise ConfigurationError("configuration root must be a mapping")
        data = dict(data)

        try:
            box = data.pop("box")
            species_data = data.pop("species")
            pairs_data = data.pop("pairs")
        except KeyError as exc:
            raise ConfigurationError(f"missing required key {exc.args[0]!r}") from None

        if isinstance(box, dict):
            box = dict(box)
            box_length = box.pop("length", None)
            box_centered = bool(box.pop("centered", False))
            if box:
                raise ConfigurationError(f"unknown box keys {sorted(box)}")
        else:
            box_length, box_centered = box, False
        if box_length is None:
            raise ConfigurationError("missing required key 'box.length'")

        if not isinstance(species_data, list):
            raise ConfigurationError("'species' must be a list of species entries")
        if not isinstance(pairs_data, list):
            raise ConfigurationError("'pairs' must be a list of pair entries")
        species = tuple(_species_from_dict(entry) for entry in species_data)
        pairs = tuple(_pair_from_dict(entry) for entry in pairs_data)

        sections = {
            "pair_style": PairStyleConfig,
            "neighbor": NeighborConfig,
            "thermostat": ThermostatConfig,
            "minimize": MinimizeConfig,
            "run": RunConfig,
            "output": OutputConfig,
        }
        kwargs: dict[str, Any] = {}
        for key, section_cls in sections.items():
            if key in data:
                kwargs[key] = _section(section_cls, data.pop(key), key)

        for key in ("seed", "timestep", "temperature"):
            if key in data:
                kwargs[key] = data.pop(key)
        if "frozen" in data:
            kwargs["frozen"] = tuple(data.pop("frozen") or ())

        if data:
            raise ConfigurationError(f"unknown configuration keys {sorted(data)}")

        try:
            return cls(
                box_length=float(box_length),
                box_centered=box_centered,
                species=species,
                pairs=pairs,
                **kwargs,
            )
        except (TypeError, ValueError) as exc:
            if isinstance(exc, ConfigurationError):
                raise
            raise ConfigurationError(str(exc)) from exc


def _section(section_cls: type, value: Any, key: str) -> Any:
    """Instantiate a section dataclass from a mapping, rejecting unknown keys."""
    if value is None:
        return section_cls()
    if not isinstance(value, dict):
        raise ConfigurationError(f"section {key!r} must be a mapping")
    allowed = {f.name for f in fields(section_cls)}
    unknown = set(value) - allowed
    if unknown:
        raise ConfigurationError(f"unknown keys in {key!r}: {sorted(unknown)}")
    return section_cls(**value)


def _species_from_dict(entry: Any) -> SpeciesConfig:
    if not isinstance(entry, dict):
        raise ConfigurationError(f"species entry must be a mapping, got {entry!r}")
    try:
        name = str(entry["name"])
        positions = entry.get("positions")
        if positions is not None:
            positions = tuple(tuple(float(c) for c in p) for p in positions)
            if any(len(p) != 3 for p in positions):
                raise ConfigurationError(f"species {name!r}: positions need 3 coordinates")
        return SpeciesConfig(
            name=name,
            count=int(entry["count"]),
            mass=float(entry.get("mass", 1.0)),
            positions=positions,
        )
    except KeyError as exc:
        raise ConfigurationError(f"species entry missing key {exc.args[0]!r}") from None
    except (TypeError, ValueError) as exc:
        if isinstance(exc, ConfigurationError):
            raise
        raise ConfigurationError(f"species entry {entry.get('name')!r}: {exc}") from exc


def _pair_from_dict(entry: Any) -> PairConfig:
    if not isinstance(entry, dict):
        raise ConfigurationError(f"pair entry must be a mapping, got {entry!r}")
    try:
        types = tuple(entry["types"])
    except KeyError:
        raise ConfigurationError("pair entry missing key 'types'") from None
    except TypeError:
        raise ConfigurationError(f"pair types must be a list, got {entry['types']!r}") from None
    if len(types) != 2:
        raise ConfigurationError(f"pair types must name two species, got {types}")
    cutoff = entry.get("cutoff")
    try:
        return PairConfig(
            types=(str(types[0]), str(types[1])),
            epsilon=float(entry.get("epsilon", 1.0)),
            sigma=float(entry.get("sigma", 1.0)),
            cutoff=None if cutoff is None else float(cutoff),
            wca=bool(entry.get("wca", False)),
            null=bool(entry.get("null", False)),
        )
    except (TypeError, ValueError) as exc:
        if isinstance(exc, ConfigurationError):
            raise
        raise ConfigurationError(f"pair {types[0]}-{types[1]}: {exc}") from exc


def load_config(path: str | Path) -> SimulationConfig:
    """
    Load a simulation configuration from a YAML file.

    Raises:
        ConfigurationError: If the file cannot be read or is inconsistent.
    """
    path = Path(path)
    try:
        with path.open("r", encoding="utf-8") as handle:
            content = yaml.safe_load(handle)
    except OSError as exc:
        raise ConfigurationError(f"cannot read configuration {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"invalid YAML in {path}: {exc}") from exc

    config = SimulationConfig.from_dict(content)
    logger.info(
        "Loaded %s: %d particles, %d types, box %.4g",
        path,
        config.n_particles,
        len(config.species),
        config.box_length,
    )
    return config
