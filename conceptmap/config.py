"""
Configuration - How the concept map is tuned.

Values are resolved in this order (first one wins):
1. Environment variables (CONCEPTMAP_DATA_DIR, CONCEPTMAP_EDGE_POLICY, ...)
2. YAML config file (~/.conceptmap/config/conceptmap.yaml by default)
3. Built-in defaults

Example conceptmap.yaml:

    edge_policy: directed      # or "bidirectional"
    direction: LR              # or "TB"
    node_sep: 80
    rank_sep: 100
    log_level: INFO
"""

import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Optional

import yaml

from conceptmap.adjacency import EdgePolicy

DEFAULT_DATA_DIR = Path.home() / ".conceptmap" / "data"
DEFAULT_CONFIG_PATH = Path.home() / ".conceptmap" / "config" / "conceptmap.yaml"
ENV_PREFIX = "CONCEPTMAP_"

DIRECTIONS = ("LR", "TB")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ConceptMapError(Exception):
    """Base error for the concept map package."""


class ConfigError(ConceptMapError):
    """A configuration value could not be used."""


@dataclass(frozen=True)
class LayoutSettings:
    """Spacing constants for the layered layout (layout units, not pixels)."""
    direction: str = "LR"
    node_sep: float = 80.0      # gap between siblings inside a rank
    rank_sep: float = 100.0     # gap between consecutive ranks
    margin: float = 20.0
    node_width: float = 150.0
    node_height: float = 40.0


@dataclass
class GraphConfig:
    """Resolved configuration for a registry, its storage and the server."""
    data_dir: Path = DEFAULT_DATA_DIR
    edge_policy: EdgePolicy = EdgePolicy.DIRECTED
    direction: str = "LR"
    node_sep: float = 80.0
    rank_sep: float = 100.0
    margin: float = 20.0
    node_width: float = 150.0
    node_height: float = 40.0
    log_level: str = "INFO"
    source: Optional[str] = field(default=None, compare=False)

    @property
    def layout(self) -> LayoutSettings:
        return LayoutSettings(
            direction=self.direction,
            node_sep=self.node_sep,
            rank_sep=self.rank_sep,
            margin=self.margin,
            node_width=self.node_width,
            node_height=self.node_height,
        )


_FLOAT_KEYS = ("node_sep", "rank_sep", "margin", "node_width", "node_height")


def _coerce(key: str, value) -> object:
    """Convert a raw value from YAML or the environment to its typed form."""
    if key == "data_dir":
        return Path(os.path.expanduser(str(value)))
    if key == "edge_policy":
        try:
            return EdgePolicy(str(value).strip().lower())
        except ValueError:
            allowed = ", ".join(p.value for p in EdgePolicy)
            raise ConfigError(f"edge_policy must be one of: {allowed} (got {value!r})")
    if key == "direction":
        direction = str(value).strip().upper()
        if direction not in DIRECTIONS:
            raise ConfigError(f"direction must be one of: {', '.join(DIRECTIONS)} (got {value!r})")
        return direction
    if key == "log_level":
        level = str(value).strip().upper()
        if level not in LOG_LEVELS:
            raise ConfigError(f"log_level must be one of: {', '.join(LOG_LEVELS)} (got {value!r})")
        return level
    if key in _FLOAT_KEYS:
        try:
            number = float(value)
        except (TypeError, ValueError):
            raise ConfigError(f"{key} must be a number (got {value!r})")
        if number < 0:
            raise ConfigError(f"{key} must not be negative (got {value!r})")
        return number
    raise ConfigError(f"Unknown config key: {key}")


def _config_keys() -> list[str]:
    return [f.name for f in fields(GraphConfig) if f.name != "source"]


def _read_yaml(path: Path) -> dict:
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}")
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    return data


def load_config(
    path: Optional[Path] = None,
    environ: Optional[dict] = None,
) -> GraphConfig:
    """Build a GraphConfig from defaults, the YAML file and the environment.

    Args:
        path: Config file to read. Defaults to CONCEPTMAP_CONFIG or
            ~/.conceptmap/config/conceptmap.yaml. A missing file is fine.
        environ: Environment mapping (defaults to os.environ)

    Raises:
        ConfigError: if a value is invalid or the file is not a YAML mapping
    """
    if environ is None:
        environ = os.environ

    if path is None:
        path = Path(environ.get(f"{ENV_PREFIX}CONFIG", DEFAULT_CONFIG_PATH))
    path = Path(path)

    config = GraphConfig()
    values = {}
    source = None

    if path.exists():
        file_values = _read_yaml(path)
        for key, raw in file_values.items():
            if key not in _config_keys():
                raise ConfigError(f"Unknown config key in {path}: {key}")
            values[key] = _coerce(key, raw)
        source = str(path)

    # Environment wins over the file
    from_env = False
    for key in _config_keys():
        raw = environ.get(f"{ENV_PREFIX}{key.upper()}")
        if raw:
            values[key] = _coerce(key, raw)
            from_env = True
    if from_env:
        source = "env" if source is None else f"{source}+env"

    return replace(config, source=source, **values)
