"""Generator configuration loader.

Loads generator defaults from defaults.toml and applies per-run
overrides on top of them.
"""

from __future__ import annotations

import tomllib
from pathlib import Path

from pydantic import ValidationError

from hnsynth.errors import ConfigError
from hnsynth.schemas.config import GeneratorConfig

# Default config directory relative to the hnsynth package
_CONFIG_DIR = Path(__file__).parent.parent / "config"


def load_generator_config(config_path: Path | None = None) -> GeneratorConfig:
    """Load generator settings from a TOML file.

    Args:
        config_path: Path to a TOML file with a [generator] section.
                     Defaults to hnsynth/config/defaults.toml.

    Returns:
        GeneratorConfig with values from the TOML file.

    Raises:
        ConfigError: If the file does not exist, is not valid TOML, or
            holds values the schema rejects.
    """
    path = config_path or _CONFIG_DIR / "defaults.toml"
    if not path.exists():
        raise ConfigError(f"Generator config not found: {path}")

    try:
        with open(path, "rb") as f:
            raw = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML in {path}: {e}") from e

    section = raw.get("generator", {})
    if not isinstance(section, dict):
        raise ConfigError(f"[generator] in {path} must be a table")

    try:
        return GeneratorConfig(**section)
    except ValidationError as e:
        raise ConfigError(f"Invalid generator config in {path}: {e}") from e


def apply_overrides(config: GeneratorConfig, **overrides: object) -> GeneratorConfig:
    """Return a validated copy of ``config`` with non-None overrides applied.

    Raises:
        ConfigError: If an override value is rejected by the schema.
    """
    updates = {key: value for key, value in overrides.items() if value is not None}
    if not updates:
        return config
    try:
        return GeneratorConfig(**{**config.model_dump(), **updates})
    except ValidationError as e:
        raise ConfigError(f"Invalid option: {e}") from e
