"""API credential loading for HN Synth.

Credentials are read from the environment. Before reading, keys are
loaded into os.environ with this priority:
  1. Environment variables (highest, already set in shell)
  2. ~/.hnsynth/keys.env
  3. .env in current directory (project-level)

Missing credentials are passed through as None rather than failing fast;
the backend reports the authentication error if one is actually needed.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import NamedTuple

from hnsynth.schemas.config import GeneratorConfig

logger = logging.getLogger(__name__)

# Directory for user-level configuration
HNSYNTH_HOME = Path.home() / ".hnsynth"
KEYS_FILE = HNSYNTH_HOME / "keys.env"


class Credentials(NamedTuple):
    """Authentication values for the completion backend."""

    api_key: str | None
    organization: str | None


def load_keys_env() -> None:
    """Load keys from ~/.hnsynth/keys.env and .env into os.environ.

    Existing env vars are NOT overwritten.
    """
    files = [KEYS_FILE, Path.cwd() / ".env"]
    for env_file in files:
        if env_file.is_file():
            _load_env_file(env_file)


def _load_env_file(path: Path) -> None:
    """Parse a simple KEY=VALUE .env file and set vars that aren't already set."""
    try:
        for line in path.read_text(encoding="utf-8").splitlines():
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            if line.startswith("export "):
                line = line[len("export "):].lstrip()
            if "=" not in line:
                continue
            key, _, value = line.partition("=")
            key = key.strip()
            value = value.strip().strip("'\"")
            if key and not os.environ.get(key):
                os.environ[key] = value
                logger.debug("Loaded %s from %s", key, path)
    except OSError:
        logger.debug("Could not read %s", path)


def get_credentials(config: GeneratorConfig) -> Credentials:
    """Resolve the API key and organization id named by ``config``."""
    api_key = os.environ.get(config.api_key_env) or None
    if api_key is None:
        logger.info(
            "%s is not set; %s will be called without an explicit API key",
            config.api_key_env, config.model,
        )
    return Credentials(
        api_key=api_key,
        organization=os.environ.get(config.org_id_env) or None,
    )
