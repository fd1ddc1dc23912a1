"""
YAML configuration discovery and loading.

Finds the config file by convention, expands ``${VAR}`` references, and
writes the starter file for ``greader-sync init``.

Usage:
    from greader_sync.config_loader import load_hierarchical_config

    raw = load_hierarchical_config()
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

APP_DIR_NAME = "greader_sync"

# ${VAR} and ${VAR:-default}
_ENV_REF = re.compile(r"\$\{([^}:]+?)(?::-(.*?))?\}")


def interpolate_env_vars(value: str) -> str:
    """Expand ``${VAR}`` and ``${VAR:-default}`` in *value*.

    An unset or empty variable without a default expands to ``""``.
    """

    def _expand(match: re.Match) -> str:
        name, default = match.group(1), match.group(2)
        current = os.environ.get(name)
        if current:
            return current
        return default if default is not None else ""

    return _ENV_REF.sub(_expand, value)


def _interpolate_tree(node: Any) -> Any:
    match node:
        case str():
            return interpolate_env_vars(node)
        case dict():
            return {key: _interpolate_tree(val) for key, val in node.items()}
        case list():
            return [_interpolate_tree(item) for item in node]
        case _:
            return node


# ---------------------------------------------------------------------------
# Locations
# ---------------------------------------------------------------------------


def xdg_config_home() -> Path:
    raw = os.environ.get("XDG_CONFIG_HOME")
    return Path(raw) if raw else Path.home() / ".config"


def xdg_state_home() -> Path:
    raw = os.environ.get("XDG_STATE_HOME")
    return Path(raw) if raw else Path.home() / ".local" / "state"


def state_file(name: str) -> Path:
    """Return the path of *name* inside the application state directory."""
    return xdg_state_home() / APP_DIR_NAME / name


def default_config_path() -> Path:
    return xdg_config_home() / APP_DIR_NAME / "config.yml"


def discover_config_files() -> list[Path]:
    """Return existing config file paths in precedence order (highest first).

    Search order:
        1. ``GREADER_SYNC_CONFIG`` env var (explicit single path)
        2. ``.greader_sync/config.yml`` in CWD (project-level)
        3. ``$XDG_CONFIG_HOME/greader_sync/config.yml`` (user-level)
    """
    candidates: list[Path] = []

    explicit = os.environ.get("GREADER_SYNC_CONFIG")
    if explicit:
        candidates.append(Path(explicit).expanduser().resolve())
    candidates.append(Path.cwd() / f".{APP_DIR_NAME}" / "config.yml")
    candidates.append(default_config_path())

    return [p for p in candidates if p.exists()]


# ---------------------------------------------------------------------------
# Bootstrapping
# ---------------------------------------------------------------------------

STARTER_CONFIG = """\
# greader-sync configuration
#
# Connection settings can also be set via environment variables:
#   GREADER_URL, GREADER_USERNAME, GREADER_PASSWORD, GREADER_INSECURE
#
# password accepts a literal value, "$env:NAME" to read an environment
# variable, or "file:PATH" to read it from a file ("./" is relative to
# this file).

server:
  url: https://freshrss.example.com/api/greader.php
  username: ""
  password: "$env:GREADER_PASSWORD"
  # insecure: false
  # timeout: 20

# sync:
#   page_size: 1000
#   db_path: null

# worker:
#   interval: 5
#   batch_size: 10

# logging:
#   level: INFO
#   file: null
"""


def init_config(target: Path | None = None) -> Path:
    """Write the starter config file.

    Args:
        target: Where to write it. Defaults to ``default_config_path()``.

    Returns:
        The path that was written.

    Raises:
        FileExistsError: If the target already exists.
    """
    config_path = target or default_config_path()
    if config_path.exists():
        raise FileExistsError(f"config already exists: {config_path}")

    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(STARTER_CONFIG, encoding="utf-8")
    logger.info("Created starter config: %s", config_path)
    return config_path


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


def load_config_file(path: Path) -> dict[str, Any]:
    """Load one YAML file and interpolate env vars.

    Returns an empty dict for an empty file.

    Raises:
        ValueError: If the document root is not a mapping.
    """
    with open(path, "r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh)

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(
            f"Config file {path} must contain a mapping, got {type(data).__name__}"
        )
    return _interpolate_tree(data)


def load_hierarchical_config(
    explicit: Path | None = None,
) -> tuple[dict[str, Any], Path | None]:
    """Load the active config file.

    Files are merged from lowest precedence to highest; top-level sections
    of a higher-precedence file replace the same sections of lower ones.
    An *explicit* path (``--config``) is used on its own.

    Returns:
        ``(raw_dict, path_of_highest_precedence_file)``; ``({}, None)`` when
        no file exists (zero-config).
    """
    if explicit is not None:
        if not explicit.exists():
            raise FileNotFoundError(f"Config file not found: {explicit}")
        return load_config_file(explicit), explicit

    paths = discover_config_files()
    if not paths:
        logger.debug("No config files found, using defaults")
        return {}, None

    merged: dict[str, Any] = {}
    for path in reversed(paths):
        logger.debug("Loading config: %s", path)
        merged.update(load_config_file(path))

    return merged, paths[0]
