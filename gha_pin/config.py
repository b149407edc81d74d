"""
Configuration file support for gha-pin.

Looks for a .gha-pin.yml file near the workflows directory and loads
settings that control where workflows live, which files to skip, and how
strict a run should be.

Example .gha-pin.yml:

    # Directory holding the workflow files
    workflows_dir: .github/workflows

    # Workflow files to leave alone (glob patterns)
    exclude:
      - "**/experimental-*.yml"

    # Exit non-zero when any reference can't be resolved
    fail_on_unresolved: true

    # Seconds to wait for each GitHub API request
    timeout: 10

    # Append "# <original ref>" to rewritten lines
    annotate: false
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

from gha_pin.github.client import DEFAULT_API_URL, DEFAULT_TIMEOUT

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILENAME = ".gha-pin.yml"


@dataclass
class Config:
    """Parsed gha-pin configuration."""
    workflows_dir: Optional[str] = None
    exclude: list[str] = field(default_factory=list)
    fail_on_unresolved: bool = True
    timeout: float = DEFAULT_TIMEOUT
    api_url: str = DEFAULT_API_URL
    annotate: bool = False


def load_config(config_path: Optional[str] = None, scan_path: Optional[str] = None) -> Config:
    """
    Load configuration from a .gha-pin.yml file.

    Search order:
      1. Explicit config_path if provided
      2. .gha-pin.yml in the scan_path directory or any of its parents
      3. .gha-pin.yml in the current working directory

    Returns a Config with defaults if no config file is found.
    """
    path = _find_config_file(config_path, scan_path)

    if path is None:
        logger.debug("No config file found, using defaults")
        return Config()

    logger.info("Loading config from %s", path)

    with open(path, "r") as f:
        raw = yaml.safe_load(f)

    if not isinstance(raw, dict):
        logger.warning("Config file is not a YAML mapping, using defaults")
        return Config()

    return Config(
        workflows_dir=raw.get("workflows_dir"),
        exclude=_as_patterns(raw.get("exclude")),
        fail_on_unresolved=bool(raw.get("fail_on_unresolved", True)),
        timeout=_as_float(raw.get("timeout"), DEFAULT_TIMEOUT),
        api_url=raw.get("api_url") or DEFAULT_API_URL,
        annotate=bool(raw.get("annotate", False)),
    )


def _as_float(value: Any, default: float) -> float:
    if value is None:
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        logger.warning("Invalid timeout %r in config, using %s", value, default)
        return default


def _as_patterns(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, list):
        return [str(pattern) for pattern in value]
    logger.warning("Invalid exclude %r in config, expected a list of globs; ignoring", value)
    return []


def _find_config_file(
    config_path: Optional[str] = None,
    scan_path: Optional[str] = None,
) -> Optional[str]:
    """Find the config file, returning its path or None."""
    # 1. Explicit path
    if config_path:
        p = Path(config_path)
        if p.is_file():
            return str(p)
        logger.warning("Config file not found: %s", config_path)
        return None

    # 2. The workflows directory and its parents, then the current directory
    directories: list[Path] = []
    if scan_path:
        start = Path(scan_path).absolute()
        if start.is_file():
            start = start.parent
        directories.extend([start, *start.parents])
    directories.append(Path.cwd())

    for directory in directories:
        candidate = directory / DEFAULT_CONFIG_FILENAME
        if candidate.is_file():
            return str(candidate)
    return None
