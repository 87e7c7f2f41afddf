"""wflens configuration management.

Handles:
- .env file loading with precedence: CLI > .env > env vars
- Fetch timeout, timeline width and tree collapse depth
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

DEFAULT_FETCH_TIMEOUT_SECONDS = 30.0
DEFAULT_TIMELINE_WIDTH = 80
DEFAULT_COLLAPSE_DEPTH = 2
DEFAULT_LOG_LEVEL = "WARNING"


@dataclass
class Config:
    """wflens runtime configuration."""

    fetch_timeout_seconds: float = DEFAULT_FETCH_TIMEOUT_SECONDS
    timeline_width: int = DEFAULT_TIMELINE_WIDTH
    collapse_depth: int = DEFAULT_COLLAPSE_DEPTH
    history_dir: Path | None = None
    log_level: str = DEFAULT_LOG_LEVEL
    env_file_path: Path | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "fetch_timeout_seconds": self.fetch_timeout_seconds,
            "timeline_width": self.timeline_width,
            "collapse_depth": self.collapse_depth,
            "history_dir": str(self.history_dir) if self.history_dir else None,
            "log_level": self.log_level,
            "env_file_path": str(self.env_file_path) if self.env_file_path else None,
        }


def parse_env_file(env_file: Path) -> dict[str, str]:
    """Parse a .env file into a dictionary.

    Supports:
    - KEY=value
    - KEY="quoted value"
    - KEY='single quoted'
    - export KEY=value
    - # comments
    - Empty lines
    """
    result: dict[str, str] = {}

    if not env_file.exists():
        return result

    for line in env_file.read_text(encoding="utf-8").splitlines():
        line = line.strip()

        if not line or line.startswith("#"):
            continue

        if line.startswith("export "):
            line = line[7:]

        if "=" not in line:
            continue

        key, _, value = line.partition("=")
        key = key.strip()
        value = value.strip()

        if (value.startswith('"') and value.endswith('"')) or (
            value.startswith("'") and value.endswith("'")
        ):
            value = value[1:-1]

        result[key] = value

    return result


def _find_env_file(start: Path | None = None) -> Path | None:
    """Find .env file by walking up directory tree.

    Stops at git root, home directory, or filesystem root.
    Returns None if not found.
    """
    current = (start or Path.cwd()).resolve()

    try:
        home = Path.home()
    except RuntimeError:
        home = None

    for _ in range(20):  # Max depth
        env_file = current / ".env"
        if env_file.exists():
            return env_file

        if home and current == home:
            break
        if current == current.parent:
            break

        # Stop at git root (but check .env first)
        if (current / ".git").exists():
            break

        current = current.parent

    return None


def _positive_float(value: str, key: str) -> float:
    try:
        parsed = float(value)
    except ValueError as e:
        raise ValueError(f"{key} must be a number, got {value!r}") from e
    if parsed <= 0:
        raise ValueError(f"{key} must be positive, got {value!r}")
    return parsed


def _non_negative_int(value: str, key: str) -> int:
    try:
        parsed = int(value)
    except ValueError as e:
        raise ValueError(f"{key} must be an integer, got {value!r}") from e
    if parsed < 0:
        raise ValueError(f"{key} must not be negative, got {value!r}")
    return parsed


def load_config(
    env_file: str | Path | None = None,
    cli_overrides: dict[str, Any] | None = None,
) -> Config:
    """Load configuration with precedence: CLI > .env > env vars.

    Args:
        env_file: Path to .env file to load (auto-discovered when omitted)
        cli_overrides: Values given on the command line, keyed by Config field

    Returns:
        Loaded Config instance

    Raises:
        ValueError: If a setting has an invalid value
    """
    cli_overrides = {k: v for k, v in (cli_overrides or {}).items() if v is not None}

    env_vars = dict(os.environ)

    env_file_path: Path | None
    if env_file:
        env_file_path = Path(env_file)
    else:
        env_file_path = _find_env_file()
    if env_file_path and env_file_path.exists():
        env_vars.update(parse_env_file(env_file_path))
    else:
        env_file_path = None

    timeout = _positive_float(
        env_vars.get("WFLENS_FETCH_TIMEOUT_SECONDS", str(DEFAULT_FETCH_TIMEOUT_SECONDS)),
        "WFLENS_FETCH_TIMEOUT_SECONDS",
    )
    width = _non_negative_int(
        env_vars.get("WFLENS_TIMELINE_WIDTH", str(DEFAULT_TIMELINE_WIDTH)),
        "WFLENS_TIMELINE_WIDTH",
    )
    collapse_depth = _non_negative_int(
        env_vars.get("WFLENS_COLLAPSE_DEPTH", str(DEFAULT_COLLAPSE_DEPTH)),
        "WFLENS_COLLAPSE_DEPTH",
    )
    history_dir_str = env_vars.get("WFLENS_HISTORY_DIR", "").strip()
    log_level = env_vars.get("WFLENS_LOG_LEVEL", DEFAULT_LOG_LEVEL).strip().upper()

    config = Config(
        fetch_timeout_seconds=timeout,
        timeline_width=width,
        collapse_depth=collapse_depth,
        history_dir=Path(history_dir_str) if history_dir_str else None,
        log_level=log_level or DEFAULT_LOG_LEVEL,
        env_file_path=env_file_path,
    )

    for key, value in cli_overrides.items():
        if not hasattr(config, key):
            raise ValueError(f"Unknown configuration key: {key}")
        setattr(config, key, value)

    return config


# Global config instance (set by CLI)
_config: Config | None = None


def get_config() -> Config:
    """Get the current configuration.

    Raises:
        RuntimeError: If config not initialized (call load_config first)
    """
    if _config is None:
        raise RuntimeError("Config not initialized. Call load_config() first.")
    return _config


def set_config(config: Config) -> None:
    """Set the global configuration."""
    global _config
    _config = config
