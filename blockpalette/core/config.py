"""Configuration management for blockpalette.

Loads configuration from environment variables and .env file.
Provides validation and sensible defaults.

Usage:
    from blockpalette.core.config import get_config, validate_config

    config = get_config()
    issues = validate_config(config)
    if issues:
        for issue in issues:
            print(f"Config issue: {issue}")
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from blockpalette.core.exceptions import ConfigurationError


# Hard limits: configuration can lower these, never raise them
MAX_RESULTS_LIMIT = 80
HISTORY_SIZE_LIMIT = 10

# Default values (defined once, used by both PaletteConfig and load_config)
DEFAULT_MAX_RESULTS = MAX_RESULTS_LIMIT
DEFAULT_HISTORY_SIZE = HISTORY_SIZE_LIMIT
DEFAULT_PICK_TIMEOUT_SECONDS = 5.0


@dataclass
class PaletteConfig:
    """Palette configuration.

    Attributes:
        max_results: Upper bound on the length of an evaluated result list
            (clamped to MAX_RESULTS_LIMIT)
        history_size: Number of recently executed candidates remembered
            (clamped to HISTORY_SIZE_LIMIT)
        pick_timeout_seconds: How long an interactive block pick waits
        log_path: Directory for the rotating JSON log; None logs to console only
        strict_ids: Raise on duplicate candidate ids instead of disambiguating
        debug: Console logging at DEBUG instead of INFO
    """

    max_results: int = DEFAULT_MAX_RESULTS
    history_size: int = DEFAULT_HISTORY_SIZE
    pick_timeout_seconds: float = DEFAULT_PICK_TIMEOUT_SECONDS
    log_path: Optional[Path] = None
    strict_ids: bool = False
    debug: bool = False

    @property
    def result_limit(self) -> int:
        """Effective result cap."""
        return max(0, min(self.max_results, MAX_RESULTS_LIMIT))

    @property
    def history_limit(self) -> int:
        """Effective history capacity."""
        return max(1, min(self.history_size, HISTORY_SIZE_LIMIT))


def load_env_file(path: Path) -> dict[str, str]:
    """Parse .env file.

    Handles:
        - KEY=VALUE format
        - Comments (lines starting with #)
        - Blank lines
        - Quoted values

    Args:
        path: Path to .env file

    Returns:
        Dictionary of environment variables
    """
    env_vars: dict[str, str] = {}

    if not path.exists():
        return env_vars

    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()

            if not line or line.startswith("#"):
                continue

            if "=" in line:
                key, _, value = line.partition("=")
                key = key.strip()
                value = value.strip()

                if value and value[0] in ('"', "'") and value[-1] == value[0]:
                    value = value[1:-1]

                if key:
                    env_vars[key] = value

    return env_vars


def _get_raw(key: str, env_vars: dict[str, str]) -> Optional[str]:
    return os.environ.get(key) or env_vars.get(key) or None


def _get_path(key: str, env_vars: dict[str, str]) -> Optional[Path]:
    """Get optional path from environment, expanding ~ and resolving."""
    value = _get_raw(key, env_vars)
    if value:
        return Path(value).expanduser().resolve()
    return None


def _get_int(key: str, default: int, env_vars: dict[str, str]) -> int:
    """Get integer from environment.

    Raises:
        ConfigurationError: If the value is not an integer
    """
    value = _get_raw(key, env_vars)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError as e:
        raise ConfigurationError(f"{key} must be an integer, got {value!r}") from e


def _get_float(key: str, default: float, env_vars: dict[str, str]) -> float:
    """Get float from environment.

    Raises:
        ConfigurationError: If the value is not a number
    """
    value = _get_raw(key, env_vars)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError as e:
        raise ConfigurationError(f"{key} must be a number, got {value!r}") from e


def _get_bool(key: str, default: bool, env_vars: dict[str, str]) -> bool:
    """Get boolean from environment."""
    value = _get_raw(key, env_vars)
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


def load_config(env_file: Optional[Path] = None) -> PaletteConfig:
    """Load configuration from environment and .env file.

    Priority:
        1. Environment variables (highest)
        2. .env file
        3. Default values (lowest)

    Args:
        env_file: Path to .env file. Defaults to .env in current directory.

    Returns:
        Loaded configuration

    Raises:
        ConfigurationError: If a numeric setting cannot be parsed
    """
    if env_file is None:
        env_file = Path.cwd() / ".env"

    env_vars = load_env_file(Path(env_file))

    return PaletteConfig(
        max_results=_get_int("BLOCKPALETTE_MAX_RESULTS", DEFAULT_MAX_RESULTS, env_vars),
        history_size=_get_int("BLOCKPALETTE_HISTORY_SIZE", DEFAULT_HISTORY_SIZE, env_vars),
        pick_timeout_seconds=_get_float(
            "BLOCKPALETTE_PICK_TIMEOUT", DEFAULT_PICK_TIMEOUT_SECONDS, env_vars
        ),
        log_path=_get_path("BLOCKPALETTE_LOG_PATH", env_vars),
        strict_ids=_get_bool("BLOCKPALETTE_STRICT_IDS", False, env_vars),
        debug=_get_bool("BLOCKPALETTE_DEBUG", False, env_vars),
    )


def validate_config(config: PaletteConfig) -> list[str]:
    """Validate configuration.

    Checks:
        - Result and history bounds are positive and within the hard limits
        - Pick timeout is positive
        - Log path, if set, is a writable directory (or does not exist yet)

    Validation reads the filesystem but never creates anything.

    Args:
        config: Configuration to validate

    Returns:
        List of issues (empty if valid)
    """
    issues: list[str] = []

    if config.max_results < 1:
        issues.append(f"CRITICAL: max_results must be at least 1, got {config.max_results}")
    elif config.max_results > MAX_RESULTS_LIMIT:
        issues.append(
            f"max_results ({config.max_results}) exceeds the limit of "
            f"{MAX_RESULTS_LIMIT}; results are capped at {MAX_RESULTS_LIMIT}"
        )

    if config.history_size < 1:
        issues.append(f"CRITICAL: history_size must be at least 1, got {config.history_size}")
    elif config.history_size > HISTORY_SIZE_LIMIT:
        issues.append(
            f"history_size ({config.history_size}) exceeds the limit of "
            f"{HISTORY_SIZE_LIMIT}; history keeps {HISTORY_SIZE_LIMIT} entries"
        )
    elif config.history_size > config.max_results:
        issues.append(
            f"history_size ({config.history_size}) exceeds max_results "
            f"({config.max_results}); older recent entries will never be shown"
        )

    if config.pick_timeout_seconds <= 0:
        issues.append(
            f"CRITICAL: pick_timeout_seconds must be positive, got {config.pick_timeout_seconds}"
        )

    log_path = config.log_path
    if log_path is not None and log_path.exists():
        if not log_path.is_dir():
            issues.append(f"Log path is not a directory: {log_path}")
        elif not os.access(log_path, os.W_OK):
            issues.append(f"Log directory not writable: {log_path}")

    return issues


# Singleton config
_config: Optional[PaletteConfig] = None


def get_config() -> PaletteConfig:
    """Return cached configuration singleton.

    Loads configuration on first call, returns cached version thereafter.

    Returns:
        Palette configuration
    """
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reset_config() -> None:
    """Reset cached configuration.

    Used primarily for testing.
    """
    global _config
    _config = None
