"""Configuration loader for tombo.

Handles discovery, loading, parsing and validation of configuration.
Supports two formats:

- ``tombo.toml``: settings under a ``[tombo]`` table
- ``pyproject.toml``: settings under a ``[tool.tombo]`` table

Discovery order:

1. Explicit path from ``--config`` or ``TOMBO_CONFIG``
2. ``tombo.toml`` in the current directory
3. ``pyproject.toml`` with a ``[tool.tombo]`` table

Unknown keys and wrong types are hard errors (:class:`ConfigError`).
Numeric values outside their supported range are not: they are clamped
to the nearest bound and reported as :class:`ConfigIssue` warnings, so a
typo never stops completion from working.

Example (``tombo.toml``)::

    [tombo]
    pypi_index_url = "https://pypi.example.com/pypi"
    list_pre_releases = true
    request_timeout = 5000
"""

from __future__ import annotations

import tomli as tomllib
from pathlib import Path
from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, List, Optional, Tuple

from tombo.exceptions import ConfigError
from tombo.utils.logger import get_logger
from tombo.utils.http import is_valid_index_url, normalize_index_url
from tombo.constants import (
    CACHE_TIMEOUT_RANGE,
    DEFAULT_CACHE_CHECK_PERIOD,
    DEFAULT_CACHE_TIMEOUT_MINUTES,
    DEFAULT_MAX_CACHE_SIZE,
    DEFAULT_PYPI_URL,
    DEFAULT_REQUEST_TIMEOUT_MS,
    DEFAULT_RETRY_ATTEMPTS,
    DEFAULT_RETRY_DELAY_MS,
    MAX_CACHE_SIZE_RANGE,
    REQUEST_TIMEOUT_RANGE,
    RETRY_ATTEMPTS_RANGE,
)

logger = get_logger("config")

#: Settings whose change requires rebuilding the HTTP client or cache.
SIGNIFICANT_FIELDS: Tuple[str, ...] = (
    "pypi_index_url",
    "request_timeout",
    "cache_timeout_minutes",
    "max_cache_size",
    "retry_attempts",
    "retry_delay",
)

_RANGES: Dict[str, Tuple[int, int]] = {
    "request_timeout": REQUEST_TIMEOUT_RANGE,
    "cache_timeout_minutes": CACHE_TIMEOUT_RANGE,
    "max_cache_size": MAX_CACHE_SIZE_RANGE,
    "retry_attempts": RETRY_ATTEMPTS_RANGE,
}


@dataclass
class TomboConfig:
    """Parsed tombo configuration.

    Attributes:
        pypi_index_url: Root of the PyPI JSON API (``<url>/<name>/json``).
        list_pre_releases: Offer pre-release versions by default.
        request_timeout: Per-request timeout in milliseconds.
        cache_timeout_minutes: Metadata freshness window.
        max_cache_size: Cache capacity in entries.
        retry_attempts: Attempts per request, first try included.
        retry_delay: Base retry backoff in milliseconds.
        cache_check_period: Seconds between background expiry sweeps.
        source_path: File the values came from, or ``None`` for defaults.
    """

    pypi_index_url: str = DEFAULT_PYPI_URL
    list_pre_releases: bool = False
    request_timeout: int = DEFAULT_REQUEST_TIMEOUT_MS
    cache_timeout_minutes: int = DEFAULT_CACHE_TIMEOUT_MINUTES
    max_cache_size: int = DEFAULT_MAX_CACHE_SIZE
    retry_attempts: int = DEFAULT_RETRY_ATTEMPTS
    retry_delay: int = DEFAULT_RETRY_DELAY_MS
    cache_check_period: int = DEFAULT_CACHE_CHECK_PERIOD

    # Metadata (not a user-facing option)
    source_path: Optional[Path] = field(default=None, repr=False, compare=False)

    def to_log_dict(self) -> Dict[str, Any]:
        """Return the options as a dictionary for debug logging."""
        return {f.name: getattr(self, f.name) for f in fields(self) if f.name != "source_path"}


@dataclass(frozen=True)
class ConfigIssue:
    """A non-fatal configuration problem that was corrected."""

    option: str
    message: str


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def validate_config(config: TomboConfig) -> Tuple[TomboConfig, List[ConfigIssue]]:
    """Clamp out-of-range values and normalise the index URL.

    Returns:
        The corrected configuration (a new object) and one
        :class:`ConfigIssue` per correction.
    """
    issues: List[ConfigIssue] = []
    changes: Dict[str, Any] = {}

    url = normalize_index_url(config.pypi_index_url)
    if url != config.pypi_index_url:
        if not is_valid_index_url(config.pypi_index_url):
            issues.append(
                ConfigIssue(
                    "pypi_index_url",
                    f"Invalid index URL {config.pypi_index_url!r}; using {DEFAULT_PYPI_URL}",
                )
            )
        changes["pypi_index_url"] = url

    for option, (low, high) in _RANGES.items():
        value = getattr(config, option)
        clamped = min(max(value, low), high)
        if clamped != value:
            issues.append(
                ConfigIssue(option, f"{option}={value} is outside {low}..{high}; using {clamped}")
            )
            changes[option] = clamped

    for issue in issues:
        logger.warning("Configuration: %s", issue.message)

    return (replace(config, **changes) if changes else config), issues


def has_significant_change(old: TomboConfig, new: TomboConfig) -> bool:
    """Return True if ``new`` requires rebuilding the client or cache."""
    return any(getattr(old, name) != getattr(new, name) for name in SIGNIFICANT_FIELDS)


# ---------------------------------------------------------------------------
# Discovery and loading
# ---------------------------------------------------------------------------


def discover_config_file(explicit_path: Optional[Path] = None) -> Optional[Path]:
    """Find the configuration file to load.

    Raises:
        ConfigError: ``explicit_path`` was given but does not exist.
    """
    if explicit_path is not None:
        resolved = explicit_path.resolve()
        if not resolved.is_file():
            raise ConfigError(
                f"Configuration file not found: {explicit_path}",
                config_path=str(explicit_path),
            )
        logger.debug("Using explicit config: %s", resolved)
        return resolved

    cwd = Path.cwd()

    tombo_toml = cwd / "tombo.toml"
    if tombo_toml.is_file():
        logger.debug("Found tombo.toml: %s", tombo_toml)
        return tombo_toml

    pyproject_toml = cwd / "pyproject.toml"
    if pyproject_toml.is_file() and _pyproject_has_tombo_section(pyproject_toml):
        logger.debug("Found [tool.tombo] in pyproject.toml: %s", pyproject_toml)
        return pyproject_toml

    logger.debug("No configuration file found")
    return None


def _pyproject_has_tombo_section(path: Path) -> bool:
    try:
        raw = _read_toml(path)
    except ConfigError:
        return False
    tool = raw.get("tool", {})
    return isinstance(tool, dict) and "tombo" in tool


def load_config(config_path: Optional[Path] = None) -> TomboConfig:
    """Load tombo configuration, falling back to defaults.

    The result is not range-checked; pass it through
    :func:`validate_config` before use.

    Raises:
        ConfigError: Unreadable file, invalid TOML, unknown keys or wrong types.
    """
    resolved = discover_config_file(config_path)

    if resolved is None:
        return TomboConfig()

    logger.info("Loading configuration from %s", resolved)
    raw = _read_toml(resolved)

    if resolved.name == "pyproject.toml":
        section = raw.get("tool", {}).get("tombo", {})
    else:
        section = raw.get("tombo", {})

    if not isinstance(section, dict):
        raise ConfigError("The tombo configuration must be a table", config_path=str(resolved))

    config = _parse_section(section, config_path=str(resolved))
    config.source_path = resolved

    logger.debug("Loaded configuration: %s", config.to_log_dict())
    return config


def _read_toml(path: Path) -> Dict[str, Any]:
    try:
        with open(path, "rb") as fh:
            return tomllib.load(fh)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(
            f"Invalid TOML in {path.name}: {exc}",
            config_path=str(path),
        ) from exc
    except OSError as exc:
        raise ConfigError(
            f"Cannot read configuration file {path}: {exc}",
            config_path=str(path),
        ) from exc


def _parse_section(section: Dict[str, Any], *, config_path: str) -> TomboConfig:
    """Build a :class:`TomboConfig` from a ``[tombo]`` table.

    Raises:
        ConfigError: Unknown keys, or a value of the wrong type.
    """
    config = TomboConfig()
    known = {f.name for f in fields(TomboConfig) if f.name != "source_path"}

    unknown = set(section) - known
    if unknown:
        raise ConfigError(
            f"Unknown configuration keys: {', '.join(sorted(unknown))}",
            config_path=config_path,
        )

    for option, value in section.items():
        wanted = getattr(config, option)
        if isinstance(wanted, bool):
            ok = isinstance(value, bool)
            type_name = "a boolean"
        elif isinstance(wanted, int):
            ok = isinstance(value, int) and not isinstance(value, bool)
            type_name = "an integer"
        else:
            ok = isinstance(value, str)
            type_name = "a string"

        if not ok:
            raise ConfigError(
                f"{option} must be {type_name}, got {type(value).__name__}",
                config_path=config_path,
                option=option,
            )
        setattr(config, option, value)

    return config
