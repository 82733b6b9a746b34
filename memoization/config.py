"""Configuration management for the memoization package.

Configuration Precedence (highest to lowest):
    1. Explicit parameters
    2. Environment variables (``MEMOIZATION_*``)
    3. Configuration file (JSON or YAML)
    4. Default values

Example:
    >>> from memoization.config import MemoizationConfig
    >>> config = MemoizationConfig.from_env()
    >>> config.default_store
    'identity'
"""

from __future__ import annotations

import dataclasses
import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Self

from memoization.exceptions import ConfigurationError, InvalidConfigValueError, MissingConfigError


# =============================================================================
# Constants
# =============================================================================

DEFAULT_ENV_PREFIX = "MEMOIZATION"
CONFIG_FILE_NAMES = (
    "memoization.json",
    "memoization.yaml",
    "memoization.yml",
    ".memoization.json",
)
STORE_NAMES = frozenset({"identity", "dict", "lru"})
LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})
LOG_FORMATS = frozenset({"text", "json"})


# =============================================================================
# Environment Variable Utilities
# =============================================================================


class EnvReader:
    """Typed accessors for prefixed environment variables.

    Example:
        >>> reader = EnvReader(prefix="MEMOIZATION")
        >>> size = reader.get_int("LRU_MAX_SIZE", default=1000)
        >>> check = reader.get_bool("CHECK_RESULT_TYPE", default=True)
    """

    def __init__(self, prefix: str = DEFAULT_ENV_PREFIX) -> None:
        """Initialize the environment reader.

        Args:
            prefix: Prefix for environment variable names.
        """
        self.prefix = prefix

    def _make_key(self, name: str) -> str:
        if self.prefix:
            return f"{self.prefix}_{name}"
        return name

    def get(self, name: str, default: str | None = None) -> str | None:
        """Get a string environment variable.

        Args:
            name: Variable name (without prefix).
            default: Default value if not set.

        Returns:
            Environment variable value or default.
        """
        return os.environ.get(self._make_key(name), default)

    def get_required(self, name: str) -> str:
        """Get a required string environment variable.

        Raises:
            MissingConfigError: If variable is not set.
        """
        key = self._make_key(name)
        value = os.environ.get(key)
        if value is None:
            raise MissingConfigError(key)
        return value

    def get_int(self, name: str, default: int | None = None) -> int | None:
        """Get an integer environment variable.

        Args:
            name: Variable name (without prefix).
            default: Default value if not set.

        Returns:
            Parsed integer value or default.

        Raises:
            InvalidConfigValueError: If value cannot be parsed as int.
        """
        value = self.get(name)
        if value is None:
            return default
        try:
            return int(value)
        except ValueError as e:
            raise InvalidConfigValueError(
                f"Invalid integer value for {self._make_key(name)}",
                config_key=self._make_key(name),
                value=value,
                expected="integer",
                cause=e,
            ) from e

    def get_bool(self, name: str, default: bool | None = None) -> bool | None:
        """Get a boolean environment variable.

        Truthy values: "1", "true", "yes", "on" (case-insensitive)
        Falsy values: "0", "false", "no", "off" (case-insensitive)

        Raises:
            InvalidConfigValueError: If value cannot be parsed as bool.
        """
        value = self.get(name)
        if value is None:
            return default
        lower_value = value.lower()
        if lower_value in ("1", "true", "yes", "on"):
            return True
        if lower_value in ("0", "false", "no", "off"):
            return False
        raise InvalidConfigValueError(
            f"Invalid boolean value for {self._make_key(name)}",
            config_key=self._make_key(name),
            value=value,
            expected="boolean (1/0, true/false, yes/no, on/off)",
        )


# =============================================================================
# File Configuration Utilities
# =============================================================================


def _load_yaml(path: Path) -> dict[str, Any]:
    """Load a YAML configuration file.

    Raises:
        ConfigurationError: If PyYAML is missing or parsing fails.
    """
    try:
        import yaml
    except ImportError as e:
        raise ConfigurationError(
            "PyYAML is required for YAML configuration files. "
            "Install with: pip install pyyaml",
            cause=e,
        ) from e

    try:
        with path.open() as f:
            data = yaml.safe_load(f)
            return data if isinstance(data, dict) else {}
    except yaml.YAMLError as e:
        raise ConfigurationError(
            f"Failed to parse YAML configuration: {path}",
            details={"path": str(path)},
            cause=e,
        ) from e


def _load_json(path: Path) -> dict[str, Any]:
    """Load a JSON configuration file.

    Raises:
        ConfigurationError: If JSON parsing fails.
    """
    try:
        with path.open() as f:
            data = json.load(f)
            return data if isinstance(data, dict) else {}
    except json.JSONDecodeError as e:
        raise ConfigurationError(
            f"Failed to parse JSON configuration: {path}",
            details={"path": str(path)},
            cause=e,
        ) from e


def load_config_file(path: Path) -> dict[str, Any]:
    """Load configuration from a file (JSON or YAML).

    Args:
        path: Path to configuration file.

    Returns:
        Parsed configuration dictionary.

    Raises:
        ConfigurationError: If file cannot be loaded.
    """
    if not path.exists():
        raise ConfigurationError(
            f"Configuration file not found: {path}",
            details={"path": str(path)},
        )

    suffix = path.suffix.lower()
    if suffix in (".yaml", ".yml"):
        return _load_yaml(path)
    if suffix == ".json":
        return _load_json(path)
    raise ConfigurationError(
        f"Unsupported configuration file format: {suffix}",
        details={"path": str(path), "suffix": suffix},
    )


def find_config_file(
    start_dir: Path | None = None,
    max_depth: int = 5,
) -> Path | None:
    """Find a configuration file by searching up the directory tree.

    Args:
        start_dir: Directory to start search from (default: cwd).
        max_depth: Maximum directories to traverse up.

    Returns:
        Path to configuration file if found, None otherwise.
    """
    current = start_dir or Path.cwd()
    for _ in range(max_depth):
        for name in CONFIG_FILE_NAMES:
            config_path = current / name
            if config_path.is_file():
                return config_path
        parent = current.parent
        if parent == current:
            break
        current = parent
    return None


# =============================================================================
# Main Configuration Class
# =============================================================================


@dataclass(frozen=True, slots=True)
class MemoizationConfig:
    """Configuration for a memoization runtime.

    Attributes:
        log_level: Logging level applied by ``apply_logging``.
        log_format: Log output format ('text' or 'json').
        default_store: Store used when a memoized definition names none
            ('identity', 'dict' or 'lru').
        lru_max_size: Capacity of the 'lru' default store.
        check_result_type: Check results against the declared result type.
        invalidate_on_redefine: Clear a top-level function's stores when it
            is decorated again.
        log_cache_events: Attach a logging hook to hits, misses and stores.
        collect_metrics: Attach a metrics hook to the runtime.
        extra: Additional configuration.

    Example:
        >>> config = MemoizationConfig(default_store="lru", lru_max_size=128)
        >>> config.with_overrides(collect_metrics=True).collect_metrics
        True
    """

    log_level: str = "INFO"
    log_format: str = "text"
    default_store: str = "identity"
    lru_max_size: int = 1000
    check_result_type: bool = True
    invalidate_on_redefine: bool = True
    log_cache_events: bool = False
    collect_metrics: bool = False
    extra: dict[str, Any] = field(default_factory=dict)

    def with_overrides(self, **kwargs: Any) -> MemoizationConfig:
        """Create a new config with the given fields replaced.

        Args:
            **kwargs: Field values to replace.

        Returns:
            New MemoizationConfig.
        """
        return dataclasses.replace(self, **kwargs)

    def apply_logging(self) -> None:
        """Configure package logging from ``log_level`` and ``log_format``."""
        from memoization.logging import configure_logging

        configure_logging(level=self.log_level, format=self.log_format)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "log_level": self.log_level,
            "log_format": self.log_format,
            "default_store": self.default_store,
            "lru_max_size": self.lru_max_size,
            "check_result_type": self.check_result_type,
            "invalidate_on_redefine": self.invalidate_on_redefine,
            "log_cache_events": self.log_cache_events,
            "collect_metrics": self.collect_metrics,
            "extra": self.extra,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        """Create a MemoizationConfig from a dictionary.

        Args:
            data: Dictionary containing configuration.

        Returns:
            New MemoizationConfig instance.
        """
        return cls(
            log_level=data.get("log_level", "INFO"),
            log_format=data.get("log_format", "text"),
            default_store=data.get("default_store", "identity"),
            lru_max_size=data.get("lru_max_size", 1000),
            check_result_type=data.get("check_result_type", True),
            invalidate_on_redefine=data.get("invalidate_on_redefine", True),
            log_cache_events=data.get("log_cache_events", False),
            collect_metrics=data.get("collect_metrics", False),
            extra=data.get("extra", {}),
        )

    @classmethod
    def from_env(
        cls,
        prefix: str = DEFAULT_ENV_PREFIX,
        base: MemoizationConfig | None = None,
    ) -> Self:
        """Create configuration from environment variables.

        Environment Variables:
            {PREFIX}_LOG_LEVEL: Logging level (string)
            {PREFIX}_LOG_FORMAT: 'text' or 'json'
            {PREFIX}_DEFAULT_STORE: 'identity', 'dict' or 'lru'
            {PREFIX}_LRU_MAX_SIZE: Capacity of the 'lru' store (int)
            {PREFIX}_CHECK_RESULT_TYPE: Result type checks (bool)
            {PREFIX}_INVALIDATE_ON_REDEFINE: Redefinition invalidation (bool)
            {PREFIX}_LOG_CACHE_EVENTS: Logging hook (bool)
            {PREFIX}_COLLECT_METRICS: Metrics hook (bool)

        Args:
            prefix: Environment variable prefix.
            base: Values used for variables that are not set.

        Returns:
            New MemoizationConfig instance.
        """
        env = EnvReader(prefix)
        base = base or cls()
        return cls(
            log_level=env.get("LOG_LEVEL", base.log_level) or base.log_level,
            log_format=env.get("LOG_FORMAT", base.log_format) or base.log_format,
            default_store=env.get("DEFAULT_STORE", base.default_store) or base.default_store,
            lru_max_size=env.get_int("LRU_MAX_SIZE", base.lru_max_size) or base.lru_max_size,
            check_result_type=bool(env.get_bool("CHECK_RESULT_TYPE", base.check_result_type)),
            invalidate_on_redefine=bool(
                env.get_bool("INVALIDATE_ON_REDEFINE", base.invalidate_on_redefine)
            ),
            log_cache_events=bool(env.get_bool("LOG_CACHE_EVENTS", base.log_cache_events)),
            collect_metrics=bool(env.get_bool("COLLECT_METRICS", base.collect_metrics)),
            extra=dict(base.extra),
        )

    @classmethod
    def from_file(cls, path: Path | str) -> Self:
        """Create configuration from a JSON or YAML file.

        The file may hold the settings at top level or under a
        ``memoization`` section.

        Raises:
            ConfigurationError: If the file cannot be loaded.
        """
        data = load_config_file(Path(path))
        section = data.get("memoization", data)
        if not isinstance(section, dict):
            raise ConfigurationError(
                "The 'memoization' section must be a mapping",
                details={"path": str(path)},
            )
        return cls.from_dict(section)

    @classmethod
    def load(
        cls,
        path: Path | str | None = None,
        prefix: str = DEFAULT_ENV_PREFIX,
        **overrides: Any,
    ) -> Self:
        """Load configuration honouring the full precedence order.

        Args:
            path: Explicit configuration file (searched for when omitted).
            prefix: Environment variable prefix.
            **overrides: Explicit values, highest precedence.

        Returns:
            New MemoizationConfig instance.
        """
        config_path = Path(path) if path is not None else find_config_file()
        base = cls.from_file(config_path) if config_path is not None else cls()
        config = cls.from_env(prefix, base=base)
        if overrides:
            config = dataclasses.replace(config, **overrides)
        return config


# =============================================================================
# Validation Utilities
# =============================================================================


def validate_config(config: MemoizationConfig) -> list[str]:
    """Validate configuration and return list of issues.

    Args:
        config: Configuration to validate.

    Returns:
        List of validation issue messages (empty if valid).
    """
    issues: list[str] = []

    if config.log_level.upper() not in LOG_LEVELS:
        issues.append(
            f"Invalid log_level: {config.log_level}. "
            f"Must be one of: {', '.join(sorted(LOG_LEVELS))}"
        )

    if config.log_format not in LOG_FORMATS:
        issues.append(
            f"Invalid log_format: {config.log_format}. "
            f"Must be one of: {', '.join(sorted(LOG_FORMATS))}"
        )

    if config.default_store not in STORE_NAMES:
        issues.append(
            f"Invalid default_store: {config.default_store}. "
            f"Must be one of: {', '.join(sorted(STORE_NAMES))}"
        )

    if config.lru_max_size < 1:
        issues.append(f"Invalid lru_max_size: {config.lru_max_size}. Must be at least 1.")

    return issues


def require_valid_config(config: MemoizationConfig) -> None:
    """Validate configuration and raise if invalid.

    Raises:
        ConfigurationError: If configuration is invalid.
    """
    issues = validate_config(config)
    if issues:
        raise ConfigurationError(
            "Invalid configuration",
            details={"issues": issues},
        )
