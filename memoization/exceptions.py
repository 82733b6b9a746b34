"""Exception hierarchy for the memoization package.

All exceptions raised by the memoization core itself inherit from
MemoizationError so callers can catch any memoization-related error at a
single point. Errors raised by wrapped computations, and by stores that cannot
hash an argument, are never wrapped: they propagate unchanged.

Exception Hierarchy:
    MemoizationError (base)
    ├── ConfigurationError
    │   ├── InvalidConfigValueError
    │   └── MissingConfigError
    ├── ConstructionError
    └── TypeConformanceError (also a TypeError)

Example:
    >>> try:
    ...     value = fib(10)
    ... except TypeConformanceError as e:
    ...     logger.warning(f"Unexpected result type: {e}")
    ... except MemoizationError as e:
    ...     logger.error(f"Memoization error: {e}")
"""

from __future__ import annotations

from typing import Any


class MemoizationError(Exception):
    """Base exception for all memoization errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional error context.
        cause: Optional original exception that caused this error.

    Example:
        >>> try:
        ...     raise MemoizationError("Something went wrong", details={"key": "value"})
        ... except MemoizationError as e:
        ...     print(f"Error: {e.message}, Details: {e.details}")
    """

    def __init__(
        self,
        message: str,
        *,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error description.
            details: Optional dictionary with additional error context.
            cause: Optional original exception that caused this error.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.cause = cause

    def __str__(self) -> str:
        """Return string representation with details if present."""
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message

    def __repr__(self) -> str:
        """Return detailed representation for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"details={self.details!r}, "
            f"cause={self.cause!r})"
        )

    def with_context(self, **kwargs: Any) -> MemoizationError:
        """Create a new exception with additional context details.

        Args:
            **kwargs: Additional context to add to details.

        Returns:
            New MemoizationError instance with merged details.

        Example:
            >>> e = MemoizationError("Error", details={"key": "value"})
            >>> e.with_context(identity="fib").details
            {'key': 'value', 'identity': 'fib'}
        """
        merged_details = {**self.details, **kwargs}
        return MemoizationError(self.message, details=merged_details, cause=self.cause)


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(MemoizationError):
    """Exception for configuration-related errors.

    Attributes:
        config_key: Optional key that caused the configuration error.
    """

    def __init__(
        self,
        message: str,
        *,
        config_key: str | None = None,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        """Initialize configuration error.

        Args:
            message: Human-readable error description.
            config_key: Optional key that caused the configuration error.
            details: Optional dictionary with additional error context.
            cause: Optional original exception that caused this error.
        """
        details = details or {}
        if config_key:
            details["config_key"] = config_key
        super().__init__(message, details=details, cause=cause)
        self.config_key = config_key


class InvalidConfigValueError(ConfigurationError):
    """Exception for invalid configuration values.

    Attributes:
        config_key: The configuration key with invalid value.
        value: The invalid value that was provided.
        expected: Description of what was expected.
    """

    def __init__(
        self,
        message: str,
        *,
        config_key: str,
        value: Any = None,
        expected: str | None = None,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        """Initialize invalid config value error.

        Args:
            message: Human-readable error description.
            config_key: The configuration key with invalid value.
            value: The invalid value that was provided.
            expected: Description of what was expected.
            details: Optional dictionary with additional error context.
            cause: Optional original exception that caused this error.
        """
        details = details or {}
        details["value"] = value
        if expected:
            details["expected"] = expected
        super().__init__(message, config_key=config_key, details=details, cause=cause)
        self.value = value
        self.expected = expected


class MissingConfigError(ConfigurationError):
    """Exception for missing required configuration."""

    def __init__(
        self,
        config_key: str,
        *,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize missing config error.

        Args:
            config_key: The missing required configuration key.
            details: Optional dictionary with additional error context.
        """
        super().__init__(
            f"Missing required configuration: {config_key}",
            config_key=config_key,
            details=details,
        )


# =============================================================================
# Core Errors
# =============================================================================


class ConstructionError(MemoizationError):
    """Raised when a store kind's factory fails to build a store.

    Surfaced immediately to the caller that asked for the store; the registry
    does not retry and inserts nothing for the failed pair.

    Attributes:
        store_kind: Name of the store kind whose factory failed.
    """

    def __init__(
        self,
        message: str,
        *,
        store_kind: str | None = None,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        """Initialize construction error.

        Args:
            message: Human-readable error description.
            store_kind: Name of the store kind whose factory failed.
            details: Optional dictionary with additional error context.
            cause: Optional original exception raised by the factory.
        """
        details = details or {}
        if store_kind is not None:
            details["store_kind"] = store_kind
        super().__init__(message, details=details, cause=cause)
        self.store_kind = store_kind


class TypeConformanceError(MemoizationError, TypeError):
    """Raised when a memoized result does not match its declared result type.

    The offending entry is left in its store.

    Attributes:
        expected: Tuple of accepted result classes.
        actual: The class of the value that was returned.
        identity: Text form of the callable identity involved.
    """

    def __init__(
        self,
        *,
        expected: tuple[type, ...],
        actual: type,
        identity: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize type conformance error.

        Args:
            expected: Tuple of accepted result classes.
            actual: The class of the value that was returned.
            identity: Text form of the callable identity involved.
            details: Optional dictionary with additional error context.
        """
        expected_names = " | ".join(t.__name__ for t in expected)
        message = f"Memoized result of type {actual.__name__} does not conform to {expected_names}"
        details = details or {}
        details["expected"] = expected_names
        details["actual"] = actual.__name__
        if identity is not None:
            details["identity"] = identity
        super().__init__(message, details=details)
        self.expected = expected
        self.actual = actual
        self.identity = identity
