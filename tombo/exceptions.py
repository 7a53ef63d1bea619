"""
Custom exception hierarchy for tombo.

All exceptions inherit from :class:`TomboError` and carry optional
structured metadata in ``details`` for logging and diagnostics.

PyPI failures form a closed taxonomy under :class:`PyPIError`. Each
subclass declares a stable ``code`` and whether retrying can help::

    PyPIError
    ├── NetworkError            NETWORK_ERROR      retryable
    │   └── RequestTimeoutError TIMEOUT            retryable
    ├── PackageNotFoundError    PACKAGE_NOT_FOUND  never retried
    ├── RateLimitError          RATE_LIMITED       retried only with Retry-After
    └── InvalidResponseError    INVALID_RESPONSE   never retried
"""

from __future__ import annotations

from typing import Any, ClassVar, Mapping, MutableMapping, Optional


class TomboError(Exception):
    """Base exception for all tombo errors.

    Args:
        message: Human-readable error message.
        details: Optional structured metadata describing the error.
    """

    __slots__ = ("message", "details")

    def __init__(
        self,
        message: str,
        details: Optional[Mapping[str, Any]] = None,
    ) -> None:
        self.message: str = message
        self.details: MutableMapping[str, Any] = dict(details) if details else {}
        super().__init__(message)

    def __str__(self) -> str:
        if not self.details:
            return self.message
        formatted = ", ".join(f"{k}={v}" for k, v in self.details.items())
        return f"{self.message} ({formatted})"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, details={dict(self.details)!r})"
        )


def _add_if(details: MutableMapping[str, Any], key: str, value: Any) -> None:
    """Add a key to ``details`` only if ``value`` is not ``None``."""
    if value is not None:
        details[key] = value


def _truncate(text: str, max_length: int = 200) -> str:
    """Truncate long text for safe logging or error reporting."""
    if len(text) <= max_length:
        return text
    return text[:max_length] + "..."


# ---------------------------------------------------------------------------
# PyPI / transport errors
# ---------------------------------------------------------------------------


class PyPIError(TomboError):
    """Base class for every failure talking to a PyPI-compatible index.

    Args:
        message: Error description.
        package_name: Package the request was about, if known.
        url: URL being accessed.
        status_code: HTTP status code, if a response was received.
        response_body: Raw response body, truncated in ``details``.
        retry_after: Server-suggested wait in seconds (rate limits only).
    """

    __slots__ = ("package_name", "url", "status_code", "response_body", "retry_after")

    code: ClassVar[str] = "UNKNOWN_ERROR"

    def __init__(
        self,
        message: str,
        *,
        package_name: Optional[str] = None,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        retry_after: Optional[float] = None,
    ) -> None:
        details: MutableMapping[str, Any] = {"code": self.code}
        _add_if(details, "package", package_name)
        _add_if(details, "url", url)
        _add_if(details, "status_code", status_code)
        _add_if(details, "retry_after", retry_after)

        if response_body is not None:
            details["response"] = _truncate(response_body)

        super().__init__(message, details)

        self.package_name = package_name
        self.url = url
        self.status_code = status_code
        self.response_body = response_body
        self.retry_after = retry_after

    @property
    def retryable(self) -> bool:
        """Whether repeating the same request could succeed."""
        return False

    def with_package(self, package_name: str) -> "PyPIError":
        """Return this error tagged with ``package_name``.

        An error that already names a package is returned as is. Otherwise
        a copy of the same type is returned, so an error shared between
        several waiters is never modified.
        """
        if self.package_name is not None:
            return self
        tagged = type(self)(
            self.message,
            package_name=package_name,
            url=self.url,
            status_code=self.status_code,
            response_body=self.response_body,
            retry_after=self.retry_after,
        )
        tagged.__cause__ = self.__cause__
        return tagged


class NetworkError(PyPIError):
    """DNS or connection failure, 5xx, or any unclassified HTTP failure."""

    __slots__ = ()

    code: ClassVar[str] = "NETWORK_ERROR"

    @property
    def retryable(self) -> bool:
        return True


class RequestTimeoutError(NetworkError):
    """The request exceeded the configured timeout.

    Subclasses :class:`NetworkError` so a final timeout surfaces to callers
    as a network-class failure.
    """

    __slots__ = ()

    code: ClassVar[str] = "TIMEOUT"


class PackageNotFoundError(PyPIError):
    """The index answered 404 for the package."""

    __slots__ = ()

    code: ClassVar[str] = "PACKAGE_NOT_FOUND"


class RateLimitError(PyPIError):
    """The index answered 429.

    Only retried when the server said how long to wait.
    """

    __slots__ = ()

    code: ClassVar[str] = "RATE_LIMITED"

    @property
    def retryable(self) -> bool:
        return self.retry_after is not None


class InvalidResponseError(PyPIError):
    """A 2xx response whose body is not the expected JSON document."""

    __slots__ = ()

    code: ClassVar[str] = "INVALID_RESPONSE"


# ---------------------------------------------------------------------------
# Local errors
# ---------------------------------------------------------------------------


class ConfigError(TomboError):
    """Raised when a configuration file cannot be loaded or is invalid.

    Args:
        message: Error description.
        config_path: Path of the offending configuration file.
        option: Name of the offending option, if any.
    """

    __slots__ = ("config_path", "option")

    def __init__(
        self,
        message: str,
        *,
        config_path: Optional[str] = None,
        option: Optional[str] = None,
    ) -> None:
        details: MutableMapping[str, Any] = {}
        _add_if(details, "path", config_path)
        _add_if(details, "option", option)

        super().__init__(message, details)

        self.config_path = config_path
        self.option = option


class FileOperationError(TomboError):
    """Raised when file system operations fail.

    Args:
        message: Error description.
        file_path: Path to the file involved.
        operation: Operation being performed (read/write/backup).
        original_error: Original exception that triggered this error.
    """

    __slots__ = ("file_path", "operation", "original_error")

    def __init__(
        self,
        message: str,
        *,
        file_path: Optional[str] = None,
        operation: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ) -> None:
        details: MutableMapping[str, Any] = {}
        _add_if(details, "path", file_path)
        _add_if(details, "operation", operation)
        _add_if(
            details,
            "original_error",
            str(original_error) if original_error else None,
        )

        super().__init__(message, details)

        self.file_path = file_path
        self.operation = operation
        self.original_error = original_error
