"""
Utility helpers for tombo.

This package provides reusable utilities used across tombo, including:

- Console output helpers (Rich-based)
- Logging configuration and retrieval
- Filesystem safety helpers
- Async HTTP client with retries
- Version ordering and constraint helpers
- Cooperative cancellation

Only symbols listed in ``__all__`` are considered part of the public API.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Filesystem utilities
# ---------------------------------------------------------------------------

from tombo.utils.filesystem import (
    create_backup,
    find_manifest_files,
    safe_read_file,
    safe_write_file,
)

# ---------------------------------------------------------------------------
# Logging utilities
# ---------------------------------------------------------------------------

from tombo.utils.logger import (
    disable_logging,
    get_logger,
    is_logging_configured,
    setup_logging,
)

# ---------------------------------------------------------------------------
# Console utilities
# ---------------------------------------------------------------------------

from tombo.utils.console import (
    colorize_update_type,
    confirm,
    get_raw_console,
    print_error,
    print_markdown,
    print_success,
    print_table,
    print_warning,
    reconfigure_console,
)

# ---------------------------------------------------------------------------
# HTTP utilities
# ---------------------------------------------------------------------------

from tombo.utils.http import HTTPClient, join_url

# ---------------------------------------------------------------------------
# Version utilities
# ---------------------------------------------------------------------------

from tombo.utils.version_utils import (
    compare_versions,
    get_update_type,
    is_prerelease,
    max_satisfying,
    satisfies,
    sort_versions,
)

# ---------------------------------------------------------------------------
# Cancellation
# ---------------------------------------------------------------------------

from tombo.utils.cancellation import CancellationToken

# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

__all__ = [
    # Console
    "confirm",
    "print_error",
    "print_table",
    "print_success",
    "print_warning",
    "print_markdown",
    "get_raw_console",
    "reconfigure_console",
    "colorize_update_type",
    # Logging
    "get_logger",
    "setup_logging",
    "disable_logging",
    "is_logging_configured",
    # Filesystem
    "safe_read_file",
    "safe_write_file",
    "create_backup",
    "find_manifest_files",
    # HTTP
    "HTTPClient",
    "join_url",
    # Version utilities
    "compare_versions",
    "get_update_type",
    "is_prerelease",
    "max_satisfying",
    "satisfies",
    "sort_versions",
    # Cancellation
    "CancellationToken",
]
