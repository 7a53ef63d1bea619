"""
tombo version information.

This module provides a single source of truth for the package version.

Version format:
    MAJOR.MINOR.PATCH[.PRERELEASE]
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Main version (single source of truth)
# ---------------------------------------------------------------------------

__version__ = "0.1.0.dev0"

# ---------------------------------------------------------------------------
# Human-readable version (for CLI)
# ---------------------------------------------------------------------------

VERSION_STRING = f"tombo {__version__}"
