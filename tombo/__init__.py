"""
tombo: PyPI intelligence for Python dependency manifests

tombo reads ``pyproject.toml`` and ``requirements*.txt`` files, locates
every dependency and its version constraint, and enriches them with live
metadata from PyPI (or any PyPI-compatible index):

    • Version completion at the cursor
    • Hover summaries with release history and links
    • Quick actions to bump or re-constrain a dependency
    • A bounded, TTL-aware metadata cache shared by all of the above

The editor-facing pieces are plain data builders, so the same engine
drives the ``tombo`` command line interface.
"""

from __future__ import annotations

from tombo.__version__ import __version__

# ---------------------------------------------------------------------------
# Package Metadata
# ---------------------------------------------------------------------------

__author__ = "tombo Contributors"
__license__ = "MIT"
__description__ = "PyPI version completion, hover and quick fixes for dependency manifests."

__all__ = [
    "__version__",
]
