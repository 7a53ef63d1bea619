"""
Core engine for tombo: manifest parsing, caching and PyPI metadata.

Example:
    >>> from tombo.core import ManifestParser, PackageCache, PyPIService
"""

from __future__ import annotations

from tombo.core.cache import CacheStatistics, PackageCache
from tombo.core.parser import ManifestParser, classify_source, find_enclosing_table
from tombo.core.service import PyPIService

__all__ = [
    "CacheStatistics",
    "ManifestParser",
    "PackageCache",
    "PyPIService",
    "classify_source",
    "find_enclosing_table",
]
