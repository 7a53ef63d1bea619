"""
PyPI metadata models for tombo.

These are the derived, cache-friendly views the metadata service builds
from a raw PyPI JSON document. They are frozen so a cached instance can
be handed to any number of callers.
"""

from __future__ import annotations

from datetime import datetime
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional, Tuple

from packaging.specifiers import InvalidSpecifier, SpecifierSet


@dataclass(frozen=True)
class PackageMetadata:
    """Filtered and sorted view of one package.

    Attributes:
        name: Package name as PyPI reports it.
        versions: Versions after filtering, newest first, no duplicates.
        latest_version: PyPI's ``info.version``. Kept as reported even when
            it is a pre-release missing from ``versions``.
        summary: One-line description.
        classifiers: Trove classifiers.
        requires_python: ``Requires-Python`` of the latest release.
        yanked_versions: Versions with at least one yanked file.
        pre_release_versions: Every pre-release seen, filtered or not.
    """

    name: str
    versions: Tuple[str, ...] = ()
    latest_version: Optional[str] = None
    summary: str = ""
    classifiers: Tuple[str, ...] = ()
    requires_python: Optional[str] = None
    yanked_versions: FrozenSet[str] = frozenset()
    pre_release_versions: FrozenSet[str] = frozenset()

    def is_yanked(self, version: str) -> bool:
        return version in self.yanked_versions

    def is_pre_release(self, version: str) -> bool:
        return version in self.pre_release_versions

    @property
    def stable_versions(self) -> List[str]:
        """Versions that are neither pre-releases nor yanked, newest first."""
        return [
            v
            for v in self.versions
            if v not in self.pre_release_versions and v not in self.yanked_versions
        ]

    def is_python_compatible(self, python_version: str) -> bool:
        """Check ``python_version`` against the latest ``requires_python``.

        Missing or malformed specifiers count as compatible, like pip.

        Example::

            >>> PackageMetadata("x", requires_python=">=3.8").is_python_compatible("3.7")
            False
        """
        if not self.requires_python:
            return True
        try:
            return python_version in SpecifierSet(self.requires_python)
        except InvalidSpecifier:
            return True


@dataclass(frozen=True)
class VersionInfo:
    """Per-release detail used by hover text."""

    version: str
    is_pre_release: bool = False
    is_yanked: bool = False
    yanked_reason: Optional[str] = None
    release_date: Optional[datetime] = None
    requires_python: Optional[str] = None


@dataclass(frozen=True)
class PackageInfo:
    """Descriptive fields from PyPI's ``info`` block."""

    name: str
    version: Optional[str] = None
    summary: str = ""
    package_url: Optional[str] = None
    home_page: Optional[str] = None
    docs_url: Optional[str] = None
    author: Optional[str] = None
    maintainer: Optional[str] = None
    license: Optional[str] = None
    requires_python: Optional[str] = None
    classifiers: Tuple[str, ...] = ()
    project_urls: Dict[str, str] = field(default_factory=dict, hash=False)
