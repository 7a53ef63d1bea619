"""
Data model exports for tombo.

Example:
    >>> from tombo.models import ParsedDependency, PackageMetadata
"""

from __future__ import annotations

from tombo.models.dependency import (
    CompletionContext,
    DependencySource,
    ManifestKind,
    ParsedDependency,
    Span,
    SyntaxDialect,
    normalize_package_name,
)
from tombo.models.document import Position, TextDocument, TextEdit
from tombo.models.metadata import PackageInfo, PackageMetadata, VersionInfo

__all__ = [
    "CompletionContext",
    "DependencySource",
    "ManifestKind",
    "PackageInfo",
    "PackageMetadata",
    "ParsedDependency",
    "Position",
    "Span",
    "SyntaxDialect",
    "TextDocument",
    "TextEdit",
    "VersionInfo",
    "normalize_package_name",
]
