"""
Version helpers for tombo.

Two families of helpers live here:

* **Heuristic ordering** (:func:`is_prerelease`, :func:`compare_versions`,
  :func:`sort_versions`). These work on any string PyPI returns, including
  legacy tags that PEP 440 rejects, and never raise. They are *not* a full
  PEP 440 implementation; every ordering decision in tombo goes through
  :func:`compare_versions` so it can be swapped for a stricter one.
* **Constraint evaluation** (:func:`split_constraint`,
  :func:`to_specifier_set`, :func:`satisfies`, :func:`max_satisfying`,
  :func:`get_update_type`). These use ``packaging`` and understand Poetry's
  caret/tilde shorthand.
"""

from __future__ import annotations

import re
from functools import cmp_to_key
from typing import Iterable, List, Optional, Tuple

from packaging.specifiers import InvalidSpecifier, SpecifierSet
from packaging.version import InvalidVersion, Version, parse

from tombo.constants import VERSION_OPERATORS

#: Pre-release marker next to a numeric boundary: ``1.0a1``, ``2.0.0-rc.1``,
#: ``3.1.dev0``. Final releases such as ``1.0.0`` or ``2.0.post1`` never match.
PRE_RELEASE_PATTERN = re.compile(
    r"\d+[.\-_]?(a|alpha|b|beta|rc|c|dev|pre)\d*",
    re.IGNORECASE,
)

_SEGMENT_PATTERN = re.compile(r"^(\d*)(.*)$")
_LEADING_SYMBOLS = re.compile(r"^\s*([^\d\s*]*)")


# ---------------------------------------------------------------------------
# Heuristic ordering
# ---------------------------------------------------------------------------


def is_prerelease(version: str) -> bool:
    """Return True if ``version`` carries a pre-release marker.

    Example::

        >>> is_prerelease("1.1.0a1"), is_prerelease("1.1.0")
        (True, False)
    """
    return bool(PRE_RELEASE_PATTERN.search(version))


def _segment_key(segment: Optional[str]) -> Tuple[int, int, str]:
    # (has_number, number, suffix); missing segments behave like "0"
    if segment is None:
        return (1, 0, "")
    match = _SEGMENT_PATTERN.match(segment)
    assert match is not None
    digits, suffix = match.groups()
    if not digits:
        return (0, 0, suffix)
    return (1, int(digits), suffix)


def compare_versions(left: str, right: str) -> int:
    """Compare two version strings segment by segment.

    Dot-separated segments are compared on their leading integer; missing
    segments count as ``0``. When the integers tie, a segment without a
    suffix ranks above one with a suffix (so ``1.0.0`` > ``1.0.0rc1``) and
    two suffixes compare lexicographically. Segments with no leading digits
    rank below numeric ones.

    Returns:
        ``-1``, ``0`` or ``1`` like a classic ``cmp``.
    """
    left_parts = left.strip().split(".")
    right_parts = right.strip().split(".")

    for index in range(max(len(left_parts), len(right_parts))):
        lkey = _segment_key(left_parts[index] if index < len(left_parts) else None)
        rkey = _segment_key(right_parts[index] if index < len(right_parts) else None)

        if lkey[:2] != rkey[:2]:
            return -1 if lkey[:2] < rkey[:2] else 1

        lsuffix, rsuffix = lkey[2], rkey[2]
        if lsuffix == rsuffix:
            continue
        if not lsuffix:
            return 1
        if not rsuffix:
            return -1
        return -1 if lsuffix < rsuffix else 1

    return 0


def sort_versions(versions: Iterable[str], *, descending: bool = True) -> List[str]:
    """Deduplicate and sort versions with :func:`compare_versions`."""
    unique = list(dict.fromkeys(versions))
    return sorted(unique, key=cmp_to_key(compare_versions), reverse=descending)


# ---------------------------------------------------------------------------
# Constraint helpers
# ---------------------------------------------------------------------------


def detect_operator(constraint: str) -> str:
    """Return the leading operator of ``constraint`` or ``""``.

    Poetry's caret and tilde are recognised only when they are the single
    non-digit character before the first digit, so ``~1.2`` yields ``~``
    while ``~=1.2`` yields ``~=``.
    """
    match = _LEADING_SYMBOLS.match(constraint)
    leading = match.group(1) if match else ""

    if len(leading) == 1 and leading in ("^", "~"):
        return leading
    if leading in VERSION_OPERATORS:
        return leading
    for operator in VERSION_OPERATORS:
        if leading.startswith(operator):
            return operator
    return ""


def split_constraint(constraint: str) -> Tuple[str, str]:
    """Split a single constraint into ``(operator, version)``.

    Example::

        >>> split_constraint(">= 2.0")
        ('>=', '2.0')
    """
    text = constraint.strip()
    operator = detect_operator(text)
    return operator, text[len(operator):].strip()


def _caret_upper(version: str) -> str:
    parts = [int(p) for p in re.findall(r"\d+", version)[:3]] or [0]
    for index, value in enumerate(parts):
        if value != 0 or index == len(parts) - 1:
            bumped = parts[:index] + [value + 1]
            return ".".join(str(p) for p in bumped + [0] * (len(parts) - len(bumped)))
    return "1"


def _tilde_upper(version: str) -> str:
    parts = [int(p) for p in re.findall(r"\d+", version)[:3]] or [0]
    if len(parts) == 1:
        return str(parts[0] + 1)
    return f"{parts[0]}.{parts[1] + 1}.0"


def to_specifier_set(constraint: str) -> Optional[SpecifierSet]:
    """Translate a constraint into a ``packaging`` SpecifierSet.

    Poetry's ``^`` and ``~`` are expanded into ranges, ``*`` and an empty
    constraint mean "any version", and a bare version is an exact pin.
    Returns ``None`` for anything that cannot be expressed (for example
    Poetry's ``||`` alternatives).
    """
    text = constraint.strip()
    if not text or text == "*":
        return SpecifierSet()
    if "||" in text:
        return None

    specifiers: List[str] = []
    for part in text.split(","):
        operator, version = split_constraint(part)
        if not version:
            return None
        if operator == "^":
            specifiers.extend([f">={version}", f"<{_caret_upper(version)}"])
        elif operator == "~":
            specifiers.extend([f">={version}", f"<{_tilde_upper(version)}"])
        elif operator:
            specifiers.append(f"{operator}{version}")
        else:
            specifiers.append(f"=={version}")

    try:
        return SpecifierSet(",".join(specifiers))
    except InvalidSpecifier:
        return None


def satisfies(version: str, constraint: str) -> bool:
    """Return True if ``version`` is allowed by ``constraint``.

    Unparseable input is reported as not satisfied.
    """
    spec = to_specifier_set(constraint)
    if spec is None:
        return False
    try:
        return spec.contains(version, prereleases=True)
    except InvalidVersion:
        return False


def max_satisfying(versions: Iterable[str], constraint: str) -> Optional[str]:
    """Return the newest entry of ``versions`` allowed by ``constraint``."""
    candidates = [v for v in versions if satisfies(v, constraint)]
    if not candidates:
        return None
    return sort_versions(candidates)[0]


# ---------------------------------------------------------------------------
# Update classification
# ---------------------------------------------------------------------------


def get_update_type(
    current_version: Optional[str],
    target_version: Optional[str],
) -> str:
    """Classify the move from ``current_version`` to ``target_version``.

    Returns:
        ``"new"`` when nothing is pinned, ``"same"``, ``"downgrade"``,
        ``"major"``, ``"minor"``, ``"patch"``, ``"update"`` for changes
        outside the release triple, or ``"unknown"`` for unparseable input.

    Examples:
        >>> get_update_type("1.0.0", "2.0.0")
        'major'
        >>> get_update_type(None, "1.0.0")
        'new'
    """
    if target_version is None:
        return "unknown"
    if current_version is None:
        return "new"

    try:
        current = _parse_version(current_version)
        target = _parse_version(target_version)
    except InvalidVersion:
        return "unknown"

    if target == current:
        return "same"
    if target < current:
        return "downgrade"

    current_release = _normalize_release(current)
    target_release = _normalize_release(target)
    for label, old, new in zip(("major", "minor", "patch"), current_release, target_release):
        if old != new:
            return label
    return "update"


def _parse_version(value: str) -> Version:
    parsed = parse(value)
    if not isinstance(parsed, Version):
        raise InvalidVersion(value)
    return parsed


def _normalize_release(version: Version) -> Tuple[int, int, int]:
    release = tuple(version.release) + (0, 0, 0)
    return release[0], release[1], release[2]
