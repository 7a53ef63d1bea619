"""
Filesystem utilities for tombo.

Safe helpers for reading manifests and writing the edits produced by
quick actions. Every filesystem failure is reported as
:class:`~tombo.exceptions.FileOperationError`.
"""

from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path
from datetime import datetime
from typing import List, Optional, Union

from tombo.utils.logger import get_logger
from tombo.exceptions import FileOperationError
from tombo.constants import MAX_FILE_SIZE

logger = get_logger("filesystem")

PathLike = Union[str, Path]

#: Glob patterns of files tombo understands.
MANIFEST_PATTERNS = ("pyproject.toml", "*requirements*.txt")


def _validated_file(path: Path) -> Path:
    if not path.exists():
        raise FileOperationError(
            f"File not found: {path}",
            file_path=str(path),
            operation="read",
        )
    if not path.is_file():
        raise FileOperationError(
            f"Not a file: {path}",
            file_path=str(path),
            operation="read",
        )
    return path.resolve()


def _atomic_write(target: Path, content: str) -> None:
    """Write ``content`` through a temporary file and an atomic replace."""
    temp_path: Optional[Path] = None

    try:
        with tempfile.NamedTemporaryFile(
            mode="w",
            encoding="utf-8",
            newline="",
            dir=str(target.parent),
            delete=False,
            prefix=f".{target.name}.",
            suffix=".tmp",
        ) as tmp:
            tmp.write(content)
            tmp.flush()
            os.fsync(tmp.fileno())
            temp_path = Path(tmp.name)

        temp_path.replace(target)

    except OSError as exc:
        if temp_path is not None and temp_path.exists():
            try:
                temp_path.unlink()
            except OSError as cleanup_exc:
                logger.warning(
                    "Failed to clean up temporary file %s: %s",
                    temp_path,
                    cleanup_exc,
                )

        raise FileOperationError(
            f"Atomic write failed: {exc}",
            file_path=str(target),
            operation="write",
            original_error=exc,
        ) from exc


def create_backup(file_path: PathLike) -> Path:
    """Copy ``file_path`` to a timestamped ``.backup`` sibling."""
    path = _validated_file(Path(file_path))
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
    backup_path = path.with_name(f"{path.name}.{timestamp}.backup")

    try:
        shutil.copy2(path, backup_path)
    except OSError as exc:
        raise FileOperationError(
            f"Failed to create backup: {exc}",
            file_path=str(path),
            operation="backup",
            original_error=exc,
        ) from exc

    logger.debug("Created backup %s", backup_path)
    return backup_path


def safe_read_file(
    file_path: PathLike,
    *,
    max_size: Optional[int] = MAX_FILE_SIZE,
    encoding: str = "utf-8",
) -> str:
    """Read a text file, refusing files larger than ``max_size`` bytes.

    Line endings are preserved so column positions match what an editor
    shows.
    """
    path = _validated_file(Path(file_path))
    size = path.stat().st_size

    if max_size is not None and size > max_size:
        raise FileOperationError(
            f"File too large: {size} bytes (max {max_size})",
            file_path=str(path),
            operation="read",
        )

    try:
        with open(path, "r", encoding=encoding, newline="") as fh:
            return fh.read()
    except (OSError, UnicodeDecodeError) as exc:
        raise FileOperationError(
            f"Failed to read file: {exc}",
            file_path=str(path),
            operation="read",
            original_error=exc,
        ) from exc


def safe_write_file(
    file_path: PathLike,
    content: str,
    *,
    create_backup_first: bool = True,
) -> Optional[Path]:
    """Atomically replace a file's content.

    Args:
        file_path: Destination path.
        content: New text.
        create_backup_first: Copy the current file aside before writing.

    Returns:
        Path of the backup, if one was created.
    """
    path = Path(file_path)
    backup: Optional[Path] = None

    if create_backup_first and path.is_file():
        backup = create_backup(path)

    _atomic_write(path, content)
    return backup


def find_manifest_files(directory: PathLike = ".", *, recursive: bool = False) -> List[Path]:
    """Return manifests under ``directory``, sorted by path."""
    root = Path(directory).resolve()
    if not root.is_dir():
        return []

    matches = set()
    for pattern in MANIFEST_PATTERNS:
        iterator = root.rglob(pattern) if recursive else root.glob(pattern)
        matches.update(p for p in iterator if p.is_file())

    return sorted(matches)
