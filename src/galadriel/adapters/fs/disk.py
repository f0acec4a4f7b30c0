# src/galadriel/adapters/fs/disk.py
from __future__ import annotations

import os
from pathlib import Path

FILE_MODE_PRIVATE = 0o600

__all__ = ["atomic_write_private_file", "ensure_private_file", "FILE_MODE_PRIVATE"]


def atomic_write_private_file(path: Path | str, data: bytes) -> None:
    """Replace ``path`` with ``data`` so that readers see either the old or the new content."""

    target = Path(path)
    tmp_path = target.with_name(target.name + ".tmp")
    _write_synced(tmp_path, data, FILE_MODE_PRIVATE)
    os.replace(tmp_path, target)
    _fsync_dir(target.parent)


def ensure_private_file(path: Path | str) -> None:
    """Create an empty owner-only file if it does not exist yet."""

    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    fd = os.open(target, os.O_WRONLY | os.O_CREAT, FILE_MODE_PRIVATE)
    os.close(fd)
    target.chmod(FILE_MODE_PRIVATE)


def _write_synced(path: Path, data: bytes, mode: int) -> None:
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
    try:
        view = memoryview(data)
        while view:
            written = os.write(fd, view)
            view = view[written:]
        os.fsync(fd)
    finally:
        os.close(fd)
    # O_CREAT only applies the mode to new files
    path.chmod(mode)


def _fsync_dir(directory: Path) -> None:
    fd = os.open(directory, os.O_RDONLY)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)
