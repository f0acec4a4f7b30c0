"""Bearer token held in memory and mirrored to ``<data_dir>/jwt-token``."""
from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from galadriel.adapters.fs.disk import atomic_write_private_file, ensure_private_file
from galadriel.config.const import TOKEN_FILE_NAME

__all__ = ["TokenStore"]

_log = logging.getLogger("galadriel.hub")


class _ReadWriteLock:
    """Many concurrent readers or one writer."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writing = False

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writing:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if not self._readers:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            while self._writing or self._readers:
                self._cond.wait()
            self._writing = True
        try:
            yield
        finally:
            with self._cond:
                self._writing = False
                self._cond.notify_all()


class TokenStore:
    def __init__(self, data_dir: Path | str) -> None:
        self._path = Path(data_dir) / TOKEN_FILE_NAME
        self._lock = _ReadWriteLock()
        self._token = ""
        self._load()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> None:
        if not self._path.exists():
            ensure_private_file(self._path)
            return
        self._token = self._path.read_text(encoding="utf-8").strip()

    def get(self) -> str:
        with self._lock.read():
            return self._token

    def set(self, token: str) -> None:
        """Publish ``token`` to readers, then persist it outside the lock.

        A failed disk write is logged and otherwise ignored: the in-memory
        token stays authoritative and the next rotation rewrites the file.
        """

        with self._lock.write():
            self._token = token
        try:
            atomic_write_private_file(self._path, token.encode("utf-8"))
        except OSError as exc:
            _log.error("failed to persist bearer token", extra={"path": str(self._path), "error": str(exc)})
