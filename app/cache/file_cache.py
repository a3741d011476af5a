"""
Filesystem cache backend: one JSON envelope file per key.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

from app.cache.base import CacheBackend, Clock
from app.cache.keys import md5_hex
from app.logging_utils import log_event

logger = logging.getLogger(__name__)


class FileCache(CacheBackend):
    """
    Stores each entry in `<directory>/<md5(key)>.json`.

    Writes go to a temporary file in the same directory and are moved into
    place with `os.replace`, so concurrent writers never leave a torn file
    and the last writer wins.
    """

    backend_name = "file"

    def __init__(self, directory: str | os.PathLike[str], *, clock: Clock | None = None) -> None:
        super().__init__(clock=clock)
        self.directory = Path(directory)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            log_event(
                logger,
                logging.WARNING,
                "cache_directory_unavailable",
                directory=str(self.directory),
                error=str(exc),
            )

    def path_for(self, key: str) -> Path:
        return self.directory / f"{md5_hex(key)}.json"

    def _read(self, key: str) -> str | None:
        path = self.path_for(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def _write(self, key: str, payload: str, ttl_seconds: float) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        target = self.path_for(key)
        fd, temp_name = tempfile.mkstemp(dir=self.directory, prefix=".tmp-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
            os.replace(temp_name, target)
        except BaseException:
            Path(temp_name).unlink(missing_ok=True)
            raise

    def _remove(self, key: str) -> None:
        self.path_for(key).unlink(missing_ok=True)

    def _clear(self) -> None:
        if not self.directory.exists():
            return
        for path in self.directory.glob("*.json"):
            path.unlink(missing_ok=True)
