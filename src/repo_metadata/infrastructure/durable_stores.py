"""DurableStore adapters — a file-per-key directory store and an in-memory one."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Iterator
from urllib.parse import quote, unquote

_SUFFIX = ".json"


class FileSystemStore:
    """Concrete DurableStore keeping one UTF-8 file per key under *directory*.

    Keys are percent-encoded into file names, so any key is safe to store.
    Writes go through a temporary file and an atomic rename.
    """

    def __init__(self, directory: str | os.PathLike[str]) -> None:
        self._dir = Path(directory)
        self._dir.mkdir(parents=True, exist_ok=True)

    @property
    def directory(self) -> Path:
        return self._dir

    def get(self, key: str) -> str | None:
        try:
            return self._path(key).read_text(encoding="utf-8", errors="replace")
        except FileNotFoundError:
            return None

    def set(self, key: str, value: str) -> None:
        fd, tmp = tempfile.mkstemp(dir=self._dir, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(value)
            os.replace(tmp, self._path(key))
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    def delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)

    def keys(self) -> Iterator[str]:
        for path in self._dir.glob(f"*{_SUFFIX}"):
            yield unquote(path.name[: -len(_SUFFIX)])

    def _path(self, key: str) -> Path:
        return self._dir / f"{quote(key, safe='')}{_SUFFIX}"


class InMemoryStore:
    """DurableStore kept in a plain dict; survives cache instances, not processes."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> Iterator[str]:
        return iter(list(self._data))

    def __len__(self) -> int:
        return len(self._data)
