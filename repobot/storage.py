"""
Storage backends for Repobot.

All document I/O goes through a Storage so the discovery and parsing
code can run against the real filesystem or an in-memory tree.
Text is UTF-8 and line endings are preserved as stored.
"""

from __future__ import annotations

import asyncio
import glob
import os
import re
from pathlib import Path
from typing import Protocol, runtime_checkable

from .errors import NotFoundError, StorageError
from .ignore import normalize_path, translate_glob


@runtime_checkable
class Storage(Protocol):
    """Protocol for the text reader/writer used by DocumentIndex."""

    async def read_text(self, path: str | Path) -> str:
        """Read UTF-8 text. Raises NotFoundError or StorageError."""
        ...

    async def write_text(self, path: str | Path, text: str) -> None:
        """Replace the file contents. Raises StorageError."""
        ...

    async def list_paths(self, pattern: str, base_dir: str | Path) -> list[str]:
        """Expand a glob pattern under `base_dir`, returning file paths relative to it."""
        ...


class LocalStorage:
    """Filesystem storage. Blocking calls run in a worker thread."""

    def _read(self, path: str | Path) -> str:
        try:
            with open(path, "r", encoding="utf-8", newline="") as f:
                return f.read()
        except (FileNotFoundError, IsADirectoryError, NotADirectoryError):
            raise NotFoundError(f"File not found: {path}", str(path)) from None
        except (OSError, UnicodeDecodeError) as e:
            raise StorageError(f"Failed to read {path}: {e}", str(path)) from e

    def _write(self, path: str | Path, text: str) -> None:
        try:
            Path(path).parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w", encoding="utf-8", newline="") as f:
                f.write(text)
        except OSError as e:
            raise StorageError(f"Failed to write {path}: {e}", str(path)) from e

    def _glob(self, pattern: str, base_dir: str | Path) -> list[str]:
        try:
            matches = glob.glob(pattern, root_dir=str(base_dir), recursive=True)
        except OSError as e:
            raise StorageError(f"Failed to expand {pattern!r}: {e}") from e
        return [
            m.replace(os.sep, "/")
            for m in matches
            if os.path.isfile(os.path.join(str(base_dir), m))
        ]

    async def read_text(self, path: str | Path) -> str:
        return await asyncio.to_thread(self._read, path)

    async def write_text(self, path: str | Path, text: str) -> None:
        await asyncio.to_thread(self._write, path, text)

    async def list_paths(self, pattern: str, base_dir: str | Path) -> list[str]:
        return await asyncio.to_thread(self._glob, pattern, base_dir)


class MemoryStorage:
    """
    Dict-backed storage keyed by root-relative posix path.

    Absolute paths are made relative to `root`. Glob expansion uses the
    same translation as ignore rules, so `**/` also matches the root.
    """

    def __init__(self, files: dict[str, str] | None = None, root: str = "/repo"):
        self.root = root
        self.files: dict[str, str] = {}
        for path, text in (files or {}).items():
            self.files[self._key(path)] = text

    def _key(self, path: str | Path) -> str:
        return normalize_path(path, self.root)

    async def read_text(self, path: str | Path) -> str:
        key = self._key(path)
        if key not in self.files:
            raise NotFoundError(f"File not found: {path}", str(path))
        return self.files[key]

    async def write_text(self, path: str | Path, text: str) -> None:
        self.files[self._key(path)] = text

    async def list_paths(self, pattern: str, base_dir: str | Path) -> list[str]:
        base = self._key(base_dir)
        try:
            regex = re.compile("^" + translate_glob(pattern) + "$")
        except re.error:
            regex = re.compile("^" + re.escape(pattern) + "$")
        results = []
        for key in self.files:
            if base:
                if not key.startswith(base + "/"):
                    continue
                rel = key[len(base) + 1:]
            else:
                rel = key
            if regex.match(rel):
                results.append(rel)
        return results
