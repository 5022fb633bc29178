"""Content-hash lockfile used to detect drift since the last generated index."""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

from rich.console import Console

from aics.exceptions import LockFileError
from aics.indexer.scanner import LOCK_FILE_NAME

console = Console(stderr=True)

LOCK_VERSION = "1.0"


def content_hash(content: str) -> str:
    """Return the SHA-256 hex digest of content (UTF-8)."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


class LockFile:
    """Maps relative file paths to content hashes, persisted as .aics-lock.json.

    Usage::

        lock = LockFile(project_dir)
        lock.load()
        if not lock.is_unchanged("src/app.py", text):
            ...
    """

    def __init__(self, project_dir: Path) -> None:
        self._path = project_dir / LOCK_FILE_NAME
        self._files: dict[str, str] = {}
        self._dirty = False

    @property
    def path(self) -> Path:
        return self._path

    @property
    def files(self) -> dict[str, str]:
        return dict(self._files)

    def load(self) -> None:
        """Read the lockfile; a missing or corrupt file leaves it empty."""
        if not self._path.is_file():
            return
        try:
            data: dict[str, Any] = json.loads(self._path.read_text(encoding="utf-8"))
            files = data.get("files", {})
            if not isinstance(files, dict):
                raise TypeError("'files' is not a mapping")
            self._files = {str(k): str(v) for k, v in files.items()}
        except (json.JSONDecodeError, OSError, TypeError, AttributeError) as exc:
            console.print(f"[yellow]Warning[/yellow]: Corrupt lockfile, starting fresh ({exc})")
            self._files = {}

    def is_unchanged(self, path: str, content: str) -> bool:
        """Return True if content hashes to the value recorded for path."""
        return self._files.get(_normalize(path)) == content_hash(content)

    def update(self, hashes: dict[str, str]) -> None:
        """Replace recorded hashes with hashes (relative path -> digest)."""
        normalized = {_normalize(p): h for p, h in hashes.items()}
        if normalized != self._files:
            self._files = normalized
            self._dirty = True

    def save(self) -> None:
        """Write the lockfile if anything changed.

        Raises:
            LockFileError: If the file cannot be written.
        """
        if not self._dirty:
            return
        data = {"version": LOCK_VERSION, "files": dict(sorted(self._files.items()))}
        try:
            self._path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
        except OSError as exc:
            raise LockFileError(f"Cannot write lockfile: {exc}") from exc
        self._dirty = False

    def clean(self) -> None:
        """Forget all hashes and remove the lockfile from disk."""
        self._files = {}
        self._dirty = True
        try:
            self._path.unlink(missing_ok=True)
        except OSError as exc:
            raise LockFileError(f"Cannot remove lockfile: {exc}") from exc


def _normalize(path: str) -> str:
    return path.replace("\\", "/")
