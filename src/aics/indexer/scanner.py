"""File discovery engine that walks a project tree respecting .gitignore."""

from __future__ import annotations

import fnmatch
import os
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from rich.console import Console

from aics.exceptions import IndexerError

console = Console(stderr=True)

LOCK_FILE_NAME = ".aics-lock.json"

_ALWAYS_SKIP: frozenset[str] = frozenset(
    {
        ".git",
        ".hg",
        ".svn",
        "__pycache__",
        "node_modules",
        ".venv",
        "venv",
        ".env",
        "env",
        ".tox",
        ".mypy_cache",
        ".pytest_cache",
        ".ruff_cache",
        "dist",
        "build",
        "target",
        ".eggs",
    }
)

_BINARY_SUFFIXES: frozenset[str] = frozenset(
    {
        ".png", ".jpg", ".jpeg", ".gif", ".ico", ".webp", ".bmp", ".pdf",
        ".zip", ".gz", ".tar", ".tgz", ".bz2", ".xz", ".7z", ".jar",
        ".woff", ".woff2", ".ttf", ".otf", ".eot", ".mp3", ".mp4", ".wav",
        ".so", ".dll", ".dylib", ".exe", ".o", ".a", ".pyc", ".class",
        ".wasm", ".db", ".sqlite", ".lock",
    }
)


class FileScanner:
    """Discovers candidate files in a project, respecting .gitignore.

    Usage::

        scanner = FileScanner(Path("/my/project"), include=["src/**"])
        paths = scanner.scan()
    """

    def __init__(
        self,
        project_dir: Path,
        include: Iterable[str] = ("**/*",),
        exclude_files: Iterable[str] = (),
    ) -> None:
        """Initialize the scanner.

        Args:
            project_dir: Absolute path to the project root.
            include: Glob patterns (relative to the root) a file must match.
            exclude_files: Relative paths never returned (index output, lockfile).

        Raises:
            IndexerError: If project_dir does not exist.
        """
        self._project_dir = project_dir.resolve()
        if not self._project_dir.is_dir():
            raise IndexerError(f"Project directory does not exist: {self._project_dir}")
        self._include = tuple(include)
        self._exclude = frozenset({LOCK_FILE_NAME, *exclude_files})
        self._ignore_rules = _load_gitignore(self._project_dir / ".gitignore")

    def scan(self) -> list[Path]:
        """Walk the project tree and return candidate files.

        Returns:
            Paths relative to the project root, sorted.
        """
        results: list[Path] = []
        try:
            for dirpath_str, dirnames, filenames in os.walk(self._project_dir, topdown=True):
                rel_dir = Path(dirpath_str).relative_to(self._project_dir)

                dirnames[:] = [
                    d
                    for d in dirnames
                    if not _is_skipped_dir(d) and not self._is_ignored(rel_dir / d, is_dir=True)
                ]

                for fname in filenames:
                    rel = rel_dir / fname
                    if fname.startswith(".") or rel.suffix.lower() in _BINARY_SUFFIXES:
                        continue
                    rel_str = rel.as_posix()
                    if rel_str in self._exclude or not self._is_included(rel_str):
                        continue
                    if self._is_ignored(rel, is_dir=False):
                        continue
                    results.append(rel)
        except OSError as exc:
            raise IndexerError(f"Failed to scan project directory: {exc}") from exc

        results.sort()
        console.print(f"[green]Scanner[/green] found [bold]{len(results)}[/bold] candidate files")
        return results

    def _is_included(self, rel: str) -> bool:
        return any(
            fnmatch.fnmatch(rel, pattern)
            or (pattern.startswith("**/") and fnmatch.fnmatch(rel, pattern[3:]))
            for pattern in self._include
        )

    def _is_ignored(self, rel: Path, is_dir: bool) -> bool:
        """Apply .gitignore rules in order; the last matching rule decides."""
        ignored = False
        rel_str = rel.as_posix()
        for rule in self._ignore_rules:
            if rule.dir_only and not is_dir:
                continue
            if rule.matches(rel_str, rel.name):
                ignored = not rule.negated
        return ignored


@dataclass(frozen=True, slots=True)
class _IgnoreRule:
    """One .gitignore line.

    Attributes:
        pattern: Glob without the leading "!" and trailing "/".
        negated: Line started with "!" (re-include).
        dir_only: Line ended with "/" (matches directories only).
        anchored: Pattern contains a "/" and is matched against the full
            relative path rather than the basename.
    """

    pattern: str
    negated: bool
    dir_only: bool
    anchored: bool

    def matches(self, rel: str, name: str) -> bool:
        if self.anchored:
            return fnmatch.fnmatch(rel, self.pattern)
        return fnmatch.fnmatch(name, self.pattern)


def _load_gitignore(path: Path) -> list[_IgnoreRule]:
    """Parse .gitignore rules, returning an empty list if the file is missing."""
    if not path.is_file():
        return []

    rules: list[_IgnoreRule] = []
    text = path.read_text(encoding="utf-8", errors="replace")
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        negated = line.startswith("!")
        line = line.removeprefix("!")
        dir_only = line.endswith("/")
        line = line.rstrip("/")
        if not line:
            continue
        anchored = "/" in line
        rules.append(_IgnoreRule(line.lstrip("/"), negated, dir_only, anchored))
    return rules


def _is_skipped_dir(dirname: str) -> bool:
    """Return True for hidden, vendored, cache and build directories."""
    return dirname.startswith(".") or dirname in _ALWAYS_SKIP or dirname.endswith(".egg-info")
