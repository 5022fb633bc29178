"""Test anchors: link test intents to the source modules a test imports."""

from __future__ import annotations

import posixpath
import re
from pathlib import Path

from rich.console import Console

from aics.indexer.scanner import FileScanner

console = Console(stderr=True)

TEST_PATTERNS: tuple[str, ...] = (
    "**/*.test.ts",
    "**/*.spec.ts",
    "**/*.test.js",
    "**/*.spec.js",
    "**/*_test.rs",
    "**/test_*.py",
)

_IMPORT_RE = re.compile(
    r"""from\s+['"](.+?)['"]|require\(\s*['"](.+?)['"]\s*\)|import\s+['"](.+?)['"]"""
)
_PY_FROM_IMPORT_RE = re.compile(r"^\s*from\s+(\.*[\w.]*)\s+import\s", re.MULTILINE)
_INTENT_RE = re.compile(r"""\b(?:describe|test|it|test_that)\s*\(\s*['"](.+?)['"]""")
_PY_TEST_RE = re.compile(r"^\s*(?:async\s+)?def\s+(test_\w+)\s*\(", re.MULTILINE)


def extract_anchors(test_path: str, content: str) -> dict[str, list[str]]:
    """Return imported base path -> test intents for one test file.

    Relative imports are resolved against the test file's directory and
    returned relative to the project root, without extension. Absolute
    Python imports become slash-separated module paths (matched by suffix
    when rendering).
    """
    intents = _INTENT_RE.findall(content) + _PY_TEST_RE.findall(content)
    if not intents:
        return {}

    base_dir = posixpath.dirname(test_path)
    imports: list[str] = []
    for match in _IMPORT_RE.finditer(content):
        target = next((g for g in match.groups() if g), "")
        if target.startswith("."):
            imports.append(posixpath.normpath(posixpath.join(base_dir, target)))
    for module in _PY_FROM_IMPORT_RE.findall(content):
        dots = len(module) - len(module.lstrip("."))
        if dots == 0:
            imports.append(module.replace(".", "/"))
            continue
        parent = base_dir
        for _ in range(dots - 1):
            parent = posixpath.dirname(parent)
        rest = module[dots:].replace(".", "/")
        imports.append(posixpath.normpath(posixpath.join(parent, rest)) if rest else parent)

    anchors: dict[str, list[str]] = {}
    for imp in dict.fromkeys(imports):
        anchors.setdefault(imp, []).extend(intents)
    return anchors


def generate_anchors(project_dir: Path) -> dict[str, list[str]]:
    """Scan test files under project_dir and merge their anchors."""
    scanner = FileScanner(project_dir, include=TEST_PATTERNS)
    merged: dict[str, list[str]] = {}
    for rel in scanner.scan():
        try:
            content = (project_dir / rel).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            console.print(f"[yellow]Warning[/yellow]: Skipping test file {rel}: {exc}")
            continue
        for imp, intents in extract_anchors(rel.as_posix(), content).items():
            merged.setdefault(imp, []).extend(intents)
    return merged
