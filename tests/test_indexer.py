"""Tests for file discovery, the lockfile, and test anchors."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from aics.exceptions import IndexerError
from aics.indexer.anchors import extract_anchors, generate_anchors
from aics.indexer.lockfile import LockFile, content_hash
from aics.indexer.scanner import FileScanner


class TestFileScanner:
    def test_scan_returns_sorted_relative_paths(self, tmp_path: Path) -> None:
        (tmp_path / "src").mkdir()
        (tmp_path / "src" / "b.py").write_text("pass", encoding="utf-8")
        (tmp_path / "a.ts").write_text("const x = 1", encoding="utf-8")
        (tmp_path / "notes.txt").write_text("notes", encoding="utf-8")

        files = FileScanner(tmp_path).scan()

        assert files == [Path("a.ts"), Path("notes.txt"), Path("src/b.py")]

    def test_skips_hidden_dirs(self, tmp_path: Path) -> None:
        hidden = tmp_path / ".hidden"
        hidden.mkdir()
        (hidden / "secret.py").write_text("pass", encoding="utf-8")
        (tmp_path / "visible.py").write_text("pass", encoding="utf-8")

        assert FileScanner(tmp_path).scan() == [Path("visible.py")]

    def test_skips_node_modules_and_target(self, tmp_path: Path) -> None:
        for name in ("node_modules", "target"):
            (tmp_path / name).mkdir()
            (tmp_path / name / "pkg.js").write_text("module.exports = {}", encoding="utf-8")
        (tmp_path / "app.js").write_text("console.log('hi')", encoding="utf-8")

        assert FileScanner(tmp_path).scan() == [Path("app.js")]

    def test_skips_binary_suffixes(self, tmp_path: Path) -> None:
        (tmp_path / "logo.png").write_bytes(b"\x89PNG")
        (tmp_path / "app.py").write_text("pass", encoding="utf-8")

        assert FileScanner(tmp_path).scan() == [Path("app.py")]

    def test_respects_gitignore(self, tmp_path: Path) -> None:
        (tmp_path / ".gitignore").write_text("generated/\n*.log\n", encoding="utf-8")
        (tmp_path / "generated").mkdir()
        (tmp_path / "generated" / "out.py").write_text("pass", encoding="utf-8")
        (tmp_path / "debug.log").write_text("log", encoding="utf-8")
        (tmp_path / "keep.py").write_text("pass", encoding="utf-8")

        assert FileScanner(tmp_path).scan() == [Path("keep.py")]

    def test_gitignore_last_rule_wins(self, tmp_path: Path) -> None:
        (tmp_path / ".gitignore").write_text("*.py\n!keep.py\nbuild.py/\n", encoding="utf-8")
        (tmp_path / "drop.py").write_text("pass", encoding="utf-8")
        (tmp_path / "keep.py").write_text("pass", encoding="utf-8")

        assert FileScanner(tmp_path).scan() == [Path("keep.py")]

    def test_gitignore_anchored_pattern(self, tmp_path: Path) -> None:
        (tmp_path / ".gitignore").write_text("/docs/*.md\n", encoding="utf-8")
        (tmp_path / "docs").mkdir()
        (tmp_path / "docs" / "guide.md").write_text("# guide", encoding="utf-8")
        (tmp_path / "README.md").write_text("# readme", encoding="utf-8")

        assert FileScanner(tmp_path).scan() == [Path("README.md")]

    def test_include_globs(self, tmp_path: Path) -> None:
        (tmp_path / "src").mkdir()
        (tmp_path / "src" / "app.py").write_text("pass", encoding="utf-8")
        (tmp_path / "setup.py").write_text("pass", encoding="utf-8")

        assert FileScanner(tmp_path, include=["src/**"]).scan() == [Path("src/app.py")]

    def test_excludes_output_document(self, tmp_path: Path) -> None:
        (tmp_path / "INDEX.md").write_text("# index", encoding="utf-8")
        (tmp_path / "app.py").write_text("pass", encoding="utf-8")

        files = FileScanner(tmp_path, exclude_files=["INDEX.md"]).scan()

        assert files == [Path("app.py")]

    def test_missing_project_dir_raises(self, tmp_path: Path) -> None:
        with pytest.raises(IndexerError):
            FileScanner(tmp_path / "nope")


class TestLockFile:
    def test_save_and_load(self, tmp_path: Path) -> None:
        lock = LockFile(tmp_path)
        lock.update({"src/app.py": content_hash("print(1)\n")})
        lock.save()

        data = json.loads(lock.path.read_text(encoding="utf-8"))
        assert data["version"] == "1.0"
        assert data["files"] == {"src/app.py": content_hash("print(1)\n")}

        reloaded = LockFile(tmp_path)
        reloaded.load()
        assert reloaded.is_unchanged("src/app.py", "print(1)\n")
        assert not reloaded.is_unchanged("src/app.py", "print(2)\n")
        assert not reloaded.is_unchanged("src/other.py", "print(1)\n")

    def test_windows_separators_normalized(self, tmp_path: Path) -> None:
        lock = LockFile(tmp_path)
        lock.update({"src\\app.py": content_hash("x")})
        assert lock.is_unchanged("src/app.py", "x")

    def test_corrupt_lockfile_treated_as_empty(self, tmp_path: Path) -> None:
        (tmp_path / ".aics-lock.json").write_text("{not json", encoding="utf-8")
        lock = LockFile(tmp_path)
        lock.load()
        assert lock.files == {}

    def test_unchanged_lock_not_rewritten(self, tmp_path: Path) -> None:
        lock = LockFile(tmp_path)
        lock.update({})
        lock.save()
        assert not lock.path.exists()

    def test_clean_removes_file(self, tmp_path: Path) -> None:
        lock = LockFile(tmp_path)
        lock.update({"a.py": content_hash("a")})
        lock.save()
        assert lock.path.exists()

        lock.clean()

        assert not lock.path.exists()
        assert lock.files == {}

    def test_content_hash_is_sha256(self) -> None:
        assert content_hash("") == (
            "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
        )


class TestAnchors:
    def test_python_absolute_import(self) -> None:
        content = "from app.core import run\n\n\ndef test_runs():\n    assert run()\n"
        assert extract_anchors("tests/test_core.py", content) == {"app/core": ["test_runs"]}

    def test_python_relative_imports(self) -> None:
        content = (
            "from .helpers import make\n"
            "from ..pkg import thing\n\n"
            "async def test_make():\n    pass\n"
        )
        anchors = extract_anchors("tests/unit/test_make.py", content)
        assert anchors == {
            "tests/unit/helpers": ["test_make"],
            "tests/pkg": ["test_make"],
        }

    def test_javascript_intents(self) -> None:
        content = (
            "import { add } from './math';\n"
            "import lodash from 'lodash';\n"
            "describe('adds numbers', () => {\n"
            "  it('handles zero', () => {});\n"
            "});\n"
        )
        anchors = extract_anchors("src/math.test.ts", content)
        assert anchors == {"src/math": ["adds numbers", "handles zero"]}

    def test_no_intents_means_no_anchors(self) -> None:
        assert extract_anchors("src/a.test.js", "import { a } from './a';\n") == {}

    def test_generate_anchors_scans_test_files(self, tmp_path: Path) -> None:
        (tmp_path / "tests").mkdir()
        (tmp_path / "tests" / "test_app.py").write_text(
            "from app import main\n\ndef test_main():\n    main()\n", encoding="utf-8"
        )
        (tmp_path / "app.py").write_text("def main():\n    pass\n", encoding="utf-8")

        assert generate_anchors(tmp_path) == {"app": ["test_main"]}
