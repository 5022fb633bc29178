"""Shared test fixtures."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from pathlib import Path

import pytest

from aics.engine.grammars import Grammar, GrammarRegistry
from aics.engine.models import FileEntry, Tier


@pytest.fixture(autouse=True)
def isolated_config(
    tmp_path_factory: pytest.TempPathFactory, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Keep the user's global config and AICS_* variables out of every test."""
    missing = tmp_path_factory.mktemp("global") / "config.toml"
    monkeypatch.setattr("aics.config._GLOBAL_CONFIG_PATH", missing)
    for name in ("AICS_BUDGET", "AICS_OUTPUT", "AICS_CONCURRENCY", "AICS_MAX_FILE_SIZE"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(scope="session")
def grammar_registry() -> GrammarRegistry:
    """One registry per session; loaded grammars outlive the loop that loaded them."""
    return GrammarRegistry()


@pytest.fixture
def load_grammar(grammar_registry: GrammarRegistry) -> Callable[[str], Grammar]:
    """Synchronously load a grammar by language id."""

    def _load(language_id: str) -> Grammar:
        return asyncio.run(grammar_registry.load(language_id))

    return _load


@pytest.fixture
def make_entry() -> Callable[..., FileEntry]:
    """Build a FileEntry with sensible defaults."""

    def _make(
        path: str,
        tokens: int = 100,
        tier: Tier = Tier.FULL,
        skeleton: str = "x" * 40,
        map_text: str | None = None,
    ) -> FileEntry:
        return FileEntry(
            path=path,
            tier=tier,
            raw_content="y" * tokens,
            skeleton=skeleton,
            map_text=map_text if map_text is not None else f"[root] | | @{path}",
            token_count=tokens,
            language="python",
            content_hash="0" * 64,
        )

    return _make


@pytest.fixture
def sample_project(tmp_path: Path) -> Path:
    """A small mixed-language project."""
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "modes.py").write_text(
        "def set_mode(mode):\n    return mode\n", encoding="utf-8"
    )
    (tmp_path / "src" / "main.py").write_text(
        "from modes import set_mode\n\n"
        'set_mode("fast")\n'
        'set_mode("slow")\n'
        'set_mode("safe")\n',
        encoding="utf-8",
    )
    (tmp_path / "src" / "math.js").write_text(
        "// math helpers\nfunction add(a, b) {\n  return a + b;\n}\n", encoding="utf-8"
    )
    (tmp_path / "README.txt").write_text("plain notes\n", encoding="utf-8")
    return tmp_path
