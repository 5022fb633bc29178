"""Tests for the markdown index writer."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

from aics.engine.models import FileEntry, Tier
from aics.writers.markdown import render_markdown, write_atomic


class TestRenderMarkdown:
    def test_sections_by_tier(self, make_entry: Callable[..., FileEntry]) -> None:
        full = make_entry("src/full.py", tokens=5)
        full.raw_content = "def full():\n    return 1\n"
        signature = make_entry("src/sig.py", tier=Tier.SIGNATURE, skeleton="def sig():\n    {}")
        mapped = make_entry("src/map.py", tier=Tier.MAP, map_text="[src] | mapped | @src/map.py")
        dropped = make_entry("src/drop.py", tier=Tier.DROP, map_text="[src] | gone | @src/drop.py")

        doc = render_markdown("demo", "1.2.3", [signature, full, mapped, dropped])

        assert doc.startswith("# AI-INDEX | demo | 1.2.3\n")
        assert "[src] | mapped | @src/map.py" in doc
        assert "gone" not in doc
        assert "> src/full.py\n```python\ndef full():\n    return 1\n```" in doc
        assert "> src/sig.py\n```python\ndef sig():\n    {}\n```" in doc
        assert "> src/map.py" not in doc
        assert doc.index("> src/full.py") < doc.index("> src/sig.py")
        assert "// No anchors detected." in doc

    def test_anchor_matching(self, make_entry: Callable[..., FileEntry]) -> None:
        entries = [make_entry("src/app/core.py"), make_entry("src/math.ts")]
        anchors = {"app/core": ["test_runs"], "src/math": ["adds numbers", "adds numbers"]}

        doc = render_markdown("demo", "0.1.0", entries, anchors)

        assert "[Test: test_runs] -> @src/app/core.py" in doc
        assert doc.count("[Test: adds numbers] -> @src/math.ts") == 1
        assert "No anchors detected" not in doc


class TestWriteAtomic:
    def test_writes_without_leftovers(self, tmp_path: Path) -> None:
        target = tmp_path / "out" / "INDEX.md"

        write_atomic(target, "hello\n")
        write_atomic(target, "replaced\n")

        assert target.read_text(encoding="utf-8") == "replaced\n"
        assert list(target.parent.iterdir()) == [target]
