"""Index document writers."""

from __future__ import annotations

from aics.writers.markdown import render_markdown, write_atomic

__all__ = ["render_markdown", "write_atomic"]
