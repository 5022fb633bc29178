"""Discovery, lockfile, test anchors, and the indexing pipeline."""

from __future__ import annotations

from aics.indexer.lockfile import LockFile, content_hash
from aics.indexer.pipeline import IndexPipeline, IndexResult, read_source
from aics.indexer.scanner import FileScanner

__all__ = [
    "FileScanner",
    "IndexPipeline",
    "IndexResult",
    "LockFile",
    "content_hash",
    "read_source",
]
