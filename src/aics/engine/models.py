"""Data model shared by the parse, inference, and optimization stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any


class Tier(IntEnum):
    """Detail level of a file in the index. Higher values carry less detail."""

    FULL = 1
    SIGNATURE = 2
    MAP = 3
    DROP = 4


@dataclass(frozen=True, slots=True)
class Capture:
    """A located span matched by a language query.

    Attributes:
        start_byte: Offset of the first byte of the span.
        end_byte: Offset one past the last byte of the span.
        kind: Capture name from the query (e.g. "ignore", "name", "call_name").
        node: The tree-sitter node the span came from.
    """

    start_byte: int
    end_byte: int
    kind: str
    node: Any = field(default=None, compare=False, repr=False)


@dataclass(frozen=True, slots=True)
class Replacement:
    """A byte span of the source to be replaced by ``text``."""

    start: int
    end: int
    text: str


@dataclass(frozen=True, slots=True)
class Definition:
    """A named declaration extracted from one file.

    Attributes:
        name: Declared identifier.
        kind: One of "function", "class", "variable".
        file: Path of the declaring file (relative to project root).
        signature_line: The stripped source line holding the declaration.
    """

    name: str
    kind: str
    file: str
    signature_line: str


@dataclass(slots=True)
class CallSite:
    """One call-expression occurrence with its literal arguments."""

    name: str
    args: list[str]
    file: str
    line: int


@dataclass(slots=True)
class InferredData:
    """Evidence aggregated for one callee name across the whole run."""

    values: set[str] = field(default_factory=set)
    usage_count: int = 0
    is_deprecated: bool = False


@dataclass(slots=True)
class ParseResult:
    """Output of skeletonizing one file."""

    skeleton: str
    keywords: list[str] = field(default_factory=list)
    definitions: list[Definition] = field(default_factory=list)
    calls: list[CallSite] = field(default_factory=list)


@dataclass(slots=True)
class FileEntry:
    """A processed file, ready for optimization and rendering.

    Only ``tier`` and ``token_count`` change after creation, and only
    through the tier optimizer.

    Attributes:
        path: Path relative to the project root, with forward slashes.
        tier: Current detail level.
        raw_content: Original file text.
        skeleton: Enriched skeleton text (Signature representation).
        map_text: One-line map representation.
        token_count: Token cost of the representation for the current tier.
        language: Language identifier, or "" for pass-through files.
        content_hash: SHA-256 of raw_content.
        keywords: Symbol names found in the file, in source order.
    """

    path: str
    tier: Tier
    raw_content: str
    skeleton: str
    map_text: str
    token_count: int
    language: str
    content_hash: str
    keywords: list[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class Diagnostic:
    """A warning or error attached to a file (or to the whole run when path is None)."""

    path: str | None
    message: str
