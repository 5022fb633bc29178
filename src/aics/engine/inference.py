"""Cross-file inference registry: observed call-site literals per callee name."""

from __future__ import annotations

import re
import threading
from collections.abc import Iterable
from typing import Protocol

from rich.console import Console

from aics.engine.grammars import LANGUAGES
from aics.engine.models import CallSite, Definition, InferredData
from aics.engine.skeleton import MAX_LITERAL_LENGTH
from aics.exceptions import InferencePhaseError

console = Console(stderr=True)

MAX_OBSERVED_VALUES = 10
ANNOTATION_TAG = "@observed:"

_DECL_KEYWORDS = r"(?:def|function\*?|class|fn|interface|struct|trait|enum)"
_DECL_MODIFIERS = r"(?:(?:export|default|async|pub|pub\(crate\)|abstract|static|declare)\s+)*"


class DeclarationAnnotator(Protocol):
    """Appends an annotation to the declaration line of a name."""

    def annotate(self, text: str, name: str, annotation: str) -> str:
        """Return text with annotation appended to each declaration line of name."""
        ...


class RegexDeclarationAnnotator:
    """Text heuristic: a declaration line starts with a declaration keyword
    (after optional modifiers) followed by the name as a whole token.
    """

    def annotate(self, text: str, name: str, annotation: str) -> str:
        pattern = re.compile(
            rf"^([ \t]*{_DECL_MODIFIERS}{_DECL_KEYWORDS}[ \t]+{re.escape(name)}(?![\w$])[^\r\n]*)",
            re.MULTILINE,
        )

        def _append(match: re.Match[str]) -> str:
            line = match.group(1)
            if ANNOTATION_TAG in line:
                return line
            return f"{line} {annotation}"

        return pattern.sub(_append, text)


class InferenceRegistry:
    """Run-lifetime aggregate of definitions and call-site evidence.

    Two phases separated by an explicit barrier: ``ingest`` may be called
    concurrently from any worker until ``close_ingestion``; ``enrich`` is
    only allowed afterwards.

    Usage::

        registry = InferenceRegistry()
        registry.ingest(result.definitions, result.calls)
        registry.close_ingestion()
        skeleton = registry.enrich(skeleton, "python")
    """

    def __init__(self, annotator: DeclarationAnnotator | None = None) -> None:
        self._annotator: DeclarationAnnotator = annotator or RegexDeclarationAnnotator()
        self._lock = threading.Lock()
        self._closed = False
        self._definitions: list[Definition] = []
        self._inferred: dict[str, InferredData] = {}

    @property
    def definitions(self) -> list[Definition]:
        return list(self._definitions)

    def inferred(self, name: str) -> InferredData | None:
        """Return aggregated evidence for a callee name, if any call was seen."""
        return self._inferred.get(name)

    def ingest(self, definitions: Iterable[Definition], call_sites: Iterable[CallSite]) -> None:
        """Add one file's definitions and call sites.

        Raises:
            InferencePhaseError: If ingestion has already been closed.
        """
        with self._lock:
            if self._closed:
                raise InferencePhaseError("Cannot ingest after enrichment has started")
            self._definitions.extend(definitions)
            for call in call_sites:
                data = self._inferred.setdefault(call.name, InferredData())
                data.usage_count += 1
                data.values.update(arg for arg in call.args if len(arg) < MAX_LITERAL_LENGTH)

    def close_ingestion(self) -> None:
        """Mark every file as ingested; enrichment may start."""
        with self._lock:
            self._closed = True

    def enrich(self, skeleton: str, language: str | None = None) -> str:
        """Annotate declaration lines with the literal values observed at call sites.

        Names with no observed values or with MAX_OBSERVED_VALUES or more are
        skipped. A name that fails to match is skipped without affecting others.

        Args:
            skeleton: Skeleton text of one file.
            language: Language identifier, used to pick the comment syntax.

        Returns:
            The annotated skeleton.

        Raises:
            InferencePhaseError: If called before close_ingestion().
        """
        if not self._closed:
            raise InferencePhaseError("Cannot enrich before ingestion is closed")

        prefix = "//"
        if language is not None and language in LANGUAGES:
            prefix = LANGUAGES[language].comment_prefix
        if not prefix:
            return skeleton

        text = skeleton
        for name in sorted(self._inferred):
            data = self._inferred[name]
            if not 0 < len(data.values) < MAX_OBSERVED_VALUES:
                continue
            values = " | ".join(f'"{v}"' for v in sorted(data.values))
            try:
                text = self._annotator.annotate(text, name, f"{prefix} {ANNOTATION_TAG} {values}")
            except (re.error, RecursionError) as exc:
                console.print(
                    f"[yellow]Warning[/yellow]: Skipping inference on {name[:20]!r}: {exc}"
                )
        return text
