"""Grammar registry: extension lookup and memoized tree-sitter grammar loading."""

from __future__ import annotations

import asyncio
import importlib
import re
import threading
from dataclasses import dataclass
from importlib import resources
from typing import Any, ClassVar

from rich.console import Console
from tree_sitter import Language, Node, Parser, Query, QueryCursor, Tree

from aics.engine.singleflight import SingleFlight
from aics.exceptions import GrammarLoadError

console = Console(stderr=True)

_INVALID_IDENTIFIER = re.compile(r"[\s()\[\]{}*+=/><!]")


@dataclass(frozen=True, slots=True)
class LanguageSpec:
    """Static description of a supported language.

    Attributes:
        language_id: Identifier used throughout the pipeline.
        module: Name of the tree-sitter grammar distribution to import.
        factory: Function on that module returning the language pointer.
        query_name: Bundled query file stem (under aics/queries/).
        comment_nodes: Node types treated as ignorable comments.
        layout: "code" for brace/statement languages, "structured" where
            indentation or markup carries meaning.
        comment_prefix: Line comment marker used for annotations.
    """

    language_id: str
    module: str
    factory: str
    query_name: str
    comment_nodes: tuple[str, ...] = ("comment",)
    layout: str = "code"
    comment_prefix: str = "//"


LANGUAGES: dict[str, LanguageSpec] = {
    "python": LanguageSpec(
        "python", "tree_sitter_python", "language", "python",
        layout="structured", comment_prefix="#",
    ),
    "javascript": LanguageSpec("javascript", "tree_sitter_javascript", "language", "javascript"),
    "typescript": LanguageSpec(
        "typescript", "tree_sitter_typescript", "language_typescript", "typescript"
    ),
    "tsx": LanguageSpec("tsx", "tree_sitter_typescript", "language_tsx", "typescript"),
    "rust": LanguageSpec(
        "rust", "tree_sitter_rust", "language", "rust",
        comment_nodes=("line_comment", "block_comment"),
    ),
    "html": LanguageSpec(
        "html", "tree_sitter_html", "language", "html",
        layout="structured", comment_prefix="",
    ),
    "css": LanguageSpec("css", "tree_sitter_css", "language", "css", comment_prefix=""),
}

EXTENSIONS: dict[str, str] = {
    ".py": "python",
    ".pyi": "python",
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".ts": "typescript",
    ".mts": "typescript",
    ".cts": "typescript",
    ".tsx": "tsx",
    ".rs": "rust",
    ".html": "html",
    ".htm": "html",
    ".css": "css",
}


def resolve_language(extension: str) -> str | None:
    """Map a file extension (with leading dot) to a language identifier."""
    return EXTENSIONS.get(extension.lower())


def is_valid_identifier(text: str) -> bool:
    """Return True if a captured token looks like a bare identifier.

    Captures containing whitespace, brackets or operator characters matched
    an expression rather than a name and must be discarded.
    """
    return bool(text) and _INVALID_IDENTIFIER.search(text) is None


class Grammar:
    """A loaded tree-sitter language with its compiled query.

    Parsers are not safe to share between threads, so each worker thread
    lazily gets its own reusable parser.
    """

    def __init__(self, spec: LanguageSpec, language: Language, query: Query) -> None:
        self.spec = spec
        self.language = language
        self.query = query
        self._local = threading.local()

    @property
    def language_id(self) -> str:
        return self.spec.language_id

    def parse(self, content: bytes) -> Tree:
        """Parse source bytes with this thread's parser."""
        parser: Parser | None = getattr(self._local, "parser", None)
        if parser is None:
            parser = Parser(self.language)
            self._local.parser = parser
        return parser.parse(content)

    def captures(self, node: Node) -> dict[str, list[Node]]:
        """Run the query against node, returning capture name -> nodes."""
        return QueryCursor(self.query).captures(node)


class GrammarRegistry:
    """Loads each grammar at most once per registry, even under concurrency.

    Failed loads are memoized: the warning is printed once and every later
    request for that language raises the same GrammarLoadError.

    Usage::

        registry = GrammarRegistry()
        grammar = await registry.load("python")
    """

    QUERY_PACKAGE: ClassVar[str] = "aics"

    def __init__(self, languages: dict[str, LanguageSpec] | None = None) -> None:
        self._languages = languages if languages is not None else LANGUAGES
        self._flights: SingleFlight[str, Grammar] = SingleFlight()

    def spec_for(self, language_id: str) -> LanguageSpec | None:
        return self._languages.get(language_id)

    async def load(self, language_id: str) -> Grammar:
        """Return the grammar for language_id, loading it on first use.

        Raises:
            GrammarLoadError: If the grammar or its query cannot be loaded.
        """
        return await self._flights.get(
            language_id, lambda: asyncio.to_thread(self._load_sync, language_id)
        )

    def state(self, language_id: str) -> str:
        """Return the load state for language_id (see SingleFlight.peek)."""
        return self._flights.peek(language_id)

    def _load_sync(self, language_id: str) -> Grammar:
        spec = self._languages.get(language_id)
        if spec is None:
            raise GrammarLoadError(language_id, "unsupported language")
        try:
            module: Any = importlib.import_module(spec.module)
            language = Language(getattr(module, spec.factory)())
            query = Query(language, self._query_source(spec))
        except Exception as exc:
            console.print(
                f"[yellow]Warning[/yellow]: {language_id} files will be passed through "
                f"unparsed ({type(exc).__name__}: {exc})"
            )
            raise GrammarLoadError(language_id, str(exc)) from exc
        return Grammar(spec, language, query)

    def _query_source(self, spec: LanguageSpec) -> str:
        """Read the bundled query and append the comment rule."""
        source = ""
        path = resources.files(self.QUERY_PACKAGE) / "queries" / f"{spec.query_name}.scm"
        if path.is_file():
            source = path.read_text(encoding="utf-8")
        rules = "\n".join(f"({node}) @ignore" for node in spec.comment_nodes)
        return f"{source}\n{rules}\n"
