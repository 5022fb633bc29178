"""Indexing pipeline: bounded-concurrency skeletonization, inference, and tier optimization."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath

from rich.console import Console

from aics.config import AicsConfig
from aics.engine.grammars import Grammar, GrammarRegistry, resolve_language
from aics.engine.inference import InferenceRegistry
from aics.engine.models import Diagnostic, FileEntry, ParseResult, Tier
from aics.engine.skeleton import Skeletonizer
from aics.engine.tiers import OptimizationReport, PriorityClassifier, TierOptimizer, estimate_tokens
from aics.exceptions import GrammarLoadError, IndexerError
from aics.indexer.lockfile import content_hash

console = Console(stderr=True)

MAP_KEYWORD_LIMIT = 5


@dataclass
class IndexResult:
    """Everything the renderer and the lockfile need from one run.

    Attributes:
        entries: Processed files sorted by path.
        errors: Files that could not be processed (excluded from entries).
        warnings: Non-fatal problems (grammar failures, unmet budget).
        report: Tier optimizer outcome.
    """

    entries: list[FileEntry] = field(default_factory=list)
    errors: list[Diagnostic] = field(default_factory=list)
    warnings: list[Diagnostic] = field(default_factory=list)
    report: OptimizationReport | None = None

    @property
    def total_tokens(self) -> int:
        return sum(e.token_count for e in self.entries)


@dataclass(frozen=True, slots=True)
class _Parsed:
    path: str
    content: str
    language: str
    parsed: bool
    result: ParseResult


def read_source(path: Path, max_file_size: int) -> str:
    """Read a candidate file as UTF-8 text if it is small enough to index.

    Raises:
        IndexerError: If the file is larger than max_file_size bytes.
        OSError: If the file cannot be read.
        UnicodeDecodeError: If the file is not valid UTF-8.
    """
    size = path.stat().st_size
    if size > max_file_size:
        raise IndexerError(f"File too large ({size} bytes > {max_file_size} bytes)")
    return path.read_bytes().decode("utf-8")


def build_map_line(path: str, keywords: Sequence[str]) -> str:
    """Return the one-line map representation of a file."""
    parent = PurePosixPath(path).parent.name
    category = parent or "root"
    return f"[{category}] | {', '.join(keywords[:MAP_KEYWORD_LIMIT])} | @{path}"


class IndexPipeline:
    """Turns candidate paths into optimized FileEntry objects.

    Files are skeletonized in worker threads, at most ``config.concurrency``
    at a time, each ingesting its symbols into one InferenceRegistry.
    Enrichment and optimization run only once every worker has finished.

    Usage::

        pipeline = IndexPipeline(config)
        result = await pipeline.run(FileScanner(config.project_dir).scan())
    """

    def __init__(
        self,
        config: AicsConfig,
        grammars: GrammarRegistry | None = None,
        verbose: bool = False,
    ) -> None:
        """Initialize the pipeline.

        Args:
            config: Resolved configuration.
            grammars: Grammar registry to share across runs; a fresh one by default.
            verbose: Print per-file progress.
        """
        self._config = config
        self._project_dir = config.project_dir
        self._grammars = grammars or GrammarRegistry()
        self._skeletonizer = Skeletonizer()
        self._verbose = verbose

    @property
    def grammars(self) -> GrammarRegistry:
        return self._grammars

    async def run(self, paths: Sequence[Path]) -> IndexResult:
        """Process paths (relative to the project root) into an IndexResult."""
        result = IndexResult()
        registry = InferenceRegistry()
        semaphore = asyncio.Semaphore(self._config.concurrency)
        reported_languages: set[str] = set()

        async def _worker(rel: Path) -> _Parsed | None:
            async with semaphore:
                try:
                    parsed = await self._process(rel, reported_languages, result.warnings)
                    registry.ingest(parsed.result.definitions, parsed.result.calls)
                except (OSError, UnicodeDecodeError, IndexerError) as exc:
                    _record_error(result, rel, str(exc))
                    return None
                except Exception as exc:  # noqa: BLE001
                    _record_error(result, rel, f"{type(exc).__name__}: {exc}")
                    return None
                return parsed

        async with asyncio.TaskGroup() as group:
            tasks = [group.create_task(_worker(rel)) for rel in paths]

        # Every worker has finished: switch the registry to enrichment.
        registry.close_ingestion()
        outcomes = sorted(
            (parsed for task in tasks if (parsed := task.result()) is not None),
            key=lambda p: p.path,
        )
        result.entries = [self._build_entry(parsed, registry) for parsed in outcomes]
        result.errors.sort(key=lambda d: d.path or "")
        result.warnings.sort(key=lambda d: (d.path or "", d.message))

        optimizer = TierOptimizer(
            self._config.budget,
            PriorityClassifier(self._config.tiers.protected, self._config.tiers.skeleton),
        )
        result.report = optimizer.optimize(result.entries)
        if result.report.over_budget:
            over = result.report.final_tokens - result.report.budget
            result.warnings.append(
                Diagnostic(None, f"Still over budget by {over} tokens after optimization")
            )

        console.print(
            f"[green]Indexer[/green] indexed [bold]{len(result.entries)}[/bold] files "
            f"([bold]{result.total_tokens}[/bold] tokens, {len(result.errors)} errors)"
        )
        return result

    async def skeletonize(self, rel: Path, content: str) -> ParseResult:
        """Skeletonize one file without inference (used by ``aics inspect``)."""
        grammar = await self._grammar_for(rel, set(), [])
        return self._skeletonizer.skeletonize(content, rel.as_posix(), grammar)

    async def _process(
        self, rel: Path, reported: set[str], warnings: list[Diagnostic]
    ) -> _Parsed:
        content = await asyncio.to_thread(
            read_source, self._project_dir / rel, self._config.max_file_size
        )

        grammar = await self._grammar_for(rel, reported, warnings)
        parse_result = await asyncio.to_thread(
            self._skeletonizer.skeletonize, content, rel.as_posix(), grammar
        )
        language = grammar.language_id if grammar else (resolve_language(rel.suffix) or "")
        if self._verbose:
            console.print(
                f"[dim]Parsed {rel.as_posix()} ({language or 'plain'}, "
                f"{len(parse_result.definitions)} definitions, "
                f"{len(parse_result.calls)} calls)[/dim]"
            )
        return _Parsed(rel.as_posix(), content, language, grammar is not None, parse_result)

    async def _grammar_for(
        self, rel: Path, reported: set[str], warnings: list[Diagnostic]
    ) -> Grammar | None:
        language_id = resolve_language(rel.suffix)
        if language_id is None:
            return None
        try:
            return await self._grammars.load(language_id)
        except GrammarLoadError as exc:
            if language_id not in reported:
                reported.add(language_id)
                warnings.append(Diagnostic(None, str(exc)))
            return None

    def _build_entry(self, parsed: _Parsed, registry: InferenceRegistry) -> FileEntry:
        skeleton = parsed.result.skeleton
        if parsed.parsed:
            skeleton = registry.enrich(skeleton, parsed.language)
        return FileEntry(
            path=parsed.path,
            tier=Tier.FULL,
            raw_content=parsed.content,
            skeleton=skeleton,
            map_text=build_map_line(parsed.path, parsed.result.keywords),
            token_count=estimate_tokens(parsed.content),
            language=parsed.language,
            content_hash=content_hash(parsed.content),
            keywords=list(parsed.result.keywords),
        )


def _record_error(result: IndexResult, rel: Path, message: str) -> None:
    result.errors.append(Diagnostic(rel.as_posix(), message))
    console.print(f"[yellow]Warning[/yellow]: Skipping {rel.as_posix()}: {message}")
