"""Typer CLI entry point for aics.

Bridges the synchronous Typer world to the async indexing pipeline via asyncio.run().
"""

from __future__ import annotations

import asyncio
import json
import tomllib
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from aics import __version__
from aics.config import PROJECT_CONFIG_NAME, AicsConfig, load_config, validate_config
from aics.engine.tiers import estimate_tokens
from aics.exceptions import AicsError, IndexerError
from aics.indexer.anchors import generate_anchors
from aics.indexer.lockfile import LockFile
from aics.indexer.pipeline import IndexPipeline, IndexResult, read_source
from aics.indexer.scanner import FileScanner
from aics.writers.markdown import render_markdown, write_atomic

app = typer.Typer(
    name="aics",
    help="aics: AI Context Sitemap generator.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
console = Console()

DRY_RUN_PREVIEW_CHARS = 500

_CONFIG_TEMPLATE = """\
# aics project configuration
# input = ["**/*"]
# output = ".ai-index.md"
# budget = 32000
# max_file_size = 1048576
# concurrency = 8

[tiers]
protected = ["core/**", "src/core/**"]
skeleton = ["test/**", "tests/**", "**/*.test.*"]
"""


def _error_exit(message: str, hint: str | None = None) -> None:
    """Print a styled error and exit."""
    console.print(f"[bold red]Error:[/bold red] {message}")
    if hint:
        console.print(f"[dim]Hint: {hint}[/dim]")
    raise typer.Exit(code=1)


def _project_identity(project_dir: Path) -> tuple[str, str]:
    """Return (name, version) from pyproject.toml or package.json, else the directory name."""
    pyproject = project_dir / "pyproject.toml"
    if pyproject.is_file():
        try:
            project = tomllib.loads(pyproject.read_text(encoding="utf-8")).get("project", {})
            if project.get("name"):
                return str(project["name"]), str(project.get("version", "0.0.0"))
        except (tomllib.TOMLDecodeError, OSError):
            pass
    package_json = project_dir / "package.json"
    if package_json.is_file():
        try:
            pkg = json.loads(package_json.read_text(encoding="utf-8"))
            if isinstance(pkg, dict) and pkg.get("name"):
                return str(pkg["name"]), str(pkg.get("version", "0.0.0"))
        except (json.JSONDecodeError, OSError):
            pass
    return project_dir.name or "Project", "0.0.0"


def _scan(config: AicsConfig) -> list[Path]:
    scanner = FileScanner(
        config.project_dir,
        include=config.input,
        exclude_files=[config.output, PROJECT_CONFIG_NAME],
    )
    return scanner.scan()


def _print_summary(result: IndexResult) -> None:
    table = Table(title="aics Index", border_style="cyan", header_style="bold cyan")
    table.add_column("Property", style="bold")
    table.add_column("Value")
    table.add_row("Files", str(len(result.entries)))
    if result.report is not None:
        table.add_row("Budget", str(result.report.budget))
        table.add_row("Tokens", f"{result.report.initial_tokens} -> {result.report.final_tokens}")
        table.add_row("Downgrades", str(len(result.report.downgrades)))
    table.add_row("Errors", str(len(result.errors)))
    table.add_row("Warnings", str(len(result.warnings)))
    console.print(table)

    for diag in result.errors:
        console.print(f"[red]Error[/red] {diag.path}: {diag.message}", highlight=False)
    for diag in result.warnings:
        where = f"{diag.path}: " if diag.path else ""
        console.print(f"[yellow]Warning[/yellow] {where}{diag.message}", highlight=False)


@app.command()
def gen(
    config_path: Annotated[
        Path | None, typer.Option("--config", "-c", help="Path to config file")
    ] = None,
    input_glob: Annotated[
        str | None, typer.Option("--input", "-i", help="Override input glob")
    ] = None,
    output: Annotated[str | None, typer.Option("--output", "-o", help="Output filename")] = None,
    budget: Annotated[int | None, typer.Option("--budget", "-b", help="Hard token limit")] = None,
    dry_run: Annotated[
        bool, typer.Option("--dry-run", help="Run the pipeline without writing")
    ] = False,
    clean: Annotated[bool, typer.Option("--clean", help="Discard the lockfile first")] = False,
    strict: Annotated[
        bool, typer.Option("--strict", help="Exit non-zero on any error or warning")
    ] = False,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Verbose output")] = False,
) -> None:
    """Generate the AI Context Sitemap."""
    try:
        project_dir = Path.cwd().resolve()
        config = load_config(project_dir, config_path)
        if input_glob:
            config.input = [input_glob]
        if output:
            config.output = output
        if budget is not None:
            config.budget = budget
        validate_config(config)

        lock = LockFile(project_dir)
        if clean:
            lock.clean()
        else:
            lock.load()

        paths = _scan(config)
        pipeline = IndexPipeline(config, verbose=verbose)
        result = asyncio.run(pipeline.run(paths))
        anchors = generate_anchors(project_dir)

        name, project_version = _project_identity(project_dir)
        document = render_markdown(name, project_version, result.entries, anchors)
        _print_summary(result)

        if dry_run:
            console.print("[yellow]Dry run complete.[/yellow] Output preview:")
            console.print(document[:DRY_RUN_PREVIEW_CHARS] + "...", markup=False, highlight=False)
        else:
            write_atomic(project_dir / config.output, document)
            lock.update({e.path: e.content_hash for e in result.entries})
            lock.save()
            console.print(f"[green]Generated[/green] {config.output}")

    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted.[/yellow] No output written.")
        raise typer.Exit(code=130)
    except AicsError as exc:
        _error_exit(str(exc))
    except Exception as exc:  # noqa: BLE001
        console.print_exception(show_locals=False)
        _error_exit(f"Unexpected error: {exc}")

    if strict and (result.errors or result.warnings):
        _error_exit(
            f"{len(result.errors)} errors and {len(result.warnings)} warnings in strict mode."
        )


@app.command()
def check(
    config_path: Annotated[
        Path | None, typer.Option("--config", "-c", help="Path to config file")
    ] = None,
    strict: Annotated[bool, typer.Option("--strict", help="Fail on any drift")] = False,
) -> None:
    """Verify the index is in sync with the source tree."""
    try:
        project_dir = Path.cwd().resolve()
        config = load_config(project_dir, config_path)
        lock = LockFile(project_dir)
        lock.load()

        console.print("[dim]Checking index integrity...[/dim]")
        drifted: list[str] = []
        seen: set[str] = set()
        for rel in _scan(config):
            rel_str = rel.as_posix()
            try:
                content = read_source(project_dir / rel, config.max_file_size)
            except (OSError, UnicodeDecodeError, IndexerError):
                continue
            seen.add(rel_str)
            if not lock.is_unchanged(rel_str, content):
                drifted.append(rel_str)
        removed = sorted(set(lock.files) - seen)
    except AicsError as exc:
        _error_exit(str(exc))
        return

    for rel_str in drifted:
        console.print(f"[yellow]Drift detected[/yellow] in {rel_str}", highlight=False)
    for rel_str in removed:
        console.print(f"[yellow]Removed[/yellow] {rel_str}", highlight=False)

    if drifted or removed:
        console.print("[red]Index is out of sync.[/red]")
        if strict:
            raise typer.Exit(code=1)
    else:
        console.print("[green]Index is up to date.[/green]")


@app.command()
def inspect(
    filepath: Annotated[Path, typer.Argument(help="File to inspect")],
) -> None:
    """Show what the index sees for a single file."""
    project_dir = Path.cwd().resolve()
    abs_path = (project_dir / filepath).resolve()
    if not abs_path.is_file():
        _error_exit(f"File not found: {abs_path}")
        return

    try:
        content = abs_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        _error_exit(f"Cannot read {filepath}: {exc}")
        return

    try:
        rel = abs_path.relative_to(project_dir)
    except ValueError:
        rel = Path(abs_path.name)

    pipeline = IndexPipeline(AicsConfig(project_dir=project_dir))
    result = asyncio.run(pipeline.skeletonize(rel, content))

    table = Table(title="Inspect", border_style="cyan", header_style="bold cyan")
    table.add_column("Property", style="bold")
    table.add_column("Value")
    table.add_row("Path", rel.as_posix())
    table.add_row("Tokens (original)", str(estimate_tokens(content)))
    table.add_row("Tokens (skeleton)", str(estimate_tokens(result.skeleton)))
    table.add_row("Keywords", ", ".join(result.keywords) or "-")
    table.add_row("Definitions", str(len(result.definitions)))
    table.add_row("Call sites", str(len(result.calls)))
    console.print(table)

    console.print(Panel(
        Text(result.skeleton),
        title="[bold cyan]Generated Skeleton[/bold cyan]",
        border_style="cyan",
    ))


@app.command()
def init() -> None:
    """Write an aics.toml template for this project."""
    config_path = Path.cwd().resolve() / PROJECT_CONFIG_NAME
    if config_path.is_file():
        console.print(f"[yellow]Already initialized:[/yellow] {config_path} exists")
        raise typer.Exit(code=0)

    config_path.write_text(_CONFIG_TEMPLATE, encoding="utf-8")
    console.print(Panel(
        Text.assemble(
            ("Created ", "green"),
            (str(config_path), "bold green"),
        ),
        title="[bold green]Project Initialized[/bold green]",
        border_style="green",
    ))
    console.print("\n[dim]Next step:[/dim] run [cyan]aics gen[/cyan]\n")


@app.command()
def version() -> None:
    """Print the aics version."""
    console.print(f"aics {__version__}")
