"""Configuration management for aics.

Settings are loaded from three sources in order of priority:
1. Environment variables (highest priority)
2. Project-level config: aics.toml (or an explicit --config path)
3. Global config: ~/.config/aics/config.toml (lowest priority)
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from rich.console import Console

from aics.exceptions import ConfigError

console = Console(stderr=True)

_GLOBAL_CONFIG_DIR = Path.home() / ".config" / "aics"
_GLOBAL_CONFIG_PATH = _GLOBAL_CONFIG_DIR / "config.toml"
PROJECT_CONFIG_NAME = "aics.toml"


@dataclass(frozen=True)
class TierConfig:
    """Glob sets steering the tier optimizer.

    Attributes:
        protected: Paths never downgraded.
        skeleton: Paths downgraded first.
    """

    protected: tuple[str, ...] = ("src/core/**",)
    skeleton: tuple[str, ...] = ("tests/**", "**/*.test.*", "**/*.spec.*")


@dataclass
class AicsConfig:
    """aics configuration.

    Attributes:
        project_dir: Root of the indexed tree.
        input: Glob patterns selecting candidate files.
        output: Index document path (relative to project_dir).
        budget: Global token ceiling for the index.
        max_file_size: Files larger than this many bytes are skipped.
        concurrency: Maximum files skeletonized at once.
        tiers: Protected and low-priority glob sets.
    """

    project_dir: Path = field(default_factory=Path.cwd)
    input: list[str] = field(default_factory=lambda: ["**/*"])
    output: str = ".ai-index.md"
    budget: int = 32_000
    max_file_size: int = 1_048_576
    concurrency: int = 8
    tiers: TierConfig = field(default_factory=TierConfig)


def load_config(project_dir: Path, config_path: Path | None = None) -> AicsConfig:
    """Load configuration from env vars, project config, and global config.

    Priority: env vars > aics.toml > ~/.config/aics/config.toml

    Args:
        project_dir: Root directory of the project.
        config_path: Explicit project config file; must exist when given.

    Returns:
        A fully resolved AicsConfig instance.

    Raises:
        ConfigError: If config_path is missing or a value is invalid.
    """
    config = AicsConfig(project_dir=project_dir)

    # Layer 1: Global config (lowest priority)
    _apply_toml(config, _load_toml(_GLOBAL_CONFIG_PATH))

    # Layer 2: Project config
    if config_path is not None:
        if not config_path.is_file():
            raise ConfigError(f"Config file not found: {config_path}")
        try:
            settings = tomllib.loads(config_path.read_text(encoding="utf-8"))
        except (tomllib.TOMLDecodeError, OSError) as exc:
            raise ConfigError(f"Cannot parse {config_path}: {exc}") from exc
    else:
        settings = _load_toml(project_dir / PROJECT_CONFIG_NAME)
    _apply_toml(config, settings)

    # Layer 3: Environment variables (highest priority)
    _apply_env(config)

    validate_config(config)
    return config


def validate_config(config: AicsConfig) -> None:
    """Reject values the pipeline cannot run with.

    Raises:
        ConfigError: On a non-positive budget, concurrency or size limit.
    """
    if config.budget <= 0:
        raise ConfigError(f"budget must be positive, got {config.budget}")
    if config.concurrency <= 0:
        raise ConfigError(f"concurrency must be positive, got {config.concurrency}")
    if config.max_file_size <= 0:
        raise ConfigError(f"max_file_size must be positive, got {config.max_file_size}")
    if not config.input:
        raise ConfigError("input must list at least one glob pattern")


def _load_toml(path: Path) -> dict[str, Any]:
    """Load a TOML file, returning an empty dict if missing or invalid."""
    if not path.is_file():
        return {}
    try:
        return tomllib.loads(path.read_text(encoding="utf-8"))
    except (tomllib.TOMLDecodeError, OSError) as exc:
        console.print(f"[yellow]Warning:[/yellow] Could not parse {path}: {exc}")
        return {}


def _apply_toml(config: AicsConfig, settings: dict[str, Any]) -> None:
    """Merge TOML settings into an AicsConfig; [tiers] is merged key by key."""
    try:
        if "input" in settings:
            raw = settings["input"]
            config.input = [str(raw)] if isinstance(raw, str) else [str(p) for p in raw]
        if "output" in settings:
            config.output = str(settings["output"])
        if "budget" in settings:
            config.budget = int(settings["budget"])
        if "max_file_size" in settings:
            config.max_file_size = int(settings["max_file_size"])
        if "concurrency" in settings:
            config.concurrency = int(settings["concurrency"])
        tiers = settings.get("tiers")
        if isinstance(tiers, dict):
            config.tiers = TierConfig(
                protected=tuple(str(p) for p in tiers.get("protected", config.tiers.protected)),
                skeleton=tuple(str(p) for p in tiers.get("skeleton", config.tiers.skeleton)),
            )
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid configuration value: {exc}") from exc


def _apply_env(config: AicsConfig) -> None:
    """Override config with environment variables where set."""
    try:
        if budget := os.environ.get("AICS_BUDGET"):
            config.budget = int(budget)
        if output := os.environ.get("AICS_OUTPUT"):
            config.output = output
        if concurrency := os.environ.get("AICS_CONCURRENCY"):
            config.concurrency = int(concurrency)
        if max_size := os.environ.get("AICS_MAX_FILE_SIZE"):
            config.max_file_size = int(max_size)
    except ValueError as exc:
        raise ConfigError(f"Invalid environment override: {exc}") from exc
