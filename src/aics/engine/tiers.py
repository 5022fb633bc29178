"""Token-budget tier optimizer with priority-class downgrade passes."""

from __future__ import annotations

import fnmatch
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from enum import IntEnum

from rich.console import Console

from aics.engine.models import FileEntry, Tier

console = Console(stderr=True)

_COMMENT_PREFIXES = ("#", "//", "/*", "*", '"""', "'''", "<!--")


def estimate_tokens(text: str) -> int:
    """Estimate token count with code/comment-aware heuristic.

    Code lines average ~3.5 chars/token due to variable names and syntax.
    Comment/docstring lines average ~4.5 chars/token (more natural language).

    Args:
        text: Input text.

    Returns:
        Estimated number of tokens.
    """
    if not text:
        return 0

    total = 0
    for line in text.splitlines():
        stripped = line.lstrip()
        length = len(line)
        if not stripped:
            total += 1  # blank line ≈ 1 token
        elif stripped.startswith(_COMMENT_PREFIXES):
            total += max(1, int(length / 4.5))
        else:
            total += max(1, int(length / 3.5))
    return total


class Priority(IntEnum):
    """Downgrade priority; lower values are downgraded first."""

    LOW = 0
    STANDARD = 1
    PROTECTED = 2


class PriorityClassifier:
    """Classifies paths by glob sets. Protected patterns win over skeleton ones."""

    def __init__(self, protected: Iterable[str] = (), skeleton: Iterable[str] = ()) -> None:
        self._protected = tuple(protected)
        self._skeleton = tuple(skeleton)

    def classify(self, path: str) -> Priority:
        if _matches(path, self._protected):
            return Priority.PROTECTED
        if _matches(path, self._skeleton):
            return Priority.LOW
        return Priority.STANDARD


def _matches(path: str, patterns: tuple[str, ...]) -> bool:
    for pattern in patterns:
        if fnmatch.fnmatchcase(path, pattern):
            return True
        # A leading "**/" also matches files at the root.
        if pattern.startswith("**/") and fnmatch.fnmatchcase(path, pattern[3:]):
            return True
    return False


@dataclass(slots=True)
class OptimizationReport:
    """Outcome of one optimizer run.

    Attributes:
        budget: The token ceiling.
        initial_tokens: Total before any downgrade.
        final_tokens: Total after optimization.
        downgrades: (path, from tier, to tier) in the order applied.
    """

    budget: int
    initial_tokens: int
    final_tokens: int
    downgrades: list[tuple[str, Tier, Tier]] = field(default_factory=list)

    @property
    def over_budget(self) -> bool:
        return self.final_tokens > self.budget


# (priority class, current tier, target tier), in the order they run.
_PASSES: tuple[tuple[Priority, Tier, Tier], ...] = (
    (Priority.LOW, Tier.FULL, Tier.SIGNATURE),
    (Priority.STANDARD, Tier.FULL, Tier.SIGNATURE),
    (Priority.LOW, Tier.SIGNATURE, Tier.MAP),
    (Priority.STANDARD, Tier.SIGNATURE, Tier.MAP),
)


class TierOptimizer:
    """Greedily downgrades files until the total token count fits the budget.

    Files only move toward less detail (Full -> Signature -> Map); protected
    files are never touched and Drop is never produced. Within a pass, files
    are visited in (priority, path) order so results are reproducible.
    """

    def __init__(
        self,
        budget: int,
        classifier: PriorityClassifier,
        count_tokens: Callable[[str], int] = estimate_tokens,
    ) -> None:
        self._budget = budget
        self._classifier = classifier
        self._count_tokens = count_tokens

    def optimize(self, files: list[FileEntry]) -> OptimizationReport:
        """Mutate tier and token_count of files in place to fit the budget.

        Args:
            files: All processed files.

        Returns:
            A report; ``over_budget`` is True when the budget could not be met.
        """
        total = sum(f.token_count for f in files)
        report = OptimizationReport(budget=self._budget, initial_tokens=total, final_tokens=total)
        if total <= self._budget:
            return report

        console.print(
            f"[blue]Optimizer[/blue] budget exceeded ({total} > {self._budget}), "
            "downgrading tiers..."
        )
        for priority, current, target in _PASSES:
            if total <= self._budget:
                break
            # Classes are re-derived for every pass.
            ordered = sorted(
                files, key=lambda f: (self._classifier.classify(f.path), f.path)
            )
            for entry in ordered:
                if total <= self._budget:
                    break
                if self._classifier.classify(entry.path) != priority or entry.tier != current:
                    continue
                total += self._downgrade(entry, target)
                report.downgrades.append((entry.path, current, target))

        report.final_tokens = total
        if report.over_budget:
            console.print(
                f"[yellow]Warning[/yellow]: Still over budget by {total - self._budget} "
                "tokens after optimization"
            )
        else:
            console.print(f"[green]Optimizer[/green] fit index into {total} tokens")
        return report

    def _downgrade(self, entry: FileEntry, target: Tier) -> int:
        """Move entry to target tier and return the token delta."""
        if entry.tier >= target:
            return 0
        text = entry.skeleton if target == Tier.SIGNATURE else entry.map_text
        tokens = self._count_tokens(text)
        delta = tokens - entry.token_count
        entry.token_count = tokens
        entry.tier = target
        return delta
