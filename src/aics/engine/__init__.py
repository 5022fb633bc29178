"""Indexing core: grammar loading, skeletonization, inference, and tier optimization."""

from __future__ import annotations

from aics.engine.grammars import Grammar, GrammarRegistry, is_valid_identifier, resolve_language
from aics.engine.inference import InferenceRegistry
from aics.engine.models import CallSite, Definition, Diagnostic, FileEntry, ParseResult, Tier
from aics.engine.skeleton import Skeletonizer
from aics.engine.tiers import PriorityClassifier, TierOptimizer, estimate_tokens

__all__ = [
    "CallSite",
    "Definition",
    "Diagnostic",
    "FileEntry",
    "Grammar",
    "GrammarRegistry",
    "InferenceRegistry",
    "ParseResult",
    "PriorityClassifier",
    "Skeletonizer",
    "Tier",
    "TierOptimizer",
    "estimate_tokens",
    "is_valid_identifier",
    "resolve_language",
]
