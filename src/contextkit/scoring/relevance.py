"""Deterministic additive relevance scoring.

Every candidate starts at zero and collects a fixed weight for each signal it
matches. Signal categories are toggled and weighted independently; none of
them can suppress another. The scorer does no I/O.
"""

from __future__ import annotations

import logging
import posixpath
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

from contextkit.cancellation import CancellationToken, is_cancelled
from contextkit.config import ScoringConfig, ScoringWeights
from contextkit.graph.dependencies import DependencyRelation, RelationType
from contextkit.selection import FileSelection
from contextkit.symbols.models import ActiveSymbolInfo
from contextkit.workspace.scanner import CandidateFile

logger = logging.getLogger("contextkit.scoring")


@dataclass(frozen=True)
class RelevanceScore:
    path: str
    score: float
    factors: dict[str, float] = field(default_factory=dict)


@dataclass
class ScoringSignals:
    """Everything the scorer knows about the current request."""

    active_file: str | None = None
    definitions: frozenset[str] = frozenset()
    type_definitions: frozenset[str] = frozenset()
    implementations: frozenset[str] = frozenset()
    referenced_types: frozenset[str] = frozenset()
    call_hierarchy: frozenset[str] = frozenset()
    dependencies: Mapping[str, Sequence[DependencyRelation]] = field(default_factory=dict)
    reverse_dependencies: Mapping[str, Sequence[str]] = field(default_factory=dict)

    @classmethod
    def from_active_symbol(
        cls,
        active_file: str | None,
        symbol: ActiveSymbolInfo | None,
        dependencies: Mapping[str, Sequence[DependencyRelation]] | None = None,
        reverse_dependencies: Mapping[str, Sequence[str]] | None = None,
    ) -> ScoringSignals:
        signals = cls(
            active_file=active_file,
            dependencies=dependencies or {},
            reverse_dependencies=reverse_dependencies or {},
        )
        if symbol is None:
            return signals
        signals.definitions = frozenset(symbol.definition_paths())
        signals.type_definitions = frozenset(symbol.type_definition_paths())
        signals.implementations = frozenset(symbol.implementation_paths())
        signals.referenced_types = frozenset(symbol.referenced_type_definitions)
        signals.call_hierarchy = frozenset(symbol.call_hierarchy_paths())
        return signals

    def symbol_paths(self) -> frozenset[str]:
        return (
            self.definitions
            | self.type_definitions
            | self.implementations
            | self.referenced_types
            | self.call_hierarchy
        )


def _directory_parts(path: str) -> list[str]:
    return posixpath.dirname(path).split("/") if "/" in path else ["."]


def directory_proximity(
    active_path: str, candidate_path: str, weights: ScoringWeights
) -> dict[str, float]:
    """Proximity factors between two workspace-relative file paths.

    Same directory earns ``same_directory``. Otherwise a candidate whose
    parent directory is the active directory's parent (and that parent is not
    the root) earns ``neighbor_directory``, and each leading directory segment
    the two share earns ``shared_ancestor``.
    """
    active_dir = posixpath.dirname(active_path) or "."
    candidate_dir = posixpath.dirname(candidate_path) or "."
    factors: dict[str, float] = {}

    if active_dir == candidate_dir:
        factors["same_directory"] = weights.same_directory
        return factors

    active_parent = posixpath.dirname(active_dir) or "."
    candidate_parent = posixpath.dirname(candidate_dir) or "."
    if active_dir != "." and active_parent != "." and candidate_parent == active_parent:
        factors["neighbor_directory"] = weights.neighbor_directory

    common = 0
    for a, b in zip(_directory_parts(active_path), _directory_parts(candidate_path)):
        if a != b or a == ".":
            break
        common += 1
    if common:
        factors["shared_ancestor"] = weights.shared_ancestor * common
    return factors


class RelevanceScorer:
    """Ranks candidates against the active file, symbol and dependency signals."""

    def __init__(self, config: ScoringConfig | None = None) -> None:
        self.config = config or ScoringConfig()

    def score(
        self,
        candidates: Sequence[CandidateFile | str],
        signals: ScoringSignals,
        token: CancellationToken | None = None,
    ) -> list[RelevanceScore]:
        """Score, sort (score desc, path asc) and truncate to ``max_candidates``."""
        if not self.config.enabled:
            return []

        scored: list[RelevanceScore] = []
        for candidate in candidates:
            if is_cancelled(token):
                break
            path = candidate if isinstance(candidate, str) else candidate.path
            factors = self.factors_for(path, signals)
            total = sum(factors.values())
            if total > 0:
                scored.append(RelevanceScore(path=path, score=total, factors=factors))

        scored.sort(key=lambda s: (-s.score, s.path))
        return scored[: self.config.max_candidates]

    def rank(
        self,
        candidates: Sequence[CandidateFile | str],
        signals: ScoringSignals,
        token: CancellationToken | None = None,
    ) -> list[FileSelection]:
        return [FileSelection(path=s.path) for s in self.score(candidates, signals, token)]

    def factors_for(self, path: str, signals: ScoringSignals) -> dict[str, float]:
        weights = self.config.weights
        toggles = self.config.toggles
        factors: dict[str, float] = {}
        active = signals.active_file

        if toggles.active_file and active and path == active:
            factors["active_file"] = weights.active_file

        if toggles.dependencies and active:
            for rel in signals.dependencies.get(active, ()):
                if rel.path != path:
                    continue
                if rel.relation_type == RelationType.TYPE:
                    factors["type_dependency"] = weights.type_dependency
                elif rel.relation_type == RelationType.RUNTIME:
                    factors["runtime_dependency"] = weights.runtime_dependency
            if path in signals.reverse_dependencies.get(active, ()):
                factors["reverse_dependency"] = weights.reverse_dependency

        if toggles.symbols:
            if path in signals.definitions:
                factors["definition"] = weights.definition
            if path in signals.type_definitions:
                factors["type_definition"] = weights.type_definition
            if path in signals.implementations:
                factors["implementation"] = weights.implementation
            if path in signals.referenced_types:
                factors["referenced_type"] = weights.referenced_type
            if path in signals.call_hierarchy:
                factors["call_hierarchy"] = weights.call_hierarchy
            if path in signals.symbol_paths():
                factors["symbol_related"] = weights.symbol_related

        if toggles.directory and active and path != active:
            factors.update(directory_proximity(active, path, weights))

        return factors
