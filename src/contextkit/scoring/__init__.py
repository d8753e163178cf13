"""Heuristic relevance ranking of candidate files."""

from contextkit.scoring.relevance import (
    RelevanceScore,
    RelevanceScorer,
    ScoringSignals,
    directory_proximity,
)

__all__ = ["RelevanceScore", "RelevanceScorer", "ScoringSignals", "directory_proximity"]
