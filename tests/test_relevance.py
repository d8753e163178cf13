"""Tests for heuristic relevance scoring."""

from __future__ import annotations

from contextkit.config import ScoringConfig, ScoringToggles, ScoringWeights
from contextkit.graph.dependencies import DependencyRelation, RelationType
from contextkit.scoring.relevance import RelevanceScorer, ScoringSignals, directory_proximity
from contextkit.symbols.models import (
    ActiveSymbolInfo,
    CallHierarchyCall,
    CallHierarchyItem,
    Location,
    Range,
)

CANDIDATES = [
    "src/app.ts",
    "src/util.ts",
    "src/types.ts",
    "src/api/client.ts",
    "src/web/view.ts",
    "lib/format.ts",
    "README.md",
]


def _signals(**kwargs) -> ScoringSignals:
    return ScoringSignals(active_file="src/api/client.ts", **kwargs)


class TestDirectoryProximity:
    def test_same_directory(self):
        factors = directory_proximity("src/app.ts", "src/util.ts", ScoringWeights())
        assert factors == {"same_directory": 50.0}

    def test_neighbor_directory(self):
        factors = directory_proximity("src/api/client.ts", "src/web/view.ts", ScoringWeights())
        assert factors["neighbor_directory"] == 50.0
        assert factors["shared_ancestor"] == 50.0

    def test_root_siblings_are_not_neighbors(self):
        factors = directory_proximity("src/app.ts", "lib/format.ts", ScoringWeights())
        assert factors == {}

    def test_shared_ancestor_depth(self):
        factors = directory_proximity("a/b/c/x.ts", "a/b/d/e/y.ts", ScoringWeights())
        assert factors["shared_ancestor"] == 100.0


class TestRelevanceScorer:
    def test_active_file_ranks_first(self):
        scores = RelevanceScorer().score(CANDIDATES, _signals())
        assert scores[0].path == "src/api/client.ts"
        assert scores[0].factors["active_file"] == 200.0

    def test_zero_scores_are_dropped(self):
        scores = RelevanceScorer().score(CANDIDATES, _signals())
        assert "README.md" not in [s.path for s in scores]
        assert "lib/format.ts" not in [s.path for s in scores]

    def test_dependencies(self):
        signals = _signals(
            dependencies={
                "src/api/client.ts": [
                    DependencyRelation("lib/format.ts", RelationType.RUNTIME),
                    DependencyRelation("README.md", RelationType.TYPE),
                ]
            },
            reverse_dependencies={"src/api/client.ts": ["src/app.ts"]},
        )
        by_path = {s.path: s for s in RelevanceScorer().score(CANDIDATES, signals)}
        assert by_path["lib/format.ts"].factors == {"runtime_dependency": 150.0}
        assert by_path["README.md"].factors == {"type_dependency": 80.0}
        assert by_path["src/app.ts"].factors["reverse_dependency"] == 80.0

    def test_unknown_relation_adds_nothing(self):
        config = ScoringConfig(toggles=ScoringToggles(directory=False))
        signals = _signals(dependencies={"src/api/client.ts": [DependencyRelation("lib/format.ts")]})
        scores = RelevanceScorer(config).score(CANDIDATES, signals)
        assert "lib/format.ts" not in [s.path for s in scores]

    def test_symbol_signals(self):
        symbol = ActiveSymbolInfo(
            name="fetch",
            kind="function",
            file_path="src/api/client.ts",
            definitions=Location(path="lib/format.ts", range=Range.from_lines(1, 3)),
            outgoing_calls=[
                CallHierarchyCall(
                    item=CallHierarchyItem(name="helper", path="README.md", range=Range.from_lines(1, 1))
                )
            ],
        )
        signals = ScoringSignals.from_active_symbol("src/api/client.ts", symbol)
        by_path = {s.path: s for s in RelevanceScorer().score(CANDIDATES, signals)}
        assert by_path["lib/format.ts"].factors == {"definition": 200.0, "symbol_related": 80.0}
        assert by_path["README.md"].factors == {"call_hierarchy": 100.0, "symbol_related": 80.0}

    def test_toggles_are_independent(self):
        config = ScoringConfig(toggles=ScoringToggles(directory=False))
        signals = _signals(dependencies={"src/api/client.ts": [DependencyRelation("src/web/view.ts", RelationType.RUNTIME)]})
        by_path = {s.path: s for s in RelevanceScorer(config).score(CANDIDATES, signals)}
        assert by_path["src/web/view.ts"].factors == {"runtime_dependency": 150.0}
        assert "src/app.ts" not in by_path

    def test_disabled(self):
        scorer = RelevanceScorer(ScoringConfig(enabled=False))
        assert scorer.score(CANDIDATES, _signals()) == []

    def test_deterministic_order(self):
        signals = ScoringSignals(active_file="src/app.ts")
        scores = RelevanceScorer().score(CANDIDATES, signals)
        assert [s.path for s in scores] == [
            "src/app.ts",
            "src/api/client.ts",
            "src/types.ts",
            "src/util.ts",
            "src/web/view.ts",
        ]

    def test_max_candidates(self):
        scorer = RelevanceScorer(ScoringConfig(max_candidates=2))
        assert len(scorer.score(CANDIDATES, ScoringSignals(active_file="src/app.ts"))) == 2

    def test_rank_returns_selections(self):
        selections = RelevanceScorer().rank(CANDIDATES, _signals())
        assert selections[0].path == "src/api/client.ts"
        assert selections[0].is_whole_file

    def test_no_active_file(self):
        assert RelevanceScorer().score(CANDIDATES, ScoringSignals()) == []
