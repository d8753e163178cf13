"""File-level dependency graph consumed by relevance scoring and assembly."""

from contextkit.graph.dependencies import (
    DependencyProvider,
    DependencyRelation,
    ImportGraphBuilder,
    RelationType,
    reverse_dependencies,
)

__all__ = [
    "DependencyProvider",
    "DependencyRelation",
    "ImportGraphBuilder",
    "RelationType",
    "reverse_dependencies",
]
