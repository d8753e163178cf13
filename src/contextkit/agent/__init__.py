"""Agentic file selection."""

from contextkit.agent.controller import (
    AgentTurn,
    SelectionController,
    SelectionOutcome,
    SelectionRequest,
    SelectionStatus,
    StatusSink,
)

__all__ = [
    "AgentTurn",
    "SelectionController",
    "SelectionOutcome",
    "SelectionRequest",
    "SelectionStatus",
    "StatusSink",
]
