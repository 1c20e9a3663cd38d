"""Conflict-risk scoring."""

from taiti.conflicts.analyzer import CodeConflictAnalyzer
from taiti.conflicts.scorer import ConflictScorer, RankedConflict, ScoreResult, round_half_up

__all__ = [
    "CodeConflictAnalyzer",
    "ConflictScorer",
    "RankedConflict",
    "ScoreResult",
    "round_half_up",
]
