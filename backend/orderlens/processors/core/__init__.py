"""
Processors Core: Shared data structures.

Used by extraction, matching and the document pipeline.
"""
from .structures import (
    MatchSource, PositionedToken, LogicalRow, ExtractedLineItem,
    ScoredCandidate, MatchResult, SchemeResult, UpsellSuggestion,
    RowFailure, ResolvedLine, DocumentResult,
)

__all__ = [
    "MatchSource", "PositionedToken", "LogicalRow", "ExtractedLineItem",
    "ScoredCandidate", "MatchResult", "SchemeResult", "UpsellSuggestion",
    "RowFailure", "ResolvedLine", "DocumentResult",
]
