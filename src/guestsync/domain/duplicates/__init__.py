"""Duplicate detection engine."""

from __future__ import annotations

from .cache import CacheLoad, CacheStatus, DuplicateCache, DuplicateCacheIndex
from .detector import (
    CacheStats,
    DuplicateDetector,
    MatchReason,
    MatchResult,
    ScoredCandidate,
    match_against_index,
)
from .scoring import ScoreBreakdown, score, score_breakdown

__all__ = [
    "CacheLoad",
    "CacheStats",
    "CacheStatus",
    "DuplicateCache",
    "DuplicateCacheIndex",
    "DuplicateDetector",
    "MatchReason",
    "MatchResult",
    "ScoreBreakdown",
    "ScoredCandidate",
    "match_against_index",
    "score",
    "score_breakdown",
]
