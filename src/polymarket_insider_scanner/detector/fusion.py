"""Fusion of heuristic and analyzer scores into a final verdict."""

from __future__ import annotations

import math
from collections.abc import Iterable

from polymarket_insider_scanner.detector.models import SuspicionLevel, level_for_score

MAX_SCORE = 100
# A heuristic score this high is treated as conclusive on its own
SATURATION_SCORE = 100


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def clamp_score(score: float) -> int:
    """Round and clamp a score into [0, 100]."""
    return max(0, min(MAX_SCORE, _round_half_up(score)))


def fuse(base_score: int, analyzer_score: float) -> tuple[int, SuspicionLevel]:
    """Combine the heuristic and analyzer scores.

    The final score is the rounded mean of both, clamped to [0, 100]. A
    saturated heuristic score (>= 100) forces CRITICAL whatever the
    analyzer says.

    Args:
        base_score: Unclamped heuristic score.
        analyzer_score: Analyzer estimate in [0, 100].

    Returns:
        Tuple of (final_score, level).
    """
    final_score = clamp_score((base_score + analyzer_score) / 2)
    if base_score >= SATURATION_SCORE:
        return final_score, SuspicionLevel.CRITICAL
    return final_score, level_for_score(final_score)


def merge_factors(*groups: Iterable[str]) -> tuple[str, ...]:
    """Union factor tags, keeping first-seen order and dropping duplicates."""
    return tuple(dict.fromkeys(tag for group in groups for tag in group if tag))
