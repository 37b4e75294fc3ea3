"""Ranking helpers: top-K selection, thresholds and MMR diversification."""

from __future__ import annotations

import logging
from typing import List, Sequence

from models import ScoredNote

logger = logging.getLogger(__name__)


def sort_by_similarity(results: Sequence[ScoredNote]) -> List[ScoredNote]:
    """Highest score first. Equal scores keep their input order."""
    return sorted(results, key=lambda r: r.score, reverse=True)


def top_k(results: Sequence[ScoredNote], k: int) -> List[ScoredNote]:
    if k <= 0:
        logger.debug("top_k called with invalid k=%d", k)
        return []

    top = sort_by_similarity(results)[:k]
    logger.debug(
        "Top-K results: requested=%d returned=%d top_score=%.3f",
        k,
        len(top),
        top[0].score if top else 0.0,
    )
    return top


def top_k_with_threshold(
    results: Sequence[ScoredNote], k: int, min_similarity: float = 0.3
) -> List[ScoredNote]:
    filtered = [r for r in sort_by_similarity(results) if r.score >= min_similarity]
    return filtered[: max(k, 0)]


def text_overlap(text_a: str, text_b: str) -> float:
    """Jaccard similarity of the lowercased whitespace-separated word sets."""
    words_a = set(text_a.lower().split())
    words_b = set(text_b.lower().split())

    intersection = len(words_a & words_b)
    union = len(words_a) + len(words_b) - intersection
    return intersection / union if union > 0 else 0.0


def _diversity(candidate: ScoredNote, selected: Sequence[ScoredNote]) -> float:
    if not selected:
        return 1.0

    min_overlap = 1.0
    for chosen in selected:
        min_overlap = min(min_overlap, text_overlap(candidate.note.text, chosen.note.text))
    return 1.0 - min_overlap


def mmr_rank(
    results: Sequence[ScoredNote], k: int, lambda_: float = 0.7
) -> List[ScoredNote]:
    """
    Maximal Marginal Relevance ranking.

    Args:
        results: Scored notes
        k: Number of notes to return
        lambda_: Balance between relevance (1.0) and diversity (0.0)

    Returns:
        Up to k notes in selection order
    """
    if not results or k <= 0:
        return []

    remaining = sort_by_similarity(results)
    selected: List[ScoredNote] = []

    while len(selected) < k and remaining:
        best_idx = 0
        best_score = float("-inf")

        for idx, candidate in enumerate(remaining):
            score = lambda_ * candidate.score + (1 - lambda_) * _diversity(candidate, selected)
            if score > best_score:
                best_score = score
                best_idx = idx

        selected.append(remaining.pop(best_idx))

    return selected
