"""
Note retrieval for Knowledge Vault.

Scores every stored note against a query: plain cosine similarity, a hybrid
blend of cosine similarity and keyword overlap, or a keyword-gated strict mode.
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
from typing import List, Set

from embedder import Embedder
from models import NoteRecord, ScoredNote
from rank import sort_by_similarity
from similarity import cosine_similarity
from storage import NoteStorage

logger = logging.getLogger(__name__)

_NON_WORD_RE = re.compile(r"[^\w\s]", re.ASCII)


def extract_query_keywords(text: str) -> Set[str]:
    """Lowercase words longer than two characters, punctuation removed."""
    words = _NON_WORD_RE.sub(" ", text.lower()).split()
    return {word for word in words if len(word) > 2}


def keyword_overlap_score(query_keywords: Set[str], note_text: str) -> float:
    """Fraction of query keywords that also appear as words in the note."""
    if not query_keywords:
        return 0.0
    note_keywords = extract_query_keywords(note_text)
    return len(query_keywords & note_keywords) / len(query_keywords)


def has_keyword_match(query_keywords: Set[str], note_text: str) -> bool:
    """True if any query keyword occurs as a substring of the note (case-insensitive)."""
    lowered = note_text.lower()
    return any(keyword in lowered for keyword in query_keywords)


class Retriever:
    """Embeds queries and ranks the stored notes against them."""

    def __init__(self, embedder: Embedder, storage: NoteStorage):
        self.embedder = embedder
        self.storage = storage

    async def _embed_and_load(self, query: str):
        try:
            query_embedding = await self.embedder.embed(query)
            notes = await asyncio.to_thread(self.storage.list_all)
        except Exception:
            logger.exception("Retrieval failed for query %r", query[:50])
            raise
        return query_embedding, notes

    async def retrieve(self, query: str) -> List[ScoredNote]:
        """Rank every note by cosine similarity to the query."""
        started = time.perf_counter()
        query_embedding, notes = await self._embed_and_load(query)
        if not notes:
            logger.debug("No notes found in storage")
            return []

        results = sort_by_similarity(
            [ScoredNote(note=note, score=cosine_similarity(query_embedding, note.embedding)) for note in notes]
        )
        _log_timing("Notes retrieved", started, len(results))
        return results

    async def retrieve_with_threshold(
        self, query: str, min_similarity: float = 0.3
    ) -> List[ScoredNote]:
        results = await self.retrieve(query)
        filtered = [r for r in results if r.score >= min_similarity]
        logger.debug(
            "Filtered results by threshold %.2f: %d of %d kept",
            min_similarity,
            len(filtered),
            len(results),
        )
        return filtered

    async def retrieve_hybrid(
        self, query: str, semantic_weight: float = 0.6
    ) -> List[ScoredNote]:
        """
        Rank notes by a blend of semantic similarity and keyword overlap.

        Args:
            query: User query text
            semantic_weight: Weight of cosine similarity; keyword overlap gets the rest

        Returns:
            All notes with hybrid scores, best first
        """
        started = time.perf_counter()
        query_keywords = extract_query_keywords(query)
        query_embedding, notes = await self._embed_and_load(query)
        if not notes:
            logger.debug("No notes found in storage")
            return []

        keyword_weight = 1 - semantic_weight
        results = sort_by_similarity(
            [
                ScoredNote(
                    note=note,
                    score=self._hybrid_score(
                        query_embedding, query_keywords, note, semantic_weight, keyword_weight
                    ),
                )
                for note in notes
            ]
        )
        _log_timing("Hybrid notes retrieved", started, len(results))
        return results

    async def retrieve_strict(
        self, query: str, min_similarity: float = 0.2
    ) -> List[ScoredNote]:
        """Hybrid retrieval restricted to notes containing a query keyword and scoring above the threshold."""
        query_keywords = extract_query_keywords(query)
        results = await self.retrieve_hybrid(query, 0.5)

        filtered = [
            r
            for r in results
            if has_keyword_match(query_keywords, r.note.text) and r.score >= min_similarity
        ]
        logger.debug(
            "Strict filtered results: threshold=%.2f total=%d kept=%d keywords=%s",
            min_similarity,
            len(results),
            len(filtered),
            sorted(query_keywords),
        )
        return filtered

    @staticmethod
    def _hybrid_score(query_embedding, query_keywords, note: NoteRecord, semantic_weight, keyword_weight) -> float:
        semantic = cosine_similarity(query_embedding, note.embedding)
        keyword = keyword_overlap_score(query_keywords, note.text)
        return semantic_weight * semantic + keyword_weight * keyword


def _log_timing(label: str, started: float, count: int):
    logger.debug("%s: %.0fms (%d results)", label, (time.perf_counter() - started) * 1000, count)
