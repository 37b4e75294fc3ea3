"""Service layer coordinating storage, embedding and the RAG pipeline."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import List, Optional

import config
from context_builder import build_context
from embedder import Embedder
from models import NoteRecord, RagResult, RetrievalMode, ScoredNote
from rank import mmr_rank, top_k, top_k_with_threshold
from retriever import Retriever
from storage import NoteStorage
from summarizer import extract_keywords, summarize, summarize_with_position_bias

logger = logging.getLogger(__name__)

# Per-mode score floors used when a search does not pass min_score
THRESHOLD_MIN_SCORE = 0.3
STRICT_MIN_SCORE = 0.2


class NoteService:
    """Saves notes together with their embeddings."""

    def __init__(self, storage: NoteStorage, embedder: Embedder):
        self.storage = storage
        self.embedder = embedder

    async def add_note(self, text: str) -> NoteRecord:
        if not text or not text.strip():
            raise ValueError("Note text must not be empty")

        embedding = await self.embedder.embed(text)
        note_id = await asyncio.to_thread(self.storage.insert, text, embedding)
        record = await asyncio.to_thread(self.storage.get_by_id, note_id)
        logger.info("Added note %d (%d chars)", note_id, len(text))
        return record

    async def list_notes(self) -> List[NoteRecord]:
        return await asyncio.to_thread(self.storage.list_all)

    async def get_note(self, note_id: int) -> NoteRecord:
        record = await asyncio.to_thread(self.storage.get_by_id, note_id)
        if record is None:
            raise FileNotFoundError(f"Note not found: {note_id}")
        return record

    async def delete_note(self, note_id: int) -> bool:
        return await asyncio.to_thread(self.storage.delete_by_id, note_id)


class RagService:
    """Runs search and the retrieve -> rank -> context -> summary pipeline."""

    def __init__(
        self,
        retriever: Retriever,
        semantic_weight: Optional[float] = None,
        candidates: Optional[int] = None,
        min_score: Optional[float] = None,
        context_notes: Optional[int] = None,
        summary_sentences: Optional[int] = None,
        num_keywords: Optional[int] = None,
    ):
        self.retriever = retriever
        self.semantic_weight = config.RAG_SEMANTIC_WEIGHT if semantic_weight is None else semantic_weight
        self.candidates = candidates or config.RAG_CANDIDATES
        self.min_score = config.RAG_MIN_SCORE if min_score is None else min_score
        self.context_notes = context_notes or config.RAG_CONTEXT_NOTES
        self.summary_sentences = summary_sentences or config.RAG_SUMMARY_SENTENCES
        self.num_keywords = config.RAG_KEYWORDS if num_keywords is None else num_keywords

    async def search(
        self,
        query: str,
        mode: RetrievalMode = RetrievalMode.HYBRID,
        top_k_results: int = 5,
        semantic_weight: float = 0.6,
        min_score: Optional[float] = None,
        diverse: bool = False,
        mmr_lambda: float = 0.7,
    ) -> List[ScoredNote]:
        if not query.strip():
            return []

        mode = RetrievalMode(mode)
        if mode == RetrievalMode.PLAIN:
            results = await self.retriever.retrieve(query)
        elif mode == RetrievalMode.THRESHOLD:
            results = await self.retriever.retrieve_with_threshold(
                query, THRESHOLD_MIN_SCORE if min_score is None else min_score
            )
        elif mode == RetrievalMode.STRICT:
            results = await self.retriever.retrieve_strict(
                query, STRICT_MIN_SCORE if min_score is None else min_score
            )
        else:
            results = await self.retriever.retrieve_hybrid(query, semantic_weight)

        if diverse:
            return mmr_rank(results, top_k_results, mmr_lambda)
        return top_k(results, top_k_results)

    async def answer(self, query: str) -> RagResult:
        """Retrieve, rank, build a context and summarize it."""
        started = time.perf_counter()

        retrieved = await self.retriever.retrieve_hybrid(query, self.semantic_weight)
        ranked = top_k_with_threshold(retrieved, self.candidates, self.min_score)

        context = build_context(ranked, self.context_notes)
        summary = summarize(context.text, self.summary_sentences) if context.text else ""
        keywords = extract_keywords(context.text, self.num_keywords) if context.text else []

        logger.info(
            "RAG answer for %r: %d retrieved, %d ranked, %d sources in %.0fms",
            query[:50],
            len(retrieved),
            len(ranked),
            len(context.source_notes),
            (time.perf_counter() - started) * 1000,
        )
        return RagResult(
            query=query,
            results=ranked,
            context=context,
            summary=summary,
            keywords=keywords,
        )

    def summarize(self, text: str, num_sentences: int = 3, position_bias: bool = False) -> str:
        if position_bias:
            return summarize_with_position_bias(text, num_sentences)
        return summarize(text, num_sentences)
