"""
Context assembly for the RAG pipeline.

Condenses the best-ranked notes into one labeled context string by keeping
each note's most salient sentences.
"""

from __future__ import annotations

import logging
import re
from typing import List, Sequence

from models import BuiltContext, ScoredNote
from rank import top_k

logger = logging.getLogger(__name__)

KEY_PHRASES = ("important", "key", "main", "note", "remember", "summary")

_SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")
_CAPITALIZED_RE = re.compile(r"[A-Z][a-z]+")


def _sentence_score(sentence: str, index: int) -> float:
    score = 0.0

    if index == 0:
        score += 3

    # Prefer medium-length sentences
    word_count = len(sentence.split())
    if 5 <= word_count <= 30:
        score += 2

    lowered = sentence.lower()
    for phrase in KEY_PHRASES:
        if phrase in lowered:
            score += 1

    # Capitalized words hint at names and concepts
    capitalized = _CAPITALIZED_RE.findall(sentence)
    score += min(len(capitalized) * 0.5, 2)

    return score


def extract_key_sentences(text: str, max_sentences: int = 3) -> List[str]:
    """
    Pick the most informative sentences of a note, in reading order.

    Args:
        text: Note text
        max_sentences: Maximum number of sentences to keep

    Returns:
        Selected sentences without terminal punctuation
    """
    sentences = [s.strip() for s in _SENTENCE_SPLIT_RE.split(text)]
    sentences = [s for s in sentences if len(s) > 10]

    if not sentences:
        return [text.strip()]

    if len(sentences) <= max_sentences:
        return sentences

    scored = [(_sentence_score(sentence, index), index, sentence) for index, sentence in enumerate(sentences)]
    scored.sort(key=lambda item: (-item[0], item[1]))

    selected = sorted(scored[:max_sentences], key=lambda item: item[1])
    return [sentence for _, _, sentence in selected]


def relevance_label(score: float) -> str:
    if score > 0.7:
        return "High"
    if score > 0.5:
        return "Medium"
    return "Low"


def build_context(results: Sequence[ScoredNote], k: int = 3) -> BuiltContext:
    """
    Build the merged context for the top-k notes.

    Each note contributes a block headed by its source index and relevance
    label, followed by up to two key sentences.
    """
    top_results = top_k(results, k)

    if not top_results:
        logger.debug("No results to build context from")
        return BuiltContext(text="", source_notes=[])

    parts = []
    for position, result in enumerate(top_results, start=1):
        key_sentences = extract_key_sentences(result.note.text, 2)
        label = relevance_label(result.score)
        parts.append(f"[Source {position} - {label} relevance]\n{'. '.join(key_sentences)}.")

    context = "\n\n".join(parts)
    logger.debug("Context built: %d chars from %d notes", len(context), len(top_results))

    return BuiltContext(text=context, source_notes=[r.note for r in top_results])


def build_simple_context(results: Sequence[ScoredNote], k: int = 3) -> str:
    """Plain context without source labels."""
    texts = [
        ". ".join(extract_key_sentences(r.note.text, 2)) + "."
        for r in top_k(results, k)
    ]
    return " ".join(texts)


def build_full_context(
    results: Sequence[ScoredNote], k: int = 3, max_chars_per_note: int = 500
) -> BuiltContext:
    """Context made of whole note texts, each cut at `max_chars_per_note`."""
    top_results = top_k(results, k)

    parts = []
    for position, result in enumerate(top_results, start=1):
        text = result.note.text
        if len(text) > max_chars_per_note:
            text = text[:max_chars_per_note] + "..."
        parts.append(f"[Note {position}]\n{text}")

    return BuiltContext(text="\n\n".join(parts), source_notes=[r.note for r in top_results])
