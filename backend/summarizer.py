"""
Extractive summarization for Knowledge Vault.

Scores sentences by TF-IDF, treating each sentence of the input as a
document, and keeps the best ones in their original order.
"""

from __future__ import annotations

import logging
import math
import re
from collections import Counter
from typing import Dict, List

logger = logging.getLogger(__name__)

_SENTENCE_BOUNDARY_RE = re.compile(r"(?<=[.!?])\s+")
_NON_WORD_RE = re.compile(r"[^\w\s]", re.ASCII)


def split_into_sentences(text: str) -> List[str]:
    sentences = [s.strip() for s in _SENTENCE_BOUNDARY_RE.split(text)]
    return [s for s in sentences if len(s) > 5]


def tokenize_words(text: str) -> List[str]:
    """Lowercase words longer than two characters, punctuation removed."""
    words = _NON_WORD_RE.sub(" ", text.lower()).split()
    return [word for word in words if len(word) > 2]


def compute_tf(words: List[str]) -> Dict[str, float]:
    """Word frequencies normalized by the number of words."""
    counts = Counter(words)
    total = len(words)
    return {word: count / total for word, count in counts.items()} if total else {}


def compute_idf(sentences: List[str]) -> Dict[str, float]:
    """Smoothed IDF over sentences: ln((N + 1) / (df + 1)) + 1."""
    doc_count = len(sentences)
    doc_freq: Counter = Counter()
    for sentence in sentences:
        doc_freq.update(set(tokenize_words(sentence)))

    return {word: math.log((doc_count + 1) / (df + 1)) + 1 for word, df in doc_freq.items()}


def sentence_score(sentence: str, idf: Dict[str, float]) -> float:
    words = tokenize_words(sentence)
    if not words:
        return 0.0

    tf = compute_tf(words)
    score = sum(tf_value * idf.get(word, 1.0) for word, tf_value in tf.items())
    # Dampen the advantage of long sentences
    return score / math.sqrt(len(words))


def _select(sentences: List[str], scores: List[float], num_sentences: int) -> str:
    ranked = sorted(range(len(sentences)), key=lambda i: scores[i], reverse=True)
    chosen = sorted(ranked[:num_sentences])
    return " ".join(sentences[i] for i in chosen)


def summarize(text: str, num_sentences: int = 3) -> str:
    """
    Summarize text by extracting its highest TF-IDF sentences.

    Args:
        text: Input text
        num_sentences: Number of sentences to keep

    Returns:
        Selected sentences in original order, joined by single spaces
    """
    sentences = split_into_sentences(text)

    if not sentences:
        return text.strip()

    if len(sentences) <= num_sentences:
        return " ".join(sentences)

    logger.debug("Summarizing %d sentences down to %d", len(sentences), num_sentences)

    idf = compute_idf(sentences)
    scores = [sentence_score(sentence, idf) for sentence in sentences]
    summary = _select(sentences, scores, num_sentences)

    logger.debug("Summary generated: %d chars", len(summary))
    return summary


def summarize_with_position_bias(text: str, num_sentences: int = 3) -> str:
    """Like `summarize`, but earlier sentences get up to a 30% boost."""
    sentences = split_into_sentences(text)

    if not sentences:
        return text.strip()

    if len(sentences) <= num_sentences:
        return " ".join(sentences)

    idf = compute_idf(sentences)
    total = len(sentences)
    scores = [
        sentence_score(sentence, idf) * (1 - (index / total) * 0.3)
        for index, sentence in enumerate(sentences)
    ]
    return _select(sentences, scores, num_sentences)


def extract_keywords(text: str, num_keywords: int = 5) -> List[str]:
    """Top words of the text by TF (whole text) times IDF (over its sentences)."""
    idf = compute_idf(split_into_sentences(text))
    tf = compute_tf(tokenize_words(text))

    scored = sorted(tf.items(), key=lambda item: item[1] * idf.get(item[0], 1.0), reverse=True)
    return [word for word, _ in scored[:num_keywords]]
