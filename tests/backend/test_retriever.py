"""
Unit tests for note retrieval.
"""

import asyncio
import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../../backend"))

from retriever import (
    Retriever,
    extract_query_keywords,
    has_keyword_match,
    keyword_overlap_score,
)

NOTES = [
    "python code and snake",
    "tomato garden plant",
    "coffee morning meeting",
]


class TestKeywordHelpers:
    def test_extract_query_keywords(self):
        assert extract_query_keywords("Is my Python-code ok?") == {"python", "code"}
        assert extract_query_keywords("a an of") == set()

    def test_non_ascii_letters_split_words(self):
        assert extract_query_keywords("Café menu naïve") == {"caf", "menu"}
        assert has_keyword_match(extract_query_keywords("café"), "Cafeteria hours")

    def test_keyword_overlap_score(self):
        keywords = {"python", "snake", "garden"}
        assert keyword_overlap_score(keywords, "A python snake!") == pytest.approx(2 / 3)
        assert keyword_overlap_score(set(), "anything") == 0.0

    def test_has_keyword_match_is_substring(self):
        assert has_keyword_match({"plant"}, "Tomato PLANTS in the garden")
        assert not has_keyword_match({"coffee"}, "tea in the morning")
        assert not has_keyword_match(set(), "anything")


class TestRetriever:
    """Test suite for the Retriever class."""

    @pytest.fixture(autouse=True)
    def _setup(self, embedder, storage):
        self.embedder = embedder
        self.storage = storage
        self.retriever = Retriever(embedder, storage)

    def _add_notes(self, texts=NOTES):
        async def add():
            for text in texts:
                self.storage.insert(text, await self.embedder.embed(text))

        asyncio.run(add())

    def test_empty_store(self):
        assert asyncio.run(self.retriever.retrieve("python")) == []
        assert asyncio.run(self.retriever.retrieve_hybrid("python")) == []
        assert asyncio.run(self.retriever.retrieve_strict("python")) == []

    def test_retrieve_ranks_every_note(self):
        self._add_notes()
        results = asyncio.run(self.retriever.retrieve("python code"))

        assert len(results) == 3
        assert results[0].note.text == "python code and snake"
        assert results[0].score == pytest.approx(2 / (2**0.5 * 2))
        scores = [r.score for r in results]
        assert scores == sorted(scores, reverse=True)

    def test_retrieve_with_threshold(self):
        self._add_notes()
        results = asyncio.run(self.retriever.retrieve_with_threshold("python code"))

        assert [r.note.text for r in results] == ["python code and snake"]

    def test_hybrid_full_semantic_weight_matches_plain(self):
        self._add_notes()

        async def run():
            plain = await self.retriever.retrieve("garden plant")
            hybrid = await self.retriever.retrieve_hybrid("garden plant", semantic_weight=1.0)
            return plain, hybrid

        plain, hybrid = asyncio.run(run())
        assert [r.note.id for r in plain] == [r.note.id for r in hybrid]
        assert [r.score for r in hybrid] == pytest.approx([r.score for r in plain])

    def test_hybrid_blends_keyword_overlap(self):
        self._add_notes()
        results = asyncio.run(self.retriever.retrieve_hybrid("python code", semantic_weight=0.6))

        top = results[0]
        assert top.note.text == "python code and snake"
        # 0.6 * cosine + 0.4 * (2 of 2 keywords)
        assert top.score == pytest.approx(0.6 * (2 ** -0.5) + 0.4)

    def test_hybrid_keyword_only(self):
        self._add_notes()
        results = asyncio.run(self.retriever.retrieve_hybrid("snake", semantic_weight=0.0))

        assert results[0].note.text == "python code and snake"
        assert results[0].score == pytest.approx(1.0)
        assert all(r.score == 0.0 for r in results[1:])

    def test_strict_requires_keyword_match(self):
        self._add_notes()
        results = asyncio.run(self.retriever.retrieve_strict("python code"))

        assert [r.note.text for r in results] == ["python code and snake"]
        assert results[0].score == pytest.approx(0.5 * (2 ** -0.5) + 0.5)

    def test_strict_threshold(self):
        self._add_notes()
        results = asyncio.run(self.retriever.retrieve_strict("python code", min_similarity=0.9))
        assert results == []

    def test_strict_without_keywords_returns_nothing(self):
        self._add_notes()
        assert asyncio.run(self.retriever.retrieve_strict("is a")) == []
