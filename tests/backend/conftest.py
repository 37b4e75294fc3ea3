"""
Shared fixtures for backend tests.

Inference is replaced by a bag-of-words engine: each token's hidden state is a
one-hot vector of its id, so mean pooling yields normalized word counts and
notes sharing words with a query score higher.
"""

import os
import sys

import numpy as np
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../../backend"))

from embedder import Embedder
from storage import NoteStorage
from tokenizer import Vocabulary, WordPieceTokenizer

TEST_TOKENS = [
    "[PAD]", "[UNK]", "[CLS]", "[SEP]",
    "the", "is", "and", "my", "to", "for", "on", "with", "in", "of", "a",
    "python", "code", "snake", "garden", "tomato", "plant", "water",
    "coffee", "morning", "meeting", "project", "deadline", "friday",
    "un", "##s", "##ing", "##able", "hello", "world",
]


class BagOfWordsEngine:
    """Fake inference engine returning one-hot hidden states per token."""

    def __init__(self, hidden_size, ignore_ids=()):
        self.hidden_size = hidden_size
        self.ignore_ids = set(ignore_ids)
        self.calls = 0

    def run(self, feeds):
        self.calls += 1
        ids = np.asarray(feeds["input_ids"][0])
        hidden = np.zeros((len(ids), self.hidden_size), dtype=np.float32)
        for position, token_id in enumerate(ids):
            if int(token_id) not in self.ignore_ids:
                hidden[position, int(token_id) % self.hidden_size] = 1.0
        return {"last_hidden_state": hidden[np.newaxis, :, :]}


@pytest.fixture
def vocab():
    return Vocabulary({token: index for index, token in enumerate(TEST_TOKENS)})


@pytest.fixture
def tokenizer(vocab):
    return WordPieceTokenizer(vocab, max_length=128)


@pytest.fixture
def engine(vocab):
    specials = {vocab.id_of("[CLS]"), vocab.id_of("[SEP]")}
    return BagOfWordsEngine(hidden_size=len(TEST_TOKENS), ignore_ids=specials)


@pytest.fixture
def embedder(tokenizer, engine):
    return Embedder(
        model_path="fake-model.onnx",
        backend="onnx",
        tokenizer=tokenizer,
        loader=lambda model_path, backend: engine,
    )


@pytest.fixture
def storage(tmp_path):
    return NoteStorage(root=tmp_path / "notes")

