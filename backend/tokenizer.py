"""
WordPiece tokenizer for Knowledge Vault.

Turns free text into the fixed-length id/mask pair the embedding model expects,
using a static vocabulary and greedy longest-match subword splitting.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Mapping, Union

logger = logging.getLogger(__name__)

CLS_TOKEN = "[CLS]"
SEP_TOKEN = "[SEP]"
UNK_TOKEN = "[UNK]"
PAD_TOKEN = "[PAD]"

CONTINUATION_PREFIX = "##"

# Maximum sequence length for MiniLM
DEFAULT_MAX_LENGTH = 128

_WHITESPACE_RE = re.compile(r"\s+")
_DISALLOWED_RE = re.compile(r"[^\w\s.,!?'-]", re.ASCII)


class Vocabulary:
    """Immutable token -> id mapping with the special tokens resolved."""

    def __init__(self, token_to_id: Mapping[str, int]):
        seen: Dict[int, str] = {}
        for token, token_id in token_to_id.items():
            if not isinstance(token_id, int) or token_id < 0:
                raise ValueError(f"Invalid id for token {token!r}: {token_id!r}")
            if token_id in seen:
                raise ValueError(
                    f"Duplicate vocabulary id {token_id} for {seen[token_id]!r} and {token!r}"
                )
            seen[token_id] = token

        for required in (UNK_TOKEN, PAD_TOKEN):
            if required not in token_to_id:
                raise ValueError(f"Vocabulary is missing required token {required}")
        for special in (CLS_TOKEN, SEP_TOKEN):
            if special not in token_to_id:
                logger.warning("Vocabulary has no %s token; it will map to %s", special, UNK_TOKEN)

        self._token_to_id = dict(token_to_id)
        self.unk_id = self._token_to_id[UNK_TOKEN]
        self.pad_id = self._token_to_id[PAD_TOKEN]

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "Vocabulary":
        """
        Load a vocabulary file.

        `.json` files hold a token -> id object; any other file is read as one
        token per line with the line number as id (BERT `vocab.txt`).
        """
        path = Path(path)
        if path.suffix.lower() == ".json":
            with open(path, "r", encoding="utf-8") as handle:
                return cls(json.load(handle))

        with open(path, "r", encoding="utf-8") as handle:
            tokens = [line.rstrip("\n") for line in handle]
        return cls({token: index for index, token in enumerate(tokens) if token})

    def __contains__(self, token: str) -> bool:
        return token in self._token_to_id

    def __len__(self) -> int:
        return len(self._token_to_id)

    def id_of(self, token: str) -> int:
        return self._token_to_id.get(token, self.unk_id)


@dataclass(frozen=True)
class TokenEncoding:
    """Padded model input for one text."""

    input_ids: List[int]
    attention_mask: List[int]

    @property
    def num_tokens(self) -> int:
        return sum(self.attention_mask)


class WordPieceTokenizer:
    """Greedy longest-match WordPiece tokenizer with fixed-length padding."""

    def __init__(self, vocab: Vocabulary, max_length: int = DEFAULT_MAX_LENGTH):
        """
        Args:
            vocab: Vocabulary to match word pieces against
            max_length: Length of every produced encoding, special tokens included
        """
        if max_length < 2:
            raise ValueError("max_length must leave room for [CLS] and [SEP]")
        self.vocab = vocab
        self.max_length = max_length

    @classmethod
    def from_file(
        cls, path: Union[str, Path], max_length: int = DEFAULT_MAX_LENGTH
    ) -> "WordPieceTokenizer":
        return cls(Vocabulary.from_file(path), max_length=max_length)

    @property
    def vocab_size(self) -> int:
        return len(self.vocab)

    def clean_text(self, text: str) -> str:
        """Lowercase, collapse whitespace and blank out unsupported characters."""
        cleaned = _WHITESPACE_RE.sub(" ", text.lower()).strip()
        return _DISALLOWED_RE.sub(" ", cleaned)

    def word_piece(self, word: str) -> List[str]:
        """Split one word into vocabulary pieces, emitting [UNK] per unmatched character."""
        tokens: List[str] = []
        start = 0

        while start < len(word):
            end = len(word)
            found = None

            while start < end:
                candidate = word[start:end]
                if start > 0:
                    candidate = CONTINUATION_PREFIX + candidate
                if candidate in self.vocab:
                    found = candidate
                    break
                end -= 1

            if found is None:
                tokens.append(UNK_TOKEN)
                start += 1
            else:
                tokens.append(found)
                start = end

        return tokens

    def tokenize(self, text: str) -> TokenEncoding:
        """
        Convert text into padded token ids and attention mask.

        Args:
            text: Raw input text

        Returns:
            TokenEncoding whose two sequences both have length `max_length`
        """
        words = self.clean_text(text).split()
        limit = self.max_length - 1

        tokens: List[str] = [CLS_TOKEN]
        for word in words:
            tokens.extend(self.word_piece(word))
            # Leave room for [SEP]
            if len(tokens) >= limit:
                del tokens[limit:]
                break
        tokens.append(SEP_TOKEN)

        input_ids = [self.vocab.id_of(token) for token in tokens]
        attention_mask = [1] * len(input_ids)

        padding = self.max_length - len(input_ids)
        input_ids.extend([self.vocab.pad_id] * padding)
        attention_mask.extend([0] * padding)

        logger.debug("Tokenized %d chars into %d tokens", len(text), len(tokens))
        return TokenEncoding(input_ids=input_ids, attention_mask=attention_mask)
