"""
Embedding module for Knowledge Vault.

Runs tokenized text through the inference engine, pools the output into one
vector and L2-normalizes it. The engine is loaded lazily, once per Embedder.
"""

from __future__ import annotations

import asyncio
import logging
import time
from enum import Enum
from typing import Callable, List, Optional

import config
from errors import InferenceError, ModelLoadError
from inference import build_feeds, load_engine, select_output
from similarity import normalize
from tokenizer import WordPieceTokenizer

logger = logging.getLogger(__name__)


class EngineState(str, Enum):
    UNLOADED = "unloaded"
    LOADING = "loading"
    LOADED = "loaded"
    FAILED = "failed"


class Embedder:
    """Long-lived embedding engine with single-flight model loading."""

    def __init__(
        self,
        model_path: Optional[str] = None,
        backend: Optional[str] = None,
        tokenizer: Optional[WordPieceTokenizer] = None,
        vocab_path: Optional[str] = None,
        loader: Optional[Callable[[str, str], object]] = None,
    ):
        """
        Initialize the embedder.

        Args:
            model_path: Model location. Defaults to `VAULT_MODEL_PATH`.
            backend: Inference backend name. Defaults to `VAULT_INFERENCE_BACKEND`.
            tokenizer: Pre-built tokenizer; otherwise loaded from `vocab_path` on first use.
            vocab_path: Vocabulary file. Defaults to `VAULT_VOCAB_PATH`.
            loader: Callable `(model_path, backend) -> engine`, used in place of `load_engine`.
        """
        self.model_path = model_path or config.MODEL_PATH
        self.backend = backend or config.INFERENCE_BACKEND
        self.vocab_path = vocab_path or config.VOCAB_PATH
        self._tokenizer = tokenizer
        self._loader = loader or load_engine

        self.state = EngineState.UNLOADED
        self._engine = None
        self._pending: Optional[asyncio.Future] = None

    @property
    def tokenizer(self) -> WordPieceTokenizer:
        if self._tokenizer is None:
            self._tokenizer = self._read_tokenizer()
        return self._tokenizer

    def _read_tokenizer(self) -> WordPieceTokenizer:
        try:
            return WordPieceTokenizer.from_file(
                self.vocab_path, max_length=config.MAX_SEQUENCE_LENGTH
            )
        except (OSError, ValueError) as e:
            raise ModelLoadError(
                f"Failed to load vocabulary '{self.vocab_path}': {e}"
            ) from e

    @property
    def is_loaded(self) -> bool:
        return self.state == EngineState.LOADED

    async def load_model(self):
        """
        Return the engine, loading it if needed.

        Concurrent callers share one in-flight load. A failed or cancelled load
        is forgotten so the next call starts over.
        """
        if self._engine is not None:
            return self._engine

        if self._pending is not None and self._pending.done():
            # Finished without storing an engine, e.g. cancelled at loop shutdown
            self._pending = None

        if self._pending is None:
            self.state = EngineState.LOADING
            self._pending = asyncio.ensure_future(self._load())

        return await asyncio.shield(self._pending)

    async def _load(self):
        started = time.perf_counter()
        try:
            if self._tokenizer is None:
                self._tokenizer = await asyncio.to_thread(self._read_tokenizer)
            engine = await asyncio.to_thread(self._loader, self.model_path, self.backend)
        except asyncio.CancelledError:
            self.state = EngineState.FAILED
            self._pending = None
            logger.warning("Loading model '%s' was cancelled", self.model_path)
            raise
        except Exception as e:
            self.state = EngineState.FAILED
            self._pending = None
            logger.exception("Failed to load model '%s'", self.model_path)
            if isinstance(e, ModelLoadError):
                raise
            raise ModelLoadError(f"Failed to load model '{self.model_path}': {e}") from e

        self._engine = engine
        self._pending = None
        self.state = EngineState.LOADED
        logger.info(
            "Model loaded in %.0fms (%s)", (time.perf_counter() - started) * 1000, self.backend
        )
        return engine

    async def preload(self):
        """Warm the model ahead of the first embedding request."""
        await self.load_model()

    async def embed(self, text: str) -> List[float]:
        """
        Convert text to a unit-length embedding vector.

        Args:
            text: Text to embed

        Returns:
            List of floats with L2 norm 1 (or all zeros for a degenerate output)

        Raises:
            ModelLoadError: If the model or vocabulary cannot be loaded
            InferenceError: If inference fails or yields no usable output
        """
        started = time.perf_counter()
        engine = await self.load_model()
        encoding = self.tokenizer.tokenize(text)

        feeds = build_feeds(encoding)
        try:
            outputs = await asyncio.to_thread(engine.run, feeds)
        except Exception as e:
            logger.exception("Inference failed")
            raise InferenceError(f"Embedding failed: {e}") from e

        output = select_output(outputs)
        embedding = normalize(output.pool(encoding.attention_mask))

        logger.debug(
            "Embedded %d tokens into %d dims in %.0fms",
            encoding.num_tokens,
            len(embedding),
            (time.perf_counter() - started) * 1000,
        )
        return embedding

    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        """Embed several texts one after another."""
        return [await self.embed(text) for text in texts]
