"""
Inference engine adapters for Knowledge Vault.

The embedder only needs "feeds in, named tensors out". Two engines implement
that contract: ONNX Runtime over a serialized model file, and a
sentence-transformers model whose underlying transformer is called directly
with our own token ids.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Dict, List, Mapping, Sequence, Union

import numpy as np

from errors import InferenceError, ModelLoadError
from tokenizer import TokenEncoding

logger = logging.getLogger(__name__)

OUTPUT_PRIORITY = ("last_hidden_state", "sentence_embedding")
INPUT_NAMES = ("input_ids", "attention_mask", "token_type_ids")


# ---------------------------------------------------------------------------
# Model output variant
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PooledOutput:
    """Sentence-level output, already one vector per batch item."""

    vector: np.ndarray

    def pool(self, attention_mask: Sequence[int]) -> np.ndarray:
        return self.vector


@dataclass(frozen=True)
class PerTokenOutput:
    """Token-level hidden states of shape [sequence, hidden]."""

    hidden_states: np.ndarray

    def pool(self, attention_mask: Sequence[int]) -> np.ndarray:
        return mean_pool(self.hidden_states, attention_mask)


ModelOutput = Union[PooledOutput, PerTokenOutput]


def mean_pool(hidden_states: np.ndarray, attention_mask: Sequence[int]) -> np.ndarray:
    """Average hidden vectors over positions whose mask is 1 (zeros if none)."""
    seq_length, hidden_size = hidden_states.shape
    mask = np.zeros(seq_length, dtype=bool)
    usable = min(seq_length, len(attention_mask))
    mask[:usable] = np.asarray(attention_mask[:usable]) == 1

    if not mask.any():
        return np.zeros(hidden_size, dtype=np.float32)

    return hidden_states[mask].mean(axis=0)


def to_model_output(tensor: np.ndarray) -> ModelOutput:
    """Classify a raw output tensor by rank. Batch size is assumed to be 1."""
    array = np.asarray(tensor, dtype=np.float32)
    if array.ndim == 2:
        return PooledOutput(vector=array.reshape(-1))
    if array.ndim == 3:
        return PerTokenOutput(hidden_states=array[0])
    raise InferenceError(f"Unsupported model output shape: {array.shape}")


def select_output(outputs: Mapping[str, np.ndarray]) -> ModelOutput:
    """
    Pick the usable tensor from an engine's named outputs.

    Preference: last_hidden_state, then sentence_embedding, then the first output.

    Raises:
        InferenceError: If the engine returned no outputs
    """
    for name in OUTPUT_PRIORITY:
        if outputs.get(name) is not None:
            return to_model_output(outputs[name])

    for tensor in outputs.values():
        if tensor is not None:
            return to_model_output(tensor)

    raise InferenceError("No usable output tensor from model")


def build_feeds(encoding: TokenEncoding) -> Dict[str, np.ndarray]:
    """Create the three int64 model inputs with a leading batch dimension."""
    input_ids = np.asarray([encoding.input_ids], dtype=np.int64)
    attention_mask = np.asarray([encoding.attention_mask], dtype=np.int64)
    token_type_ids = np.zeros_like(input_ids)
    return {
        "input_ids": input_ids,
        "attention_mask": attention_mask,
        "token_type_ids": token_type_ids,
    }


# ---------------------------------------------------------------------------
# Engines
# ---------------------------------------------------------------------------


def _detect_providers() -> List[str]:
    """Detect available ONNX Runtime execution providers."""
    import onnxruntime as ort

    available = set(ort.get_available_providers())
    providers: List[str] = []
    if "CUDAExecutionProvider" in available:
        providers.append("CUDAExecutionProvider")
    providers.append("CPUExecutionProvider")
    return providers


class OnnxInferenceEngine:
    """Runs a serialized ONNX model through onnxruntime."""

    def __init__(self, session):
        self.session = session
        self.input_names = [node.name for node in session.get_inputs()]
        self.output_names = [node.name for node in session.get_outputs()]

    @classmethod
    def load(cls, model_path: str) -> "OnnxInferenceEngine":
        if not os.path.exists(model_path):
            raise ModelLoadError(f"ONNX model file not found at: {model_path}")

        try:
            import onnxruntime as ort
        except ImportError as e:
            raise ModelLoadError(
                f"onnxruntime is required to run '{model_path}'. Reason: {e}"
            ) from e

        session = ort.InferenceSession(model_path, providers=_detect_providers())
        return cls(session)

    def run(self, feeds: Mapping[str, np.ndarray]) -> Dict[str, np.ndarray]:
        # Some exports drop token_type_ids; only pass inputs the graph declares.
        accepted = {name: value for name, value in feeds.items() if name in self.input_names}
        values = self.session.run(self.output_names, accepted)
        return dict(zip(self.output_names, values))


class SentenceTransformerEngine:
    """Calls the transformer module of a sentence-transformers model with raw ids."""

    def __init__(self, model):
        self.model = model

    @classmethod
    def load(cls, model_name_or_path: str) -> "SentenceTransformerEngine":
        try:
            from sentence_transformers import SentenceTransformer
        except ImportError as e:
            raise ModelLoadError(
                "sentence-transformers is required for this backend. "
                f"Install it and ensure model '{model_name_or_path}' is available. Reason: {e}"
            ) from e

        return cls(SentenceTransformer(model_name_or_path, device="cpu"))

    def run(self, feeds: Mapping[str, np.ndarray]) -> Dict[str, np.ndarray]:
        import torch

        transformer = self.model[0].auto_model
        tensors = {name: torch.from_numpy(np.asarray(value)) for name, value in feeds.items()}
        with torch.no_grad():
            output = transformer(**tensors)
        return {"last_hidden_state": output.last_hidden_state.cpu().numpy()}


def load_engine(model_path: str, backend: str = "onnx"):
    """
    Construct an inference engine for the configured backend.

    Args:
        model_path: ONNX file, or sentence-transformers model name / directory
        backend: "onnx" or "sentence-transformers"

    Raises:
        ModelLoadError: If the backend is unknown or the model cannot be loaded
    """
    logger.info("Loading %s model from %s", backend, model_path)
    if backend == "onnx":
        return OnnxInferenceEngine.load(model_path)
    if backend == "sentence-transformers":
        return SentenceTransformerEngine.load(model_path)
    raise ModelLoadError(f"Unknown inference backend: {backend}")
