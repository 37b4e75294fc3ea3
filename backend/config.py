"""Environment-driven configuration for the Knowledge Vault backend."""

from __future__ import annotations

import logging
import os
from pathlib import Path

BACKEND_DIR = Path(__file__).resolve().parent

# Model assets
MODEL_PATH = os.environ.get("VAULT_MODEL_PATH", "models/model_int8.onnx")
VOCAB_PATH = os.environ.get("VAULT_VOCAB_PATH", "models/vocab.json")
INFERENCE_BACKEND = os.environ.get("VAULT_INFERENCE_BACKEND", "onnx")  # onnx|sentence-transformers
MAX_SEQUENCE_LENGTH = int(os.environ.get("VAULT_MAX_SEQUENCE_LENGTH", "128"))

# Storage
NOTES_DIR = os.environ.get("VAULT_NOTES_DIR", str(BACKEND_DIR / "storage" / "notes"))

# RAG pipeline defaults
RAG_SEMANTIC_WEIGHT = float(os.environ.get("VAULT_RAG_SEMANTIC_WEIGHT", "0.5"))
RAG_CANDIDATES = int(os.environ.get("VAULT_RAG_CANDIDATES", "5"))
RAG_MIN_SCORE = float(os.environ.get("VAULT_RAG_MIN_SCORE", "0.15"))
RAG_CONTEXT_NOTES = int(os.environ.get("VAULT_RAG_CONTEXT_NOTES", "3"))
RAG_SUMMARY_SENTENCES = int(os.environ.get("VAULT_RAG_SUMMARY_SENTENCES", "3"))
RAG_KEYWORDS = int(os.environ.get("VAULT_RAG_KEYWORDS", "5"))

LOG_LEVEL = os.environ.get("VAULT_LOG_LEVEL", "INFO")

SUPPORTED_BACKENDS = ("onnx", "sentence-transformers")


def configure_logging(level: str | None = None) -> None:
    """Attach a stream handler to the root logger once."""
    root = logging.getLogger()
    root.setLevel((level or LOG_LEVEL).upper())
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
        root.addHandler(handler)


def validate_config():
    """Return a list of configuration problems (empty when valid)."""
    issues = []

    if INFERENCE_BACKEND not in SUPPORTED_BACKENDS:
        issues.append(f"Invalid VAULT_INFERENCE_BACKEND: {INFERENCE_BACKEND}")

    if MAX_SEQUENCE_LENGTH < 2:
        issues.append("VAULT_MAX_SEQUENCE_LENGTH must be >= 2")

    if not 0.0 <= RAG_SEMANTIC_WEIGHT <= 1.0:
        issues.append("VAULT_RAG_SEMANTIC_WEIGHT must be within [0, 1]")

    if RAG_CANDIDATES < 1 or RAG_CONTEXT_NOTES < 1 or RAG_SUMMARY_SENTENCES < 1:
        issues.append("RAG candidate, context and summary sizes must be >= 1")

    return issues
