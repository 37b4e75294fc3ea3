"""
Vector math for Knowledge Vault.

Pure functions over embedding vectors. Inputs may be any float sequence
(lists, tuples, numpy arrays); vector results are returned as lists so they
stay JSON-serialisable.
"""

from typing import List, Sequence

import numpy as np

from errors import InputError


def _as_array(vec: Sequence[float]) -> np.ndarray:
    return np.asarray(vec, dtype=np.float64).reshape(-1)


def _check_lengths(a: np.ndarray, b: np.ndarray):
    if a.shape[0] != b.shape[0]:
        raise InputError(
            f"Vector dimensions don't match: {a.shape[0]} vs {b.shape[0]}"
        )


def dot(vec1: Sequence[float], vec2: Sequence[float]) -> float:
    """
    Compute the dot product of two vectors.

    Raises:
        InputError: If the vectors have different lengths
    """
    a = _as_array(vec1)
    b = _as_array(vec2)
    _check_lengths(a, b)
    return float(np.dot(a, b))


def norm(vec: Sequence[float]) -> float:
    """L2 norm (magnitude) of a vector."""
    return float(np.linalg.norm(_as_array(vec)))


def normalize(vec: Sequence[float]) -> List[float]:
    """
    Normalize a vector to unit length.

    Args:
        vec: Input vector

    Returns:
        Unit vector, or a zero vector of the same length when the input norm is 0
    """
    v = _as_array(vec)
    length = float(np.linalg.norm(v))

    if length == 0:
        return [0.0] * v.shape[0]

    return (v / length).tolist()


def cosine_similarity(vec1: Sequence[float], vec2: Sequence[float]) -> float:
    """
    Calculate cosine similarity between two vectors.

    Args:
        vec1: First embedding vector
        vec2: Second embedding vector

    Returns:
        Cosine similarity between -1 and 1, or 0.0 if either vector is zero

    Raises:
        InputError: If the vectors have different lengths
    """
    a = _as_array(vec1)
    b = _as_array(vec2)
    _check_lengths(a, b)

    norm1 = np.linalg.norm(a)
    norm2 = np.linalg.norm(b)

    if norm1 == 0 or norm2 == 0:
        return 0.0

    return float(np.dot(a, b) / (norm1 * norm2))
