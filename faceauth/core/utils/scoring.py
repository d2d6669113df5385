"""Embedding math shared by enrollment and verification."""
from itertools import combinations
from typing import Sequence

import numpy as np


def l2_normalize(vec: np.ndarray, eps: float = 1e-12) -> np.ndarray:
    """L2-normalize a 1D vector.

    Raises:
        ValueError: If the vector has (near) zero or non-finite norm
    """
    arr = np.asarray(vec, dtype=np.float64).reshape(-1)
    norm = float(np.linalg.norm(arr))
    if not np.isfinite(norm) or norm < eps:
        raise ValueError(f"Cannot normalize vector with norm {norm}")
    return (arr / norm).astype(np.float32)


def similarity_score(a: np.ndarray, b: np.ndarray, max_distance: float) -> float:
    """Map the Euclidean distance of two unit embeddings to a [0, 1] score.

    score = clamp((max_distance - ||a - b||) / max_distance, 0, 1)

    Raises:
        ValueError: If the embeddings differ in length
    """
    va = np.asarray(a, dtype=np.float64).reshape(-1)
    vb = np.asarray(b, dtype=np.float64).reshape(-1)
    if va.shape != vb.shape:
        raise ValueError(f"Embedding length mismatch: {va.size} vs {vb.size}")
    distance = float(np.linalg.norm(va - vb))
    return float(min(1.0, max(0.0, (max_distance - distance) / max_distance)))


def score_matrix(rows: Sequence[np.ndarray], cols: Sequence[np.ndarray], max_distance: float) -> np.ndarray:
    """Scores of every (row, col) pair as a len(rows) x len(cols) array."""
    a = np.asarray(np.stack(rows), dtype=np.float64)
    b = np.asarray(np.stack(cols), dtype=np.float64)
    if a.shape[1] != b.shape[1]:
        raise ValueError(f"Embedding length mismatch: {a.shape[1]} vs {b.shape[1]}")
    distances = np.linalg.norm(a[:, None, :] - b[None, :, :], axis=2)
    return np.clip((max_distance - distances) / max_distance, 0.0, 1.0)


def average_pairwise_score(embeddings: Sequence[np.ndarray], max_distance: float) -> float:
    """Mean score over all unordered pairs; 1.0 when there are no pairs."""
    scores = [similarity_score(a, b, max_distance) for a, b in combinations(embeddings, 2)]
    if not scores:
        return 1.0
    return float(np.mean(scores))
