"""
Weighted Euclidean distance between fixed-dimension feature vectors.

    d(x, y) = sqrt( sum_i w_i * (x_i - y_i)^2 )

With no weights every w_i is 1 and this is the plain Euclidean distance.
Weight vectors must match the feature dimension exactly; they are never
padded or truncated.
"""

from typing import Optional, Sequence

import numpy as np
from scipy.spatial.distance import cdist

from speechhmm.core.errors import DimensionMismatchError, WeightsError


# Standard Tokhura weights for 12 cepstral coefficients
TOKHURA_WEIGHTS = np.array(
    [1.0, 3.0, 7.0, 13.0, 19.0, 22.0, 25.0, 33.0, 42.0, 50.0, 56.0, 61.0]
)


def validate_weights(weights: Optional[Sequence[float]], p: int) -> Optional[np.ndarray]:
    """
    Check a weight vector against the feature dimension.

    Args:
        weights: Per-dimension weights, or None for unit weights
        p: Feature vector dimension

    Returns:
        Weights as a float array, or None if no weights were given
    """
    if weights is None:
        return None
    w = np.asarray(weights, dtype=float)
    if w.ndim != 1:
        raise WeightsError(f"Weights must be a 1-D sequence, got shape {w.shape}")
    if len(w) != p:
        raise WeightsError(f"Incorrect weights: expected {p} values, got {len(w)}")
    if not np.all(np.isfinite(w)):
        raise WeightsError("Weights must be finite")
    if np.any(w < 0):
        raise WeightsError("Weights must be non-negative")
    return w


def weighted_euclidean(x: Sequence[float], y: Sequence[float],
                       weights: Optional[Sequence[float]] = None) -> float:
    """Distance between two vectors of equal dimension."""
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    if x.shape != y.shape or x.ndim != 1:
        raise DimensionMismatchError(
            f"Cannot compare vectors of shape {x.shape} and {y.shape}")
    w = validate_weights(weights, len(x))
    diff = x - y
    if w is None:
        return float(np.sqrt(np.dot(diff, diff)))
    return float(np.sqrt(np.dot(w, diff * diff)))


def pairwise_distances(vectors: np.ndarray, centroids: np.ndarray,
                       weights: Optional[Sequence[float]] = None) -> np.ndarray:
    """
    Distances from every vector to every centroid.

    Args:
        vectors: (n, p) array
        centroids: (k, p) array
        weights: Optional length-p weights

    Returns:
        (n, k) distance matrix
    """
    vectors = np.atleast_2d(np.asarray(vectors, dtype=float))
    centroids = np.atleast_2d(np.asarray(centroids, dtype=float))
    if vectors.shape[1] != centroids.shape[1]:
        raise DimensionMismatchError(
            f"Vectors have dimension {vectors.shape[1]} but centroids have "
            f"dimension {centroids.shape[1]}")
    w = validate_weights(weights, vectors.shape[1])
    if w is None:
        return cdist(vectors, centroids, 'euclidean')
    return cdist(vectors, centroids, 'euclidean', w=w)


def nearest(vectors: np.ndarray, centroids: np.ndarray,
            weights: Optional[Sequence[float]] = None):
    """
    Index of and distance to the closest centroid for each vector.

    Ties go to the lowest centroid index.

    Returns:
        (indices, distances) - int64 array and float array of length n
    """
    d = pairwise_distances(vectors, centroids, weights)
    idx = np.argmin(d, axis=1)
    return idx.astype(np.int64), d[np.arange(len(idx)), idx]
