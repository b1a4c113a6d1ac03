"""Map feature vectors onto codebook indices (observation symbols)."""

from typing import Optional, Sequence

import numpy as np

from speechhmm.core.codebook import Codebook
from speechhmm.core.distance import nearest, validate_weights
from speechhmm.core.errors import (DimensionMismatchError, EmptyInputError,
                                   ObservationTooShortError)


class Quantizer:
    """
    Nearest-centroid vector quantizer.

    Args:
        codebook: Trained Codebook
        weights: Distance weights; defaults to the weights the codebook was built with
    """

    def __init__(self, codebook: Codebook, weights: Optional[Sequence[float]] = None):
        self.codebook = codebook
        if weights is None:
            self.weights = codebook.weights
        else:
            self.weights = validate_weights(weights, codebook.dimension)

    @property
    def n_symbols(self) -> int:
        return self.codebook.size

    def _as_matrix(self, vectors) -> np.ndarray:
        data = np.array(vectors, dtype=float, ndmin=2)
        if data.shape[0] == 0:
            raise EmptyInputError("No feature vectors to quantize")
        if data.shape[1] != self.codebook.dimension:
            raise DimensionMismatchError(
                f"Feature vectors have dimension {data.shape[1]}, "
                f"codebook has dimension {self.codebook.dimension}")
        return data

    def quantize_vector(self, x: Sequence[float]) -> int:
        """Index of the closest codebook entry (lowest index on ties)."""
        x = np.asarray(x, dtype=float)
        if x.ndim != 1:
            raise DimensionMismatchError(f"Expected a single vector, got shape {x.shape}")
        idx, _ = nearest(self._as_matrix(x), self.codebook.centroids, self.weights)
        return int(idx[0])

    def quantize(self, vectors: np.ndarray) -> np.ndarray:
        """Observation symbol for every vector in a sequence."""
        idx, _ = nearest(self._as_matrix(vectors), self.codebook.centroids, self.weights)
        return idx

    def distortion(self, vectors: np.ndarray) -> float:
        """Average distance between the vectors and their codebook entries."""
        _, dist = nearest(self._as_matrix(vectors), self.codebook.centroids, self.weights)
        return float(dist.mean())

    def observation_sequence(self, vectors: np.ndarray, min_duration: int = 1) -> np.ndarray:
        """
        Quantize an utterance, rejecting it if it is too short to model.

        Raises:
            ObservationTooShortError: fewer than min_duration frames
        """
        data = self._as_matrix(vectors)
        if len(data) < min_duration:
            raise ObservationTooShortError(len(data), min_duration)
        return self.quantize(data)
