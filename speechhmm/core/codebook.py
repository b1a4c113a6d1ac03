"""
speechhmm codebook module

Provides:
1. Codebook - immutable set of centroid vectors produced by vector quantization
2. CodebookGenerator - the LBG (Linde-Buzo-Gray) splitting algorithm with
   generalized Lloyd iterations

The generator starts from the global centroid and doubles the codebook each
round by splitting every centroid into c*(1-eps) and c*(1+eps), then runs
Lloyd iterations (classify, resolve empty cells, update centroids) until the
average distortion changes by no more than the configured threshold.
"""

import warnings
from typing import List, Optional, Sequence

import numpy as np

from speechhmm.core.config import EngineConfig, DEFAULT_CONFIG
from speechhmm.core.distance import nearest, validate_weights
from speechhmm.core.errors import EmptyInputError, PreconditionError


class Codebook:
    """
    Read-only set of centroid vectors.

    Attributes:
        centroids: (size, p) array, not writeable
        weights: Distance weights used to build the codebook (or None)
        distortion_history: Per-round lists of Lloyd iteration distortions
    """

    def __init__(self, centroids: np.ndarray,
                 weights: Optional[Sequence[float]] = None,
                 distortion_history: Optional[List[List[float]]] = None):
        centroids = np.array(centroids, dtype=float, ndmin=2)
        if centroids.ndim != 2 or centroids.shape[0] == 0:
            raise EmptyInputError("A codebook needs at least one centroid")
        centroids.flags.writeable = False
        self.centroids = centroids
        self.weights = validate_weights(weights, centroids.shape[1])
        self.distortion_history = distortion_history or []

    @property
    def size(self) -> int:
        return self.centroids.shape[0]

    @property
    def dimension(self) -> int:
        return self.centroids.shape[1]

    def __len__(self):
        return self.size

    def __getitem__(self, index):
        return self.centroids[index]

    def __repr__(self):
        return f'Codebook(size={self.size}, dimension={self.dimension})'


class RegionAssignment:
    """
    Transient mapping from codebook cell to the input vectors closest to it.

    cells[i] lists input row indices in classification order;
    density[i] == len(cells[i]).
    """

    def __init__(self, size: int):
        self.cells: List[List[int]] = [[] for _ in range(size)]
        self.density = np.zeros(size, dtype=np.int64)

    @classmethod
    def from_labels(cls, labels: np.ndarray, size: int) -> 'RegionAssignment':
        region = cls(size)
        for n, index in enumerate(labels):
            region.cells[index].append(n)
            region.density[index] += 1
        return region

    def empty_cells(self) -> np.ndarray:
        return np.flatnonzero(self.density == 0)

    def transfer(self, source: int, target: int, count: int):
        """Move `count` vectors from the front of `source` to the end of `target`."""
        for _ in range(count):
            self.cells[target].append(self.cells[source].pop(0))
            self.density[source] -= 1
            self.density[target] += 1


class CodebookGenerator:
    """
    LBG vector quantizer training.

    Args:
        size: Target codebook size M. Should be a power of two; otherwise the
              result is the next power of two above it.
        weights: Optional per-dimension distance weights
        config: EngineConfig supplying split_epsilon and distortion_threshold
        verbose: Print progress per splitting round
    """

    def __init__(self, size: int, weights: Optional[Sequence[float]] = None,
                 config: Optional[EngineConfig] = None, verbose: bool = False):
        if int(size) < 1:
            raise PreconditionError(f"Codebook size must be >= 1, got {size}")
        self.size = int(size)
        self.weights = weights
        self.config = config or DEFAULT_CONFIG
        self.verbose = verbose
        self.distortion_history: List[List[float]] = []

    def generate(self, vectors: np.ndarray) -> Codebook:
        """
        Build a codebook from a set of feature vectors.

        Args:
            vectors: (n, p) array of feature vectors, n >= 1

        Returns:
            Codebook with the smallest power-of-two size >= self.size
        """
        data = np.array(vectors, dtype=float)
        if data.ndim == 1 and data.size > 0:
            data = data.reshape(-1, 1)
        if data.ndim != 2 or data.shape[0] == 0 or data.shape[1] == 0:
            raise EmptyInputError("Cannot generate a codebook from an empty input set")
        if not np.all(np.isfinite(data)):
            raise PreconditionError("Feature vectors contain NaN or infinite values")
        weights = validate_weights(self.weights, data.shape[1])

        if self.verbose:
            print(f"Generating codebook for {len(data)} vectors")

        self.distortion_history = []
        centroids = data.mean(axis=0, keepdims=True)

        round_no = 0
        while len(centroids) < self.size:
            round_no += 1
            centroids = self._split(centroids)
            centroids, history = self._lloyd(data, centroids, weights)
            self.distortion_history.append(history)
            if self.verbose:
                print(f"  Round {round_no}: size {len(centroids)}, "
                      f"{len(history)} iterations, distortion {history[-1]:.6f}")

        if self.verbose:
            print("Codebook generated")

        return Codebook(centroids, weights=weights,
                        distortion_history=self.distortion_history)

    def _split(self, centroids: np.ndarray) -> np.ndarray:
        """Replace each centroid c by c*(1-eps) and append c*(1+eps) after all of them."""
        eps = self.config.split_epsilon
        return np.vstack([centroids * (1 - eps), centroids * (1 + eps)])

    def _lloyd(self, data: np.ndarray, centroids: np.ndarray,
               weights: Optional[np.ndarray]):
        """Generalized Lloyd iterations until the distortion stabilizes."""
        history = []
        current = 0.0
        while True:
            previous = current
            region = self.classify(data, centroids, weights)
            self.resolve_empty_cells(region)
            centroids = self.update_centroids(data, centroids, region)
            current = self.distortion(data, centroids, weights)
            history.append(current)
            if abs(current - previous) <= self.config.distortion_threshold:
                return centroids, history

    @staticmethod
    def classify(data: np.ndarray, centroids: np.ndarray,
                 weights: Optional[np.ndarray] = None) -> RegionAssignment:
        """Assign every input vector to its nearest centroid."""
        labels, _ = nearest(data, centroids, weights)
        return RegionAssignment.from_labels(labels, len(centroids))

    @staticmethod
    def resolve_empty_cells(region: RegionAssignment) -> RegionAssignment:
        """
        Fill empty cells with half of the densest cell.

        Cells are visited in index order. Each empty cell receives
        max_density // 2 vectors taken from the front of the densest cell,
        after which the densest cell is looked up again.
        """
        size = len(region.cells)
        max_index = int(np.argmax(region.density))
        for i in range(size):
            if region.density[i] != 0:
                continue
            region.transfer(max_index, i, int(region.density[max_index]) // 2)
            max_index = int(np.argmax(region.density))

        empty = region.empty_cells()
        if len(empty) > 0:
            warnings.warn(
                f"{len(empty)} codebook cell(s) remain empty: fewer input "
                f"vectors than codebook entries",
                RuntimeWarning
            )
        return region

    @staticmethod
    def update_centroids(data: np.ndarray, centroids: np.ndarray,
                         region: RegionAssignment) -> np.ndarray:
        """Mean of each cell; centroids of cells that are still empty are kept."""
        updated = centroids.copy()
        for i, cell in enumerate(region.cells):
            if cell:
                updated[i] = data[cell].mean(axis=0)
        return updated

    @staticmethod
    def distortion(data: np.ndarray, centroids: np.ndarray,
                   weights: Optional[np.ndarray] = None) -> float:
        """Average distance from each input vector to its nearest centroid."""
        _, dist = nearest(data, centroids, weights)
        return float(dist.mean())
