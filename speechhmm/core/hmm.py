"""
speechhmm HMM module

Provides:
1. HMMModel - discrete-observation Hidden Markov Model parameters (pi, A, B)
2. Forward procedure, backward procedure and Viterbi decoding
3. Baum-Welch re-estimation with emission probability flooring
4. Element-wise averaging of models trained on different utterances

The algorithms work in linear probability space; the emission floor keeps
every B entry strictly positive so that no observation can drive a path
probability to exactly zero on its own.
"""

from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np

from speechhmm.core.errors import (EmptyInputError, PreconditionError,
                                   StateIndexError, SymbolIndexError)


DEFAULT_FLOOR = 1e-300


class HMMModel:
    """
    Discrete HMM with N states and M observation symbols.

    Attributes:
        n_states: N
        n_symbols: M
        startprob_: (N,) initial state distribution pi
        transmat_: (N, N) row-stochastic transition matrix A
        emissionprob_: (N, M) row-stochastic emission matrix B
    """

    def __init__(self, n_states: int, n_symbols: int,
                 startprob: Optional[np.ndarray] = None,
                 transmat: Optional[np.ndarray] = None,
                 emissionprob: Optional[np.ndarray] = None):
        if int(n_states) < 1 or int(n_symbols) < 1:
            raise PreconditionError(
                f"A model needs at least one state and one symbol, "
                f"got N={n_states}, M={n_symbols}")
        self.n_states = int(n_states)
        self.n_symbols = int(n_symbols)
        self.startprob_ = self._matrix(startprob, (self.n_states,), 'startprob')
        self.transmat_ = self._matrix(transmat, (self.n_states, self.n_states), 'transmat')
        self.emissionprob_ = self._matrix(emissionprob, (self.n_states, self.n_symbols),
                                          'emissionprob')

    @staticmethod
    def _matrix(values, shape, name) -> np.ndarray:
        if values is None:
            return np.zeros(shape)
        arr = np.array(values, dtype=float)
        if arr.shape != shape:
            raise PreconditionError(f"{name} must have shape {shape}, got {arr.shape}")
        return arr

    @classmethod
    def bakis(cls, n_states: int, n_symbols: int) -> 'HMMModel':
        """Left-to-right model: start in state 0, stay or advance with p=0.5."""
        model = cls(n_states, n_symbols)
        model.initialize_bakis()
        return model

    def initialize_bakis(self):
        """Reset parameters to the Bakis (left-to-right) initial model."""
        N, M = self.n_states, self.n_symbols
        self.startprob_ = np.zeros(N)
        self.startprob_[0] = 1.0
        self.transmat_ = np.zeros((N, N))
        for i in range(N - 1):
            self.transmat_[i, i] = 0.5
            self.transmat_[i, i + 1] = 0.5
        self.transmat_[N - 1, N - 1] = 1.0
        self.emissionprob_ = np.full((N, M), 1.0 / M)

    # -------------------------------------------------------------------------
    # Bounds-checked element access
    # -------------------------------------------------------------------------

    def _check_state(self, *states):
        for s in states:
            if not 0 <= s < self.n_states:
                raise StateIndexError(
                    f"Illegal state number {s} (model has {self.n_states} states)")

    def _check_symbol(self, k):
        if not 0 <= k < self.n_symbols:
            raise SymbolIndexError(
                f"Illegal observation symbol {k} (model has {self.n_symbols} symbols)")

    def pi(self, i: int) -> float:
        self._check_state(i)
        return float(self.startprob_[i])

    def a(self, i: int, j: int) -> float:
        self._check_state(i, j)
        return float(self.transmat_[i, j])

    def b(self, i: int, k: int) -> float:
        self._check_state(i)
        self._check_symbol(k)
        return float(self.emissionprob_[i, k])

    def set_pi(self, i: int, value: float):
        self._check_state(i)
        self.startprob_[i] = value

    def set_a(self, i: int, j: int, value: float):
        self._check_state(i, j)
        self.transmat_[i, j] = value

    def set_b(self, i: int, k: int, value: float):
        self._check_state(i)
        self._check_symbol(k)
        self.emissionprob_[i, k] = value

    # -------------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------------

    def check_observations(self, obs: Sequence[int]) -> np.ndarray:
        """Return obs as an int64 array, rejecting empty or out-of-range symbols."""
        arr = np.asarray(obs)
        if arr.ndim != 1:
            arr = arr.reshape(-1)
        if arr.size == 0:
            raise EmptyInputError("Observation sequence is empty")
        if not np.issubdtype(arr.dtype, np.integer):
            if not np.all(np.equal(np.mod(arr, 1), 0)):
                raise SymbolIndexError("Observation symbols must be integers")
        arr = arr.astype(np.int64)
        bad = (arr < 0) | (arr >= self.n_symbols)
        if np.any(bad):
            raise SymbolIndexError(
                f"Illegal observation symbol {int(arr[bad][0])} "
                f"(model has {self.n_symbols} symbols)")
        return arr

    def is_stochastic(self, tol: float = 1e-6) -> bool:
        """True if pi and every row of A and B sum to 1 within tol."""
        return (abs(self.startprob_.sum() - 1.0) <= tol
                and np.all(np.abs(self.transmat_.sum(axis=1) - 1.0) <= tol)
                and np.all(np.abs(self.emissionprob_.sum(axis=1) - 1.0) <= tol)
                and np.all(self.startprob_ >= 0)
                and np.all(self.transmat_ >= 0)
                and np.all(self.emissionprob_ >= 0))

    def validate(self, tol: float = 1e-6):
        """Raise PreconditionError unless the model is a proper probability model."""
        if not self.is_stochastic(tol):
            raise PreconditionError(
                "Model probabilities must be non-negative and each of pi and the "
                "rows of A and B must sum to 1")

    # -------------------------------------------------------------------------
    # Convenience wrappers around the kernels
    # -------------------------------------------------------------------------

    def probability(self, obs: Sequence[int]) -> float:
        """P(obs | model) by the forward procedure."""
        obs = self.check_observations(obs)
        _, prob = forward(self.startprob_, self.transmat_, self.emissionprob_, obs)
        return prob

    def decode(self, obs: Sequence[int]) -> Tuple[np.ndarray, float]:
        """Most likely state path and its probability."""
        obs = self.check_observations(obs)
        return viterbi(self.startprob_, self.transmat_, self.emissionprob_, obs)

    def copy(self) -> 'HMMModel':
        return HMMModel(self.n_states, self.n_symbols,
                        self.startprob_.copy(), self.transmat_.copy(),
                        self.emissionprob_.copy())

    def to_dict(self) -> Dict[str, Any]:
        """Serialize model to dictionary."""
        return {
            'n_states': self.n_states,
            'n_symbols': self.n_symbols,
            'startprob': self.startprob_.tolist(),
            'transmat': self.transmat_.tolist(),
            'emissionprob': self.emissionprob_.tolist(),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> 'HMMModel':
        """Deserialize model from dictionary."""
        return cls(d['n_states'], d['n_symbols'],
                   d['startprob'], d['transmat'], d['emissionprob'])

    def __repr__(self):
        return f'HMMModel(n_states={self.n_states}, n_symbols={self.n_symbols})'


# =============================================================================
# Kernels
# =============================================================================

def forward(startprob: np.ndarray, transmat: np.ndarray, emissionprob: np.ndarray,
            obs: np.ndarray) -> Tuple[np.ndarray, float]:
    """
    Forward procedure.

        alpha[0][i]   = pi(i) * B(i, obs[0])
        alpha[t+1][j] = (sum_i alpha[t][i] * A(i, j)) * B(j, obs[t+1])

    Returns:
        alpha: (T, N) forward variables
        prob: P(obs | model) = sum_i alpha[T-1][i]
    """
    T = len(obs)
    alpha = np.empty((T, len(startprob)))
    alpha[0] = startprob * emissionprob[:, obs[0]]
    for t in range(T - 1):
        alpha[t + 1] = (alpha[t] @ transmat) * emissionprob[:, obs[t + 1]]
    return alpha, float(alpha[-1].sum())


def backward(transmat: np.ndarray, emissionprob: np.ndarray,
             obs: np.ndarray) -> np.ndarray:
    """
    Backward procedure.

        beta[T-1][i] = 1
        beta[t][i]   = sum_j A(i, j) * B(j, obs[t+1]) * beta[t+1][j]

    Returns:
        beta: (T, N) backward variables
    """
    T = len(obs)
    beta = np.empty((T, transmat.shape[0]))
    beta[-1] = 1.0
    for t in range(T - 2, -1, -1):
        beta[t] = transmat @ (emissionprob[:, obs[t + 1]] * beta[t + 1])
    return beta


def viterbi(startprob: np.ndarray, transmat: np.ndarray, emissionprob: np.ndarray,
            obs: np.ndarray) -> Tuple[np.ndarray, float]:
    """
    Viterbi decoding.

    Ties between predecessors (and between final states) go to the lowest
    state index.

    Returns:
        path: Optimal state sequence, shape (T,)
        p_star: Probability of that path
    """
    T = len(obs)
    N = len(startprob)
    delta = np.empty((T, N))
    psi = np.zeros((T, N), dtype=np.int64)
    cols = np.arange(N)

    delta[0] = startprob * emissionprob[:, obs[0]]
    for t in range(1, T):
        # scores[i, j] = delta[t-1][i] * A(i, j)
        scores = delta[t - 1][:, np.newaxis] * transmat
        psi[t] = np.argmax(scores, axis=0)
        delta[t] = scores[psi[t], cols] * emissionprob[:, obs[t]]

    path = np.empty(T, dtype=np.int64)
    path[-1] = int(np.argmax(delta[-1]))
    p_star = float(delta[-1, path[-1]])
    for t in range(T - 2, -1, -1):
        path[t] = psi[t + 1, path[t + 1]]
    return path, p_star


def floor_emissions(emissionprob: np.ndarray, floor: float = DEFAULT_FLOOR) -> np.ndarray:
    """
    Raise emission probabilities below `floor` up to `floor`.

    The mass added to a row is taken from that row's entries above the floor
    in proportion to their size, so the row sum is unchanged. An entry that
    this pushes down to the floor is pinned there and the rest are rescaled
    again. Rows where no entry can stay above the floor are returned
    unchanged.

    Returns:
        New (N, M) array; the input is not modified
    """
    B = np.array(emissionprob, dtype=float)
    for n in range(B.shape[0]):
        row = B[n]
        if not (row < floor).any():
            continue
        total = row.sum()
        pinned = row <= floor
        while True:
            free = np.flatnonzero(~pinned)
            free_mass = row[free].sum()
            target = total - floor * pinned.sum()
            if len(free) == 0 or free_mass <= 0 or target <= 0:
                scaled = None
                break
            scaled = row[free] * (target / free_mass)
            crossed = scaled <= floor
            if not crossed.any():
                break
            pinned[free[crossed]] = True
        if scaled is None:
            continue
        row[pinned] = floor
        row[free] = scaled
    return B


def reestimate(model: HMMModel, obs: np.ndarray, alpha: np.ndarray, beta: np.ndarray,
               prob: float, floor: float = DEFAULT_FLOOR
               ) -> Tuple[HMMModel, np.ndarray, np.ndarray]:
    """
    One Baum-Welch re-estimation step.

        xi[t][i][j] = alpha[t][i] A(i,j) B(j, obs[t+1]) beta[t+1][j] / P
        gamma[t][i] = alpha[t][i] beta[t][i] / P

        pi'(i)   = gamma[0][i]
        A'(i, j) = sum_{t<T-1} xi[t][i][j] / sum_{t<T-1} gamma[t][i]
        B'(i, k) = sum_{t: obs[t]=k} gamma[t][i] / sum_t gamma[t][i]

    Rows whose expected state occupancy is exactly zero keep the values of
    the input model. B' is floored afterwards.

    Args:
        model: Current model (not modified)
        obs: Observation sequence
        alpha, beta: Forward and backward variables of `model` on `obs`
        prob: P(obs | model), must be > 0
        floor: Emission probability floor

    Returns:
        (new_model, gamma, xi) with gamma of shape (T, N) and xi of shape (T-1, N, N)
    """
    if not prob > 0:
        raise PreconditionError("Cannot re-estimate a model that gives the observations zero probability")

    A = model.transmat_
    B = model.emissionprob_

    gamma = alpha * beta / prob
    # emit_beta[t, j] = B(j, obs[t+1]) * beta[t+1][j]
    emit_beta = B[:, obs[1:]].T * beta[1:]
    xi = alpha[:-1, :, np.newaxis] * A[np.newaxis, :, :] * emit_beta[:, np.newaxis, :] / prob

    startprob = gamma[0].copy()

    trans_num = xi.sum(axis=0)
    trans_den = gamma[:-1].sum(axis=0)
    transmat = A.copy()
    visited = trans_den > 0
    transmat[visited] = trans_num[visited] / trans_den[visited, np.newaxis]

    emit_num = np.zeros((model.n_symbols, model.n_states))
    np.add.at(emit_num, obs, gamma)
    emit_den = gamma.sum(axis=0)
    emissionprob = B.copy()
    occupied = emit_den > 0
    emissionprob[occupied] = emit_num.T[occupied] / emit_den[occupied, np.newaxis]
    emissionprob = floor_emissions(emissionprob, floor)

    new_model = HMMModel(model.n_states, model.n_symbols, startprob, transmat, emissionprob)
    return new_model, gamma, xi


def average_models(models: List[HMMModel]) -> HMMModel:
    """Element-wise arithmetic mean of pi, A and B across models."""
    if not models:
        raise EmptyInputError("Cannot average an empty list of models")
    N, M = models[0].n_states, models[0].n_symbols
    for m in models[1:]:
        if (m.n_states, m.n_symbols) != (N, M):
            raise PreconditionError(
                f"Cannot average models of shape ({m.n_states}, {m.n_symbols}) "
                f"and ({N}, {M})")
    return HMMModel(
        N, M,
        np.mean([m.startprob_ for m in models], axis=0),
        np.mean([m.transmat_ for m in models], axis=0),
        np.mean([m.emissionprob_ for m in models], axis=0),
    )
