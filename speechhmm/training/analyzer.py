"""
speechhmm HMM training engine.

HMMAnalyzer builds word/speaker models from quantized utterances:

1. analyze(): per-utterance Baum-Welch loop. Each iteration runs the forward
   and backward procedures, re-estimates the model, and keeps the new model
   only while its Viterbi path probability keeps strictly increasing.
2. run(): trains one model per utterance from the Bakis model, averages them,
   then repeats the per-utterance training from the averaged model for the
   remaining rounds. The last average is the trained model.

All scratch arrays of a training run live in a TrainingContext owned by that
run, so analyze() calls on different utterances share nothing and can run in
separate processes.
"""

import os
import warnings
from typing import List, Optional, Sequence, Tuple

import numpy as np

from speechhmm.core.config import EngineConfig, DEFAULT_CONFIG
from speechhmm.core.errors import (EmptyInputError, ObservationTooShortError,
                                   PreconditionError)
from speechhmm.core.hmm import (HMMModel, average_models, backward, forward,
                                reestimate, viterbi)
from speechhmm.core.model_io import append_model_list, save_model


class TrainingContext:
    """Working state of a single analyze() run."""

    def __init__(self):
        self.alpha: Optional[np.ndarray] = None
        self.beta: Optional[np.ndarray] = None
        self.gamma: Optional[np.ndarray] = None
        self.xi: Optional[np.ndarray] = None
        self.probability = 0.0          # P(obs | model) from the last forward pass
        self.iterations = 0
        self.history: List[float] = []  # Viterbi probability of each accepted model
        self.stop_reason: Optional[str] = None

    @property
    def best_probability(self) -> float:
        return self.history[-1] if self.history else 0.0

    def release_buffers(self) -> 'TrainingContext':
        """Drop the per-time-step arrays, keeping the progress record."""
        self.alpha = self.beta = self.gamma = self.xi = None
        return self


class HMMAnalyzer:
    """
    Trains discrete HMMs on observation sequences.

    Args:
        n_states: Number of HMM states N
        config: EngineConfig (min_duration, max_iterations, probability_floor, n_rounds)
        verbose: Print per-iteration progress
    """

    def __init__(self, n_states: int, config: Optional[EngineConfig] = None,
                 verbose: bool = False):
        if int(n_states) < 1:
            raise PreconditionError(f"n_states must be >= 1, got {n_states}")
        self.n_states = int(n_states)
        self.config = config or DEFAULT_CONFIG
        self.verbose = verbose

    def _is_short(self, obs: np.ndarray) -> bool:
        return len(obs) < self.config.min_duration

    def check_sequence(self, model: HMMModel, obs: Sequence[int]) -> np.ndarray:
        """Validate symbols and length; raise if the sequence cannot be trained on."""
        obs = model.check_observations(obs)
        if self._is_short(obs):
            raise ObservationTooShortError(len(obs), self.config.min_duration)
        return obs

    # -------------------------------------------------------------------------
    # Procedures
    # -------------------------------------------------------------------------

    def forward_procedure(self, model: HMMModel, obs: Sequence[int],
                          context: Optional[TrainingContext] = None) -> float:
        """
        P(obs | model).

        Sequences shorter than min_duration are not scored: a warning is
        issued and 0.0 is returned.
        """
        obs = model.check_observations(obs)
        if self._is_short(obs):
            warnings.warn(
                f"Observation sequence incomplete: {len(obs)} symbols, "
                f"at least {self.config.min_duration} required"
            )
            return 0.0
        alpha, prob = forward(model.startprob_, model.transmat_, model.emissionprob_, obs)
        if context is not None:
            context.alpha = alpha
            context.probability = prob
        return prob

    def backward_procedure(self, model: HMMModel, obs: Sequence[int],
                           context: Optional[TrainingContext] = None) -> np.ndarray:
        """Backward variables beta, shape (T, N)."""
        obs = self.check_sequence(model, obs)
        beta = backward(model.transmat_, model.emissionprob_, obs)
        if context is not None:
            context.beta = beta
        return beta

    def viterbi(self, model: HMMModel, obs: Sequence[int]) -> Tuple[np.ndarray, float]:
        """
        Optimal state path and its probability.

        Short sequences give an empty path and probability 0.0 with a warning.
        """
        obs = model.check_observations(obs)
        if self._is_short(obs):
            warnings.warn(
                f"Observation sequence incomplete: {len(obs)} symbols, "
                f"at least {self.config.min_duration} required"
            )
            return np.empty(0, dtype=np.int64), 0.0
        return viterbi(model.startprob_, model.transmat_, model.emissionprob_, obs)

    def reestimate(self, model: HMMModel, obs: Sequence[int],
                   context: TrainingContext) -> HMMModel:
        """
        Baum-Welch re-estimation from the forward/backward results in `context`.

        Returns a new model; `model` is left unchanged.
        """
        obs = self.check_sequence(model, obs)
        if context.alpha is None or context.beta is None:
            raise PreconditionError(
                "Forward and backward procedures must run before re-estimation")
        new_model, gamma, xi = reestimate(model, obs, context.alpha, context.beta,
                                          context.probability,
                                          self.config.probability_floor)
        context.gamma = gamma
        context.xi = xi
        return new_model

    # -------------------------------------------------------------------------
    # Training
    # -------------------------------------------------------------------------

    def analyze(self, model: HMMModel, obs: Sequence[int]
                ) -> Tuple[HMMModel, TrainingContext]:
        """
        Re-estimate `model` on one utterance until the Viterbi probability
        stops improving.

        Returns:
            (best_model, context) - the last accepted model and the run's context
        """
        obs = self.check_sequence(model, obs)
        context = TrainingContext()
        current = model
        # No previous model yet: the first re-estimate is always accepted
        previous_best = -1.0

        while True:
            if context.iterations >= self.config.max_iterations:
                context.stop_reason = 'max_iterations'
                break

            prob = self.forward_procedure(current, obs, context)
            if not prob > 0:
                warnings.warn(
                    f"P(O|model) underflowed to {prob} after {context.iterations} "
                    f"iterations; keeping the current model",
                    RuntimeWarning
                )
                context.stop_reason = 'underflow'
                break
            self.backward_procedure(current, obs, context)
            candidate = self.reestimate(current, obs, context)
            _, p_star = viterbi(candidate.startprob_, candidate.transmat_,
                                candidate.emissionprob_, obs)
            context.iterations += 1

            if self.verbose:
                print(f"Iteration: {context.iterations} Probability: {p_star:.6e}")

            if not p_star > previous_best:
                context.stop_reason = 'converged'
                break
            current = candidate
            previous_best = p_star
            context.history.append(p_star)

        return current, context

    def train_round(self, start_model: HMMModel, observations: List[np.ndarray],
                    n_workers: int = 1, desc: str = "Training"
                    ) -> List[Tuple[HMMModel, TrainingContext]]:
        """Run analyze() on every utterance from the same starting model."""
        from speechhmm.training.parallel import train_round
        return train_round(self, start_model, observations, n_workers=n_workers,
                           desc=desc)

    def run(self, observations: Sequence[Sequence[int]], n_symbols: int,
            output: Optional[str] = None, intermediate_dir: Optional[str] = None,
            n_workers: int = 1, stats=None) -> HMMModel:
        """
        Train one model from a set of utterances of the same word/speaker.

        Args:
            observations: Observation sequences, one per utterance
            n_symbols: Codebook size M
            output: If given, the averaged model is saved here
            intermediate_dir: If given, every per-utterance model of every round is
                saved there as <prefix>_<round>_<i>.json and listed in HMMList, which
                each run rewrites from scratch
            n_workers: Processes used for per-utterance training
            stats: Optional TrainingStats collecting per-round results

        Returns:
            The averaged model after the final round
        """
        initial = HMMModel.bakis(self.n_states, n_symbols)
        sequences = [self.check_sequence(initial, obs) for obs in observations]
        if not sequences:
            raise EmptyInputError("No observation sequences to train on")

        prefix = 'model'
        if output:
            prefix = os.path.splitext(os.path.basename(output))[0]
        if intermediate_dir:
            os.makedirs(intermediate_dir, exist_ok=True)

        start = initial
        averaged = initial
        for round_no in range(self.config.n_rounds):
            results = self.train_round(start, sequences, n_workers=n_workers,
                                       desc=f"Round {round_no + 1}/{self.config.n_rounds}")
            models = [m for m, _ in results]
            if stats is not None:
                stats.add_round(round_no, [ctx for _, ctx in results])
            if intermediate_dir:
                self._write_intermediate(models, intermediate_dir, prefix, round_no)
            averaged = average_models(models)
            start = averaged

        if output:
            if self.verbose:
                print(f"Writing model to {output}")
            save_model(averaged, output)
        return averaged

    @staticmethod
    def _write_intermediate(models: List[HMMModel], directory: str, prefix: str,
                            round_no: int):
        paths = []
        for i, model in enumerate(models):
            path = os.path.join(directory, f"{prefix}_{round_no}_{i}.json")
            save_model(model, path)
            paths.append(path)
        append_model_list(paths, os.path.join(directory, 'HMMList'), append=round_no > 0)
