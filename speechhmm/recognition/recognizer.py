"""
speechhmm recognizer.

Scores an observation sequence against a set of labelled models with the
forward procedure and picks the most probable one. A sequence that no
model gives a positive probability is reported as not recognized.
"""

import warnings
from typing import Dict, List, Optional, Sequence, Tuple, Union

import numpy as np

from speechhmm.core.config import EngineConfig, DEFAULT_CONFIG
from speechhmm.core.errors import EmptyInputError, PreconditionError
from speechhmm.core.hmm import HMMModel
from speechhmm.core.model_io import load_indexed_models
from speechhmm.core.quantizer import Quantizer
from speechhmm.training.analyzer import HMMAnalyzer


NO_MATCH = None


class RecognitionResult:
    """
    Outcome of recognizing one utterance.

    Attributes:
        label: Label of the best model, or NO_MATCH (None)
        probability: Forward probability of the best model (0.0 if no match)
        scores: (label, probability) for every model, in model order
    """

    def __init__(self, label: Optional[str], probability: float,
                 scores: List[Tuple[str, float]]):
        self.label = label
        self.probability = probability
        self.scores = scores

    @property
    def recognized(self) -> bool:
        return self.label is not NO_MATCH

    def __repr__(self):
        if not self.recognized:
            return 'RecognitionResult(no match)'
        return f'RecognitionResult(label={self.label!r}, probability={self.probability:.6e})'


class HMMRecognizer:
    """
    Maximum-likelihood selection among trained models.

    Args:
        models: Ordered (label, HMMModel) pairs, or a dict label -> model
        config: EngineConfig (min_duration applies to scored sequences)
        quantizer: Needed only for recognize_features()
    """

    def __init__(self, models: Union[Sequence[Tuple[str, HMMModel]], Dict[str, HMMModel]],
                 config: Optional[EngineConfig] = None,
                 quantizer: Optional[Quantizer] = None):
        if isinstance(models, dict):
            models = list(models.items())
        self.models = list(models)
        if not self.models:
            raise EmptyInputError("The recognizer needs at least one model")
        self.config = config or DEFAULT_CONFIG
        self.quantizer = quantizer
        if quantizer is not None:
            for label, model in self.models:
                if model.n_symbols != quantizer.n_symbols:
                    raise PreconditionError(
                        f"Model '{label}' has {model.n_symbols} symbols but the "
                        f"codebook has {quantizer.n_symbols}")
        self._analyzer = HMMAnalyzer(self.models[0][1].n_states, self.config)

    @classmethod
    def from_index(cls, index_path: str, config: Optional[EngineConfig] = None,
                   quantizer: Optional[Quantizer] = None) -> 'HMMRecognizer':
        """Load the models listed in a label/model index file."""
        return cls(load_indexed_models(index_path), config=config, quantizer=quantizer)

    @property
    def labels(self) -> List[str]:
        return [label for label, _ in self.models]

    def score(self, obs: Sequence[int]) -> List[Tuple[str, float]]:
        """Forward probability of `obs` under every model."""
        with warnings.catch_warnings():
            # Warn once per utterance, not once per model
            warnings.simplefilter('ignore')
            scores = [(label, self._analyzer.forward_procedure(model, obs))
                      for label, model in self.models]
        if len(obs) < self.config.min_duration:
            warnings.warn(
                f"Observation sequence incomplete: {len(obs)} symbols, "
                f"at least {self.config.min_duration} required"
            )
        return scores

    def recognize(self, obs: Sequence[int]) -> RecognitionResult:
        """
        Pick the model with the highest forward probability.

        Only a strictly larger probability replaces the current best, so the
        first of several equally good models wins, and all-zero scores give
        no match.
        """
        scores = self.score(obs)
        best_label = NO_MATCH
        best_prob = 0.0
        for label, prob in scores:
            if prob > best_prob:
                best_prob = prob
                best_label = label
        return RecognitionResult(best_label, best_prob, scores)

    def recognize_features(self, vectors: np.ndarray) -> RecognitionResult:
        """Quantize a feature-vector sequence and recognize it."""
        if self.quantizer is None:
            raise PreconditionError("recognize_features() needs a quantizer")
        return self.recognize(self.quantizer.quantize(vectors))
