"""
Engine configuration.

All tunable constants of the codebook generator and the HMM engine live in
a single EngineConfig object that is passed explicitly to both.
"""

import json
from typing import Any, Dict

from speechhmm.core.errors import ModelFormatError, PreconditionError


class EngineConfig:
    """
    Numerical settings shared by the codebook generator and the HMM engine.

    Attributes:
        split_epsilon: Perturbation used when splitting codebook centroids
        distortion_threshold: Lloyd iteration stops once |delta distortion| <= this
        min_duration: Minimum number of symbols in an observation sequence (T_min)
        max_iterations: Safety cap on Baum-Welch iterations per utterance
        probability_floor: Lower bound for every emission probability
        n_rounds: Training rounds (one from the Bakis model, the rest from averages)
    """

    FIELDS = (
        'split_epsilon',
        'distortion_threshold',
        'min_duration',
        'max_iterations',
        'probability_floor',
        'n_rounds',
    )

    def __init__(self,
                 split_epsilon: float = 0.05,
                 distortion_threshold: float = 0.01,
                 min_duration: int = 50,
                 max_iterations: int = 500000,
                 probability_floor: float = 1e-300,
                 n_rounds: int = 3):
        self.split_epsilon = float(split_epsilon)
        self.distortion_threshold = float(distortion_threshold)
        self.min_duration = int(min_duration)
        self.max_iterations = int(max_iterations)
        self.probability_floor = float(probability_floor)
        self.n_rounds = int(n_rounds)
        self.validate()

    def validate(self):
        """Raise PreconditionError if any setting is out of range."""
        if not 0.0 < self.split_epsilon < 1.0:
            raise PreconditionError(
                f"split_epsilon must be in (0, 1), got {self.split_epsilon}")
        if self.distortion_threshold < 0:
            raise PreconditionError(
                f"distortion_threshold must be >= 0, got {self.distortion_threshold}")
        if self.min_duration < 1:
            raise PreconditionError(f"min_duration must be >= 1, got {self.min_duration}")
        if self.max_iterations < 1:
            raise PreconditionError(
                f"max_iterations must be >= 1, got {self.max_iterations}")
        if not 0.0 < self.probability_floor < 1.0:
            raise PreconditionError(
                f"probability_floor must be in (0, 1), got {self.probability_floor}")
        if self.n_rounds < 1:
            raise PreconditionError(f"n_rounds must be >= 1, got {self.n_rounds}")

    def to_dict(self) -> Dict[str, Any]:
        return {name: getattr(self, name) for name in self.FIELDS}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> 'EngineConfig':
        """Build a config from a dictionary; unknown keys are rejected."""
        unknown = sorted(set(d) - set(cls.FIELDS))
        if unknown:
            raise PreconditionError(f"Unknown configuration keys: {', '.join(unknown)}")
        try:
            return cls(**d)
        except PreconditionError:
            raise
        except (TypeError, ValueError) as e:
            raise PreconditionError(f"Invalid configuration value: {e}") from e

    @classmethod
    def from_json(cls, filepath: str) -> 'EngineConfig':
        with open(filepath, 'r') as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as e:
                raise ModelFormatError(f"Config file {filepath} is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise ModelFormatError(f"Config file {filepath} must hold a JSON object")
        return cls.from_dict(data)

    def replace(self, **overrides) -> 'EngineConfig':
        """Return a copy with some settings changed. None values are ignored."""
        d = self.to_dict()
        d.update({k: v for k, v in overrides.items() if v is not None})
        return self.from_dict(d)

    def __eq__(self, other):
        if not isinstance(other, EngineConfig):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self):
        args = ', '.join(f'{k}={v!r}' for k, v in self.to_dict().items())
        return f'EngineConfig({args})'


DEFAULT_CONFIG = EngineConfig()
