"""HMM training engine, utterance-parallel training, and statistics."""

from speechhmm.training.analyzer import HMMAnalyzer, TrainingContext
from speechhmm.training.parallel import train_round
from speechhmm.training.stats import TrainingStats

__all__ = [
    'HMMAnalyzer',
    'TrainingContext',
    'train_round',
    'TrainingStats',
]
