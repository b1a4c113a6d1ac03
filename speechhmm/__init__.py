"""
speechhmm - vector quantization and discrete hidden Markov models for
isolated-word and speaker recognition from cepstral feature vectors.
"""

__version__ = "1.0.0"

from speechhmm.core.config import EngineConfig
from speechhmm.core.codebook import Codebook, CodebookGenerator
from speechhmm.core.quantizer import Quantizer
from speechhmm.core.hmm import HMMModel, average_models
from speechhmm.core.model_io import load_codebook, save_codebook, load_model, save_model
from speechhmm.training.analyzer import HMMAnalyzer
from speechhmm.recognition.recognizer import HMMRecognizer, NO_MATCH
