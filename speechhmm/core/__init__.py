"""Core algorithms: distance, LBG codebooks, quantization, HMMs and persistence."""

from speechhmm.core.config import EngineConfig
from speechhmm.core.codebook import Codebook, CodebookGenerator
from speechhmm.core.quantizer import Quantizer
from speechhmm.core.hmm import HMMModel, average_models
from speechhmm.core.model_io import load_model, save_model, load_codebook, save_codebook
