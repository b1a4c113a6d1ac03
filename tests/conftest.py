"""
Shared pytest fixtures for speechhmm tests.
"""
import pytest
import numpy as np
import tempfile

from speechhmm.core.config import EngineConfig
from speechhmm.core.hmm import HMMModel


@pytest.fixture
def short_config():
    """Config that accepts short sequences and bounds training time."""
    return EngineConfig(min_duration=1, max_iterations=50)


@pytest.fixture
def clustered_vectors_1d():
    """Four well separated 1-D clusters around 1, 2, 10 and 11."""
    return np.array([0.9, 1.0, 1.1, 1.9, 2.0, 2.1,
                     9.9, 10.0, 10.1, 10.9, 11.0, 11.1]).reshape(-1, 1)


@pytest.fixture
def clustered_vectors_2d():
    """Three 2-D clusters of 40 vectors each."""
    rng = np.random.default_rng(7)
    centers = np.array([[0.0, 0.0], [5.0, 5.0], [10.0, 0.0]])
    return np.vstack([c + rng.normal(scale=0.3, size=(40, 2)) for c in centers])


@pytest.fixture
def bakis_2x2():
    """N=2, M=2 Bakis model: pi=[1,0], A=[[.5,.5],[0,1]], B uniform."""
    return HMMModel.bakis(2, 2)


@pytest.fixture
def random_model():
    """Fully connected 3-state, 4-symbol model with random stochastic rows."""
    rng = np.random.default_rng(42)

    def rows(n, m):
        x = rng.uniform(0.1, 1.0, size=(n, m))
        return x / x.sum(axis=1, keepdims=True)

    return HMMModel(3, 4, rows(1, 3)[0], rows(3, 3), rows(3, 4))


@pytest.fixture
def training_sequences():
    """Left-to-right style utterances over 4 symbols: low symbols first, then high."""
    rng = np.random.default_rng(3)
    seqs = []
    for length in (20, 24, 30):
        half = length // 2
        first = rng.choice([0, 1], size=half, p=[0.8, 0.2])
        second = rng.choice([2, 3], size=length - half, p=[0.3, 0.7])
        seqs.append(np.concatenate([first, second]).astype(np.int64))
    return seqs


@pytest.fixture
def temp_dir():
    """Temporary directory for file operations."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield tmpdir
