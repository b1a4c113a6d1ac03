"""
Tests for speechhmm.core.quantizer.
"""
import pytest
import numpy as np
from numpy.testing import assert_array_equal

from speechhmm.core.codebook import Codebook
from speechhmm.core.errors import (DimensionMismatchError, EmptyInputError,
                                   ObservationTooShortError)
from speechhmm.core.quantizer import Quantizer


@pytest.fixture
def quantizer():
    return Quantizer(Codebook([[0.0, 0.0], [10.0, 10.0], [0.0, 10.0]]))


class TestQuantizer:

    def test_n_symbols(self, quantizer):
        assert quantizer.n_symbols == 3

    def test_quantize_vector(self, quantizer):
        assert quantizer.quantize_vector([1.0, 1.0]) == 0
        assert quantizer.quantize_vector([9.0, 9.5]) == 1
        assert quantizer.quantize_vector([0.5, 8.0]) == 2

    def test_quantize_sequence(self, quantizer):
        obs = quantizer.quantize(np.array([[1.0, 1.0], [9.0, 9.0], [0.0, 0.0], [1.0, 9.0]]))
        assert_array_equal(obs, [0, 1, 0, 2])
        assert obs.dtype == np.int64

    def test_distortion(self, quantizer):
        assert quantizer.distortion(np.array([[0.0, 3.0], [10.0, 10.0]])) == pytest.approx(1.5)

    def test_codebook_weights_used_by_default(self):
        codebook = Codebook([[0.0, 0.0], [3.0, 1.0]], weights=[0.0, 1.0])
        # Only the second coordinate counts
        assert Quantizer(codebook).quantize_vector([3.0, 0.2]) == 0
        assert Quantizer(codebook, weights=[1.0, 1.0]).quantize_vector([3.0, 0.2]) == 1

    def test_observation_sequence(self, quantizer):
        vectors = np.zeros((5, 2))
        assert_array_equal(quantizer.observation_sequence(vectors, min_duration=5),
                           np.zeros(5))

    def test_observation_sequence_too_short(self, quantizer):
        with pytest.raises(ObservationTooShortError) as excinfo:
            quantizer.observation_sequence(np.zeros((4, 2)), min_duration=50)
        assert excinfo.value.length == 4
        assert excinfo.value.min_duration == 50
        assert "incomplete" in str(excinfo.value)

    def test_dimension_mismatch(self, quantizer):
        with pytest.raises(DimensionMismatchError):
            quantizer.quantize(np.zeros((3, 4)))

    def test_empty_sequence(self, quantizer):
        with pytest.raises(EmptyInputError):
            quantizer.quantize(np.empty((0, 2)))
