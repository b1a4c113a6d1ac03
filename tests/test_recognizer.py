"""
Tests for speechhmm.recognition.recognizer.
"""
import os
import warnings

import pytest
import numpy as np

from speechhmm.core.codebook import Codebook
from speechhmm.core.config import EngineConfig
from speechhmm.core.errors import EmptyInputError, PreconditionError
from speechhmm.core.hmm import HMMModel
from speechhmm.core.model_io import save_model, write_model_index
from speechhmm.core.quantizer import Quantizer
from speechhmm.recognition.recognizer import NO_MATCH, HMMRecognizer


def _single_state(emission):
    return HMMModel(1, len(emission), [1.0], [[1.0]], [emission])


@pytest.fixture
def three_models():
    return [
        ('A', _single_state([0.9, 0.1])),
        ('B', _single_state([0.1, 0.9])),
        ('C', _single_state([0.5, 0.5])),
    ]


class TestRecognize:

    def test_dominant_model_wins(self, three_models, short_config):
        recognizer = HMMRecognizer(three_models, short_config)
        result = recognizer.recognize([1, 1, 1, 0, 1])
        assert result.recognized
        assert result.label == 'B'
        assert result.probability == pytest.approx(0.9 ** 4 * 0.1)
        assert [label for label, _ in result.scores] == ['A', 'B', 'C']

    def test_all_zero_is_no_match(self, short_config):
        models = [(label, _single_state([1.0, 0.0])) for label in 'ABC']
        result = HMMRecognizer(models, short_config).recognize([1, 1])
        assert result.label is NO_MATCH
        assert not result.recognized
        assert result.probability == 0.0
        assert repr(result) == 'RecognitionResult(no match)'

    def test_first_of_equal_models_wins(self, short_config):
        models = [('first', _single_state([0.5, 0.5])),
                  ('second', _single_state([0.5, 0.5]))]
        assert HMMRecognizer(models, short_config).recognize([0, 1]).label == 'first'

    def test_dict_models(self, three_models, short_config):
        recognizer = HMMRecognizer(dict(three_models), short_config)
        assert recognizer.labels == ['A', 'B', 'C']

    def test_short_sequence_no_match(self, three_models):
        recognizer = HMMRecognizer(three_models, EngineConfig(min_duration=10))
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter('always')
            result = recognizer.recognize([1, 1])
        assert not result.recognized
        assert len(caught) == 1

    def test_no_models(self):
        with pytest.raises(EmptyInputError):
            HMMRecognizer([])


class TestQuantizedRecognition:

    def test_recognize_features(self, three_models, short_config):
        quantizer = Quantizer(Codebook([[0.0], [10.0]]))
        recognizer = HMMRecognizer(three_models, short_config, quantizer=quantizer)
        result = recognizer.recognize_features(np.array([[0.5], [-1.0], [1.0]]))
        assert result.label == 'A'

    def test_codebook_size_mismatch(self, three_models):
        quantizer = Quantizer(Codebook([[0.0], [1.0], [2.0]]))
        with pytest.raises(PreconditionError):
            HMMRecognizer(three_models, quantizer=quantizer)

    def test_features_need_quantizer(self, three_models, short_config):
        with pytest.raises(PreconditionError):
            HMMRecognizer(three_models, short_config).recognize_features(np.zeros((3, 1)))

    def test_from_index(self, three_models, short_config, temp_dir):
        entries = []
        for label, model in three_models:
            save_model(model, os.path.join(temp_dir, f'{label}.json'))
            entries.append((label, f'{label}.json'))
        index = os.path.join(temp_dir, 'models.tsv')
        write_model_index(entries, index)

        recognizer = HMMRecognizer.from_index(index, config=short_config)
        assert recognizer.labels == ['A', 'B', 'C']
        assert recognizer.recognize([1, 1, 1]).label == 'B'
