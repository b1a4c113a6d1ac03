"""
Tests for speechhmm.training.stats.
"""
import os

import pytest

from speechhmm.core.codebook import CodebookGenerator
from speechhmm.training.analyzer import TrainingContext
from speechhmm.training.stats import TrainingStats


def _context(iterations, probability, stop_reason='converged'):
    ctx = TrainingContext()
    ctx.iterations = iterations
    ctx.history = [probability] if probability else []
    ctx.stop_reason = stop_reason
    return ctx


@pytest.fixture
def stats(clustered_vectors_1d):
    s = TrainingStats()
    s.add_codebook(CodebookGenerator(4).generate(clustered_vectors_1d))
    s.add_round(0, [_context(4, 1e-10), _context(6, 1e-12)])
    s.add_round(1, [_context(2, 1e-9), _context(0, 0.0, 'underflow')])
    return s


class TestTrainingStats:

    def test_summary(self, stats):
        summary = stats.get_summary()
        assert summary['codebook_size'] == 4
        assert summary['lbg_rounds'] == 2
        assert summary['training_rounds'] == 2
        assert summary['round0_utterances'] == 2
        assert summary['round0_iterations_mean'] == 5.0
        assert summary['round0_iterations_max'] == 6
        assert summary['round0_log10_viterbi_median'] == pytest.approx(-11.0)
        assert summary['round1_underflows'] == 1

    def test_empty_summary(self):
        summary = TrainingStats().get_summary()
        assert summary['codebook_size'] == 0
        assert summary['training_rounds'] == 0

    def test_write_summary(self, stats, temp_dir):
        path = os.path.join(temp_dir, 'stats.txt')
        stats.write_summary(path)
        with open(path) as f:
            text = f.read()
        assert 'Codebook' in text
        assert 'Round 1:' in text

    def test_plot_distributions(self, stats, temp_dir):
        pdf = stats.plot_distributions(os.path.join(temp_dir, 'word'))
        assert pdf.endswith('word_stats.pdf')
        assert os.path.getsize(pdf) > 0
