"""speechhmm utterance-parallel training and worker management."""

import os
from concurrent.futures import ProcessPoolExecutor, as_completed
from typing import List, Tuple

import numpy as np
from tqdm import tqdm

from speechhmm.core.config import EngineConfig
from speechhmm.core.hmm import HMMModel


# Global for worker processes
_worker_analyzer = None


def resolve_workers(n_workers: int) -> int:
    """0 means one worker per CPU core."""
    if n_workers == 0:
        return os.cpu_count() or 1
    return max(1, int(n_workers))


def _init_training_worker(n_states: int, config_dict: dict):
    """Initialize worker process with its own analyzer."""
    global _worker_analyzer
    from speechhmm.training.analyzer import HMMAnalyzer
    _worker_analyzer = HMMAnalyzer(n_states, EngineConfig.from_dict(config_dict))


def _train_utterance(item):
    """Train one utterance in a worker. Returns (index, model, context)."""
    index, start_model, obs = item
    model, context = _worker_analyzer.analyze(start_model, obs)
    return index, model, context.release_buffers()


def train_round(analyzer, start_model: HMMModel, observations: List[np.ndarray],
                n_workers: int = 1, desc: str = "Training"):
    """
    Train every utterance independently from `start_model`.

    With more than one worker the utterances are spread over a process pool.
    The call returns only when every utterance is done, so results can be
    averaged straight away. Results are in utterance order.

    Returns:
        List of (model, TrainingContext) pairs
    """
    n_workers = min(resolve_workers(n_workers), len(observations))
    disable = not analyzer.verbose

    if n_workers <= 1:
        results = []
        for obs in tqdm(observations, desc=desc, disable=disable, leave=False):
            model, context = analyzer.analyze(start_model, obs)
            results.append((model, context.release_buffers()))
        return results

    ordered: List[Tuple[HMMModel, object]] = [None] * len(observations)
    work_items = [(i, start_model, obs) for i, obs in enumerate(observations)]

    with ProcessPoolExecutor(
        max_workers=n_workers,
        initializer=_init_training_worker,
        initargs=(analyzer.n_states, analyzer.config.to_dict())
    ) as executor:
        futures = [executor.submit(_train_utterance, item) for item in work_items]
        for future in tqdm(as_completed(futures), total=len(futures), desc=desc,
                           disable=disable, leave=False):
            index, model, context = future.result()
            ordered[index] = (model, context)

    return ordered
