"""
speechhmm persistence module

Handles loading and saving codebooks and HMM models:

Codebooks
- .txt: one centroid per line, values space-separated ('%f' precision)
- binary: .npz archive of centroids and distance weights, bit-exact (any
  non-.txt path, written under the exact name given)

Models
- .npz: binary (n_states, n_symbols, pi, A, B) arrays, bit-exact
- .json: human-readable, floats written at full precision

Also reads and writes the model index (label -> model path) used by the
recognizer, and the HMMList of intermediate per-utterance models.
"""

import json
import os
from typing import List, Optional, Tuple

import numpy as np
import pandas as pd

from speechhmm.core.codebook import Codebook
from speechhmm.core.errors import ModelFormatError
from speechhmm.core.hmm import HMMModel


MODEL_FORMAT = 'speechhmm'
MODEL_VERSION = '1.0'


# =============================================================================
# Codebooks
# =============================================================================

def save_codebook(codebook: Codebook, filepath: str, text: bool = False) -> List[str]:
    """
    Save a codebook.

    Paths ending in .txt are written as text (centroids only). Anything else
    is written as a binary .npz archive under the given name, holding the
    centroids and, if the codebook has them, its distance weights. With
    text=True a '<filepath>.txt' copy is written too.

    Returns:
        List of files written
    """
    written = []
    if filepath.endswith('.txt'):
        _save_codebook_text(codebook, filepath)
        return [filepath]

    arrays = {'centroids': np.asarray(codebook.centroids)}
    if codebook.weights is not None:
        arrays['weights'] = codebook.weights
    with open(filepath, 'wb') as f:
        np.savez(f, **arrays)
    written.append(filepath)

    if text:
        _save_codebook_text(codebook, filepath + '.txt')
        written.append(filepath + '.txt')
    return written


def _save_codebook_text(codebook: Codebook, filepath: str):
    np.savetxt(filepath, codebook.centroids, fmt='%f', delimiter=' ')


def load_codebook(filepath: str, weights=None) -> Codebook:
    """
    Load a codebook written by save_codebook (text or binary).

    Explicit `weights` take precedence over weights stored with a binary
    codebook. Plain .npy arrays are read as centroids without weights.
    """
    stored = None
    if filepath.endswith('.txt'):
        try:
            centroids = np.loadtxt(filepath, dtype=float, ndmin=2)
        except ValueError as e:
            raise ModelFormatError(f"Cannot parse codebook {filepath}: {e}") from e
    else:
        with open(filepath, 'rb') as f:
            try:
                loaded = np.load(f, allow_pickle=False)
                if hasattr(loaded, 'files'):
                    with loaded:
                        if 'centroids' not in loaded.files:
                            raise ModelFormatError(
                                f"Codebook {filepath} has no 'centroids' array")
                        centroids = loaded['centroids']
                        if 'weights' in loaded.files:
                            stored = loaded['weights']
                else:
                    centroids = loaded
            except ModelFormatError:
                raise
            except (ValueError, OSError) as e:
                raise ModelFormatError(f"Cannot read binary codebook {filepath}: {e}") from e
    if centroids.ndim != 2:
        raise ModelFormatError(
            f"Codebook {filepath} must hold a 2-D array, got shape {centroids.shape}")
    return Codebook(centroids, weights=stored if weights is None else weights)


# =============================================================================
# Models
# =============================================================================

def save_model(model: HMMModel, filepath: str):
    """
    Save model to file.

    Format is chosen by extension: .npz (binary) or .json. Any other
    extension is saved as JSON under the given name.
    """
    if filepath.endswith('.npz'):
        _save_npz(model, filepath)
    else:
        _save_json(model, filepath)


def _save_npz(model: HMMModel, filepath: str):
    with open(filepath, 'wb') as f:
        np.savez(f,
                 n_states=np.int64(model.n_states),
                 n_symbols=np.int64(model.n_symbols),
                 startprob=model.startprob_,
                 transmat=model.transmat_,
                 emissionprob=model.emissionprob_)


def _save_json(model: HMMModel, filepath: str):
    data = {'model_type': MODEL_FORMAT, 'version': MODEL_VERSION}
    data.update(model.to_dict())
    with open(filepath, 'w') as f:
        json.dump(data, f, indent=2)


def load_model(filepath: str) -> HMMModel:
    """Load a model saved by save_model (format auto-detected by extension)."""
    if filepath.endswith('.npz'):
        return _load_npz(filepath)
    return _load_json(filepath)


def _load_npz(filepath: str) -> HMMModel:
    with np.load(filepath, allow_pickle=False) as data:
        try:
            return HMMModel(int(data['n_states']), int(data['n_symbols']),
                            data['startprob'], data['transmat'], data['emissionprob'])
        except KeyError as e:
            raise ModelFormatError(f"Model file {filepath} is missing {e}") from e


def _load_json(filepath: str) -> HMMModel:
    with open(filepath, 'r') as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise ModelFormatError(f"Model file {filepath} is not valid JSON: {e}") from e
    try:
        return HMMModel.from_dict(data)
    except KeyError as e:
        raise ModelFormatError(f"Model file {filepath} is missing {e}") from e


# =============================================================================
# Model index and HMMList
# =============================================================================

def write_model_index(entries: List[Tuple[str, str]], filepath: str):
    """Write (label, model_path) pairs as a two-column TSV."""
    df = pd.DataFrame(entries, columns=['label', 'model'])
    df.to_csv(filepath, sep='\t', index=False)


def read_model_index(filepath: str) -> List[Tuple[str, str]]:
    """
    Read a model index.

    Relative model paths are resolved against the index file's directory.
    """
    df = pd.read_csv(filepath, sep='\t', dtype=str)
    if list(df.columns[:2]) != ['label', 'model']:
        raise ModelFormatError(
            f"Model index {filepath} must have 'label' and 'model' columns")
    base = os.path.dirname(os.path.abspath(filepath))
    entries = []
    for label, path in zip(df['label'], df['model']):
        if not os.path.isabs(path):
            path = os.path.join(base, path)
        entries.append((label, path))
    return entries


def load_indexed_models(filepath: str) -> List[Tuple[str, HMMModel]]:
    """Load every model listed in an index, keeping index order."""
    return [(label, load_model(path)) for label, path in read_model_index(filepath)]


def append_model_list(paths: List[str], filepath: Optional[str], append: bool = True):
    """
    Write intermediate model paths to an HMMList file, one per line.

    With append=False the file is truncated first.
    """
    if not filepath:
        return
    with open(filepath, 'a' if append else 'w') as f:
        for path in paths:
            f.write(path + '\n')
