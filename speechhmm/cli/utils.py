"""Feature-file and file-list helpers shared by the speechhmm CLI tools."""

import os
from typing import List

import numpy as np
import pandas as pd

from speechhmm.core.errors import EmptyInputError, ModelFormatError


def read_features(filepath: str) -> np.ndarray:
    """
    Read a feature-vector file.

    One vector per line, values separated by spaces or tabs.

    Returns:
        (n_frames, p) float array
    """
    try:
        df = pd.read_csv(filepath, sep=r'\s+', header=None, dtype=float)
    except pd.errors.EmptyDataError as e:
        raise EmptyInputError(f"Feature file {filepath} is empty") from e
    except ValueError as e:
        raise ModelFormatError(f"Cannot parse feature file {filepath}: {e}") from e
    return df.to_numpy(dtype=float)


def read_file_list(filepath: str) -> List[str]:
    """
    Read a list of file names, one per line (blank lines skipped).

    Relative names are resolved against the list file's directory.
    """
    base = os.path.dirname(os.path.abspath(filepath))
    paths = []
    with open(filepath, 'r') as f:
        for line in f:
            name = line.strip()
            if not name:
                continue
            paths.append(name if os.path.isabs(name) else os.path.join(base, name))
    return paths


def expand_inputs(inputs: List[str]) -> List[str]:
    """Inputs ending in .list are file lists; everything else is a feature file."""
    paths = []
    for item in inputs:
        if item.endswith('.list'):
            paths.extend(read_file_list(item))
        else:
            paths.append(item)
    return paths


def write_scores_table(rows, filepath: str):
    """Write (file, label, probability) rows as TSV."""
    df = pd.DataFrame(rows, columns=['file', 'label', 'probability'])
    df.to_csv(filepath, sep='\t', index=False)
