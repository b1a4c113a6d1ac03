#!/usr/bin/env python3
"""
speechhmm-codebook
Build a vector-quantization codebook from feature-vector files with the
LBG splitting algorithm.

Every input file contributes all of its vectors to one training set.
Inputs ending in .list are read as lists of feature files.
"""

import argparse
import os
import sys

import numpy as np

from speechhmm.cli.common import (add_config_args, add_stats_args, add_verbose_args,
                                  add_version_args, add_weights_args, config_from_args,
                                  weights_from_args)
from speechhmm.cli.utils import expand_inputs, read_features
from speechhmm.core.codebook import CodebookGenerator
from speechhmm.core.errors import DimensionMismatchError, SpeechHMMError
from speechhmm.core.model_io import save_codebook
from speechhmm.training.stats import TrainingStats


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description='Generate a VQ codebook from feature-vector files (LBG)',
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    parser.add_argument('-i', '--input', nargs='+', required=True,
                        help='Feature files (one vector per line) or .list files')
    parser.add_argument('-o', '--output', required=True,
                        help='Output codebook (.txt for text, any other name for binary)')
    parser.add_argument('-M', '--size', type=int, default=128,
                        help='Requested codebook size (rounded up to a power of two)')
    parser.add_argument('--text', action='store_true',
                        help='Also write a text copy of a binary codebook')
    add_weights_args(parser)
    add_config_args(parser)
    add_stats_args(parser)
    add_verbose_args(parser)
    add_version_args(parser)
    return parser.parse_args(argv)


def load_training_vectors(paths, verbose=False) -> np.ndarray:
    """Read and stack the vectors of every feature file."""
    blocks = []
    for path in paths:
        vectors = read_features(path)
        if blocks and vectors.shape[1] != blocks[0].shape[1]:
            raise DimensionMismatchError(
                f"{path} has {vectors.shape[1]} coefficients, expected {blocks[0].shape[1]}")
        if verbose:
            print(f"  {os.path.basename(path)}: {len(vectors)} vectors")
        blocks.append(vectors)
    return np.vstack(blocks)


def main(argv=None):
    args = parse_args(argv)

    try:
        config = config_from_args(args)
        weights = weights_from_args(args)
        paths = expand_inputs(args.input)

        print(f"Reading {len(paths)} feature file(s)")
        vectors = load_training_vectors(paths, verbose=args.verbose)

        print(f"\nCodebook generation:")
        print(f"  Vectors: {vectors.shape[0]:,} x {vectors.shape[1]}")
        print(f"  Requested size: {args.size}")
        print(f"  Weights: {'Tokhura' if args.tokhura else ('custom' if weights else 'none')}")
        print(f"  Split epsilon: {config.split_epsilon}")
        print(f"  Distortion threshold: {config.distortion_threshold}")
        print()

        generator = CodebookGenerator(args.size, weights=weights, config=config,
                                      verbose=args.verbose)
        codebook = generator.generate(vectors)
        written = save_codebook(codebook, args.output, text=args.text)
    except (SpeechHMMError, OSError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)

    final = codebook.distortion_history[-1][-1] if codebook.distortion_history else 0.0
    print(f"Codebook size: {codebook.size}")
    print(f"Final distortion: {final:.6f}")
    for path in written:
        print(f"Wrote {path}")

    if args.stats:
        stats = TrainingStats()
        stats.add_codebook(codebook)
        prefix = os.path.splitext(args.output)[0]
        stats.write_summary(f"{prefix}_stats.txt")
        print(f"Stats: {prefix}_stats.txt")
        stats.plot_distributions(prefix)


if __name__ == '__main__':
    main()
