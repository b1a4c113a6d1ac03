#!/usr/bin/env python3
"""
speechhmm-train
Train discrete HMMs from feature-vector files.

Single model:
    speechhmm-train -b codebook.npy -i word_*.txt -o word.json

Batch (one model per label):
    speechhmm-train -b codebook.npy --batch words.tsv -o models.tsv

The batch file has two tab-separated columns, label and list, where list
names a file of feature files for that label. A model index (label, model)
is written to the -o path for use with speechhmm-recognize.
"""

import argparse
import os
import sys
import warnings

import pandas as pd

from speechhmm.cli.common import (add_config_args, add_cores_args, add_stats_args,
                                  add_verbose_args, add_version_args, add_weights_args,
                                  config_from_args, weights_from_args)
from speechhmm.cli.utils import expand_inputs, read_features, read_file_list
from speechhmm.core.errors import ModelFormatError, SpeechHMMError
from speechhmm.core.model_io import load_codebook, write_model_index
from speechhmm.core.quantizer import Quantizer
from speechhmm.training.analyzer import HMMAnalyzer
from speechhmm.training.parallel import resolve_workers
from speechhmm.training.stats import TrainingStats


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description='Train discrete HMMs from feature-vector files',
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    parser.add_argument('-b', '--codebook', required=True,
                        help='Codebook file (binary or .txt)')
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument('-i', '--input', nargs='+',
                        help='Feature files of one word/speaker, or .list files')
    source.add_argument('--batch', default=None,
                        help='TSV of label<TAB>feature-list rows, one model per row')
    parser.add_argument('-o', '--output', required=True,
                        help='Output model (.json/.npz), or the model index with --batch')
    parser.add_argument('-N', '--states', type=int, default=6,
                        help='Number of HMM states')
    parser.add_argument('--intermediate', default=None, metavar='DIR',
                        help='Write every per-utterance model of every round to DIR')
    add_weights_args(parser)
    add_config_args(parser)
    add_cores_args(parser)
    add_stats_args(parser)
    add_verbose_args(parser)
    add_version_args(parser)
    return parser.parse_args(argv)


def quantize_files(quantizer: Quantizer, paths, min_duration: int):
    """
    Quantize every feature file, discarding the ones too short to model.

    Returns:
        List of observation sequences, in input order
    """
    observations = []
    for path in paths:
        vectors = read_features(path)
        name = os.path.basename(path)
        if len(vectors) < min_duration:
            warnings.warn(f"{name}: {len(vectors)} frames, at least {min_duration} "
                          f"required. Discarding input.")
            continue
        obs = quantizer.observation_sequence(vectors, min_duration)
        print(f"  {name}: {len(obs)} frames, distortion {quantizer.distortion(vectors):.6f}")
        observations.append(obs)
    return observations


def read_batch(filepath: str):
    """Read (label, [feature files]) pairs from a batch TSV."""
    df = pd.read_csv(filepath, sep='\t', dtype=str)
    if list(df.columns[:2]) != ['label', 'list']:
        raise ModelFormatError(f"Batch file {filepath} must have 'label' and 'list' columns")
    base = os.path.dirname(os.path.abspath(filepath))
    jobs = []
    for label, list_path in zip(df['label'], df['list']):
        if not os.path.isabs(list_path):
            list_path = os.path.join(base, list_path)
        jobs.append((label, read_file_list(list_path)))
    return jobs


def train_one(analyzer, quantizer, paths, output, args, stats=None):
    print(f"Quantizing {len(paths)} utterance(s)")
    observations = quantize_files(quantizer, paths, analyzer.config.min_duration)
    if not observations:
        raise SpeechHMMError(f"No usable utterances for {output}")
    intermediate = args.intermediate
    if intermediate and args.batch:
        intermediate = os.path.join(intermediate, os.path.splitext(os.path.basename(output))[0])
    model = analyzer.run(observations, quantizer.n_symbols, output=output,
                         intermediate_dir=intermediate,
                         n_workers=resolve_workers(args.cores), stats=stats)
    print(f"Wrote {output}")
    return model


def main(argv=None):
    args = parse_args(argv)

    try:
        config = config_from_args(args)
        codebook = load_codebook(args.codebook, weights=weights_from_args(args))
        quantizer = Quantizer(codebook)
        analyzer = HMMAnalyzer(args.states, config=config, verbose=args.verbose)

        print(f"Codebook: {args.codebook} ({codebook.size} x {codebook.dimension})")
        print(f"  States: {args.states}")
        print(f"  Rounds: {config.n_rounds}")
        print(f"  Min duration: {config.min_duration}")
        print(f"  Max iterations: {config.max_iterations:,}")
        print(f"  Cores: {resolve_workers(args.cores)}")
        if args.intermediate:
            print(f"  Intermediate models: {args.intermediate}")
        print()

        stats = TrainingStats() if args.stats else None
        if stats is not None:
            stats.add_codebook(codebook)

        if args.batch:
            out_dir = os.path.dirname(os.path.abspath(args.output))
            entries = []
            for label, paths in read_batch(args.batch):
                print(f"\n[{label}]")
                model_path = os.path.join(out_dir, f"{label}.json")
                train_one(analyzer, quantizer, paths, model_path, args, stats=stats)
                entries.append((label, os.path.basename(model_path)))
            write_model_index(entries, args.output)
            print(f"\nModel index: {args.output} ({len(entries)} models)")
        else:
            train_one(analyzer, quantizer, expand_inputs(args.input), args.output, args,
                      stats=stats)
    except (SpeechHMMError, OSError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)

    if stats is not None:
        prefix = os.path.splitext(args.output)[0]
        stats.write_summary(f"{prefix}_stats.txt")
        print(f"Stats: {prefix}_stats.txt")
        stats.plot_distributions(prefix)


if __name__ == '__main__':
    main()
