#!/usr/bin/env python3
"""
speechhmm-recognize
Recognize utterances against a set of trained models.

Each feature file is quantized with the codebook, scored with the forward
procedure under every model in the index, and assigned the label of the
most probable model (or reported as not recognized).
"""

import argparse
import os
import sys

from tqdm import tqdm

from speechhmm.cli.common import (add_config_args, add_verbose_args, add_version_args,
                                  add_weights_args, config_from_args, weights_from_args)
from speechhmm.cli.utils import expand_inputs, read_features, write_scores_table
from speechhmm.core.errors import SpeechHMMError
from speechhmm.core.model_io import load_codebook
from speechhmm.core.quantizer import Quantizer
from speechhmm.recognition.recognizer import HMMRecognizer


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description='Recognize utterances with trained HMMs',
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    parser.add_argument('-b', '--codebook', required=True,
                        help='Codebook file (binary or .txt)')
    parser.add_argument('--index', required=True,
                        help='Model index (label<TAB>model TSV)')
    parser.add_argument('-i', '--input', nargs='+', required=True,
                        help='Feature files to recognize, or .list files')
    parser.add_argument('--scores', default=None, metavar='TSV',
                        help='Write every (file, label, probability) score to this file')
    add_weights_args(parser)
    add_config_args(parser)
    add_verbose_args(parser)
    add_version_args(parser)
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)

    try:
        config = config_from_args(args)
        codebook = load_codebook(args.codebook, weights=weights_from_args(args))
        quantizer = Quantizer(codebook)
        recognizer = HMMRecognizer.from_index(args.index, config=config, quantizer=quantizer)
        paths = expand_inputs(args.input)

        print(f"Codebook: {args.codebook} ({codebook.size} x {codebook.dimension})")
        print(f"Models: {len(recognizer.models)} ({', '.join(recognizer.labels)})")
        print(f"Utterances: {len(paths)}")
        print()

        score_rows = []
        results = []
        for path in tqdm(paths, desc="Recognizing", disable=not args.verbose):
            result = recognizer.recognize_features(read_features(path))
            name = os.path.basename(path)
            results.append((name, result))
            score_rows.extend((name, label, prob) for label, prob in result.scores)
    except (SpeechHMMError, OSError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)

    n_recognized = 0
    for name, result in results:
        if result.recognized:
            n_recognized += 1
            print(f"{name}\t{result.label}\t{result.probability:.6e}")
        else:
            print(f"{name}\tNOT RECOGNIZED")
    print(f"\nRecognized {n_recognized}/{len(results)} utterances")

    if args.scores:
        write_scores_table(score_rows, args.scores)
        print(f"Scores: {args.scores}")


if __name__ == '__main__':
    main()
