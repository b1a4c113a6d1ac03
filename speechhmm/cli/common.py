"""
Command-line option groups used by speechhmm-codebook, speechhmm-train and
speechhmm-recognize.

Engine settings come from EngineConfig defaults, then an optional --config
JSON file, then any per-setting flag given on the command line.
"""

import argparse

from speechhmm.core.config import EngineConfig
from speechhmm.core.distance import TOKHURA_WEIGHTS


def add_config_args(parser: argparse.ArgumentParser) -> None:
    """Add --config and per-setting overrides of EngineConfig."""
    defaults = EngineConfig()
    parser.add_argument(
        '--config', default=None,
        help="JSON file with engine settings (command-line values take precedence)"
    )
    parser.add_argument(
        '--split-epsilon', type=float, default=None,
        help=f"LBG centroid split perturbation (default: {defaults.split_epsilon})"
    )
    parser.add_argument(
        '--distortion-threshold', type=float, default=None,
        help=f"Lloyd convergence threshold (default: {defaults.distortion_threshold})"
    )
    parser.add_argument(
        '--min-duration', '-T', type=int, default=None,
        help=f"Minimum observation sequence length (default: {defaults.min_duration})"
    )
    parser.add_argument(
        '--max-iterations', type=int, default=None,
        help=f"Baum-Welch iteration cap per utterance (default: {defaults.max_iterations})"
    )
    parser.add_argument(
        '--probability-floor', type=float, default=None,
        help=f"Emission probability floor (default: {defaults.probability_floor})"
    )
    parser.add_argument(
        '--rounds', type=int, default=None, dest='n_rounds',
        help=f"Training rounds including the first (default: {defaults.n_rounds})"
    )


def config_from_args(args: argparse.Namespace) -> EngineConfig:
    """Build an EngineConfig from --config plus any explicit overrides."""
    config = EngineConfig()
    if getattr(args, 'config', None):
        config = EngineConfig.from_json(args.config)
    overrides = {name: getattr(args, name, None) for name in EngineConfig.FIELDS}
    return config.replace(**overrides)


def add_weights_args(parser: argparse.ArgumentParser) -> None:
    """Add --weights / --tokhura distance weighting arguments."""
    group = parser.add_mutually_exclusive_group()
    group.add_argument(
        '--weights', type=float, nargs='+', default=None,
        help="Per-dimension distance weights (default: unweighted)"
    )
    group.add_argument(
        '--tokhura', action='store_true',
        help=f"Use the {len(TOKHURA_WEIGHTS)}-coefficient Tokhura cepstral weights"
    )


def weights_from_args(args: argparse.Namespace):
    if getattr(args, 'tokhura', False):
        return TOKHURA_WEIGHTS.copy()
    return getattr(args, 'weights', None)


def add_cores_args(parser: argparse.ArgumentParser, default_cores: int = 1) -> None:
    """Add --cores argument."""
    parser.add_argument(
        '--cores', '-c', type=int, default=default_cores,
        help=f"Number of worker processes for training (0=auto, default: {default_cores})"
    )


def add_stats_args(parser: argparse.ArgumentParser) -> None:
    """Add --stats flag."""
    parser.add_argument(
        '--stats', action='store_true',
        help="Write summary statistics and QC plots"
    )


def add_verbose_args(parser: argparse.ArgumentParser) -> None:
    """Add --verbose flag."""
    parser.add_argument(
        '-v', '--verbose', action='store_true',
        help="Verbose output"
    )


def add_version_args(parser: argparse.ArgumentParser) -> None:
    """Add --version flag."""
    from speechhmm import __version__
    parser.add_argument(
        '--version', action='version',
        version=f'%(prog)s {__version__}'
    )
