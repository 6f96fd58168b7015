"""
prepare.py — Clean the telemonitoring table, split it by subject, and write CSVs.

Usage:
    python prepare.py --data data/telemonitoring/parkinsons_updrs.data --out-dir output
"""

import argparse
from pathlib import Path

from telemonitoring.data_utils import load_telemonitoring, check_subject_consistency, GROUP_COL
from telemonitoring.split_utils import (
    groupwise_split, partition_frame, summarize_split, print_split_summary,
    DEFAULT_OBS_RATIO, DEFAULT_GROUP_RATIO, DEFAULT_SEED,
)
from telemonitoring.aggregate_utils import aggregate_split


def seed_arg(value):
    """Parse --seed: an integer, or 'none' for an unseeded run."""
    if value.strip().lower() == 'none':
        return None
    try:
        return int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected an integer or 'none', got {value!r}")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    parser.add_argument('--data', type=str, default=None,
                        help='Path to parkinsons_updrs.data (default: data/telemonitoring/)')
    parser.add_argument('--lookup', type=str, default=None,
                        help='Optional per-subject CSV merged into the table')
    parser.add_argument('--obs-ratio', type=float, default=DEFAULT_OBS_RATIO,
                        help='Fraction of each eligible subject\'s recordings sent to train')
    parser.add_argument('--group-ratio', type=float, default=DEFAULT_GROUP_RATIO,
                        help='Fraction of subjects eligible for train')
    parser.add_argument('--seed', type=seed_arg, default=DEFAULT_SEED,
                        help="Random seed, or 'none' for fresh OS entropy")
    parser.add_argument('--out-dir', type=str, default='output')
    parser.add_argument('--no-aggregate', action='store_true',
                        help='Skip writing the day-level aggregated tables')
    parser.add_argument('--quiet', action='store_true')
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    verbose = not args.quiet

    df = load_telemonitoring(args.data, lookup_path=args.lookup, verbose=verbose)
    if verbose:
        print(f'Loaded: {len(df)} recordings, {df[GROUP_COL].nunique()} subjects')

    inconsistent = check_subject_consistency(df)
    if verbose and len(inconsistent):
        print(f'WARNING: {len(inconsistent)} subject(s) with changing static attributes: '
              f'{list(inconsistent.index)}')

    assignment = groupwise_split(df[GROUP_COL], args.obs_ratio, args.group_ratio,
                                 seed=args.seed)
    train_df, test_df = partition_frame(df, assignment)
    if verbose:
        print_split_summary(summarize_split(df[GROUP_COL], assignment))

    out_dir = Path(args.out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    outputs = {'train.csv': train_df, 'test.csv': test_df}

    if not args.no_aggregate:
        train_agg, test_agg = aggregate_split(train_df, test_df, verbose=verbose)
        outputs.update({'train_daily.csv': train_agg, 'test_daily.csv': test_agg})

    for name, table in outputs.items():
        table.to_csv(out_dir / name, index=False)
        if verbose:
            print(f'  Wrote {out_dir / name} ({len(table)} rows)')

    return outputs


if __name__ == '__main__':
    main()
