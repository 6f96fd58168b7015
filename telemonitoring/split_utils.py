"""
split_utils.py — Subject-aware train/test splitting.

Key design decisions:
  - A fraction of subjects is held out entirely for testing (group_ratio).
  - Within the remaining subjects, a fraction of each subject's recordings
    goes to training (obs_ratio); the rest joins the test set.
  - Randomness comes from a local numpy Generator built from the seed,
    never from the global numpy / random state.

Usage:
    from telemonitoring.split_utils import (
        groupwise_split, split_frame, summarize_split, GroupwiseShuffleSplit
    )
"""

import math
import numbers

import numpy as np
import pandas as pd
from sklearn.model_selection import BaseCrossValidator
from sklearn.model_selection._split import GroupsConsumerMixin
from sklearn.utils import check_consistent_length


DEFAULT_OBS_RATIO = 0.8
DEFAULT_GROUP_RATIO = 0.8
DEFAULT_SEED = 42


# ── Errors ───────────────────────────────────────────────────────────────────

class SplitError(ValueError):
    """Base class for invalid split requests."""


class InvalidRatio(SplitError):
    pass


class EmptyInput(SplitError):
    pass


class InvalidSeed(SplitError):
    pass


# ── Validation helpers ───────────────────────────────────────────────────────

def _check_ratio(name, value):
    if isinstance(value, (bool, np.bool_)) or not isinstance(value, numbers.Real):
        raise InvalidRatio(f"{name} must be a real number in [0, 1], got {value!r}")
    value = float(value)
    if math.isnan(value) or not 0.0 <= value <= 1.0:
        raise InvalidRatio(f"{name} must lie in [0, 1], got {value}")
    return value


def _seed_sequence(seed):
    """
    Build a fresh SeedSequence from `seed`.

    Accepts None (OS entropy), a non-negative integer, or a SeedSequence.
    A SeedSequence argument is copied so that spawning children here never
    mutates the caller's object.
    """
    if seed is None:
        return np.random.SeedSequence()
    if isinstance(seed, np.random.SeedSequence):
        return np.random.SeedSequence(seed.entropy, spawn_key=seed.spawn_key,
                                      pool_size=seed.pool_size)
    if isinstance(seed, (bool, np.bool_)) or not isinstance(seed, numbers.Integral):
        raise InvalidSeed(f"seed must be None, a non-negative int or a SeedSequence, "
                          f"got {type(seed).__name__}")
    if seed < 0:
        raise InvalidSeed(f"seed must be non-negative, got {seed}")
    return np.random.SeedSequence(int(seed))


def _encode_labels(labels):
    """
    Map labels to integer group codes in first-seen order.

    Missing labels (None / NaN) are kept together as one group.
    """
    series = pd.Series(list(labels), dtype=object)
    codes, uniques = pd.factorize(series, use_na_sentinel=False)
    return codes, len(uniques)


# ── Core split ───────────────────────────────────────────────────────────────

def groupwise_split(labels, obs_ratio=DEFAULT_OBS_RATIO,
                    group_ratio=DEFAULT_GROUP_RATIO, seed=None):
    """
    Assign every observation to train (True) or test (False), keeping groups intact.

    Parameters
    ----------
    labels : sequence of hashable — Group label (e.g. subject ID) per observation.
    obs_ratio : float in [0, 1] — Fraction of each eligible group's observations
                sent to train, rounded with round-half-to-even.
    group_ratio : float in [0, 1] — Fraction of distinct groups eligible for
                  train. The other groups go to test in full.
    seed : int, SeedSequence or None — Reproducibility token. None draws fresh
           OS entropy, so repeated unseeded calls usually differ.

    Returns
    -------
    np.ndarray of bool, same length and order as `labels`.

    Raises
    ------
    InvalidRatio, EmptyInput, InvalidSeed — before any sampling happens.

    Notes
    -----
    Groups are enumerated in first-seen order. The seed is spawned into two
    independent streams: the first samples observations inside every group
    (eligible or not), the second picks the eligible groups. An observation
    is train iff both draws selected it. A singleton group with
    obs_ratio < 0.5 contributes nothing to train.
    """
    obs_ratio = _check_ratio('obs_ratio', obs_ratio)
    group_ratio = _check_ratio('group_ratio', group_ratio)
    labels = list(labels)
    if len(labels) == 0:
        raise EmptyInput("labels must contain at least one observation")
    obs_seed, group_seed = _seed_sequence(seed).spawn(2)
    obs_rng = np.random.default_rng(obs_seed)
    group_rng = np.random.default_rng(group_seed)

    codes, n_groups = _encode_labels(labels)

    # Observation-level draw, one group at a time in first-seen order
    order = np.argsort(codes, kind='stable')
    sizes = np.bincount(codes, minlength=n_groups)
    obs_flag = np.zeros(len(codes), dtype=bool)
    for members in np.split(order, np.cumsum(sizes)[:-1]):
        n_pick = int(round(obs_ratio * len(members)))
        obs_flag[obs_rng.choice(members, size=n_pick, replace=False)] = True

    # Group-level draw
    n_eligible = int(round(group_ratio * n_groups))
    eligible = group_rng.choice(n_groups, size=n_eligible, replace=False)
    group_flag = np.isin(codes, eligible)

    return obs_flag & group_flag


def groupwise_split_indices(labels, obs_ratio=DEFAULT_OBS_RATIO,
                            group_ratio=DEFAULT_GROUP_RATIO, seed=None):
    """Same as groupwise_split, but returns sorted (train_idx, test_idx) arrays."""
    assignment = groupwise_split(labels, obs_ratio, group_ratio, seed=seed)
    return np.flatnonzero(assignment), np.flatnonzero(~assignment)


# ── DataFrame partitioning ───────────────────────────────────────────────────

def partition_frame(df: pd.DataFrame, assignment):
    """
    Split `df` rows by a boolean assignment vector.

    Returns
    -------
    train_df, test_df : pd.DataFrame — all columns kept, original row order kept.
    """
    check_consistent_length(df, assignment)
    mask = np.asarray(assignment, dtype=bool)
    return df[mask].copy(), df[~mask].copy()


def split_frame(df: pd.DataFrame, labels, obs_ratio=DEFAULT_OBS_RATIO,
                group_ratio=DEFAULT_GROUP_RATIO, seed=None, verbose=False):
    """
    Subject-aware train/test split of a DataFrame.

    Parameters
    ----------
    df : pd.DataFrame — One row per observation.
    labels : str or array-like — Name of the group column in `df`, or an
             explicit label array with exactly len(df) entries.
    obs_ratio, group_ratio, seed : see groupwise_split.
    verbose : bool — Print a one-line summary of the split.

    Returns
    -------
    train_df, test_df : pd.DataFrame
    """
    if isinstance(labels, str):
        if labels not in df.columns:
            raise KeyError(f"Group column '{labels}' not found in DataFrame")
        labels = df[labels]
    else:
        check_consistent_length(df, labels)

    assignment = groupwise_split(labels, obs_ratio, group_ratio, seed=seed)
    train_df, test_df = partition_frame(df, assignment)

    if verbose:
        print(f"  Split {len(df)} rows -> train: {len(train_df)}, test: {len(test_df)}")
    return train_df, test_df


# ── scikit-learn compatible cross-validator ─────────────────────────────────

class GroupwiseShuffleSplit(GroupsConsumerMixin, BaseCrossValidator):
    """
    Repeated groupwise splits usable as `cv=` in scikit-learn model selection.

    Each repetition draws from its own child of the root seed, so repetitions
    differ from one another while the whole sequence stays reproducible.
    """

    def __init__(self, n_splits=1, obs_ratio=DEFAULT_OBS_RATIO,
                 group_ratio=DEFAULT_GROUP_RATIO, random_state=None):
        if isinstance(n_splits, bool) or not isinstance(n_splits, numbers.Integral) \
                or n_splits < 1:
            raise ValueError(f"n_splits must be a positive integer, got {n_splits!r}")
        self.n_splits = int(n_splits)
        self.obs_ratio = _check_ratio('obs_ratio', obs_ratio)
        self.group_ratio = _check_ratio('group_ratio', group_ratio)
        self.random_state = random_state

    def get_n_splits(self, X=None, y=None, groups=None):
        return self.n_splits

    def _iter_test_masks(self, X=None, y=None, groups=None):
        if groups is None:
            raise ValueError("The 'groups' parameter should not be None.")
        for child in _seed_sequence(self.random_state).spawn(self.n_splits):
            yield ~groupwise_split(groups, self.obs_ratio, self.group_ratio, seed=child)


# ── Split summary ────────────────────────────────────────────────────────────

def summarize_split(labels, assignment) -> pd.DataFrame:
    """
    Per-group breakdown of a split.

    Returns
    -------
    pd.DataFrame indexed by group (first-seen order) with columns:
        n_obs, n_train, n_test, role ('train', 'test' or 'mixed')
    """
    check_consistent_length(labels, assignment)
    frame = pd.DataFrame({
        'group': pd.Series(list(labels), dtype=object),
        'train': np.asarray(assignment, dtype=bool),
    })
    summary = frame.groupby('group', sort=False, dropna=False)['train'].agg(
        n_obs='size', n_train='sum'
    )
    summary['n_train'] = summary['n_train'].astype(int)
    summary['n_test'] = summary['n_obs'] - summary['n_train']
    summary['role'] = np.select(
        [summary['n_test'] == 0, summary['n_train'] == 0],
        ['train', 'test'],
        default='mixed',
    )
    return summary


def print_split_summary(summary: pd.DataFrame, title='Train/Test Split'):
    """Pretty-print the output of summarize_split."""
    roles = summary['role'].value_counts()
    n_train = int(summary['n_train'].sum())
    n_test = int(summary['n_test'].sum())
    print(f"\n{'='*60}")
    print(f"  {title}")
    print(f"{'='*60}")
    print(f"  {'observations':>20s}: {n_train + n_test} "
          f"(train {n_train}, test {n_test})")
    print(f"  {'groups':>20s}: {len(summary)}")
    for role in ('train', 'mixed', 'test'):
        print(f"  {role + ' groups':>20s}: {int(roles.get(role, 0))}")
    print(f"{'='*60}\n")
