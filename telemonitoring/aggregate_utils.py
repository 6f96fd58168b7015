"""
aggregate_utils.py — Day-level aggregation of repeated recordings.

Subjects record several times on the same day. After splitting, the train and
test tables are each reduced to one row per (subject, day): numeric columns by
mean and standard deviation, subject attributes by their (constant) value.

Usage:
    from telemonitoring.aggregate_utils import build_aggregation_plan, aggregate_split
"""

import pandas as pd
from pandas.api.types import is_numeric_dtype

from telemonitoring.data_utils import GROUP_COL, DAY_COL

DEFAULT_KEYS = (GROUP_COL, DAY_COL)
DEFAULT_STATS = ('mean', 'std')


def _check_keys(df, keys):
    missing = [k for k in keys if k not in df.columns]
    if missing:
        raise KeyError(f"Aggregation keys not found in DataFrame: {missing}")


def build_aggregation_plan(df: pd.DataFrame, keys=DEFAULT_KEYS, stats=DEFAULT_STATS) -> dict:
    """
    Decide how each column is reduced.

    Parameters
    ----------
    df : pd.DataFrame — Table to aggregate (normally the train split).
    keys : sequence of str — Grouping columns.
    stats : sequence of str — Reducers applied to numeric columns.

    Returns
    -------
    dict with keys:
        'keys'    : list of grouping columns
        'agg'     : {column: list of reducers}; numeric columns get `stats`,
                    non-numeric columns constant within every group get ['first']
        'dropped' : list of non-numeric columns that vary within a group
    """
    keys = list(keys)
    _check_keys(df, keys)
    grouped = df.groupby(keys, sort=False, observed=True, dropna=False)

    agg, dropped = {}, []
    for col in df.columns:
        if col in keys:
            continue
        if is_numeric_dtype(df[col]):
            agg[col] = list(stats)
        elif (grouped[col].nunique(dropna=False) <= 1).all():
            agg[col] = ['first']
        else:
            dropped.append(col)

    return {'keys': keys, 'agg': agg, 'dropped': dropped}


def aggregate_by_day(df: pd.DataFrame, plan=None, keys=DEFAULT_KEYS) -> pd.DataFrame:
    """
    Collapse repeated same-day recordings into one row.

    Parameters
    ----------
    df : pd.DataFrame
    plan : dict, optional — Output of build_aggregation_plan. Built from `df`
           when omitted; its keys override `keys`.
    keys : sequence of str

    Returns
    -------
    pd.DataFrame with the key columns, '<col>_<stat>' for numeric columns,
    '<col>' for 'first' columns and 'n_recordings'. Days with a single
    recording have NaN standard deviations. Rows with a missing key value
    form their own group and are kept.
    """
    if plan is None:
        plan = build_aggregation_plan(df, keys)
    keys = plan['keys']
    _check_keys(df, keys)

    missing = [c for c in plan['agg'] if c not in df.columns]
    if missing:
        raise KeyError(f"Columns in aggregation plan not found in DataFrame: {missing}")

    grouped = df.groupby(keys, sort=True, observed=True, dropna=False)
    out = grouped.agg(plan['agg'])
    out.columns = [col if stat == 'first' else f'{col}_{stat}'
                   for col, stat in out.columns]
    out['n_recordings'] = grouped.size().to_numpy()
    return out.reset_index()


def aggregate_split(train_df: pd.DataFrame, test_df: pd.DataFrame, keys=DEFAULT_KEYS,
                    stats=DEFAULT_STATS, verbose=False):
    """
    Aggregate train and test tables independently with one shared plan.

    The plan is built from the train table only.

    Returns
    -------
    train_agg, test_agg : pd.DataFrame
    """
    plan = build_aggregation_plan(train_df, keys, stats)
    if verbose:
        for name, table in (('train', train_df), ('test', test_df)):
            n_missing = int(table[plan['keys']].isna().any(axis=1).sum())
            if n_missing:
                print(f"  {name}: {n_missing} recording(s) with a missing key kept as "
                      f"their own group")
    if verbose and plan['dropped']:
        print(f"  Dropping non-numeric columns that vary within a day: {plan['dropped']}")

    train_agg = aggregate_by_day(train_df, plan)
    test_agg = aggregate_by_day(test_df, plan)

    if verbose:
        print(f"  Aggregated train: {len(train_df)} -> {len(train_agg)} rows, "
              f"test: {len(test_df)} -> {len(test_agg)} rows")
    return train_agg, test_agg
