"""
data_utils.py — Data loading, column repair, and feature definitions.

Usage:
    from telemonitoring.data_utils import load_telemonitoring, FEATURE_COLS, GROUP_COL
"""

import re

import numpy as np
import pandas as pd
from pathlib import Path

# ── Feature definitions ──────────────────────────────────────────────────────
# Names below are the cleaned forms produced by clean_column_names

FEATURE_GROUPS = {
    'Jitter': [
        'jitter_pct', 'jitter_abs', 'jitter_rap', 'jitter_ppq5', 'jitter_ddp'
    ],
    'Shimmer': [
        'shimmer', 'shimmer_db', 'shimmer_apq3', 'shimmer_apq5',
        'shimmer_apq11', 'shimmer_dda'
    ],
    'Nonlinear & Noise': [
        'nhr', 'hnr', 'rpde', 'dfa', 'ppe'
    ],
}

# Flat list of all 16 voice feature columns
FEATURE_COLS = [f for group in FEATURE_GROUPS.values() for f in group]

TARGET_COL = 'total_updrs'
MOTOR_TARGET_COL = 'motor_updrs'

GROUP_COL = 'subject_id'
TIME_COL = 'test_time'
DAY_COL = 'day'

# Subject-level attributes that must not change between recordings
STATIC_COLS = ['age', 'sex']

CATEGORICAL_LABELS = {
    'sex': {0: 'male', 1: 'female'},
}

# Jitter:DDP = 3 * Jitter:RAP,  Shimmer:DDA = 3 * Shimmer:APQ3
REDUNDANT_FEATURES = ['jitter_ddp', 'shimmer_dda']


# ── Column repair ────────────────────────────────────────────────────────────

def clean_column_name(name) -> str:
    """
    Normalize one raw column header.

    'subject#' -> 'subject_id', 'Jitter(%)' -> 'jitter_pct',
    'Shimmer(dB)' -> 'shimmer_db', ' motor_UPDRS ' -> 'motor_updrs'
    """
    cleaned = str(name).strip().lower().replace('%', 'pct').replace('#', '_id')
    cleaned = re.sub(r'[^0-9a-z]+', '_', cleaned).strip('_')
    if not cleaned:
        raise ValueError(f"Column name {name!r} is empty after cleaning")
    return cleaned


def clean_column_names(df: pd.DataFrame) -> pd.DataFrame:
    """Return a copy of `df` with normalized column names. Fails on collisions."""
    cleaned = [clean_column_name(c) for c in df.columns]
    seen = {}
    for raw, new in zip(df.columns, cleaned):
        if new in seen:
            raise ValueError(
                f"Columns {seen[new]!r} and {raw!r} both clean to '{new}'"
            )
        seen[new] = raw
    out = df.copy()
    out.columns = cleaned
    return out


# ── Categorical and derived fields ───────────────────────────────────────────

def fill_static_by_group(df: pd.DataFrame, cols=None, group_col=GROUP_COL) -> pd.DataFrame:
    """
    Fill missing subject-level attributes from the subject's other recordings.
    """
    cols = STATIC_COLS if cols is None else cols
    out = df.copy()
    for col in cols:
        if col not in out.columns:
            continue
        out[col] = out[col].fillna(out.groupby(group_col)[col].transform('first'))
    return out


def decode_categoricals(df: pd.DataFrame, mappings=None, verbose=True) -> pd.DataFrame:
    """
    Replace integer codes with readable labels.

    Parameters
    ----------
    df : pd.DataFrame
    mappings : dict of {column: {code: label}}, optional
        Defaults to CATEGORICAL_LABELS. Columns absent from `df` are skipped.
    verbose : bool — Report codes that have no label.

    Returns
    -------
    pd.DataFrame — Copy with decoded columns as pandas Categoricals.
                   Unknown codes become missing values.
    """
    mappings = CATEGORICAL_LABELS if mappings is None else mappings
    out = df.copy()

    for col, mapping in mappings.items():
        if col not in out.columns:
            continue
        raw = out[col].astype(object)
        labels = list(dict.fromkeys(mapping.values()))

        # Values that are already decoded pass through unchanged
        decoded = raw.map(mapping.get)
        decoded = decoded.where(decoded.notna(), raw.where(raw.isin(labels)))

        unknown = raw.notna() & decoded.isna()
        if verbose and unknown.any():
            bad = sorted(raw[unknown].astype(str).unique())
            print(f"  {col}: {int(unknown.sum())} value(s) with unknown code {bad} "
                  f"set to missing")

        out[col] = pd.Categorical(decoded, categories=labels)

    return out


def merge_lookup(df: pd.DataFrame, lookup: pd.DataFrame, on=GROUP_COL,
                 verbose=True) -> pd.DataFrame:
    """
    Left-join an external per-subject lookup table.

    Columns present in both tables are resolved from the lookup only where the
    main table is missing a value. Each key may appear at most once in
    `lookup` (pandas raises MergeError otherwise).

    Returns
    -------
    pd.DataFrame — Same rows and order as `df`, plus lookup-only columns.
    """
    lookup = clean_column_names(lookup)
    for name, table in (('data', df), ('lookup', lookup)):
        if on not in table.columns:
            raise KeyError(f"Join key '{on}' not found in {name} table")

    overlap = [c for c in lookup.columns if c != on and c in df.columns]
    merged = df.merge(lookup, on=on, how='left', suffixes=('', '_lookup'),
                      validate='many_to_one', indicator=True)

    for col in overlap:
        merged[col] = merged[col].fillna(merged[f'{col}_lookup'])
    merged = merged.drop(columns=[f'{c}_lookup' for c in overlap])

    unmatched = merged.loc[merged['_merge'] == 'left_only', on].unique()
    if verbose and len(unmatched):
        print(f"  {len(unmatched)} subject(s) missing from lookup: {list(unmatched)}")

    return merged.drop(columns='_merge')


def add_day_column(df: pd.DataFrame, time_col=TIME_COL, day_col=DAY_COL) -> pd.DataFrame:
    """
    Add the integer day bucket of each recording.

    `time_col` is measured in days since recruitment, so floor(test_time)
    groups recordings made on the same day. Negative times stay negative.
    """
    if time_col not in df.columns:
        raise KeyError(f"Time column '{time_col}' not found in DataFrame")
    out = df.copy()
    out[day_col] = np.floor(out[time_col]).astype('Int64')
    return out


# ── Consistency profile ──────────────────────────────────────────────────────

def check_subject_consistency(df: pd.DataFrame, static_cols=None,
                              group_col=GROUP_COL) -> pd.DataFrame:
    """
    Find subjects whose static attributes change between recordings.

    Returns
    -------
    pd.DataFrame indexed by subject with the number of distinct values per
    static column, restricted to subjects with more than one value somewhere.
    Empty when the table is consistent.
    """
    static_cols = STATIC_COLS if static_cols is None else static_cols
    cols = [c for c in static_cols if c in df.columns]
    nunique = df.groupby(group_col, observed=True)[cols].nunique(dropna=True)
    return nunique[(nunique > 1).any(axis=1)]


# ── Loading ──────────────────────────────────────────────────────────────────

def load_telemonitoring(data_path: str = None, lookup_path: str = None,
                        verbose=True) -> pd.DataFrame:
    """
    Load the Parkinson's telemonitoring recordings and repair the table.

    Steps: normalize column names, merge the optional per-subject lookup,
    fill subject attributes from sibling rows, decode categorical codes,
    add the day bucket.

    Parameters
    ----------
    data_path : str or Path, optional
        Path to parkinsons_updrs.data.
        Defaults to '<project_root>/data/telemonitoring/parkinsons_updrs.data'.
    lookup_path : str or Path, optional
        CSV with one row per subject, keyed by 'subject#' / 'subject_id'.
    verbose : bool

    Returns
    -------
    pd.DataFrame — Cleaned table, one row per recording.
    """
    if data_path is None:
        # Assumes this file lives in telemonitoring/, project root is one level up
        data_path = (Path(__file__).parent.parent / 'data' / 'telemonitoring'
                     / 'parkinsons_updrs.data')
    else:
        data_path = Path(data_path)

    if not data_path.exists():
        raise FileNotFoundError(f"Dataset not found at {data_path}")

    df = clean_column_names(pd.read_csv(data_path))
    if GROUP_COL not in df.columns:
        raise KeyError(f"Group column '{GROUP_COL}' not found in {data_path}")

    if lookup_path is not None:
        lookup_path = Path(lookup_path)
        if not lookup_path.exists():
            raise FileNotFoundError(f"Lookup table not found at {lookup_path}")
        df = merge_lookup(df, pd.read_csv(lookup_path), verbose=verbose)

    df = fill_static_by_group(df)
    df = decode_categoricals(df, verbose=verbose)
    if TIME_COL in df.columns:
        df = add_day_column(df)

    return df


def get_X_y_groups(df: pd.DataFrame, target=TARGET_COL, drop_redundant=False):
    """
    Extract feature matrix, target vector, and group labels from the DataFrame.

    Returns
    -------
    X : pd.DataFrame of shape (n_samples, n_features)
    y : pd.Series of shape (n_samples,)
    groups : pd.Series of shape (n_samples,)  — subject IDs for groupwise_split
    """
    cols = [c for c in FEATURE_COLS if not (drop_redundant and c in REDUNDANT_FEATURES)]
    X = df[cols].copy()
    y = df[target].copy()
    groups = df[GROUP_COL].copy()
    return X, y, groups
