# evaluator.py
from collections import Counter
from decimal import Decimal
from typing import Any, Dict, List

import numpy as np
import pandas as pd


def _to_number(value):
    try:
        return float(value)
    except (TypeError, ValueError):
        return value


def _canon_series(s: pd.Series) -> pd.Series:
    """Make a series comparable across dtypes and whitespace; round floats; coerce numeric-looking strings."""
    if pd.api.types.is_float_dtype(s):
        return s.round(6)
    if pd.api.types.is_numeric_dtype(s) or pd.api.types.is_bool_dtype(s):
        return s
    # Decimals, strings and mixed objects: trim, standardize None, coerce numbers
    s = s.map(lambda v: float(v) if isinstance(v, Decimal) else v)
    s = s.map(lambda v: v.strip() if isinstance(v, str) else v)
    s = s.where(s.notna(), np.nan)
    coerced = s.map(_to_number)
    if all(isinstance(v, float) for v in coerced):
        return pd.Series(coerced, index=s.index, dtype=float).round(6)
    return s.astype(str)


def _canon_df(df: pd.DataFrame) -> pd.DataFrame:
    """Normalize DF for order-insensitive comparison."""
    df = df.copy()
    df.columns = [str(c).strip() for c in df.columns]
    for col in df.columns:
        df[col] = _canon_series(df[col])
    df = df.reindex(sorted(df.columns), axis=1)
    return df


def _row_counter(df: pd.DataFrame) -> Counter:
    # NaN != NaN, so compare missing values through a sentinel
    rows = df.astype(object).where(df.notna(), None).itertuples(index=False, name=None)
    return Counter(rows)


def rows_to_frame(rows: List[Dict[str, Any]]) -> pd.DataFrame:
    return pd.DataFrame.from_records(rows)


def results_equivalent(left: List[Dict[str, Any]], right: List[Dict[str, Any]]) -> bool:
    """
    True when both result sets hold the same rows under the same column names,
    ignoring row order, numeric dtype and float noise; duplicates must match.
    """
    if not left and not right:
        return True
    u = _canon_df(rows_to_frame(left))
    g = _canon_df(rows_to_frame(right))
    if list(u.columns) != list(g.columns) or u.shape != g.shape:
        return False
    return _row_counter(u) == _row_counter(g)
