"""
Pairwise replicate correlations.
"""

import itertools
from typing import Sequence

import numpy as np
import pandas as pd
from pandas import DataFrame, Series
from scipy.stats import pearsonr, spearmanr

from .errors import DegenerateCorrelationError

METHODS = ("pearson", "spearman")
CORRELATION_COLUMNS = [
    "sample_a",
    "sample_b",
    "method",
    "coefficient",
    "n_obs",
    "degenerate",
]


def correlate_pair(
    x: Series, y: Series, method: str = "pearson", min_observations: int = 3
) -> float:
    """
    Correlation of two samples over their pairwise complete guides.

    Raises
    ------
    DegenerateCorrelationError
        If fewer than ``min_observations`` complete pairs remain or one of
        the samples is constant.
    """
    if method not in METHODS:
        raise ValueError(f"Unknown correlation method: {method}")
    mask = x.notna().values & y.notna().values
    x_vals = np.asarray(x, dtype=float)[mask]
    y_vals = np.asarray(y, dtype=float)[mask]
    if len(x_vals) < min_observations:
        raise DegenerateCorrelationError(
            f"only {len(x_vals)} complete observation(s)"
        )
    if np.ptp(x_vals) == 0 or np.ptp(y_vals) == 0:
        raise DegenerateCorrelationError("zero variance")
    if method == "pearson":
        coefficient, _ = pearsonr(x_vals, y_vals)
    else:
        coefficient, _ = spearmanr(x_vals, y_vals)
    return float(np.clip(coefficient, -1.0, 1.0))


def pairwise_correlations(
    matrix: DataFrame,
    methods: Sequence[str] = METHODS,
    min_observations: int = 3,
) -> DataFrame:
    """
    Correlate every unordered pair of distinct columns.

    Parameters
    ----------
    matrix : DataFrame
        Guides x samples values (counts, normalized counts or fold
        changes). Missing values are excluded pairwise.
    methods : sequence of str
        Any of "pearson" and "spearman".
    min_observations : int
        Minimum number of complete guide pairs for a coefficient.

    Returns
    -------
    DataFrame
        One row per pair (i < j in column order) and method with columns
        [sample_a, sample_b, method, coefficient, n_obs, degenerate].
        Undefined coefficients are kept as NaN with ``degenerate=True``.
    """
    records = []
    for method in methods:
        for sample_a, sample_b in itertools.combinations(matrix.columns, 2):
            x = matrix[sample_a]
            y = matrix[sample_b]
            n_obs = int((x.notna() & y.notna()).sum())
            try:
                coefficient = correlate_pair(x, y, method, min_observations)
                degenerate = False
            except DegenerateCorrelationError:
                coefficient = np.nan
                degenerate = True
            records.append(
                {
                    "sample_a": sample_a,
                    "sample_b": sample_b,
                    "method": method,
                    "coefficient": coefficient,
                    "n_obs": n_obs,
                    "degenerate": degenerate,
                }
            )
    return pd.DataFrame(records, columns=CORRELATION_COLUMNS)
