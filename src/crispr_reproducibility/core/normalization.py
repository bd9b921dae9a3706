"""
TMM normalization of guide count matrices.

Implements the trimmed mean of M-values (TMM) scale factors as introduced
by Robinson & Oshlack (2010) and used by edgeR's calcNormFactors, plus
linear and log2 normalized counts on top of the resulting effective
library sizes.
"""

from typing import List, Optional

import numpy as np
import pandas as pd
from pandas import DataFrame, Series
from scipy.stats import rankdata

from .errors import NormalizationFailureError


def retained_columns(matrix: DataFrame) -> List[str]:
    """
    Columns of a count matrix holding at least one non-missing value.

    Normalization is undefined for an all-missing sample, so this is the
    column set used by normalization, fold change and correlation alike.
    """
    return [col for col in matrix.columns if matrix[col].notna().any()]


def _usable_counts(matrix: DataFrame) -> DataFrame:
    cols = retained_columns(matrix)
    if len(cols) == 0:
        raise NormalizationFailureError("Count matrix has no usable samples")
    return matrix[cols].astype(float)


def library_sizes(matrix: DataFrame) -> Series:
    """Per-sample totals over the guides observed in that sample."""
    return _usable_counts(matrix).sum(axis=0, skipna=True)


def _tmm_factor(
    obs: np.ndarray,
    ref: np.ndarray,
    n_obs: float,
    n_ref: float,
    logratio_trim: float,
    sum_trim: float,
    a_cutoff: float,
) -> float:
    # guides observed in both sample and reference
    paired = ~np.isnan(obs) & ~np.isnan(ref)
    obs = obs[paired]
    ref = ref[paired]
    with np.errstate(divide="ignore", invalid="ignore"):
        log_r = np.log2((obs / n_obs) / (ref / n_ref))
        abs_e = (np.log2(obs / n_obs) + np.log2(ref / n_ref)) / 2
        variance = (n_obs - obs) / n_obs / obs + (n_ref - ref) / n_ref / ref

    finite = np.isfinite(log_r) & np.isfinite(abs_e) & (abs_e > a_cutoff)
    if not finite.any():
        raise NormalizationFailureError(
            "No guide has non-zero counts in both sample and reference"
        )
    log_r = log_r[finite]
    abs_e = abs_e[finite]
    variance = variance[finite]

    # sample identical to the reference
    if np.max(np.abs(log_r)) < 1e-6:
        return 1.0

    n = len(log_r)
    lo_l = np.floor(n * logratio_trim) + 1
    hi_l = n + 1 - lo_l
    lo_s = np.floor(n * sum_trim) + 1
    hi_s = n + 1 - lo_s

    rank_r = rankdata(log_r)
    rank_e = rankdata(abs_e)
    keep = (
        (rank_r >= lo_l) & (rank_r <= hi_l) & (rank_e >= lo_s) & (rank_e <= hi_s)
    )
    with np.errstate(divide="ignore", invalid="ignore"):
        log_f = np.nansum(log_r[keep] / variance[keep]) / np.nansum(
            1 / variance[keep]
        )
    if not np.isfinite(log_f):
        log_f = 0.0
    return float(2**log_f)


def calc_norm_factors(
    matrix: DataFrame,
    logratio_trim: float = 0.3,
    sum_trim: float = 0.05,
    a_cutoff: float = -1e10,
) -> Series:
    """
    Compute TMM normalization factors for each sample.

    The reference sample is the one whose upper quartile of
    count / library size is closest to the mean upper quartile. For every
    sample the log-ratios (M) against the reference are trimmed by
    ``logratio_trim`` on both tails, the mean log abundances (A) by
    ``sum_trim``, and the remaining M values are averaged with inverse
    asymptotic variance weights. Factors are rescaled to a geometric
    mean of one.

    Parameters
    ----------
    matrix : DataFrame
        Guides x samples raw counts. All-missing columns are ignored.
        Library sizes use each sample's own observed guides; the M and A
        values of a sample use the guides observed in both the sample
        and the reference.
    logratio_trim : float
        Fraction trimmed from each tail of the M values.
    sum_trim : float
        Fraction trimmed from each tail of the A values.
    a_cutoff : float
        Minimum A value for a guide to enter the estimation.

    Returns
    -------
    pd.Series
        Normalization factors indexed by sample name.

    Raises
    ------
    NormalizationFailureError
        If a sample has zero library size or shares no non-zero guide
        with the reference.
    """
    counts_df = _usable_counts(matrix)
    counts_df = counts_df[(counts_df > 0).any(axis=1)]
    lib_sizes = counts_df.sum(axis=0, skipna=True).values
    if counts_df.shape[0] == 0 or (lib_sizes <= 0).any():
        raise NormalizationFailureError(
            "At least one sample has zero total counts"
        )
    counts = counts_df.values

    upper_quartiles = np.nanquantile(counts / lib_sizes, 0.75, axis=0)
    ref_idx = int(np.argmin(np.abs(upper_quartiles - upper_quartiles.mean())))
    ref = counts[:, ref_idx]

    factors = np.array(
        [
            _tmm_factor(
                counts[:, i],
                ref,
                lib_sizes[i],
                lib_sizes[ref_idx],
                logratio_trim,
                sum_trim,
                a_cutoff,
            )
            for i in range(counts.shape[1])
        ]
    )
    factors = factors / np.exp(np.mean(np.log(factors)))
    return pd.Series(factors, index=counts_df.columns, name="norm_factor")


def normalize_counts(
    matrix: DataFrame,
    log: bool = False,
    norm_factors: Optional[Series] = None,
    prior_count: float = 2.0,
) -> DataFrame:
    """
    Normalize counts by TMM effective library sizes.

    Parameters
    ----------
    matrix : DataFrame
        Guides x samples raw counts.
    log : bool
        False returns counts rescaled to the mean effective library size
        (same scale as the raw counts). True returns log2 counts per
        million with a library-size scaled prior count, as edgeR's
        ``cpm(log=TRUE)``.
    norm_factors : pd.Series, optional
        Precomputed factors; computed with calc_norm_factors otherwise.
    prior_count : float
        Average count added before the log transform.

    Returns
    -------
    DataFrame
        Normalized values for the retained columns, same guide index.
    """
    cols = retained_columns(matrix)
    if norm_factors is None:
        norm_factors = calc_norm_factors(matrix)
    counts = matrix[cols].astype(float)
    eff_lib = library_sizes(matrix)[cols] * norm_factors[cols]

    if not log:
        return counts / eff_lib * eff_lib.mean()

    prior = prior_count * eff_lib / eff_lib.mean()
    return np.log2((counts + prior) / (eff_lib + 2 * prior) * 1e6)
