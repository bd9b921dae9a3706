"""
Log2 fold changes of final-timepoint replicates against the baseline.
"""

from pandas import DataFrame

from .errors import InsufficientReplicatesError
from .normalization import normalize_counts, retained_columns
from .records import final_columns, initial_columns

MIN_INITIAL_COUNT = 30
BASELINE_COLUMN = "initial_1"


def compute_fold_changes(
    table: DataFrame,
    min_initial_count: float = MIN_INITIAL_COUNT,
    prior_count: float = 2.0,
) -> DataFrame:
    """
    Compute log2 fold changes of each final replicate vs. ``initial_1``.

    Only the first initial replicate serves as baseline; further initial
    replicates are ignored, not averaged. Guides with a baseline count
    below ``min_initial_count`` (or a missing baseline) are dropped
    before the remaining ``initial_1, final_*`` matrix is TMM normalized
    on log2 scale.

    Parameters
    ----------
    table : DataFrame
        Replicate table of one experiment.
    min_initial_count : float
        Minimum baseline read count for a guide to be kept.
    prior_count : float
        Prior count for the log2 normalization.

    Returns
    -------
    DataFrame
        Guides x final replicates, ``log2(final_j) - log2(initial_1)``.

    Raises
    ------
    InsufficientReplicatesError
        If fewer than two samples (baseline plus one final replicate)
        remain after dropping all-missing columns.
    """
    if len(initial_columns(table)) == 0:
        raise InsufficientReplicatesError("No initial-timepoint replicate")
    matrix = table[[BASELINE_COLUMN] + final_columns(table)]
    matrix = matrix[matrix[BASELINE_COLUMN] >= min_initial_count]

    cols = retained_columns(matrix)
    if BASELINE_COLUMN not in cols or len(cols) < 2:
        raise InsufficientReplicatesError(
            f"{len(cols)} sample(s) left after filtering guides with "
            f"{BASELINE_COLUMN} < {min_initial_count}"
        )
    log_norm = normalize_counts(matrix[cols], log=True, prior_count=prior_count)
    final_cols = [col for col in cols if col != BASELINE_COLUMN]
    return log_norm[final_cols].sub(log_norm[BASELINE_COLUMN], axis=0)
