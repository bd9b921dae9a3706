"""
Per-experiment analysis and the batch driver over all experiments.

Every experiment is analysed at three stages:

- raw: raw counts of the final-timepoint replicates
- normalized: TMM-normalized counts of the final-timepoint replicates,
  factors estimated together with initial_1
- fold_change: log2 fold changes of each final replicate vs. initial_1

Failures are local to one experiment and stage; they are recorded as
exclusions and never abort the batch.
"""

import warnings
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, List, Tuple

import pandas as pd
from pandas import DataFrame

from .correlation import CORRELATION_COLUMNS, pairwise_correlations
from .errors import (
    ExperimentExcludedWarning,
    InsufficientReplicatesError,
    ReproducibilityError,
)
from .fold_change import BASELINE_COLUMN, MIN_INITIAL_COUNT, compute_fold_changes
from .normalization import normalize_counts, retained_columns
from .records import final_columns

STAGES = ("raw", "normalized", "fold_change")
RESULT_COLUMNS = ["experiment", "stage"] + CORRELATION_COLUMNS
EXCLUDED_COLUMNS = ["experiment", "stage", "reason"]


@dataclass
class ExperimentResult:
    experiment_id: str
    correlations: DataFrame
    excluded: List[Dict[str, str]] = field(default_factory=list)


def _require_two(matrix: DataFrame) -> DataFrame:
    cols = retained_columns(matrix)
    if len(cols) < 2:
        raise InsufficientReplicatesError(
            f"{len(cols)} usable final replicate(s)"
        )
    return matrix[cols]


def stage_matrix(
    table: DataFrame,
    stage: str,
    min_initial_count: float = MIN_INITIAL_COUNT,
) -> DataFrame:
    """
    Matrix of final-replicate values that is correlated at ``stage``.

    Raises
    ------
    ReproducibilityError
        If the stage cannot be computed for the experiment.
    """
    finals = final_columns(table)
    if stage == "raw":
        return _require_two(table[finals].astype(float))
    if stage == "normalized":
        baseline = [c for c in [BASELINE_COLUMN] if c in table.columns]
        cols = retained_columns(table[baseline + finals])
        normalized = normalize_counts(table[cols], log=False)
        return _require_two(normalized[[c for c in cols if c in finals]])
    if stage == "fold_change":
        return _require_two(
            compute_fold_changes(table, min_initial_count=min_initial_count)
        )
    raise ValueError(f"Unknown stage: {stage}")


def analyze_experiment(
    experiment_id: str,
    table: DataFrame,
    min_initial_count: float = MIN_INITIAL_COUNT,
) -> ExperimentResult:
    """
    Correlate the replicates of one experiment at every stage.

    Parameters
    ----------
    experiment_id : str
        Experiment identifier, copied into every result row.
    table : DataFrame
        Replicate table as produced by group_experiments.
    min_initial_count : float
        Baseline count filter of the fold change stage.

    Returns
    -------
    ExperimentResult
        Correlation rows of all stages that could be computed, plus one
        exclusion record per failed stage.
    """
    frames = []
    excluded = []
    for stage in STAGES:
        try:
            matrix = stage_matrix(table, stage, min_initial_count)
        except ReproducibilityError as exc:
            reason = f"{type(exc).__name__}: {exc}"
            warnings.warn(
                f"{experiment_id}: skipping {stage} stage ({reason})",
                ExperimentExcludedWarning,
            )
            excluded.append(
                {"experiment": experiment_id, "stage": stage, "reason": reason}
            )
            continue
        corr = pairwise_correlations(matrix)
        corr.insert(0, "stage", stage)
        corr.insert(0, "experiment", experiment_id)
        frames.append(corr)
    if frames:
        correlations = pd.concat(frames, ignore_index=True)
    else:
        correlations = pd.DataFrame(columns=RESULT_COLUMNS)
    return ExperimentResult(experiment_id, correlations, excluded)


def _analyze_item(item: Tuple[str, DataFrame, float]) -> ExperimentResult:
    experiment_id, table, min_initial_count = item
    return analyze_experiment(experiment_id, table, min_initial_count)


def run_pipeline(
    tables: Dict[str, DataFrame],
    n_workers: int = 1,
    min_initial_count: float = MIN_INITIAL_COUNT,
) -> Tuple[DataFrame, DataFrame]:
    """
    Analyse all experiments, optionally in a process pool.

    Results are ordered by experiment id before they are combined, so the
    output does not depend on the number of workers.

    Returns
    -------
    tuple
        (correlations, excluded) DataFrames.
    """
    items = [
        (experiment_id, tables[experiment_id], min_initial_count)
        for experiment_id in sorted(tables)
    ]
    if n_workers > 1 and len(items) > 1:
        with ProcessPoolExecutor(max_workers=n_workers) as pool:
            results = list(pool.map(_analyze_item, items))
    else:
        results = [_analyze_item(item) for item in items]
    results.sort(key=lambda result: result.experiment_id)

    frames = [r.correlations for r in results if len(r.correlations) > 0]
    if frames:
        correlations = pd.concat(frames, ignore_index=True)
    else:
        correlations = pd.DataFrame(columns=RESULT_COLUMNS)
    excluded = pd.DataFrame(
        [record for r in results for record in r.excluded],
        columns=EXCLUDED_COLUMNS,
    )
    return correlations, excluded
