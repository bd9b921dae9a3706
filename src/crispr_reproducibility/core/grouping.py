"""
Grouping of observation records into per-experiment replicate tables.
"""

from typing import Dict, Iterable, List, Tuple

import pandas as pd
from pandas import DataFrame

from .records import ObservationRecord, disentangle_columns, final_columns

VIABILITY_CONDITION = "viability"
INVALID_STUDY_ID = "0"
MIN_FINAL_REPLICATES = 2


def is_viability_screen(condition: str) -> bool:
    """Case-insensitive check for a viability/dropout condition label."""
    return VIABILITY_CONDITION in str(condition).lower()


def filter_records(
    records: Iterable[ObservationRecord],
) -> List[ObservationRecord]:
    """
    Apply the record-level inclusion filters.

    Drops records without final-timepoint data, records whose condition
    is not a viability screen and records of the reserved invalid study.
    """
    kept = []
    for record in records:
        if not record.has_final_counts:
            continue
        if not is_viability_screen(record.condition):
            continue
        if str(record.study_id) == INVALID_STUDY_ID:
            continue
        kept.append(record)
    return kept


def group_experiments(
    records: Iterable[ObservationRecord],
) -> Tuple[Dict[str, DataFrame], DataFrame]:
    """
    Group records by experiment and build one replicate table each.

    Parameters
    ----------
    records : iterable of ObservationRecord
        All observations of the database export.

    Returns
    -------
    tuple
        (tables, excluded) where:
        - tables: Dict mapping experiment id -> replicate table, only for
          experiments with at least two final-timepoint replicates
        - excluded: DataFrame with columns [experiment, stage, reason] for
          experiments dropped after grouping
    """
    by_experiment: Dict[str, List[ObservationRecord]] = {}
    for record in filter_records(records):
        by_experiment.setdefault(record.experiment_id, []).append(record)

    tables = {}
    excluded = []
    for experiment_id in sorted(by_experiment):
        table = disentangle_columns(by_experiment[experiment_id])
        n_final = len(final_columns(table))
        if len(table) == 0:
            excluded.append(
                {
                    "experiment": experiment_id,
                    "stage": "grouping",
                    "reason": "no well-formed rows",
                }
            )
            continue
        if n_final < MIN_FINAL_REPLICATES:
            excluded.append(
                {
                    "experiment": experiment_id,
                    "stage": "grouping",
                    "reason": f"only {n_final} final replicate(s)",
                }
            )
            continue
        tables[experiment_id] = table
    excluded_df = pd.DataFrame(
        excluded, columns=["experiment", "stage", "reason"]
    )
    return tables, excluded_df


def summarize_experiments(tables: Dict[str, DataFrame]) -> DataFrame:
    """
    Per-experiment overview: number of guides and replicates.

    Returns
    -------
    DataFrame
        Columns [experiment, n_guides, n_initial, n_final].
    """
    records = []
    for experiment_id, table in tables.items():
        n_final = len(final_columns(table))
        records.append(
            {
                "experiment": experiment_id,
                "n_guides": len(table),
                "n_initial": table.shape[1] - n_final,
                "n_final": n_final,
            }
        )
    return pd.DataFrame(
        records, columns=["experiment", "n_guides", "n_initial", "n_final"]
    )
