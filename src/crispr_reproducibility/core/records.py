"""
Observation records and replicate column disentangling.

The screen database stores the read counts of all replicates of one
timepoint in a single packed field, e.g. ``"[120,98,143]"``. This module
parses those fields into typed tuples at the loader boundary and turns the
rows of one experiment into a per-experiment table with one column per
replicate.
"""

import warnings
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from pandas import DataFrame

from .errors import ExperimentExcludedWarning, MalformedRecordError

EMPTY_MARKER = "[]"
MISSING_TOKENS = {"", "na", "nan", "none", "null"}

Counts = Tuple[Optional[int], ...]


@dataclass(frozen=True)
class ObservationRecord:
    """
    One guide observed in one experiment.

    Attributes
    ----------
    guide_id : str
        Guide sequence and target gene, joined as ``<sequence>_<symbol>``.
    experiment_id : str
        Composite key ``<study>_<sample>_<condition>``.
    study_id : str
        Source study identifier (PubMed id in the database export).
    sample_id : str
        Biological sample (cell line).
    condition : str
        Condition label of the screen.
    initial_counts : tuple
        Read counts of the initial-timepoint replicates (None = missing).
    final_counts : tuple
        Read counts of the final-timepoint replicates. An empty tuple
        means the database holds no final-timepoint data for the guide.
    """

    guide_id: str
    experiment_id: str
    study_id: str
    sample_id: str
    condition: str
    initial_counts: Counts
    final_counts: Counts

    @property
    def has_final_counts(self) -> bool:
        return len(self.final_counts) > 0


def make_experiment_id(study_id: str, sample_id: str, condition: str) -> str:
    return f"{study_id}_{sample_id}_{condition}"


def make_guide_id(sequence: str, symbol: str) -> str:
    return f"{sequence}_{symbol}"


def _parse_token(token: str, field: str) -> Optional[int]:
    token = token.strip()
    if token.lower() in MISSING_TOKENS:
        return None
    try:
        value = int(token)
    except ValueError:
        try:
            as_float = float(token)
        except ValueError as exc:
            raise MalformedRecordError(
                f"Non-numeric count '{token}' in packed field '{field}'"
            ) from exc
        if not as_float.is_integer():
            raise MalformedRecordError(
                f"Non-integer count '{token}' in packed field '{field}'"
            )
        value = int(as_float)
    if value < 0:
        raise MalformedRecordError(
            f"Negative count '{token}' in packed field '{field}'"
        )
    return value


def parse_packed_counts(field: Union[str, float, None]) -> Counts:
    """
    Parse a packed count field into a tuple of optional integers.

    Brackets are stripped and the remainder is split on commas; blank
    tokens become None. The empty-list marker ``[]`` (and a missing
    field) yields an empty tuple.

    Parameters
    ----------
    field : str
        Packed field such as ``"[12,40,]"``.

    Returns
    -------
    tuple
        One entry per replicate.

    Raises
    ------
    MalformedRecordError
        If a token is not a non-negative integer.
    """
    if field is None or (isinstance(field, float) and np.isnan(field)):
        return ()
    text = str(field).strip()
    if text == EMPTY_MARKER:
        return ()
    text = text.strip("[]").strip()
    if text == "":
        return ()
    return tuple(_parse_token(token, str(field)) for token in text.split(","))


def count_replicates(field: str) -> int:
    """Number of replicates in a packed field (separators + 1)."""
    text = str(field).strip()
    if text == EMPTY_MARKER or text.strip("[]").strip() == "":
        return 0
    return text.count(",") + 1


def _as_counts(value: Union[str, Sequence[Optional[int]]]) -> Counts:
    if isinstance(value, str):
        return parse_packed_counts(value)
    return tuple(value)


def _replicate_count(value: Union[str, Sequence[Optional[int]]]) -> int:
    if isinstance(value, str):
        return count_replicates(value)
    return len(value)


def replicate_columns(n_initial: int, n_final: int) -> List[str]:
    return [f"initial_{i}" for i in range(1, n_initial + 1)] + [
        f"final_{i}" for i in range(1, n_final + 1)
    ]


def _check_replicate_count(
    record: ObservationRecord,
    initial: Counts,
    final: Counts,
    n_initial: int,
    n_final: int,
) -> None:
    if len(initial) != n_initial or len(final) != n_final:
        raise MalformedRecordError(
            f"guide {record.guide_id} has {len(initial)}/{len(final)} "
            f"replicates, expected {n_initial}/{n_final}"
        )


def disentangle_columns(
    records: Iterable[ObservationRecord],
) -> DataFrame:
    """
    Build the replicate table of a single experiment.

    The number of initial and final replicates is the number of packed
    tokens (separators + 1) of the first record. Every other record is
    checked against it; records with a different number of tokens are
    dropped with an ExperimentExcludedWarning instead of being split into
    misaligned columns. Duplicate guides keep their first observation.

    Parameters
    ----------
    records : iterable of ObservationRecord
        All records of one experiment. The count fields may be parsed
        tuples or still-packed strings.

    Returns
    -------
    DataFrame
        Indexed by guide id, columns ``initial_1..initial_n`` followed by
        ``final_1..final_m``; float values with NaN for missing counts.
    """
    records = list(records)
    if len(records) == 0:
        return DataFrame(dtype=float)
    first = records[0]
    n_initial = _replicate_count(first.initial_counts)
    n_final = _replicate_count(first.final_counts)
    columns = replicate_columns(n_initial, n_final)

    rows = []
    guide_ids = []
    for record in records:
        initial = _as_counts(record.initial_counts)
        final = _as_counts(record.final_counts)
        try:
            _check_replicate_count(record, initial, final, n_initial, n_final)
        except MalformedRecordError as exc:
            warnings.warn(
                f"{record.experiment_id}: dropping row ({exc})",
                ExperimentExcludedWarning,
            )
            continue
        rows.append(
            [np.nan if v is None else float(v) for v in initial + final]
        )
        guide_ids.append(record.guide_id)

    table = DataFrame(
        rows, index=pd.Index(guide_ids, name="guide"), columns=columns
    )
    table = table[~table.index.duplicated(keep="first")]
    return table


def initial_columns(table: DataFrame) -> List[str]:
    return [col for col in table.columns if col.startswith("initial_")]


def final_columns(table: DataFrame) -> List[str]:
    return [col for col in table.columns if col.startswith("final_")]
