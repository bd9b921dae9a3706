"""
Reproducibility Report Module

Aggregates the per-experiment correlation results of all stages into
global summary statistics and picks reproducible example experiments for
scatter plots.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from ..core.correlation import METHODS
from ..core.pipeline import EXCLUDED_COLUMNS, RESULT_COLUMNS, STAGES

SUMMARY_COLUMNS = [
    "stage",
    "method",
    "n_pairs",
    "n_experiments",
    "n_degenerate",
    "mean",
    "median",
]


def sample_examples(
    experiment_ids: Sequence[str], k: int, seed: int
) -> List[str]:
    """
    Draw ``k`` experiments with an explicitly seeded generator.

    The ids are sorted first, so the same seed and the same experiment set
    always give the same ids in the same order, independent of the order
    in which experiments were processed.
    """
    ids = sorted(set(experiment_ids))
    if k <= 0 or len(ids) == 0:
        return []
    rng = np.random.default_rng(seed)
    picked = rng.choice(len(ids), size=min(k, len(ids)), replace=False)
    return [ids[i] for i in picked]


def summarize_correlations(correlations: pd.DataFrame) -> pd.DataFrame:
    """
    Mean and median coefficient per stage and method.

    Degenerate (undefined) coefficients are counted separately and never
    enter the mean or median.
    """
    records = []
    for stage, method in itertools.product(STAGES, METHODS):
        group = correlations[
            (correlations["stage"] == stage)
            & (correlations["method"] == method)
        ]
        if len(group) == 0:
            continue
        valid = group[~group["degenerate"].astype(bool)]
        coefficients = valid["coefficient"].astype(float)
        records.append(
            {
                "stage": stage,
                "method": method,
                "n_pairs": len(valid),
                "n_experiments": valid["experiment"].nunique(),
                "n_degenerate": len(group) - len(valid),
                "mean": coefficients.mean() if len(valid) else np.nan,
                "median": coefficients.median() if len(valid) else np.nan,
            }
        )
    return pd.DataFrame(records, columns=SUMMARY_COLUMNS)


@dataclass(frozen=True)
class ReportConfig:
    seed: int = 42
    n_examples: int = 3
    stages: Tuple[str, ...] = STAGES


@dataclass(frozen=True)
class ReproducibilityReport:
    """
    Immutable aggregate over all analysed experiments.

    Attributes
    ----------
    correlations : pd.DataFrame
        All correlation rows of all experiments and stages.
    excluded : pd.DataFrame
        Exclusion records [experiment, stage, reason].
    summary : pd.DataFrame
        Mean/median coefficient per stage and method.
    experiments : tuple
        Sorted ids of the experiments with at least one result row.
    config : ReportConfig
        Seed and number of examples used for example selection.
    """

    correlations: pd.DataFrame
    excluded: pd.DataFrame
    summary: pd.DataFrame
    experiments: Tuple[str, ...]
    config: ReportConfig = field(default_factory=ReportConfig)

    @classmethod
    def assemble(
        cls,
        correlations: pd.DataFrame,
        excluded: Optional[pd.DataFrame] = None,
        config: Optional[ReportConfig] = None,
    ) -> "ReproducibilityReport":
        correlations = correlations.reindex(columns=RESULT_COLUMNS)
        correlations = correlations.sort_values(
            ["experiment", "stage", "method", "sample_a", "sample_b"],
            kind="mergesort",
        ).reset_index(drop=True)
        if excluded is None:
            excluded = pd.DataFrame(columns=EXCLUDED_COLUMNS)
        return cls(
            correlations=correlations,
            excluded=excluded.reset_index(drop=True),
            summary=summarize_correlations(correlations),
            experiments=tuple(sorted(correlations["experiment"].unique())),
            config=config or ReportConfig(),
        )

    # -----------------------
    # Accessors
    # -----------------------
    def stage_results(self, stage: str) -> pd.DataFrame:
        if stage not in STAGES:
            raise ValueError(f"Unknown stage: {stage}")
        return self.correlations[self.correlations["stage"] == stage]

    def valid_results(self, stage: Optional[str] = None) -> pd.DataFrame:
        df = self.correlations if stage is None else self.stage_results(stage)
        return df[~df["degenerate"].astype(bool)]

    def statistic(self, stage: str, method: str, name: str = "mean") -> float:
        row = self.summary[
            (self.summary["stage"] == stage) & (self.summary["method"] == method)
        ]
        if len(row) == 0:
            return np.nan
        return float(row[name].iloc[0])

    def examples(
        self, stage: Optional[str] = None, k: Optional[int] = None
    ) -> List[str]:
        """
        Seeded sample of experiments for example scatter plots.

        With ``stage`` given, only experiments with a defined coefficient
        at that stage are candidates.
        """
        k = self.config.n_examples if k is None else k
        candidates = self.valid_results(stage)["experiment"].unique()
        return sample_examples(candidates, k, self.config.seed)

    def matched_examples(self, k: Optional[int] = None) -> Dict[str, List[str]]:
        """
        The same example experiments for every stage.

        Candidates are the experiments with defined coefficients at all
        configured stages, so the scatter plots of the stages can be
        compared side by side.
        """
        k = self.config.n_examples if k is None else k
        valid = self.valid_results()
        candidate_sets = [
            set(valid.loc[valid["stage"] == stage, "experiment"])
            for stage in self.config.stages
        ]
        candidates = set.intersection(*candidate_sets) if candidate_sets else set()
        picked = sample_examples(list(candidates), k, self.config.seed)
        return {stage: picked for stage in self.config.stages}
