"""
Tests for models/report.py module.
"""
from dataclasses import FrozenInstanceError

import numpy as np
import pandas as pd
import pytest

from conftest import simulate_table
from crispr_reproducibility.core.pipeline import RESULT_COLUMNS, run_pipeline
from crispr_reproducibility.models.report import (
    ReportConfig,
    ReproducibilityReport,
    sample_examples,
    summarize_correlations,
)


def correlation_row(experiment, stage, method, coefficient, degenerate=False):
    return {
        "experiment": experiment,
        "stage": stage,
        "sample_a": "final_1",
        "sample_b": "final_2",
        "method": method,
        "coefficient": coefficient,
        "n_obs": 100,
        "degenerate": degenerate,
    }


@pytest.fixture
def correlations():
    return pd.DataFrame(
        [
            correlation_row("e1", "raw", "pearson", 0.5),
            correlation_row("e2", "raw", "pearson", 0.7),
            correlation_row("e3", "raw", "pearson", np.nan, degenerate=True),
            correlation_row("e1", "raw", "spearman", 0.4),
            correlation_row("e2", "raw", "spearman", 0.6),
            correlation_row("e3", "raw", "spearman", 0.9),
            correlation_row("e1", "fold_change", "pearson", 0.2),
        ],
        columns=RESULT_COLUMNS,
    )


class TestSampleExamples:
    """Test sample_examples function."""

    def test_reproducible(self):
        ids = [f"exp{i}" for i in range(20)]
        first = sample_examples(ids, 5, seed=42)
        second = sample_examples(ids, 5, seed=42)
        assert first == second
        assert len(first) == 5
        assert len(set(first)) == 5

    def test_independent_of_input_order(self):
        ids = [f"exp{i}" for i in range(20)]
        assert sample_examples(ids, 4, seed=1) == sample_examples(
            list(reversed(ids)), 4, seed=1
        )

    def test_subset_of_input(self):
        ids = [f"exp{i}" for i in range(10)]
        assert set(sample_examples(ids, 3, seed=0)) <= set(ids)

    def test_k_larger_than_input(self):
        ids = ["a", "b", "c"]
        assert sorted(sample_examples(ids, 10, seed=0)) == ids

    def test_empty(self):
        assert sample_examples([], 3, seed=0) == []
        assert sample_examples(["a"], 0, seed=0) == []


class TestSummarizeCorrelations:
    def test_degenerate_rows_are_excluded(self, correlations):
        summary = summarize_correlations(correlations)
        row = summary[(summary["stage"] == "raw") & (summary["method"] == "pearson")]

        assert row["n_pairs"].iloc[0] == 2
        assert row["n_degenerate"].iloc[0] == 1
        assert row["mean"].iloc[0] == pytest.approx(0.6)
        assert row["median"].iloc[0] == pytest.approx(0.6)

    def test_ordered_by_stage_and_method(self, correlations):
        summary = summarize_correlations(correlations)
        assert list(zip(summary["stage"], summary["method"])) == [
            ("raw", "pearson"),
            ("raw", "spearman"),
            ("fold_change", "pearson"),
        ]

    def test_spearman_median(self, correlations):
        summary = summarize_correlations(correlations)
        row = summary[(summary["stage"] == "raw") & (summary["method"] == "spearman")]
        assert row["median"].iloc[0] == pytest.approx(0.6)
        assert row["n_experiments"].iloc[0] == 3


class TestReproducibilityReport:
    """Test ReproducibilityReport class."""

    def test_assemble(self, correlations):
        report = ReproducibilityReport.assemble(correlations)

        assert report.experiments == ("e1", "e2", "e3")
        assert len(report.correlations) == len(correlations)
        assert len(report.excluded) == 0
        assert report.statistic("raw", "pearson") == pytest.approx(0.6)
        assert np.isnan(report.statistic("normalized", "pearson"))

    def test_immutable(self, correlations):
        report = ReproducibilityReport.assemble(correlations)
        with pytest.raises(FrozenInstanceError):
            report.summary = None

    def test_config_is_immutable(self, correlations):
        report = ReproducibilityReport.assemble(
            correlations, config=ReportConfig(seed=7)
        )
        with pytest.raises(FrozenInstanceError):
            report.config.seed = 8
        assert report.config.seed == 7

    def test_assemble_independent_of_row_order(self, correlations):
        shuffled = correlations.sample(frac=1.0, random_state=3)
        a = ReproducibilityReport.assemble(correlations)
        b = ReproducibilityReport.assemble(shuffled)
        pd.testing.assert_frame_equal(a.correlations, b.correlations)
        pd.testing.assert_frame_equal(a.summary, b.summary)

    def test_stage_results(self, correlations):
        report = ReproducibilityReport.assemble(correlations)
        assert len(report.stage_results("fold_change")) == 1
        with pytest.raises(ValueError):
            report.stage_results("cpm")

    def test_examples_skip_degenerate(self, correlations):
        report = ReproducibilityReport.assemble(
            correlations[correlations["method"] == "pearson"],
            config=ReportConfig(seed=0, n_examples=5),
        )
        assert sorted(report.examples("raw")) == ["e1", "e2"]

    def test_examples_reproducible(self, correlations):
        config = ReportConfig(seed=11, n_examples=2)
        a = ReproducibilityReport.assemble(correlations, config=config)
        b = ReproducibilityReport.assemble(correlations, config=config)
        assert a.examples() == b.examples()

    def test_matched_examples_from_pipeline(self):
        tables = {
            f"{i}_S_viability": simulate_table(n_guides=80, n_final=2, seed=i)
            for i in range(6)
        }
        correlations, excluded = run_pipeline(tables)
        report = ReproducibilityReport.assemble(
            correlations, excluded, ReportConfig(seed=5, n_examples=3)
        )
        examples = report.matched_examples()

        assert set(examples) == {"raw", "normalized", "fold_change"}
        assert examples["raw"] == examples["normalized"] == examples["fold_change"]
        assert len(examples["raw"]) == 3
        assert report.matched_examples() == examples
