"""
Tests for core/fold_change.py module.
"""
import numpy as np
import pandas as pd
import pytest

from crispr_reproducibility.core.errors import InsufficientReplicatesError
from crispr_reproducibility.core.fold_change import compute_fold_changes


def make_table(initial_1, finals, initial_2=None):
    data = {"initial_1": initial_1}
    if initial_2 is not None:
        data["initial_2"] = initial_2
    for i, values in enumerate(finals, start=1):
        data[f"final_{i}"] = values
    index = pd.Index([f"g{i}" for i in range(len(initial_1))], name="guide")
    return pd.DataFrame(data, index=index, dtype=float)


class TestComputeFoldChanges:
    """Test compute_fold_changes function."""

    def test_equal_normalized_counts_give_zero(self):
        initial = [30, 50, 100, 200, 400, 800]
        table = make_table(initial, [initial, initial])
        fold_changes = compute_fold_changes(table)

        assert list(fold_changes.columns) == ["final_1", "final_2"]
        assert np.allclose(fold_changes.values, 0.0)

    def test_depth_difference_gives_zero(self):
        initial = np.array([30, 50, 100, 200, 400, 800], dtype=float)
        table = make_table(initial, [2 * initial, 5 * initial])
        fold_changes = compute_fold_changes(table)
        assert np.allclose(fold_changes.values, 0.0)

    def test_low_baseline_guides_are_dropped(self):
        table = make_table(
            [10, 29, 30, 100, 250],
            [[5, 20, 30, 90, 260], [8, 25, 28, 110, 240]],
        )
        fold_changes = compute_fold_changes(table)
        assert list(fold_changes.index) == ["g2", "g3", "g4"]

    def test_missing_baseline_guides_are_dropped(self):
        table = make_table(
            [np.nan, 100, 200, 300],
            [[5, 90, 210, 280], [8, 110, 190, 320]],
        )
        fold_changes = compute_fold_changes(table)
        assert "g0" not in fold_changes.index

    def test_additional_initial_replicates_are_ignored(self):
        initial = [40, 80, 160, 320, 640]
        finals = [[30, 90, 150, 300, 700], [50, 70, 170, 350, 600]]
        with_second = make_table(
            initial, finals, initial_2=[1000, 1, 1000, 1, 1000]
        )
        without_second = make_table(initial, finals)

        pd.testing.assert_frame_equal(
            compute_fold_changes(with_second),
            compute_fold_changes(without_second),
        )

    def test_depleted_guide_has_lowest_fold_change(self):
        initial = [200, 200, 200, 200, 200, 200]
        finals = [
            [210, 190, 205, 195, 200, 20],
            [190, 210, 195, 205, 200, 25],
        ]
        fold_changes = compute_fold_changes(make_table(initial, finals))
        assert (fold_changes.idxmin() == "g5").all()
        assert (fold_changes.loc["g5"] < -2).all()

    def test_all_missing_final_column_is_dropped(self):
        initial = [100, 200, 300, 400]
        table = make_table(
            initial, [[110, 190, 310, 390], [np.nan] * 4, [90, 210, 290, 410]]
        )
        fold_changes = compute_fold_changes(table)
        assert list(fold_changes.columns) == ["final_1", "final_3"]

    def test_no_final_values_raises(self):
        table = make_table([100, 200, 300], [[np.nan] * 3, [np.nan] * 3])
        with pytest.raises(InsufficientReplicatesError):
            compute_fold_changes(table)

    def test_all_guides_below_threshold_raises(self):
        table = make_table([1, 5, 10], [[2, 4, 6], [3, 5, 7]])
        with pytest.raises(InsufficientReplicatesError):
            compute_fold_changes(table)

    def test_custom_threshold(self):
        table = make_table([1, 5, 10], [[2, 4, 6], [3, 5, 7]])
        fold_changes = compute_fold_changes(table, min_initial_count=0)
        assert len(fold_changes) == 3
