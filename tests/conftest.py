import numpy as np
import pandas as pd
import pytest

from crispr_reproducibility.core.records import (
    ObservationRecord,
    make_experiment_id,
)


def pack(values):
    return "[" + ",".join("" if v is None else str(v) for v in values) + "]"


@pytest.fixture
def make_record():
    """Factory for observation records with parsed count tuples."""

    def _make(
        guide_id,
        initial=(100,),
        final=(10, 12),
        study_id="1",
        sample_id="A",
        condition="viability",
    ):
        return ObservationRecord(
            guide_id=guide_id,
            experiment_id=make_experiment_id(study_id, sample_id, condition),
            study_id=study_id,
            sample_id=sample_id,
            condition=condition,
            initial_counts=tuple(initial),
            final_counts=tuple(final),
        )

    return _make


def simulate_table(n_guides=200, n_initial=1, n_final=3, seed=0):
    """Replicate table with Poisson noise around a shared guide abundance."""
    rng = np.random.default_rng(seed)
    abundance = rng.uniform(50, 1000, size=n_guides)
    data = {}
    for i in range(1, n_initial + 1):
        data[f"initial_{i}"] = rng.poisson(abundance).astype(float)
    effect = rng.normal(0, 0.5, size=n_guides)
    for i in range(1, n_final + 1):
        depth = rng.uniform(0.5, 2.0)
        data[f"final_{i}"] = rng.poisson(
            abundance * depth * np.exp2(effect)
        ).astype(float)
    index = pd.Index([f"g{i}" for i in range(n_guides)], name="guide")
    return pd.DataFrame(data, index=index)


@pytest.fixture
def replicate_table():
    return simulate_table()


def screen_database_frame(seed=1, n_guides=40):
    """Synthetic screen database export in the GenomeCRISPR layout."""
    rng = np.random.default_rng(seed)
    experiments = [
        # pubmed, cellline, condition, n_initial, n_final
        ("111", "HeLa", "viability", 1, 3),
        ("222", "K562", "Viability", 2, 2),
        ("333", "A375", "viability", 1, 1),
        ("444", "HAP1", "drug resistance", 1, 2),
        ("0", "RPE1", "viability", 1, 2),
    ]
    rows = []
    for pubmed, cellline, condition, n_initial, n_final in experiments:
        for g in range(n_guides):
            base = rng.uniform(60, 800)
            rows.append(
                {
                    "start": 1000 + g,
                    "chr": "chr1",
                    "pubmed": pubmed,
                    "cellline": cellline,
                    "condition": condition,
                    "sequence": f"ACGT{g:04d}",
                    "symbol": f"GENE{g // 4}",
                    "rc_initial": pack(rng.poisson(base, size=n_initial)),
                    "rc_final": pack(rng.poisson(base, size=n_final)),
                }
            )
    # a guide without final-timepoint data
    rows.append(
        {
            "start": 1,
            "chr": "chr2",
            "pubmed": "111",
            "cellline": "HeLa",
            "condition": "viability",
            "sequence": "TTTT0000",
            "symbol": "NOFINAL",
            "rc_initial": "[500]",
            "rc_final": "[]",
        }
    )
    return pd.DataFrame(rows)


@pytest.fixture
def screen_csv(tmp_path):
    path = tmp_path / "screens.csv"
    screen_database_frame().to_csv(path, index=False)
    return path
