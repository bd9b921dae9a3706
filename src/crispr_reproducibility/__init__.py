"""
CRISPR reproducibility – replicate agreement across pooled dropout screens.

This package provides:
- core
- models
- services
- jobs
"""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("crispr-reproducibility")
except PackageNotFoundError:  # pragma: no cover
    __version__ = "0.1.0"


from .core.correlation import pairwise_correlations
from .core.fold_change import compute_fold_changes
from .core.grouping import group_experiments
from .core.normalization import calc_norm_factors, normalize_counts
from .core.pipeline import analyze_experiment, run_pipeline
from .core.records import disentangle_columns, parse_packed_counts
from .models.report import ReproducibilityReport, sample_examples

__all__ = [
    "pairwise_correlations",
    "compute_fold_changes",
    "group_experiments",
    "calc_norm_factors",
    "normalize_counts",
    "analyze_experiment",
    "run_pipeline",
    "disentangle_columns",
    "parse_packed_counts",
    "ReproducibilityReport",
    "sample_examples",
]
