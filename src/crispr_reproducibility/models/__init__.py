"""
Report models for the reproducibility analysis.

This includes:
- ReproducibilityReport: aggregate of all per-experiment correlations
- ReportConfig: seed and example count for the example selection
"""

from .report import ReportConfig, ReproducibilityReport, sample_examples

__all__ = [
    "ReproducibilityReport",
    "ReportConfig",
    "sample_examples",
]
