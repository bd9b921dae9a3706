from pathlib import Path
from typing import Dict, List, Optional, Union

import matplotlib.pyplot as plt
from pandas import DataFrame

from crispr_reproducibility.core.errors import ReproducibilityError
from crispr_reproducibility.core.pipeline import STAGES, stage_matrix
from crispr_reproducibility.core.plots import (
    plot_correlation_histograms,
    plot_example_scatter_grid,
    plot_stage_summary,
)
from crispr_reproducibility.models.report import ReproducibilityReport
from .io import read_dataframe, save_figure


def write_correlation_histograms(
    outdir: Union[Path, str],
    correlations: Union[Path, str, DataFrame],
    stage: str,
    save_formats: Optional[List[str]] = None,
) -> List[Path]:
    if isinstance(correlations, (str, Path)):
        correlations = read_dataframe(correlations)
    elif not isinstance(correlations, DataFrame):
        raise TypeError("correlations must be a DataFrame or a path to a file")
    fig, _ = plot_correlation_histograms(correlations, stage)
    paths = save_figure(
        fig, Path(outdir), f"histogram_{stage}", formats=save_formats
    )
    plt.close(fig)
    return paths


def write_example_scatter(
    outdir: Union[Path, str],
    tables: Dict[str, DataFrame],
    experiment_ids: List[str],
    stage: str,
    min_initial_count: float = 30,
    save_formats: Optional[List[str]] = None,
) -> List[Path]:
    matrices = {}
    for experiment_id in experiment_ids:
        try:
            matrices[experiment_id] = stage_matrix(
                tables[experiment_id], stage, min_initial_count
            )
        except ReproducibilityError as e:
            print(f"  Warning: no {stage} scatter for {experiment_id}: {e}")
    fig = plot_example_scatter_grid(matrices, stage)
    paths = save_figure(
        fig, Path(outdir), f"scatter_{stage}", formats=save_formats
    )
    plt.close(fig)
    return paths


def write_stage_summary(
    outdir: Union[Path, str],
    summary: DataFrame,
    statistic: str = "median",
    save_formats: Optional[List[str]] = None,
) -> List[Path]:
    fig = plot_stage_summary(summary, statistic=statistic)
    paths = save_figure(
        fig, Path(outdir), f"summary_{statistic}", formats=save_formats
    )
    plt.close(fig)
    return paths


def write_report_plots(
    report: ReproducibilityReport,
    tables: Dict[str, DataFrame],
    outdir: Union[Path, str],
    min_initial_count: float = 30,
    save_formats: Optional[List[str]] = None,
) -> Dict[str, List[Path]]:
    """
    Write histograms and matched example scatter plots for every stage.

    Returns
    -------
    dict
        Mapping plot name -> written files.
    """
    if save_formats is None:
        save_formats = ["png", "pdf"]
    outdir = Path(outdir)
    examples = report.matched_examples()
    paths = {}
    for stage in STAGES:
        print(f"Generating {stage} plots...")
        paths[f"histogram_{stage}"] = write_correlation_histograms(
            outdir, report.correlations, stage, save_formats
        )
        paths[f"scatter_{stage}"] = write_example_scatter(
            outdir,
            tables,
            examples[stage],
            stage,
            min_initial_count=min_initial_count,
            save_formats=save_formats,
        )
    paths["summary_median"] = write_stage_summary(
        outdir, report.summary, "median", save_formats
    )
    return paths
