"""
PyPipeGraph2 job wrappers for the reproducibility analysis.
"""

from pathlib import Path
from typing import List, Optional, Union

from pypipegraph2 import (
    Job,
    MultiFileGeneratingJob,
    FunctionInvariant,
    ParameterInvariant,
)

from crispr_reproducibility.core.pipeline import STAGES
from crispr_reproducibility.services.io import run_reproducibility_analysis
from crispr_reproducibility.services.plots_io import (
    write_correlation_histograms,
)

TABLE_NAMES = [f"correlations_{stage}" for stage in STAGES] + [
    "summary",
    "excluded",
    "examples",
    "experiments",
]


def reproducibility_analysis_job(
    data_path: Union[Path, str],
    output_dir: Union[Path, str],
    seed: int = 42,
    n_examples: int = 3,
    n_workers: int = 1,
    min_initial_count: float = 30,
    save_formats: List[str] = ["png", "pdf"],
    dependencies: List[Job] = [],
) -> MultiFileGeneratingJob:
    """
    Create pypipegraph job for the complete reproducibility analysis.

    Parameters
    ----------
    data_path : Path or str
        Screen database export.
    output_dir : Path or str
        Output directory for tables; plots go to ``output_dir/plots``.
    seed : int
        Seed for the example experiment selection.
    n_examples : int
        Number of example experiments.
    n_workers : int
        Worker processes for the per-experiment analysis.
    min_initial_count : float
        Baseline count filter of the fold change stage.
    save_formats : list
        List of figure formats ("png", "pdf", "svg").
    dependencies : list
        List of pypipegraph Jobs to depend on.

    Returns
    -------
    MultiFileGeneratingJob
        Job that generates all tables and plots.
    """
    output_dir = Path(output_dir)
    plot_dir = output_dir / "plots"

    outfiles = [output_dir / f"{name}.tsv" for name in TABLE_NAMES]
    plot_names = [f"histogram_{stage}" for stage in STAGES] + [
        f"scatter_{stage}" for stage in STAGES
    ]
    plot_names.append("summary_median")
    for plot_name in plot_names:
        for fmt in save_formats:
            outfiles.append(plot_dir / f"{plot_name}.{fmt}")

    def __dump(
        outfiles,
        data_path=data_path,
        output_dir=output_dir,
        seed=seed,
        n_examples=n_examples,
        n_workers=n_workers,
        min_initial_count=min_initial_count,
        save_formats=save_formats,
    ):
        run_reproducibility_analysis(
            data_path=data_path,
            output_dir=output_dir,
            seed=seed,
            n_examples=n_examples,
            n_workers=n_workers,
            min_initial_count=min_initial_count,
            plots=True,
            save_formats=save_formats,
        )

    job = MultiFileGeneratingJob(outfiles, __dump).depends_on(dependencies)
    job.depends_on(
        FunctionInvariant(
            f"run_reproducibility_analysis_{output_dir}",
            run_reproducibility_analysis,
        )
    )
    # n_workers does not change the results
    job.depends_on(
        ParameterInvariant(
            f"reproducibility_analysis_params_{output_dir}",
            [
                str(data_path),
                seed,
                n_examples,
                min_initial_count,
                tuple(save_formats),
            ],
        )
    )
    return job


def correlation_histogram_job(
    outdir: Union[Path, str],
    correlations_file: Union[Path, str],
    stage: str,
    save_formats: List[str] = ["png", "pdf"],
    dependencies: Optional[List[Job]] = None,
) -> MultiFileGeneratingJob:
    """
    correlation_histogram_job creates a job that plots the histograms of
    one stage from a correlation table written by
    reproducibility_analysis_job.

    Parameters
    ----------
    outdir : Union[Path, str]
        Output folder of the figure.
    correlations_file : Union[Path, str]
        TSV with correlation rows.
    stage : str
        Stage to plot.
    save_formats : List[str], optional
        Figure formats, by default ["png", "pdf"].
    dependencies : Optional[List[Job]], optional
        Any additional dependencies for the job, by default None.

    Returns
    -------
    MultiFileGeneratingJob
        The job that generates the histogram figure.
    """
    outdir = Path(outdir)
    outfiles = [outdir / f"histogram_{stage}.{fmt}" for fmt in save_formats]

    def __dump(
        outfiles,
        outdir=outdir,
        correlations_file=correlations_file,
        stage=stage,
        save_formats=save_formats,
    ):
        write_correlation_histograms(
            outdir, correlations_file, stage, save_formats
        )

    if dependencies is None:
        dependencies = []

    return (
        MultiFileGeneratingJob(outfiles, __dump)
        .depends_on(
            [
                FunctionInvariant(
                    f"write_correlation_histograms_{stage}_{outdir}",
                    write_correlation_histograms,
                ),
                ParameterInvariant(
                    f"correlation_histogram_params_{stage}_{outdir}",
                    [str(correlations_file), stage, tuple(save_formats)],
                ),
            ]
        )
        .depends_on(dependencies)
    )
