import warnings
from pathlib import Path
from typing import Dict, List, Optional, Union

import pandas as pd
from pandas import DataFrame

from crispr_reproducibility.core.errors import (
    ExperimentExcludedWarning,
    MalformedRecordError,
)
from crispr_reproducibility.core.grouping import (
    group_experiments,
    summarize_experiments,
)
from crispr_reproducibility.core.pipeline import STAGES, run_pipeline
from crispr_reproducibility.core.records import (
    ObservationRecord,
    make_experiment_id,
    make_guide_id,
    parse_packed_counts,
)
from crispr_reproducibility.models.report import (
    ReportConfig,
    ReproducibilityReport,
)

SCREEN_COLUMNS = {
    "symbol": "symbol",
    "sequence": "sequence",
    "study": "pubmed",
    "sample": "cellline",
    "condition": "condition",
    "initial": "rc_initial",
    "final": "rc_final",
}


def save_figure(f, folder, name, bbox_inches="tight", formats=None):
    folder = Path(folder)
    folder.mkdir(exist_ok=True, parents=True)
    if formats is None:
        formats = [".png", ".svg", ".pdf"]
    paths = []
    for suffix in formats:
        suffix = suffix if suffix.startswith(".") else f".{suffix}"
        path = folder / (name + suffix)
        f.savefig(path, bbox_inches=bbox_inches)
        paths.append(path)
    return paths


def read_dataframe(path: Union[str, Path], **kwargs) -> DataFrame:
    """
    Read a tabular file into a pandas DataFrame based on file extension.

    Rules:
    - .csv, .csv.gz, .csv.bz2, .csv.zip -> read as CSV
    - .tsv, .txt (optionally compressed) -> read as TSV
    - .xls/.xlsx  -> read as Excel
    - other       -> try TSV, raise error if that fails

    Additional keyword arguments are forwarded to the pandas reader.
    """
    path = Path(path)

    if not path.exists():
        raise FileNotFoundError(f"File does not exist: {path}")

    suffixes = [s.lower() for s in path.suffixes]
    if suffixes and suffixes[-1] in {".gz", ".bz2", ".zip", ".xz"}:
        suffixes = suffixes[:-1]
    suffix = suffixes[-1] if suffixes else ""

    try:
        if suffix == ".csv":
            return pd.read_csv(path, **kwargs)

        if suffix in {".tsv", ".txt"}:
            return pd.read_csv(path, sep="\t", **kwargs)

        if suffix in {".xls", ".xlsx"}:
            return pd.read_excel(path, **kwargs)

        # Fallback: try TSV for unknown extensions
        try:
            return pd.read_csv(path, sep="\t", **kwargs)
        except Exception as exc:
            raise ValueError(
                f"Unsupported file extension '{suffix}'. "
                "Tried to read as TSV but failed."
            ) from exc

    except Exception as exc:
        raise RuntimeError(f"Failed to read file '{path}': {exc}") from exc


def read_screen_database(
    path: Union[str, Path],
    columns: Optional[Dict[str, str]] = None,
) -> DataFrame:
    """
    Load the screen database export.

    Only the columns needed for the analysis are read, all as strings so
    that study ids and packed count fields are not reinterpreted.

    Parameters
    ----------
    path : str or Path
        CSV export, optionally compressed (.gz, .bz2, .zip, .xz).
    columns : dict, optional
        Mapping of logical field -> column name, defaults to
        SCREEN_COLUMNS.

    Returns
    -------
    DataFrame
        The selected columns.

    Raises
    ------
    FileNotFoundError, RuntimeError
        If the file is missing or cannot be parsed.
    ValueError
        If required columns are missing.
    """
    columns = {**SCREEN_COLUMNS, **(columns or {})}
    required = list(columns.values())
    df = read_dataframe(
        path,
        usecols=lambda c: c in required,
        dtype=str,
        keep_default_na=False,
        na_values=[""],
    )
    missing = [col for col in required if col not in df.columns]
    if missing:
        raise ValueError(
            f"Screen database is missing required columns: {missing}. "
            f"Found: {list(df.columns)}"
        )
    return df


def load_records(
    df: DataFrame,
    columns: Optional[Dict[str, str]] = None,
) -> List[ObservationRecord]:
    """
    Convert database rows into observation records.

    Packed count fields are parsed here; rows with unparsable counts are
    dropped with an ExperimentExcludedWarning.
    """
    columns = {**SCREEN_COLUMNS, **(columns or {})}
    records = []
    n_malformed = 0
    for row in df.to_dict(orient="records"):
        study_id = str(row[columns["study"]])
        sample_id = str(row[columns["sample"]])
        condition = str(row[columns["condition"]])
        try:
            initial = parse_packed_counts(row[columns["initial"]])
            final = parse_packed_counts(row[columns["final"]])
        except MalformedRecordError as exc:
            n_malformed += 1
            warnings.warn(
                f"Dropping malformed record: {exc}", ExperimentExcludedWarning
            )
            continue
        records.append(
            ObservationRecord(
                guide_id=make_guide_id(
                    row[columns["sequence"]], row[columns["symbol"]]
                ),
                experiment_id=make_experiment_id(study_id, sample_id, condition),
                study_id=study_id,
                sample_id=sample_id,
                condition=condition,
                initial_counts=initial,
                final_counts=final,
            )
        )
    if n_malformed:
        print(f"  Dropped {n_malformed} malformed record(s)")
    return records


def write_report(
    report: ReproducibilityReport,
    output_dir: Union[Path, str],
    experiments: Optional[DataFrame] = None,
) -> Dict[str, Path]:
    """
    Write the report tables as TSV files.

    Returns
    -------
    dict
        Mapping table name -> written path.
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(exist_ok=True, parents=True)
    paths = {}
    for stage in STAGES:
        path = output_dir / f"correlations_{stage}.tsv"
        report.stage_results(stage).to_csv(path, sep="\t", index=False)
        paths[f"correlations_{stage}"] = path

    paths["summary"] = output_dir / "summary.tsv"
    report.summary.to_csv(paths["summary"], sep="\t", index=False)
    paths["excluded"] = output_dir / "excluded.tsv"
    report.excluded.to_csv(paths["excluded"], sep="\t", index=False)

    examples = report.matched_examples()
    paths["examples"] = output_dir / "examples.tsv"
    pd.DataFrame(
        [
            {"stage": stage, "rank": i + 1, "experiment": experiment_id}
            for stage, ids in examples.items()
            for i, experiment_id in enumerate(ids)
        ],
        columns=["stage", "rank", "experiment"],
    ).to_csv(paths["examples"], sep="\t", index=False)

    if experiments is not None:
        paths["experiments"] = output_dir / "experiments.tsv"
        experiments.to_csv(paths["experiments"], sep="\t", index=False)
    return paths


def read_summary(output_dir: Union[Path, str]) -> DataFrame:
    """Read the summary table of a finished analysis."""
    return read_dataframe(Path(output_dir) / "summary.tsv")


def run_reproducibility_analysis(
    data_path: Union[Path, str],
    output_dir: Union[Path, str],
    seed: int = 42,
    n_examples: int = 3,
    n_workers: int = 1,
    min_initial_count: float = 30,
    plots: bool = True,
    save_formats: Optional[List[str]] = None,
) -> Dict:
    """
    Run the complete analysis from database export to tables and plots.

    Parameters
    ----------
    data_path : Path or str
        Screen database export (CSV, optionally compressed).
    output_dir : Path or str
        Output directory for tables and plots.
    seed : int
        Seed for the example experiment selection.
    n_examples : int
        Number of example experiments for the scatter plots.
    n_workers : int
        Worker processes for the per-experiment analysis.
    min_initial_count : float
        Baseline count filter of the fold change stage.
    plots : bool
        Whether to write the figures.
    save_formats : list, optional
        Figure formats, defaults to png and pdf.

    Returns
    -------
    dict
        {"report": ReproducibilityReport, "tables": {...}, "plots": {...}}
    """
    # imported here, plotting pulls in matplotlib
    from crispr_reproducibility.services.plots_io import write_report_plots

    output_dir = Path(output_dir)
    output_dir.mkdir(exist_ok=True, parents=True)

    print(f"Loading screen database from {data_path}...")
    records = load_records(read_screen_database(data_path))
    print(f"  Loaded {len(records)} records")

    print("Grouping records into experiments...")
    tables, excluded_grouping = group_experiments(records)
    print(
        f"  {len(tables)} experiments kept, "
        f"{len(excluded_grouping)} excluded"
    )

    print(f"Correlating replicates ({n_workers} worker(s))...")
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", ExperimentExcludedWarning)
        correlations, excluded_stages = run_pipeline(
            tables, n_workers=n_workers, min_initial_count=min_initial_count
        )
    excluded = pd.concat(
        [excluded_grouping, excluded_stages], ignore_index=True
    )
    report = ReproducibilityReport.assemble(
        correlations,
        excluded,
        ReportConfig(seed=seed, n_examples=n_examples),
    )
    for row in report.summary.itertuples():
        print(
            f"  {row.stage:<12} {row.method:<9} "
            f"mean = {row.mean:.3f}, median = {row.median:.3f} "
            f"({row.n_pairs} pairs)"
        )

    table_paths = write_report(
        report, output_dir, experiments=summarize_experiments(tables)
    )
    print(f"Saved tables to {output_dir}")

    plot_paths = {}
    if plots:
        plot_paths = write_report_plots(
            report,
            tables,
            output_dir / "plots",
            min_initial_count=min_initial_count,
            save_formats=save_formats,
        )
        print(f"Saved plots to {output_dir / 'plots'}")

    return {"report": report, "tables": table_paths, "plots": plot_paths}
