from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import Optional

import typer

from . import __version__
from .config import settings
from .services.io import read_summary, run_reproducibility_analysis

app = typer.Typer(
    help="Replicate reproducibility analysis of pooled CRISPR dropout screens"
)


@app.command()
def info() -> None:
    """Show basic environment info."""
    typer.echo(f"crispr-reproducibility {__version__}")
    typer.echo(f"Environment: {settings.environment}")
    for package in ("pandas", "numpy", "scipy", "matplotlib", "seaborn"):
        try:
            typer.echo(f"  {package} {version(package)}")
        except PackageNotFoundError:
            typer.echo(f"  {package} not installed")


@app.command()
def run(
    data_path: Optional[Path] = typer.Argument(
        None, help="Screen database export (CSV, optionally compressed)"
    ),
    output_dir: Path = typer.Option(settings.output_dir, "--output-dir", "-o"),
    seed: int = typer.Option(settings.seed, help="Seed for example selection"),
    n_examples: int = typer.Option(settings.n_examples, "--examples", "-k"),
    n_workers: int = typer.Option(settings.n_workers, "--workers", "-j"),
    plots: bool = typer.Option(True, help="Write histograms and scatter plots"),
) -> None:
    """Correlate replicates of all viability screens in the database."""
    data_path = data_path or settings.data_path
    if data_path is None:
        raise typer.BadParameter("No data path given and none configured")
    run_reproducibility_analysis(
        data_path=data_path,
        output_dir=output_dir,
        seed=seed,
        n_examples=n_examples,
        n_workers=n_workers,
        min_initial_count=settings.min_initial_count,
        plots=plots,
    )


@app.command()
def summary(
    output_dir: Path = typer.Argument(settings.output_dir),
) -> None:
    """Print the summary table of a finished analysis."""
    typer.echo(read_summary(output_dir).to_string(index=False))


def main() -> None:
    app()


if __name__ == "__main__":
    main()
