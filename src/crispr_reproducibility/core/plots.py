from typing import Dict, Optional, Sequence, Tuple

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns  # type: ignore
from matplotlib.figure import Figure  # type: ignore

from .correlation import METHODS, correlate_pair
from .errors import DegenerateCorrelationError

STAGE_LABELS = {
    "raw": "raw counts",
    "normalized": "TMM-normalized counts",
    "fold_change": "log2 fold change",
}


def plot_correlation_histograms(
    correlations: pd.DataFrame,
    stage: str,
    methods: Sequence[str] = METHODS,
    bins: int = 30,
    figsize: Tuple[float, float] = (10, 4),
    color: str = "steelblue",
) -> Tuple[Figure, np.ndarray]:
    """
    Histogram of replicate correlation coefficients, one panel per method.

    Parameters
    ----------
    correlations : pd.DataFrame
        Correlation rows with columns stage, method, coefficient and
        degenerate.
    stage : str
        Stage to plot ("raw", "normalized" or "fold_change").
    methods : sequence of str
        Methods to plot, one panel each.
    bins : int
        Number of histogram bins on [-1, 1].
    figsize : (float, float)
        Figure size.
    color : str
        Bar color.

    Returns
    -------
    tuple
        (figure, axes)
    """
    df = correlations[
        (correlations["stage"] == stage) & ~correlations["degenerate"].astype(bool)
    ]
    fig, axes = plt.subplots(1, len(methods), figsize=figsize, squeeze=False)
    axes = axes[0]
    for ax, method in zip(axes, methods):
        values = df.loc[df["method"] == method, "coefficient"].astype(float)
        if len(values) > 0:
            sns.histplot(
                values, bins=bins, binrange=(-1, 1), color=color, ax=ax
            )
            ax.axvline(
                values.mean(),
                color="black",
                linestyle="--",
                label=f"mean = {values.mean():.3f}",
            )
            ax.axvline(
                values.median(),
                color="firebrick",
                linestyle=":",
                label=f"median = {values.median():.3f}",
            )
            ax.legend(loc="upper left", fontsize=8)
        else:
            ax.text(0.5, 0.5, "no data", ha="center", va="center")
        ax.set_xlim(-1, 1)
        ax.set_xlabel(f"{method.capitalize()} correlation")
        ax.set_ylabel("Replicate pairs")
        ax.set_title(f"{method.capitalize()} (n = {len(values)})")
    fig.suptitle(
        f"Replicate correlation, {STAGE_LABELS.get(stage, stage)}"
    )
    fig.tight_layout()
    return fig, axes


def plot_replicate_scatter(
    matrix: pd.DataFrame,
    sample_a: str,
    sample_b: str,
    ax=None,
    title: Optional[str] = None,
    log_scale: bool = False,
    point_size: float = 6,
    alpha: float = 0.4,
):
    """
    Scatter plot of two replicates with both coefficients in the title.

    Returns
    -------
    matplotlib.axes.Axes
    """
    if ax is None:
        _, ax = plt.subplots(figsize=(5, 5))
    pair = matrix[[sample_a, sample_b]].dropna()
    x = pair[sample_a]
    y = pair[sample_b]
    if log_scale:
        x = np.log10(x + 1)
        y = np.log10(y + 1)
    ax.scatter(x, y, s=point_size, alpha=alpha, edgecolors="none")

    coefficients = []
    for method in METHODS:
        try:
            r = correlate_pair(matrix[sample_a], matrix[sample_b], method)
            coefficients.append(f"{method[0].upper()} = {r:.3f}")
        except DegenerateCorrelationError:
            coefficients.append(f"{method[0].upper()} = n/a")
    label = ", ".join(coefficients)
    ax.set_title(f"{title}\n{label}" if title else label, fontsize=9)
    suffix = " (log10 + 1)" if log_scale else ""
    ax.set_xlabel(f"{sample_a}{suffix}")
    ax.set_ylabel(f"{sample_b}{suffix}")
    return ax


def plot_example_scatter_grid(
    matrices: Dict[str, pd.DataFrame],
    stage: str,
    max_pairs: int = 3,
    panel_size: float = 3.5,
) -> Figure:
    """
    Grid of replicate scatter plots, one row per example experiment.

    Each row holds up to ``max_pairs`` replicate pairs of the experiment
    in column order. Count stages are drawn on log10 scale.
    """
    log_scale = stage in ("raw", "normalized")
    n_rows = max(1, len(matrices))
    fig, axes = plt.subplots(
        n_rows,
        max_pairs,
        figsize=(panel_size * max_pairs, panel_size * n_rows),
        squeeze=False,
    )
    for row, (experiment_id, matrix) in enumerate(matrices.items()):
        cols = list(matrix.columns)
        pairs = [
            (cols[i], cols[j])
            for i in range(len(cols))
            for j in range(i + 1, len(cols))
        ][:max_pairs]
        for col in range(max_pairs):
            ax = axes[row, col]
            if col >= len(pairs):
                ax.axis("off")
                continue
            sample_a, sample_b = pairs[col]
            plot_replicate_scatter(
                matrix,
                sample_a,
                sample_b,
                ax=ax,
                title=experiment_id,
                log_scale=log_scale,
            )
    if len(matrices) == 0:
        for ax in axes.ravel():
            ax.axis("off")
    fig.suptitle(f"Example replicates, {STAGE_LABELS.get(stage, stage)}")
    fig.tight_layout()
    return fig


def plot_stage_summary(
    summary: pd.DataFrame,
    statistic: str = "median",
    figsize: Tuple[float, float] = (6, 4),
) -> Figure:
    """Bar chart of the mean or median coefficient per stage and method."""
    fig, ax = plt.subplots(figsize=figsize)
    if len(summary) > 0:
        sns.barplot(
            data=summary, x="stage", y=statistic, hue="method", ax=ax
        )
    ax.set_ylim(min(0, summary[statistic].min() if len(summary) else 0), 1)
    ax.set_xlabel("")
    ax.set_ylabel(f"{statistic.capitalize()} replicate correlation")
    fig.tight_layout()
    return fig
