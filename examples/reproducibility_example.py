"""
Example: Replicate reproducibility of all viability screens in a
GenomeCRISPR database export.

The analysis correlates the final-timepoint replicates of every screen at
three stages (raw counts, TMM-normalized counts, log2 fold changes vs. the
first initial replicate) and writes tables, histograms and example scatter
plots.
"""

import pypipegraph2 as ppg
from pathlib import Path
from crispr_reproducibility.jobs.analysis_jobs import (
    reproducibility_analysis_job,
    correlation_histogram_job,
)

# Initialize PyPipeGraph
ppg.new()

###############################################################################
# Configuration
###############################################################################

database = Path("incoming/GenomeCRISPR_full05112017.csv.gz")
output_dir = Path("results/reproducibility")

###############################################################################
# Jobs
###############################################################################

analysis = reproducibility_analysis_job(
    data_path=database,
    output_dir=output_dir,
    seed=42,
    n_examples=4,
    n_workers=8,
    save_formats=["png", "pdf"],
)

# the fold change histograms again, as svg for the figure panel
correlation_histogram_job(
    outdir=output_dir / "figure_panels",
    correlations_file=output_dir / "correlations_fold_change.tsv",
    stage="fold_change",
    save_formats=["svg"],
    dependencies=[analysis],
)

ppg.run()
