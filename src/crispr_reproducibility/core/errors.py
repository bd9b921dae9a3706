"""
Exceptions raised by the reproducibility pipeline.

All per-experiment failures derive from ReproducibilityError so the
pipeline can catch them, record the experiment as excluded and carry on
with the remaining experiments.
"""


class ReproducibilityError(Exception):
    """Base class for per-experiment pipeline failures."""


class MalformedRecordError(ReproducibilityError):
    """A packed count field does not split into the expected tokens."""


class InsufficientReplicatesError(ReproducibilityError):
    """Fewer than two usable replicates remain for an experiment."""


class DegenerateCorrelationError(ReproducibilityError):
    """A correlation coefficient is undefined (e.g. zero variance)."""


class NormalizationFailureError(ReproducibilityError):
    """Scale factors cannot be computed for a count matrix."""


class ExperimentExcludedWarning(UserWarning):
    """Emitted whenever an experiment or a row is dropped from the analysis."""
