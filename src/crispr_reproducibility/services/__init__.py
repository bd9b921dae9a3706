"""
Service layer for the reproducibility analysis.

This subpackage contains code that interacts with the outside world:
the screen database export, result tables and figures.
"""
