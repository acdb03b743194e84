"""Experiment metadata annotation.

Pipeline Stages
---------------
- annotate: Sample label, experiment record, parameters and gene lists
"""

from .metadata import (
    TRACKED_PACKAGES,
    annotate_experiment,
    package_versions,
)

__all__ = [
    "TRACKED_PACKAGES",
    "annotate_experiment",
    "package_versions",
]
