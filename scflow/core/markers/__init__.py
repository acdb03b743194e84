"""Marker-gene and expression summary module.

Pipeline Stages
---------------
- qc_summary: Most expressed genes and QC summaries per sample and cluster
- markers: One-vs-rest marker genes per sample and cluster

Example Usage
-------------
>>> from scflow.core.markers import MarkerFinder, MarkerConfig, summarize_groups
>>> summarize_groups(adata, ["sample", "cluster"], top_n=100)
>>> results = MarkerFinder(MarkerConfig()).find_all(adata)
"""

__version__ = "1.0.0"

from .config import MarkerConfig

from .de import (
    MARKER_COLUMNS,
    MarkerFinder,
    MarkerResult,
    top_marker_genes,
)

from .expression import (
    QC_SUMMARY_METRICS,
    most_expressed_genes,
    qc_summary,
    summarize_groups,
)

__all__ = [
    "__version__",
    "MarkerConfig",
    "MARKER_COLUMNS",
    "MarkerFinder",
    "MarkerResult",
    "top_marker_genes",
    "QC_SUMMARY_METRICS",
    "most_expressed_genes",
    "qc_summary",
    "summarize_groups",
]
