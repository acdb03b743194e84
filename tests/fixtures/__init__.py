"""Test fixtures for scflow.

Provides mock data generators and test utilities.
"""

from .mock_adata import (
    MT_GENES,
    RIBO_GENES,
    create_count_adata,
    create_gene_names,
    create_processed_adata,
    create_trajectory_adata,
    group_marker_genes,
    write_gmt,
)

__all__ = [
    "MT_GENES",
    "RIBO_GENES",
    "create_count_adata",
    "create_gene_names",
    "create_processed_adata",
    "create_trajectory_adata",
    "group_marker_genes",
    "write_gmt",
]
