"""Preprocessing module for data loading and quality control.

Provides functions for loading the count matrix and gene sets,
cell-level QC filtering, normalization and scaling.

Pipeline Stages
---------------
- load: Count matrix and gene-set loading
- filter: QC metrics and cell/gene filtering
- normalize: Library-size normalization, HVG selection, scaling

Example Usage
-------------
>>> from scflow.core.preprocessing import (
...     load_count_matrix, load_gene_sets,
...     CellFilter, QCConfig,
...     Normalizer, NormalizationConfig,
... )
>>> adata = load_count_matrix("filtered_feature_bc_matrix.h5")
>>> adata, qc_result = CellFilter(QCConfig(min_genes=200)).filter(adata)
>>> adata, norm_result = Normalizer().normalize(adata)
"""

__version__ = "1.0.0"

# Configuration classes
from .config import (
    QCConfig,
    NormalizationConfig,
    PreprocessingConfig,
)

# Loading
from .loader import (
    LoadResult,
    load_count_matrix,
    load_gene_sets,
    summarize_matrix,
)

# Cell QC
from .qc import (
    CellFilter,
    FilterResult,
    QC_COLUMNS,
    REASON_COLUMNS,
    annotate_gene_groups,
    compute_qc_metrics,
)

# Normalization
from .normalization import (
    Normalizer,
    NormalizationResult,
)

__all__ = [
    # Version
    "__version__",
    # Config
    "QCConfig",
    "NormalizationConfig",
    "PreprocessingConfig",
    # Loader
    "LoadResult",
    "load_count_matrix",
    "load_gene_sets",
    "summarize_matrix",
    # QC
    "CellFilter",
    "FilterResult",
    "QC_COLUMNS",
    "REASON_COLUMNS",
    "annotate_gene_groups",
    "compute_qc_metrics",
    # Normalization
    "Normalizer",
    "NormalizationResult",
]
