"""scflow: Single-cell RNA-seq analysis from count matrix to viewer export.

This package provides tools for:
- Loading 10x count matrices and GMT gene-set files
- Cell filtering, normalization and scaling
- PCA, Leiden clustering and a cluster tree
- Cell-cycle scoring and 2D/3D t-SNE and UMAP embeddings
- Marker genes, Enrichr annotation and local gene-set scoring
- Trajectory inference (PAGA + diffusion pseudotime)
- Export of a viewer exchange file and a full analysis snapshot

Analysis parameters are loaded from a single YAML configuration file.

Example usage:
    >>> from scflow.pipeline import AnalysisConfig, PipelineExecutor, RunContext
    >>>
    >>> config = AnalysisConfig.from_yaml("analysis.yaml")
    >>> executor = PipelineExecutor(RunContext.from_config(config))
    >>> adata = executor.run()
"""

__version__ = "0.1.0"
