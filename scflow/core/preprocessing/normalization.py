"""Library-size normalization, feature selection and scaling.

Log-normalized expression of all genes is frozen into ``adata.raw``
before the matrix is restricted to highly variable genes and scaled.
Restricting genes also restricts ``layers["counts"]``, so the counts of
every gene in raw are kept in ``obsm["raw_counts"]`` (columns follow
``adata.raw.var_names``).
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .config import NormalizationConfig

logger = logging.getLogger(__name__)


@dataclass
class NormalizationResult:
    """Result from normalizing the dataset.

    Attributes
    ----------
    target_sum : float
        Library size after normalization
    n_genes_total : int
        Genes available in adata.raw
    highly_variable_genes : List[str]
        Genes kept for scaling and PCA
    """

    target_sum: float = 1e4
    n_genes_total: int = 0
    highly_variable_genes: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for reporting."""
        return {
            "target_sum": self.target_sum,
            "n_genes_total": self.n_genes_total,
            "n_highly_variable": len(self.highly_variable_genes),
        }


class Normalizer:
    """Normalize, select variable genes and scale.

    Parameters
    ----------
    config : NormalizationConfig
        Normalization configuration

    Example
    -------
    >>> from scflow.core.preprocessing import Normalizer, NormalizationConfig
    >>> normalizer = Normalizer(NormalizationConfig(n_top_genes=3000))
    >>> adata, result = normalizer.normalize(adata)
    """

    def __init__(self, config: Optional[NormalizationConfig] = None):
        self.config = config or NormalizationConfig()

    def normalize(self, adata: Any) -> Tuple[Any, NormalizationResult]:
        """Run the normalization sequence.

        normalize_total -> log1p -> freeze raw -> highly_variable_genes ->
        subset to HVGs -> scale.

        Parameters
        ----------
        adata : AnnData
            AnnData with raw counts in X

        Returns
        -------
        Tuple[AnnData, NormalizationResult]
            HVG-restricted, scaled AnnData and normalization summary
        """
        import scanpy as sc

        cfg = self.config
        logger.info(
            "Normalizing to %.0f counts per cell, log1p, %d HVGs (%s)",
            cfg.target_sum,
            cfg.n_top_genes,
            cfg.hvg_flavor,
        )

        counts = adata.layers["counts"] if "counts" in adata.layers else adata.X.copy()

        sc.pp.normalize_total(adata, target_sum=cfg.target_sum)
        sc.pp.log1p(adata)
        adata.raw = adata

        n_top = min(cfg.n_top_genes, adata.n_vars)
        if cfg.hvg_flavor == "seurat_v3":
            sc.pp.highly_variable_genes(
                adata, n_top_genes=n_top, flavor=cfg.hvg_flavor, layer="counts"
            )
        else:
            sc.pp.highly_variable_genes(adata, n_top_genes=n_top, flavor=cfg.hvg_flavor)

        hvgs = adata.var_names[adata.var["highly_variable"]].tolist()
        result = NormalizationResult(
            target_sum=cfg.target_sum,
            n_genes_total=adata.raw.n_vars,
            highly_variable_genes=hvgs,
        )

        adata = adata[:, adata.var["highly_variable"]].copy()
        adata.obsm["raw_counts"] = counts
        sc.pp.scale(adata, max_value=cfg.scale_max)
        adata.uns["scale_max"] = cfg.scale_max

        logger.info(
            "Scaled %d highly variable genes (clip=%.1f); raw holds %d genes",
            adata.n_vars,
            cfg.scale_max,
            result.n_genes_total,
        )
        return adata, result
