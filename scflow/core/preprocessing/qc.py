"""Cell-level quality control.

Provides per-cell QC metrics (library size, detected genes, mitochondrial
and ribosomal fractions) and threshold-based cell filtering.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

import numpy as np
import pandas as pd
from scipy import sparse

from ...config import OrganismProfile
from .config import QCConfig

logger = logging.getLogger(__name__)


# Reason columns for tracking removal causes
REASON_COLUMNS = [
    "low_genes",
    "high_genes",
    "low_counts",
    "high_counts",
    "high_percent_mt",
]

# Per-cell metric names exposed in adata.obs
QC_COLUMNS = {
    "total_counts": "nUMI",
    "n_genes_by_counts": "nGene",
    "pct_counts_mt": "percent_mt",
    "pct_counts_ribo": "percent_ribo",
}


@dataclass
class FilterResult:
    """Result from filtering cells and genes.

    Attributes
    ----------
    cells_before : int
        Cells before filtering
    cells_after : int
        Cells after filtering
    genes_before : int
        Genes before filtering
    genes_after : int
        Genes after filtering
    reason_counts : Dict[str, int]
        Cells failing each criterion (a cell can fail several)
    """

    cells_before: int = 0
    cells_after: int = 0
    genes_before: int = 0
    genes_after: int = 0
    reason_counts: Dict[str, int] = field(default_factory=dict)

    @property
    def cells_removed(self) -> int:
        return self.cells_before - self.cells_after

    @property
    def removal_fraction(self) -> float:
        if self.cells_before == 0:
            return 0.0
        return self.cells_removed / self.cells_before

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for reporting."""
        result = {
            "cells_before": self.cells_before,
            "cells_after": self.cells_after,
            "cells_removed": self.cells_removed,
            "removal_fraction": round(self.removal_fraction, 4),
            "genes_before": self.genes_before,
            "genes_after": self.genes_after,
        }
        for reason in REASON_COLUMNS:
            result[f"removed_{reason}"] = self.reason_counts.get(reason, 0)
        return result


def annotate_gene_groups(adata: Any, organism: OrganismProfile) -> Dict[str, int]:
    """Flag mitochondrial and ribosomal genes in ``adata.var``.

    Parameters
    ----------
    adata : AnnData
        Input AnnData (modified in place)
    organism : OrganismProfile
        Organism naming conventions

    Returns
    -------
    Dict[str, int]
        Number of genes flagged per group
    """
    names = adata.var_names.astype(str)
    adata.var["mt"] = names.str.startswith(organism.mt_prefix)
    adata.var["ribo"] = names.str.startswith(tuple(organism.ribo_prefixes))

    counts = {"mt": int(adata.var["mt"].sum()), "ribo": int(adata.var["ribo"].sum())}
    if counts["mt"] == 0:
        logger.warning(
            "No mitochondrial genes found with prefix '%s'", organism.mt_prefix
        )
    logger.info(
        "Flagged %d mitochondrial and %d ribosomal genes", counts["mt"], counts["ribo"]
    )
    return counts


def compute_qc_metrics(adata: Any, layer: Optional[str] = "counts") -> None:
    """Compute per-cell QC metrics into ``adata.obs``.

    Writes ``nUMI``, ``nGene``, ``percent_mt`` and ``percent_ribo``.
    Requires ``var["mt"]`` and ``var["ribo"]`` (see annotate_gene_groups).

    Parameters
    ----------
    adata : AnnData
        Input AnnData (modified in place)
    layer : str, optional
        Layer holding raw counts. Falls back to X if missing.
    """
    import scanpy as sc

    if layer is not None and layer not in adata.layers:
        layer = None

    metrics, _ = sc.pp.calculate_qc_metrics(
        adata,
        qc_vars=["mt", "ribo"],
        percent_top=None,
        log1p=False,
        layer=layer,
        inplace=False,
    )
    for source, target in QC_COLUMNS.items():
        adata.obs[target] = metrics[source].to_numpy()


class CellFilter:
    """Threshold-based cell and gene filter.

    Parameters
    ----------
    config : QCConfig
        QC configuration

    Example
    -------
    >>> from scflow.core.preprocessing import CellFilter, QCConfig
    >>> cell_filter = CellFilter(QCConfig(min_genes=200, max_percent_mt=10))
    >>> adata, result = cell_filter.filter(adata)
    """

    def __init__(self, config: Optional[QCConfig] = None):
        self.config = config or QCConfig()

    def _genes_per_cell_mask(self, adata: Any) -> np.ndarray:
        counts = adata.layers["counts"] if "counts" in adata.layers else adata.X
        if sparse.issparse(counts):
            n_cells = np.asarray((counts > 0).sum(axis=0)).ravel()
        else:
            n_cells = (np.asarray(counts) > 0).sum(axis=0)
        return n_cells >= self.config.min_cells_per_gene

    def reason_masks(self, obs: pd.DataFrame) -> Dict[str, np.ndarray]:
        """Compute a removal mask per criterion.

        Parameters
        ----------
        obs : pd.DataFrame
            Cell metadata with nGene, nUMI, percent_mt columns

        Returns
        -------
        Dict[str, np.ndarray]
            Map of reason to boolean mask (True = remove)
        """
        cfg = self.config
        n_cells = len(obs)
        none = np.zeros(n_cells, dtype=bool)
        masks = {reason: none.copy() for reason in REASON_COLUMNS}

        if cfg.min_genes is not None:
            masks["low_genes"] = obs["nGene"].to_numpy() < cfg.min_genes
        if cfg.max_genes is not None:
            masks["high_genes"] = obs["nGene"].to_numpy() > cfg.max_genes
        if cfg.min_counts is not None:
            masks["low_counts"] = obs["nUMI"].to_numpy() < cfg.min_counts
        if cfg.max_counts is not None:
            masks["high_counts"] = obs["nUMI"].to_numpy() > cfg.max_counts
        if cfg.max_percent_mt is not None:
            masks["high_percent_mt"] = obs["percent_mt"].to_numpy() > cfg.max_percent_mt

        return masks

    def filter(self, adata: Any) -> Tuple[Any, FilterResult]:
        """Filter genes, then cells, based on QC criteria.

        Gene detection is evaluated first so that per-cell metrics reflect
        the genes kept in the analysis.

        Parameters
        ----------
        adata : AnnData
            Input AnnData with raw counts; var must carry mt/ribo flags

        Returns
        -------
        Tuple[AnnData, FilterResult]
            Filtered copy and filtering summary

        Raises
        ------
        ValueError
            If no cells or no genes pass the filters
        """
        result = FilterResult(cells_before=adata.n_obs, genes_before=adata.n_vars)

        keep_genes = self._genes_per_cell_mask(adata)
        if not keep_genes.any():
            raise ValueError(
                f"No genes detected in at least {self.config.min_cells_per_gene} cells"
            )
        if not keep_genes.all():
            logger.info(
                "Dropping %d genes detected in < %d cells",
                int((~keep_genes).sum()),
                self.config.min_cells_per_gene,
            )
            adata = adata[:, keep_genes].copy()

        compute_qc_metrics(adata)

        masks = self.reason_masks(adata.obs)
        remove = np.zeros(adata.n_obs, dtype=bool)
        for reason, mask in masks.items():
            result.reason_counts[reason] = int(mask.sum())
            remove |= mask

        if remove.all():
            raise ValueError(
                "QC filters removed all cells; relax the qc thresholds."
            )

        if remove.any():
            adata = adata[~remove].copy()

        result.cells_after = adata.n_obs
        result.genes_after = adata.n_vars

        logger.info(
            "Cell filtering: %d -> %d cells (%.1f%% removed), %d -> %d genes",
            result.cells_before,
            result.cells_after,
            100 * result.removal_fraction,
            result.genes_before,
            result.genes_after,
        )
        for reason, count in result.reason_counts.items():
            if count:
                logger.debug("  %s: %d cells", reason, count)

        return adata, result
