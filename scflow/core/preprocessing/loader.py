"""Input loading for the analysis.

Handles the count matrix (10x Genomics HDF5, cells x genes, compressed
sparse) and the GMT gene-set definition file.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import numpy as np
from scipy import sparse

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


@dataclass
class LoadResult:
    """Summary of a loaded count matrix.

    Attributes
    ----------
    path : str
        Source file
    n_cells : int
        Number of cells (barcodes)
    n_genes : int
        Number of genes
    total_counts : int
        Sum of all counts
    duplicated_genes : List[str]
        Gene symbols that were made unique
    """

    path: str
    n_cells: int = 0
    n_genes: int = 0
    total_counts: int = 0
    duplicated_genes: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for reporting."""
        return {
            "path": self.path,
            "n_cells": self.n_cells,
            "n_genes": self.n_genes,
            "total_counts": self.total_counts,
            "n_duplicated_genes": len(self.duplicated_genes),
        }


def load_count_matrix(path: PathLike, genome: Optional[str] = None) -> Any:
    """Load a 10x HDF5 count matrix into AnnData.

    Gene symbols are made unique and the raw counts are kept in
    ``layers["counts"]``.

    Parameters
    ----------
    path : PathLike
        Path to the ``.h5`` matrix
    genome : str, optional
        Genome to read from multi-genome files

    Returns
    -------
    AnnData
        Cells x genes AnnData with sparse counts in X

    Raises
    ------
    FileNotFoundError
        If the matrix file does not exist
    """
    import scanpy as sc

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Count matrix not found: {path}")

    logger.info("Loading count matrix from %s", path)
    adata = sc.read_10x_h5(path, genome=genome)

    duplicated = adata.var_names[adata.var_names.duplicated()].unique().tolist()
    if duplicated:
        logger.info("Making %d duplicated gene symbols unique", len(duplicated))
    adata.var_names_make_unique()

    if not sparse.issparse(adata.X):
        adata.X = sparse.csr_matrix(adata.X)
    adata.layers["counts"] = adata.X.copy()

    result = summarize_matrix(adata, path)
    result.duplicated_genes = duplicated
    logger.info(
        "Loaded %d cells x %d genes (%d total counts)",
        result.n_cells,
        result.n_genes,
        result.total_counts,
    )
    return adata


def summarize_matrix(adata: Any, path: PathLike = "") -> LoadResult:
    """Build a LoadResult for an AnnData object."""
    total = adata.X.sum() if adata.n_obs else 0
    return LoadResult(
        path=str(path),
        n_cells=int(adata.n_obs),
        n_genes=int(adata.n_vars),
        total_counts=int(np.rint(total)),
    )


def load_gene_sets(path: PathLike) -> Dict[str, List[str]]:
    """Load a GMT gene-set file.

    Parameters
    ----------
    path : PathLike
        Path to the tab-delimited GMT file

    Returns
    -------
    Dict[str, List[str]]
        Map of gene-set name to member genes

    Raises
    ------
    FileNotFoundError
        If the file does not exist
    ValueError
        If the file contains no gene sets
    """
    import gseapy as gp

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Gene set file not found: {path}")

    raw = gp.read_gmt(str(path))
    gene_sets = {
        str(name): [str(g) for g in genes if str(g)]
        for name, genes in raw.items()
    }
    gene_sets = {name: genes for name, genes in gene_sets.items() if genes}

    if not gene_sets:
        raise ValueError(f"No gene sets found in {path}")

    sizes = [len(genes) for genes in gene_sets.values()]
    logger.info(
        "Loaded %d gene sets from %s (size %d-%d)",
        len(gene_sets),
        path,
        min(sizes),
        max(sizes),
    )
    return gene_sets
