"""Dimensionality reduction and clustering engine.

Provides the core pipeline: PCA -> neighbors -> Leiden.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional
import logging

import pandas as pd

from .config import StageClusterConfig


@dataclass
class ClusteringResult:
    """Result from clustering operation.

    Attributes
    ----------
    n_clusters : int
        Number of clusters found
    cluster_key : str
        Key in adata.obs containing cluster assignments
    cluster_sizes : Dict[str, int]
        Map of cluster ID to cell count
    n_pcs_used : int
        Principal components used for the neighborhood graph
    """

    n_clusters: int = 0
    cluster_key: str = "cluster"
    cluster_sizes: Dict[str, int] = field(default_factory=dict)
    n_pcs_used: int = 0


class ClusteringEngine:
    """PCA and Leiden clustering on the scaled expression matrix.

    Parameters
    ----------
    config : StageClusterConfig, optional
        Reduction and clustering configuration. If None, uses defaults.
    logger : logging.Logger, optional
        Logger instance. If None, creates default logger.

    Example
    -------
    >>> from scflow.core.clustering import ClusteringEngine, StageClusterConfig
    >>> engine = ClusteringEngine(StageClusterConfig())
    >>> engine.run_pca(adata)
    >>> result = engine.run_clustering(adata)
    """

    def __init__(
        self,
        config: Optional[StageClusterConfig] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config or StageClusterConfig()
        self.logger = logger or logging.getLogger(__name__)

    @staticmethod
    def cap_components(n_requested: int, adata: Any) -> int:
        """Cap a component count by the data shape."""
        return max(1, min(n_requested, adata.n_vars - 1, adata.n_obs - 1))

    def run_pca(self, adata: Any, n_pcs: Optional[int] = None) -> int:
        """Compute principal components into ``adata.obsm["X_pca"]``.

        Parameters
        ----------
        adata : AnnData
            Scaled AnnData (modified in place)
        n_pcs : int, optional
            Number of components. Uses config default if None.

        Returns
        -------
        int
            Number of components actually computed
        """
        import scanpy as sc

        cfg = self.config.reduction
        n_pcs = n_pcs if n_pcs is not None else cfg.n_pcs
        use_pcs = self.cap_components(n_pcs, adata)
        if use_pcs < n_pcs:
            self.logger.warning(
                "Requested %d PCs but data shape allows %d", n_pcs, use_pcs
            )

        sc.tl.pca(
            adata,
            n_comps=use_pcs,
            svd_solver=cfg.svd_solver,
            random_state=cfg.random_seed,
        )
        variance = adata.uns["pca"]["variance_ratio"]
        self.logger.info(
            "Computed %d PCs (%.1f%% variance explained)",
            use_pcs,
            100 * float(variance.sum()),
        )
        return use_pcs

    def run_clustering(
        self,
        adata: Any,
        cluster_key: Optional[str] = None,
        n_pcs: Optional[int] = None,
        neighbors_k: Optional[int] = None,
        resolution: Optional[float] = None,
        random_seed: Optional[int] = None,
    ) -> ClusteringResult:
        """Build the neighborhood graph and run Leiden clustering.

        Parameters
        ----------
        adata : AnnData
            AnnData with ``obsm["X_pca"]`` (modified in place)
        cluster_key : str, optional
            Key in adata.obs to store cluster assignments
        n_pcs : int, optional
            Number of principal components. Uses config default if None.
        neighbors_k : int, optional
            k for neighborhood graph. Uses config default if None.
        resolution : float, optional
            Leiden resolution. Uses config default if None.
        random_seed : int, optional
            Random seed for reproducibility. Uses config default if None.

        Returns
        -------
        ClusteringResult
            Clustering result with cluster statistics

        Raises
        ------
        KeyError
            If PCA has not been computed
        """
        import scanpy as sc

        if "X_pca" not in adata.obsm:
            raise KeyError("X_pca not found in adata.obsm; run PCA first")

        cfg = self.config.clustering
        cluster_key = cluster_key if cluster_key is not None else cfg.cluster_key
        n_pcs = n_pcs if n_pcs is not None else cfg.n_pcs
        neighbors_k = neighbors_k if neighbors_k is not None else cfg.neighbors_k
        resolution = resolution if resolution is not None else cfg.resolution
        random_seed = random_seed if random_seed is not None else cfg.random_seed

        use_pcs = min(n_pcs, adata.obsm["X_pca"].shape[1])
        neighbors_k = min(neighbors_k, adata.n_obs - 1)

        self.logger.info(
            "Running clustering: n_pcs=%d, neighbors_k=%d, resolution=%.3f",
            use_pcs,
            neighbors_k,
            resolution,
        )

        sc.pp.neighbors(
            adata, n_neighbors=neighbors_k, n_pcs=use_pcs, random_state=random_seed
        )
        sc.tl.leiden(
            adata,
            resolution=resolution,
            random_state=random_seed,
            key_added=cluster_key,
            flavor="igraph",
            n_iterations=2,
            directed=False,
        )

        labels = adata.obs[cluster_key].astype(str)
        categories = sorted(labels.unique(), key=_cluster_sort_key)
        adata.obs[cluster_key] = pd.Categorical(labels, categories=categories)

        result = ClusteringResult(cluster_key=cluster_key, n_pcs_used=use_pcs)
        result.n_clusters = len(categories)
        result.cluster_sizes = {
            str(k): int(v)
            for k, v in adata.obs[cluster_key].value_counts(sort=False).items()
        }

        self.logger.info(
            "Computed Leiden clustering with %d clusters", result.n_clusters
        )
        return result


def _cluster_sort_key(label: str):
    return (0, int(label), label) if label.isdigit() else (1, 0, label)
