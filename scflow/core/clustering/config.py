"""Configuration classes for dimensionality reduction and clustering."""

from dataclasses import dataclass, field
from typing import Any, Dict, List


@dataclass
class ReductionConfig:
    """Configuration for PCA.

    Attributes
    ----------
    n_pcs : int
        Number of principal components to compute
    svd_solver : str
        Solver passed to ``scanpy.tl.pca``
    random_seed : int
        Random seed for reproducibility
    """

    n_pcs: int = 50
    svd_solver: str = "arpack"
    random_seed: int = 1337


@dataclass
class ClusteringConfig:
    """Configuration for graph-based clustering.

    Attributes
    ----------
    n_pcs : int
        Number of principal components used for the neighborhood graph
    neighbors_k : int
        k for the neighborhood graph
    resolution : float
        Leiden resolution
    random_seed : int
        Random seed for reproducibility
    cluster_key : str
        Column in adata.obs holding cluster labels
    tree_linkage : str
        Linkage method for the cluster tree
    """

    n_pcs: int = 30
    neighbors_k: int = 20
    resolution: float = 0.8
    random_seed: int = 1337
    cluster_key: str = "cluster"
    tree_linkage: str = "complete"


@dataclass
class StageClusterConfig:
    """Master configuration for PCA, clustering and the cluster tree.

    Attributes
    ----------
    reduction : ReductionConfig
        PCA configuration
    clustering : ClusteringConfig
        Clustering configuration
    """

    reduction: ReductionConfig = field(default_factory=ReductionConfig)
    clustering: ClusteringConfig = field(default_factory=ClusteringConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StageClusterConfig":
        """Create configuration from a nested dictionary."""
        return cls(
            reduction=ReductionConfig(**(data.get("reduction") or {})),
            clustering=ClusteringConfig(**(data.get("clustering") or {})),
        )

    def validate(self) -> List[str]:
        """Return a list of configuration errors (empty if valid)."""
        errors = []
        if self.reduction.n_pcs < 2:
            errors.append("reduction.n_pcs must be at least 2")
        if self.clustering.n_pcs > self.reduction.n_pcs:
            errors.append(
                f"clustering.n_pcs ({self.clustering.n_pcs}) exceeds "
                f"reduction.n_pcs ({self.reduction.n_pcs})"
            )
        if self.clustering.neighbors_k < 2:
            errors.append("clustering.neighbors_k must be at least 2")
        if self.clustering.resolution <= 0:
            errors.append("clustering.resolution must be positive")
        return errors

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "reduction": {
                "n_pcs": self.reduction.n_pcs,
                "svd_solver": self.reduction.svd_solver,
                "random_seed": self.reduction.random_seed,
            },
            "clustering": {
                "n_pcs": self.clustering.n_pcs,
                "neighbors_k": self.clustering.neighbors_k,
                "resolution": self.clustering.resolution,
                "random_seed": self.clustering.random_seed,
                "cluster_key": self.clustering.cluster_key,
                "tree_linkage": self.clustering.tree_linkage,
            },
        }
