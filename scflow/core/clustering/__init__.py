"""Clustering module for cell population identification.

Provides PCA, Leiden clustering and a hierarchical cluster tree.

Pipeline Stages
---------------
- pca: Principal component analysis on scaled HVGs
- cluster: Neighborhood graph and Leiden clustering
- cluster_tree: Hierarchical tree over cluster centroids

Example Usage
-------------
>>> from scflow.core.clustering import (
...     ClusteringEngine, StageClusterConfig, build_cluster_tree,
... )
>>> engine = ClusteringEngine(StageClusterConfig())
>>> engine.run_pca(adata)
>>> result = engine.run_clustering(adata)
>>> tree = build_cluster_tree(adata, cluster_key=result.cluster_key)
"""

__version__ = "1.0.0"

# Configuration classes
from .config import (
    ClusteringConfig,
    ReductionConfig,
    StageClusterConfig,
)

# Clustering engine
from .engine import (
    ClusteringEngine,
    ClusteringResult,
)

# Cluster tree
from .tree import (
    build_cluster_tree,
    linkage_to_newick,
    parse_newick_leaves,
)

__all__ = [
    # Version
    "__version__",
    # Config
    "ClusteringConfig",
    "ReductionConfig",
    "StageClusterConfig",
    # Engine
    "ClusteringEngine",
    "ClusteringResult",
    # Tree
    "build_cluster_tree",
    "linkage_to_newick",
    "parse_newick_leaves",
]
