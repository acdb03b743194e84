"""Cluster tree construction.

Builds a hierarchical tree over cluster centroids in PCA space and
serializes it as Newick for export.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
from scipy.cluster.hierarchy import ClusterNode, to_tree

logger = logging.getLogger(__name__)


def linkage_to_newick(linkage: np.ndarray, labels: Sequence[str]) -> str:
    """Convert a scipy linkage matrix to a Newick string.

    Branch lengths are the height differences between a node and its parent.

    Parameters
    ----------
    linkage : np.ndarray
        Linkage matrix as returned by scipy.cluster.hierarchy.linkage
    labels : Sequence[str]
        Leaf labels, indexed by original observation

    Returns
    -------
    str
        Newick representation terminated by ``;``
    """
    root = to_tree(np.asarray(linkage, dtype=float))

    def build(node: ClusterNode, parent_dist: float) -> str:
        length = max(parent_dist - node.dist, 0.0)
        if node.is_leaf():
            return f"{labels[node.id]}:{length:.6g}"
        left = build(node.get_left(), node.dist)
        right = build(node.get_right(), node.dist)
        return f"({left},{right}):{length:.6g}"

    left = build(root.get_left(), root.dist)
    right = build(root.get_right(), root.dist)
    return f"({left},{right});"


def build_cluster_tree(
    adata: Any,
    cluster_key: str = "cluster",
    use_rep: str = "X_pca",
    linkage_method: str = "complete",
) -> Dict[str, Any]:
    """Build a tree over clusters and store it in ``adata.uns["cluster_tree"]``.

    Parameters
    ----------
    adata : AnnData
        AnnData with cluster labels and the representation in obsm
    cluster_key : str
        Column in adata.obs with cluster labels
    use_rep : str
        Representation used to compute cluster distances
    linkage_method : str
        Linkage method passed to scanpy.tl.dendrogram

    Returns
    -------
    Dict[str, Any]
        ``{"newick": str, "order": List[str], "cluster_key": str}``
    """
    import scanpy as sc

    categories: List[str] = [str(c) for c in adata.obs[cluster_key].cat.categories]

    if len(categories) < 2:
        logger.warning(
            "Only %d cluster(s) in '%s'; storing single-leaf tree",
            len(categories),
            cluster_key,
        )
        tree = {
            "newick": f"({categories[0] if categories else ''});",
            "order": categories,
            "cluster_key": cluster_key,
        }
        adata.uns["cluster_tree"] = tree
        return tree

    sc.tl.dendrogram(
        adata,
        groupby=cluster_key,
        use_rep=use_rep,
        linkage_method=linkage_method,
    )
    dendrogram = adata.uns[f"dendrogram_{cluster_key}"]
    # matplotlib drawing coordinates; not serializable to h5ad as ragged lists
    dendrogram.pop("dendrogram_info", None)

    tree = {
        "newick": linkage_to_newick(dendrogram["linkage"], categories),
        "order": [str(c) for c in dendrogram["categories_ordered"]],
        "cluster_key": cluster_key,
    }
    adata.uns["cluster_tree"] = tree

    logger.info("Built cluster tree over %d clusters", len(categories))
    logger.debug("Cluster tree: %s", tree["newick"])
    return tree


def parse_newick_leaves(newick: str) -> Optional[List[str]]:
    """Extract leaf labels from a Newick string produced by linkage_to_newick."""
    body = newick.strip().rstrip(";")
    leaves = []
    for token in body.replace("(", ",").replace(")", ",").split(","):
        label = token.split(":")[0].strip()
        if label:
            leaves.append(label)
    return leaves or None
