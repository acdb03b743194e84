"""Trajectory inference engine.

Each run orders cells along diffusion pseudotime and connects clusters
with a minimum spanning tree over PAGA connectivities:

1. Select the run's cells (all cells or a subset such as G1 cells)
2. Build a neighbor graph on X_pca, run PAGA on clusters and a diffusion map
3. Pick the root cell (lowest DC1, optionally within a root cluster)
4. Compute diffusion pseudotime
5. Span the clusters with a tree weighted by 1 - PAGA connectivity
   (connectivity 0 when no neighbor edges link the clusters)
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import logging

import networkx as nx
import numpy as np
import pandas as pd
from scipy import sparse

from ...io.h5ad import sanitize_uns
from .config import TrajectoryConfig, TrajectoryRunConfig

EDGE_COLUMNS = [
    "source",
    "target",
    "weight",
    "source_DC1",
    "source_DC2",
    "target_DC1",
    "target_DC2",
]


@dataclass
class TrajectoryResult:
    """Result of one trajectory run.

    Attributes
    ----------
    name : str
        Run name
    meta : pd.DataFrame
        Per-cell table: cell, cluster, DC1, DC2, pseudotime, state
    edges : pd.DataFrame
        Cluster tree edges with centroid coordinates (EDGE_COLUMNS)
    root_cell : str
        Cell the pseudotime starts from
    parameters : Dict[str, Any]
        Parameters of the run
    """

    name: str
    meta: pd.DataFrame
    edges: pd.DataFrame
    root_cell: str
    parameters: Dict[str, Any] = field(default_factory=dict)

    @property
    def n_cells(self) -> int:
        return len(self.meta)

    @property
    def n_states(self) -> int:
        return int(self.meta["state"].nunique())


def subset_mask(obs: pd.DataFrame, subset: Optional[Dict[str, List[str]]]) -> np.ndarray:
    """Boolean mask of cells matching every ``{column: [values]}`` filter."""
    mask = np.ones(len(obs), dtype=bool)
    if not subset:
        return mask
    for column, values in subset.items():
        if column not in obs:
            raise KeyError(f"Subset column '{column}' not found in adata.obs")
        mask &= obs[column].astype(str).isin([str(v) for v in values]).to_numpy()
    return mask


def has_inter_cluster_edges(connectivities: Any, labels: pd.Series) -> bool:
    """Whether the cell graph links any two cells of different clusters."""
    graph = sparse.coo_matrix(connectivities)
    codes = pd.Categorical(labels).codes
    return bool(np.any(codes[graph.row] != codes[graph.col]))


def cluster_tree_states(tree: nx.Graph, root: str) -> Dict[str, int]:
    """Number the branches of a cluster tree.

    Walking away from the root, a cluster continues its parent's state
    unless the parent branches, in which case every child starts a new state.
    """
    states = {root: 1}
    next_state = 2
    for parent, child in nx.bfs_edges(tree, root):
        n_children = tree.degree(parent) - (0 if parent == root else 1)
        if n_children > 1:
            states[child] = next_state
            next_state += 1
        else:
            states[child] = states[parent]
    return states


class TrajectoryEngine:
    """Engine for diffusion pseudotime trajectories.

    Parameters
    ----------
    config : TrajectoryConfig, optional
        Trajectory configuration. If None, uses defaults.
    logger : logging.Logger, optional
        Logger instance. If None, creates default logger.

    Example
    -------
    >>> engine = TrajectoryEngine(TrajectoryConfig())
    >>> results = engine.run_all(adata)
    >>> results["G1_only"].edges
    """

    def __init__(
        self,
        config: Optional[TrajectoryConfig] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config or TrajectoryConfig()
        self.logger = logger or logging.getLogger(__name__)

    def spanning_tree(self, connectivities: Any, clusters: List[str]) -> nx.Graph:
        """Minimum spanning tree over clusters, weights 1 - connectivity."""
        conn = connectivities.toarray() if sparse.issparse(connectivities) else np.asarray(connectivities)
        graph = nx.Graph()
        graph.add_nodes_from(clusters)
        for i in range(len(clusters)):
            for j in range(i + 1, len(clusters)):
                graph.add_edge(clusters[i], clusters[j], weight=float(1.0 - conn[i, j]))
        return nx.minimum_spanning_tree(graph, weight="weight")

    def run(self, adata: Any, run: TrajectoryRunConfig) -> TrajectoryResult:
        """Reconstruct one trajectory.

        Parameters
        ----------
        adata : AnnData
            AnnData with X_pca and cluster labels
        run : TrajectoryRunConfig
            Run definition

        Returns
        -------
        TrajectoryResult
            Per-cell pseudotime and cluster tree. Also stored in
            ``adata.uns["trajectories"][run.name]`` and
            ``adata.obs["dpt_pseudotime_<name>"]``.

        Raises
        ------
        KeyError
            If X_pca, the cluster column or a subset column is missing
        ValueError
            If the subset selects too few cells
        """
        import scanpy as sc

        cfg = self.config
        key = cfg.cluster_key
        if "X_pca" not in adata.obsm:
            raise KeyError("X_pca not found in adata.obsm. Run PCA first.")
        if key not in adata.obs:
            raise KeyError(f"Cluster column '{key}' not found in adata.obs")

        mask = subset_mask(adata.obs, run.subset)
        n_cells = int(mask.sum())
        if n_cells == 0:
            raise ValueError(f"Trajectory run '{run.name}': subset {run.subset} selects no cells")
        if n_cells < 4:
            raise ValueError(
                f"Trajectory run '{run.name}': {n_cells} cells are too few for a diffusion map"
            )

        self.logger.info("Trajectory '%s': %d of %d cells", run.name, n_cells, adata.n_obs)

        sub = adata[mask].copy()
        # drop stale graphs inherited from the full object
        for stale in ("neighbors", "paga", "iroot", "diffmap_evals"):
            sub.uns.pop(stale, None)
        sub.obs[key] = sub.obs[key].astype(str).astype("category")
        clusters = [str(c) for c in sub.obs[key].cat.categories]

        n_pcs = min(cfg.n_pcs, sub.obsm["X_pca"].shape[1])
        n_neighbors = min(cfg.neighbors_k, n_cells - 1)
        n_dcs = max(3, min(cfg.n_dcs, n_cells - 2))

        sc.pp.neighbors(
            sub,
            n_neighbors=n_neighbors,
            n_pcs=n_pcs,
            use_rep="X_pca",
            random_state=cfg.random_seed,
        )
        # PAGA needs at least one kNN edge between clusters
        if len(clusters) > 1 and has_inter_cluster_edges(sub.obsp["connectivities"], sub.obs[key]):
            sc.tl.paga(sub, groups=key)
            connectivities = sub.uns["paga"]["connectivities"]
        else:
            if len(clusters) > 1:
                self.logger.warning(
                    "Trajectory '%s': no neighbor edges between its %d clusters; skipping PAGA",
                    run.name,
                    len(clusters),
                )
            connectivities = np.zeros((len(clusters), len(clusters)))
        sc.tl.diffmap(sub, n_comps=n_dcs)

        # first diffusion component is the trivial stationary one
        dc = sub.obsm["X_diffmap"][:, 1:3]

        candidates = np.arange(n_cells)
        if run.root_cluster is not None:
            in_root = (sub.obs[key].astype(str) == str(run.root_cluster)).to_numpy()
            if in_root.any():
                candidates = np.flatnonzero(in_root)
            else:
                self.logger.warning(
                    "Root cluster '%s' not among the cells of '%s'; using all cells",
                    run.root_cluster,
                    run.name,
                )
        iroot = int(candidates[np.argmin(dc[candidates, 0])])
        sub.uns["iroot"] = iroot
        sc.tl.dpt(sub, n_dcs=n_dcs)

        pseudotime = np.array(sub.obs["dpt_pseudotime"], dtype=float)
        n_unreachable = int(np.isinf(pseudotime).sum())
        if n_unreachable:
            self.logger.warning(
                "Trajectory '%s': %d cells unreachable from the root", run.name, n_unreachable
            )
            pseudotime[np.isinf(pseudotime)] = np.nan

        tree = self.spanning_tree(connectivities, clusters)
        root_cluster = str(sub.obs[key].iloc[iroot])
        states = cluster_tree_states(tree, root_cluster)

        cell_clusters = sub.obs[key].astype(str).to_numpy()
        meta = pd.DataFrame(
            {
                "cell": sub.obs_names.astype(str),
                "cluster": cell_clusters,
                "DC1": dc[:, 0],
                "DC2": dc[:, 1],
                "pseudotime": pseudotime,
                "state": [states[c] for c in cell_clusters],
            },
            index=sub.obs_names.astype(str),
        )

        centroids = meta.groupby("cluster")[["DC1", "DC2"]].mean()
        records = []
        for source, target in nx.bfs_edges(tree, root_cluster):
            records.append(
                {
                    "source": source,
                    "target": target,
                    "weight": tree.edges[source, target]["weight"],
                    "source_DC1": centroids.loc[source, "DC1"],
                    "source_DC2": centroids.loc[source, "DC2"],
                    "target_DC1": centroids.loc[target, "DC1"],
                    "target_DC2": centroids.loc[target, "DC2"],
                }
            )
        edges = pd.DataFrame(records, columns=EDGE_COLUMNS)

        parameters = {
            "subset": run.subset or {},
            "root_cluster": run.root_cluster,
            "root_cell": str(sub.obs_names[iroot]),
            "n_cells": n_cells,
            "n_dcs": n_dcs,
            "n_neighbors": n_neighbors,
            "n_pcs": n_pcs,
            "cluster_key": key,
        }
        result = TrajectoryResult(
            name=run.name,
            meta=meta,
            edges=edges,
            root_cell=str(sub.obs_names[iroot]),
            parameters=parameters,
        )

        column = f"dpt_pseudotime_{run.name}"
        adata.obs[column] = np.nan
        adata.obs.loc[mask, column] = pseudotime

        trajectories = dict(adata.uns.get("trajectories", {}))
        trajectories[run.name] = {
            "meta": meta,
            "edges": edges,
            "parameters": sanitize_uns(parameters),
        }
        adata.uns["trajectories"] = trajectories

        self.logger.info(
            "Trajectory '%s': root %s (cluster %s), %d clusters, %d states",
            run.name,
            result.root_cell,
            root_cluster,
            len(clusters),
            result.n_states,
        )
        return result

    def run_all(self, adata: Any) -> Dict[str, TrajectoryResult]:
        """Run every configured trajectory in order."""
        results: Dict[str, TrajectoryResult] = {}
        for run in self.config.runs:
            results[run.name] = self.run(adata, run)
        return results
