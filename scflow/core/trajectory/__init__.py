"""Trajectory inference module.

Diffusion pseudotime per run, with a minimum spanning tree over clusters
weighted by PAGA connectivity.

Pipeline Stages
---------------
- trajectory: One reconstruction per configured run (all cells, G1 cells)

Example Usage
-------------
>>> from scflow.core.trajectory import TrajectoryEngine, TrajectoryConfig
>>> results = TrajectoryEngine(TrajectoryConfig()).run_all(adata)
>>> adata.obs["dpt_pseudotime_all_cells"]
"""

__version__ = "1.0.0"

from .config import (
    TrajectoryConfig,
    TrajectoryRunConfig,
)

from .engine import (
    EDGE_COLUMNS,
    TrajectoryEngine,
    TrajectoryResult,
    cluster_tree_states,
    has_inter_cluster_edges,
    subset_mask,
)

__all__ = [
    "__version__",
    "TrajectoryConfig",
    "TrajectoryRunConfig",
    "EDGE_COLUMNS",
    "TrajectoryEngine",
    "TrajectoryResult",
    "cluster_tree_states",
    "has_inter_cluster_edges",
    "subset_mask",
]
