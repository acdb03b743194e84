"""Configuration for trajectory inference."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class TrajectoryRunConfig:
    """One trajectory reconstruction.

    Attributes
    ----------
    name : str
        Run name; used in ``uns["trajectories"]`` and the pseudotime column
    subset : Dict[str, List[str]], optional
        Cells kept for the run, as ``{obs_column: [values]}``. None keeps all cells.
    root_cluster : str, optional
        Cluster holding the root cell. None picks the root among all cells.
    """

    name: str
    subset: Optional[Dict[str, List[str]]] = None
    root_cluster: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TrajectoryRunConfig":
        subset = data.get("subset")
        if subset is not None:
            subset = {
                str(column): [str(v) for v in (values if isinstance(values, list) else [values])]
                for column, values in subset.items()
            }
        root = data.get("root_cluster")
        return cls(
            name=str(data["name"]),
            subset=subset,
            root_cluster=str(root) if root is not None else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "subset": self.subset,
            "root_cluster": self.root_cluster,
        }


def _default_runs() -> List[TrajectoryRunConfig]:
    return [
        TrajectoryRunConfig(name="all_cells"),
        TrajectoryRunConfig(name="G1_only", subset={"phase": ["G1"]}),
    ]


@dataclass
class TrajectoryConfig:
    """Configuration for trajectory inference.

    Attributes
    ----------
    enabled : bool
        Run trajectory inference
    runs : List[TrajectoryRunConfig]
        Reconstructions to compute (default: all cells and G1 cells)
    n_dcs : int
        Diffusion components used for pseudotime
    neighbors_k : int
        Neighbors of the per-run graph
    n_pcs : int
        Principal components of the per-run graph
    cluster_key : str
        Cluster column used for PAGA and the cluster tree
    random_seed : int
        Random seed for the neighbor graph
    """

    enabled: bool = True
    runs: List[TrajectoryRunConfig] = field(default_factory=_default_runs)
    n_dcs: int = 10
    neighbors_k: int = 20
    n_pcs: int = 30
    cluster_key: str = "cluster"
    random_seed: int = 1337

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TrajectoryConfig":
        data = dict(data)
        runs = data.pop("runs", None)
        config = cls(**data)
        if runs is not None:
            config.runs = [TrajectoryRunConfig.from_dict(r) for r in runs]
        return config

    def validate(self) -> List[str]:
        """Return a list of configuration errors (empty if valid)."""
        errors = []
        names = [run.name for run in self.runs]
        if len(names) != len(set(names)):
            errors.append("trajectory.runs must have unique names")
        if self.n_dcs < 3:
            errors.append("trajectory.n_dcs must be at least 3")
        if self.neighbors_k < 2:
            errors.append("trajectory.neighbors_k must be at least 2")
        if self.n_pcs < 2:
            errors.append("trajectory.n_pcs must be at least 2")
        return errors

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "enabled": self.enabled,
            "runs": [run.to_dict() for run in self.runs],
            "n_dcs": self.n_dcs,
            "neighbors_k": self.neighbors_k,
            "n_pcs": self.n_pcs,
            "cluster_key": self.cluster_key,
            "random_seed": self.random_seed,
        }
