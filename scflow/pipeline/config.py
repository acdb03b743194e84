"""Analysis configuration loader and validator.

One YAML file holds every parameter of a run, one section per concern::

    project:
      name: pbmc_3k
      organism: hg
      sample: pbmc
      input_matrix: data/filtered_feature_bc_matrix.h5
      gene_sets: data/h.all.v2023.1.Hs.symbols.gmt
      output_dir: results
    qc:
      min_genes: 200
      max_percent_mt: 10
    clustering:
      resolution: 0.8
    trajectory:
      runs:
        - name: all_cells
        - name: G1_only
          subset: {phase: [G1]}
"""

from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from ..config import get_organism_profile
from ..core.clustering import ClusteringConfig, ReductionConfig, StageClusterConfig
from ..core.embedding import EmbeddingConfig
from ..core.enrichment import EnrichmentConfig
from ..core.markers import MarkerConfig
from ..core.preprocessing import NormalizationConfig, PreprocessingConfig, QCConfig
from ..core.trajectory import TrajectoryConfig


@dataclass
class ProjectConfig:
    """Project identity and input/output locations.

    Attributes
    ----------
    name : str
        Project name; prefixes every output file
    organism : str
        Organism code or alias (e.g. "hg", "mm", "human")
    sample : str
        Sample label written to ``obs["sample"]``
    input_matrix : str
        Path to the 10x HDF5 count matrix
    gene_sets : str, optional
        Path to a GMT file used for gene-set scoring
    output_dir : str
        Directory for exported files and logs
    experiment : Dict[str, Any]
        Free-form experiment description stored with the results
    """

    name: str = "scflow_project"
    organism: str = "hg"
    sample: str = "sample"
    input_matrix: str = ""
    gene_sets: Optional[str] = None
    output_dir: str = "output"
    experiment: Dict[str, Any] = field(default_factory=dict)


@dataclass
class CellCycleConfig:
    """Configuration for cell-cycle scoring.

    Attributes
    ----------
    enabled : bool
        Score S and G2/M phases
    random_seed : int
        Seed for control gene sampling
    """

    enabled: bool = True
    random_seed: int = 0


@dataclass
class ExportConfig:
    """Configuration for output files.

    Attributes
    ----------
    viewer_suffix : str
        Suffix of the viewer exchange file
    snapshot_suffix : str
        Suffix of the full snapshot
    date_format : str
        strftime format of the date in file names
    compression : str, optional
        h5py compression for written files
    """

    viewer_suffix: str = "_viewer.h5ad"
    snapshot_suffix: str = ".h5ad"
    date_format: str = "%Y-%m-%d"
    compression: Optional[str] = "gzip"


def _build_section(cls, name: str, data: Optional[Dict[str, Any]]):
    data = dict(data or {})
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"Unknown key(s) in section '{name}': {', '.join(unknown)}")
    return cls(**data)


SECTIONS = [
    "project",
    "qc",
    "normalization",
    "reduction",
    "clustering",
    "cell_cycle",
    "embedding",
    "markers",
    "enrichment",
    "trajectory",
    "export",
]


@dataclass
class AnalysisConfig:
    """Complete configuration of an analysis run.

    Attributes
    ----------
    project : ProjectConfig
        Project identity and paths
    preprocessing : PreprocessingConfig
        qc and normalization sections
    clustering : StageClusterConfig
        reduction and clustering sections
    cell_cycle : CellCycleConfig
        Cell-cycle scoring
    embedding : EmbeddingConfig
        t-SNE and UMAP
    markers : MarkerConfig
        Marker genes and expression summaries
    enrichment : EnrichmentConfig
        Enrichr and gene-set scoring
    trajectory : TrajectoryConfig
        Trajectory runs
    export : ExportConfig
        Output file naming
    config_path : Path, optional
        File the configuration was loaded from

    Example
    -------
    >>> config = AnalysisConfig.from_yaml("analysis.yaml")
    >>> valid, errors = config.validate()
    """

    project: ProjectConfig = field(default_factory=ProjectConfig)
    preprocessing: PreprocessingConfig = field(default_factory=PreprocessingConfig)
    clustering: StageClusterConfig = field(default_factory=StageClusterConfig)
    cell_cycle: CellCycleConfig = field(default_factory=CellCycleConfig)
    embedding: EmbeddingConfig = field(default_factory=EmbeddingConfig)
    markers: MarkerConfig = field(default_factory=MarkerConfig)
    enrichment: EnrichmentConfig = field(default_factory=EnrichmentConfig)
    trajectory: TrajectoryConfig = field(default_factory=TrajectoryConfig)
    export: ExportConfig = field(default_factory=ExportConfig)
    config_path: Optional[Path] = None

    @classmethod
    def from_yaml(cls, path: Path) -> "AnalysisConfig":
        """Load configuration from YAML file.

        Raises
        ------
        FileNotFoundError
            If the file does not exist
        ValueError
            If a section holds unknown keys
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(path) as f:
            data = yaml.safe_load(f) or {}

        if "analysis" in data:
            data = data["analysis"]

        config = cls.from_dict(data)
        config.config_path = path
        return config

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AnalysisConfig":
        """Create configuration from a dictionary of sections."""
        unknown = sorted(set(data) - set(SECTIONS))
        if unknown:
            raise ValueError(f"Unknown configuration section(s): {', '.join(unknown)}")

        clustering = _build_section(ClusteringConfig, "clustering", data.get("clustering"))
        trajectory = dict(data.get("trajectory") or {})
        trajectory.setdefault("cluster_key", clustering.cluster_key)

        return cls(
            project=_build_section(ProjectConfig, "project", data.get("project")),
            preprocessing=PreprocessingConfig(
                qc=_build_section(QCConfig, "qc", data.get("qc")),
                normalization=_build_section(
                    NormalizationConfig, "normalization", data.get("normalization")
                ),
            ),
            clustering=StageClusterConfig(
                reduction=_build_section(ReductionConfig, "reduction", data.get("reduction")),
                clustering=clustering,
            ),
            cell_cycle=_build_section(CellCycleConfig, "cell_cycle", data.get("cell_cycle")),
            embedding=_build_section(EmbeddingConfig, "embedding", data.get("embedding")),
            markers=_build_section(MarkerConfig, "markers", data.get("markers")),
            enrichment=_build_section(EnrichmentConfig, "enrichment", data.get("enrichment")),
            trajectory=TrajectoryConfig.from_dict(trajectory),
            export=_build_section(ExportConfig, "export", data.get("export")),
        )

    def validate(self, check_files: bool = False) -> Tuple[bool, List[str]]:
        """Validate the configuration.

        Parameters
        ----------
        check_files : bool
            Also check that input files exist

        Returns
        -------
        Tuple[bool, List[str]]
            (valid, errors) where valid is True if no error was found
        """
        errors = []
        project = self.project

        if not project.name:
            errors.append("project.name must not be empty")
        if not project.input_matrix:
            errors.append("project.input_matrix is required")
        try:
            get_organism_profile(project.organism)
        except ValueError as e:
            errors.append(str(e))

        if self.enrichment.gene_set_scoring_enabled and not project.gene_sets:
            errors.append(
                "project.gene_sets is required when enrichment.gene_set_scoring_enabled is set"
            )

        if check_files:
            if project.input_matrix and not Path(project.input_matrix).exists():
                errors.append(f"Input matrix not found: {project.input_matrix}")
            if project.gene_sets and not Path(project.gene_sets).exists():
                errors.append(f"Gene set file not found: {project.gene_sets}")

        errors.extend(self.preprocessing.validate())
        errors.extend(self.clustering.validate())
        errors.extend(self.markers.validate())
        errors.extend(self.enrichment.validate())
        errors.extend(self.trajectory.validate())

        if self.embedding.tsne_perplexity <= 0:
            errors.append("embedding.tsne_perplexity must be positive")

        if self.trajectory.enabled and not self.cell_cycle.enabled:
            for run in self.trajectory.runs:
                if run.subset and "phase" in run.subset:
                    errors.append(
                        f"trajectory run '{run.name}' subsets on phase but "
                        "cell_cycle.enabled is false"
                    )

        return (len(errors) == 0, errors)

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to a dictionary of sections."""
        preprocessing = self.preprocessing.to_dict()
        clustering = self.clustering.to_dict()
        return {
            "project": asdict(self.project),
            "qc": preprocessing["qc"],
            "normalization": preprocessing["normalization"],
            "reduction": clustering["reduction"],
            "clustering": clustering["clustering"],
            "cell_cycle": asdict(self.cell_cycle),
            "embedding": asdict(self.embedding),
            "markers": self.markers.to_dict(),
            "enrichment": self.enrichment.to_dict(),
            "trajectory": self.trajectory.to_dict(),
            "export": asdict(self.export),
        }

    def to_yaml(self, path: Path) -> Path:
        """Write the configuration to a YAML file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            yaml.safe_dump(self.to_dict(), f, sort_keys=False)
        return path
