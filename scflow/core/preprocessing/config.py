"""Configuration classes for preprocessing stages.

All preprocessing parameters are configurable via YAML.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class QCConfig:
    """Configuration for cell filtering.

    Thresholds set to None are not applied.

    Attributes
    ----------
    min_cells_per_gene : int
        Drop genes detected in fewer cells than this
    min_genes : int, optional
        Minimum number of detected genes per cell
    max_genes : int, optional
        Maximum number of detected genes per cell
    min_counts : int, optional
        Minimum total counts per cell
    max_counts : int, optional
        Maximum total counts per cell
    max_percent_mt : float, optional
        Maximum percentage of counts from mitochondrial genes
    """

    min_cells_per_gene: int = 5
    min_genes: Optional[int] = 100
    max_genes: Optional[int] = None
    min_counts: Optional[int] = None
    max_counts: Optional[int] = None
    max_percent_mt: Optional[float] = None


@dataclass
class NormalizationConfig:
    """Configuration for normalization and scaling.

    Attributes
    ----------
    target_sum : float
        Library size after normalization
    n_top_genes : int
        Number of highly variable genes kept for PCA
    hvg_flavor : str
        Flavor passed to ``scanpy.pp.highly_variable_genes``
    scale_max : float
        Value clipping during scaling
    """

    target_sum: float = 1e4
    n_top_genes: int = 2000
    hvg_flavor: str = "seurat"
    scale_max: float = 10.0


@dataclass
class PreprocessingConfig:
    """Master configuration for preprocessing.

    Attributes
    ----------
    qc : QCConfig
        Cell filtering configuration
    normalization : NormalizationConfig
        Normalization configuration
    """

    qc: QCConfig = field(default_factory=QCConfig)
    normalization: NormalizationConfig = field(default_factory=NormalizationConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PreprocessingConfig":
        """Create configuration from a nested dictionary."""
        return cls(
            qc=QCConfig(**(data.get("qc") or {})),
            normalization=NormalizationConfig(**(data.get("normalization") or {})),
        )

    def validate(self) -> List[str]:
        """Return a list of configuration errors (empty if valid)."""
        errors = []
        qc = self.qc
        if qc.min_genes is not None and qc.max_genes is not None:
            if qc.min_genes > qc.max_genes:
                errors.append(
                    f"qc.min_genes ({qc.min_genes}) exceeds qc.max_genes ({qc.max_genes})"
                )
        if qc.min_counts is not None and qc.max_counts is not None:
            if qc.min_counts > qc.max_counts:
                errors.append(
                    f"qc.min_counts ({qc.min_counts}) exceeds qc.max_counts ({qc.max_counts})"
                )
        if qc.max_percent_mt is not None and not 0 <= qc.max_percent_mt <= 100:
            errors.append("qc.max_percent_mt must be between 0 and 100")
        if self.normalization.n_top_genes < 1:
            errors.append("normalization.n_top_genes must be positive")
        if self.normalization.target_sum <= 0:
            errors.append("normalization.target_sum must be positive")
        return errors

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "qc": {
                "min_cells_per_gene": self.qc.min_cells_per_gene,
                "min_genes": self.qc.min_genes,
                "max_genes": self.qc.max_genes,
                "min_counts": self.qc.min_counts,
                "max_counts": self.qc.max_counts,
                "max_percent_mt": self.qc.max_percent_mt,
            },
            "normalization": {
                "target_sum": self.normalization.target_sum,
                "n_top_genes": self.normalization.n_top_genes,
                "hvg_flavor": self.normalization.hvg_flavor,
                "scale_max": self.normalization.scale_max,
            },
        }
