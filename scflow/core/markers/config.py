"""Configuration for marker-gene detection and expression summaries."""

from dataclasses import dataclass, field
from typing import Any, Dict, List


@dataclass
class MarkerConfig:
    """Configuration for marker-gene detection.

    Attributes
    ----------
    method : str
        Test passed to ``scanpy.tl.rank_genes_groups``
    only_positive : bool
        Keep only genes up-regulated in the group
    min_pct : float
        Minimum fraction of cells in the group expressing the gene
    logfc_threshold : float
        Minimum absolute log fold change
    padj_threshold : float
        Maximum adjusted p-value
    group_by : List[str]
        obs columns to find markers for
    most_expressed_top_n : int
        Number of most expressed genes reported per group
    tie_correct : bool
        Apply tie correction for the Wilcoxon test
    """

    method: str = "wilcoxon"
    only_positive: bool = True
    min_pct: float = 0.1
    logfc_threshold: float = 0.25
    padj_threshold: float = 0.01
    group_by: List[str] = field(default_factory=lambda: ["sample", "cluster"])
    most_expressed_top_n: int = 100
    tie_correct: bool = True

    def validate(self) -> List[str]:
        """Return a list of configuration errors (empty if valid)."""
        errors = []
        if not 0 <= self.min_pct <= 1:
            errors.append("markers.min_pct must be between 0 and 1")
        if not 0 < self.padj_threshold <= 1:
            errors.append("markers.padj_threshold must be in (0, 1]")
        if self.logfc_threshold < 0:
            errors.append("markers.logfc_threshold must be non-negative")
        if self.most_expressed_top_n < 1:
            errors.append("markers.most_expressed_top_n must be positive")
        if not self.group_by:
            errors.append("markers.group_by must name at least one obs column")
        return errors

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "method": self.method,
            "only_positive": self.only_positive,
            "min_pct": self.min_pct,
            "logfc_threshold": self.logfc_threshold,
            "padj_threshold": self.padj_threshold,
            "group_by": list(self.group_by),
            "most_expressed_top_n": self.most_expressed_top_n,
            "tie_correct": self.tie_correct,
        }
