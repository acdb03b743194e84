"""Configuration for pathway enrichment."""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional


@dataclass
class EnrichmentConfig:
    """Configuration for Enrichr annotation and local gene-set scoring.

    Attributes
    ----------
    enrichr_enabled : bool
        Query the Enrichr web service with marker genes
    enrichr_libraries : List[str], optional
        Enrichr libraries; organism defaults are used when None
    enrichr_cutoff : float
        Maximum adjusted p-value of reported terms
    enrichr_max_genes : int
        Number of top marker genes sent per group
    gene_set_scoring_enabled : bool
        Score the GMT gene sets on per-group mean expression
    min_set_size : int
        Smallest gene set (after intersecting with the data) to score
    max_set_size : int
        Largest gene set to score
    p_threshold : float
        Maximum p-value of reported gene sets
    q_threshold : float
        Maximum Benjamini-Hochberg q-value of reported gene sets
    parallel_objects : int
        Worker threads handed to gseapy
    fail_on_error : bool
        Propagate Enrichr failures instead of skipping the group
    random_seed : int
        Random seed for gene-set scoring
    """

    enrichr_enabled: bool = True
    enrichr_libraries: Optional[List[str]] = None
    enrichr_cutoff: float = 0.05
    enrichr_max_genes: int = 100
    gene_set_scoring_enabled: bool = True
    min_set_size: int = 5
    max_set_size: int = 500
    p_threshold: float = 0.05
    q_threshold: float = 1.0
    parallel_objects: int = 1
    fail_on_error: bool = False
    random_seed: int = 1337

    def validate(self) -> List[str]:
        """Return a list of configuration errors (empty if valid)."""
        errors = []
        if self.min_set_size < 1:
            errors.append("enrichment.min_set_size must be positive")
        if self.max_set_size < self.min_set_size:
            errors.append("enrichment.max_set_size must be >= min_set_size")
        if self.parallel_objects < 1:
            errors.append("enrichment.parallel_objects must be at least 1")
        if self.enrichr_max_genes < 1:
            errors.append("enrichment.enrichr_max_genes must be positive")
        for name in ("enrichr_cutoff", "p_threshold", "q_threshold"):
            value = getattr(self, name)
            if not 0 < value <= 1:
                errors.append(f"enrichment.{name} must be in (0, 1]")
        return errors

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "enrichr_enabled": self.enrichr_enabled,
            "enrichr_libraries": self.enrichr_libraries,
            "enrichr_cutoff": self.enrichr_cutoff,
            "enrichr_max_genes": self.enrichr_max_genes,
            "gene_set_scoring_enabled": self.gene_set_scoring_enabled,
            "min_set_size": self.min_set_size,
            "max_set_size": self.max_set_size,
            "p_threshold": self.p_threshold,
            "q_threshold": self.q_threshold,
            "parallel_objects": self.parallel_objects,
            "fail_on_error": self.fail_on_error,
            "random_seed": self.random_seed,
        }
