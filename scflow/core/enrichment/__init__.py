"""Pathway enrichment module.

Pipeline Stages
---------------
- enrichr: Marker genes annotated through the Enrichr web service
- gene_set_scoring: GMT gene sets scored per group with ssGSEA

Example Usage
-------------
>>> from scflow.core.enrichment import EnrichmentConfig, EnrichrAnnotator, GeneSetScorer
>>> result = EnrichrAnnotator(EnrichmentConfig(), organism).annotate(marker_table)
>>> scored = GeneSetScorer(EnrichmentConfig()).score(adata, gene_sets, "cluster")
"""

__version__ = "1.0.0"

from .config import EnrichmentConfig

from .enrichr import (
    ENRICHR_COLUMNS,
    EnrichmentError,
    EnrichrAnnotator,
    EnrichrResult,
)

from .scoring import (
    SCORING_COLUMNS,
    GeneSetScorer,
    GeneSetScoringResult,
    pseudobulk_means,
)

__all__ = [
    "__version__",
    "EnrichmentConfig",
    "ENRICHR_COLUMNS",
    "EnrichmentError",
    "EnrichrAnnotator",
    "EnrichrResult",
    "SCORING_COLUMNS",
    "GeneSetScorer",
    "GeneSetScoringResult",
    "pseudobulk_means",
]
