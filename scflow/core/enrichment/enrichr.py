"""Marker-gene annotation through the Enrichr web service.

Each group's top marker genes are submitted to Enrichr via gseapy. There
is no retry: a failing request either skips the group or propagates,
depending on ``fail_on_error``.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import pandas as pd

from ...config import OrganismProfile, get_organism_profile
from ..markers.de import top_marker_genes
from .config import EnrichmentConfig

logger = logging.getLogger(__name__)

ENRICHR_COLUMNS = [
    "group",
    "library",
    "term",
    "overlap",
    "pval",
    "pval_adj",
    "odds_ratio",
    "combined_score",
    "genes",
]

_RENAME = {
    "Gene_set": "library",
    "Term": "term",
    "Overlap": "overlap",
    "P-value": "pval",
    "Adjusted P-value": "pval_adj",
    "Odds Ratio": "odds_ratio",
    "Combined Score": "combined_score",
    "Genes": "genes",
}


class EnrichmentError(Exception):
    """Raised when an enrichment request or computation fails."""


@dataclass
class EnrichrResult:
    """Result of annotating one marker table.

    Attributes
    ----------
    table : pd.DataFrame
        Enriched terms (ENRICHR_COLUMNS)
    failed_groups : Dict[str, str]
        Map of group to error message for skipped groups
    skipped_groups : List[str]
        Groups without marker genes
    """

    table: pd.DataFrame = field(default_factory=lambda: pd.DataFrame(columns=ENRICHR_COLUMNS))
    failed_groups: Dict[str, str] = field(default_factory=dict)
    skipped_groups: List[str] = field(default_factory=list)


class EnrichrAnnotator:
    """Annotate marker genes with Enrichr libraries.

    Parameters
    ----------
    config : EnrichmentConfig, optional
        Enrichment configuration. If None, uses defaults.
    organism : OrganismProfile
        Organism providing the Enrichr organism name and default libraries

    Example
    -------
    >>> annotator = EnrichrAnnotator(EnrichmentConfig(), get_organism_profile("hg"))
    >>> result = annotator.annotate(marker_table)
    """

    def __init__(
        self,
        config: Optional[EnrichmentConfig] = None,
        organism: Optional[OrganismProfile] = None,
    ):
        self.config = config or EnrichmentConfig()
        self.organism = organism or get_organism_profile()

    @property
    def libraries(self) -> List[str]:
        return self.libraries_for(self.organism)

    def libraries_for(self, organism: OrganismProfile) -> List[str]:
        """Configured libraries, or the organism's when none are configured."""
        if self.config.enrichr_libraries:
            return list(self.config.enrichr_libraries)
        return list(organism.enrichr_libraries)

    def query(
        self, genes: List[str], organism: Optional[OrganismProfile] = None
    ) -> pd.DataFrame:
        """Submit one gene list to Enrichr.

        Parameters
        ----------
        genes : List[str]
            Gene symbols
        organism : OrganismProfile, optional
            Organism of the genes (default: the annotator's)

        Returns
        -------
        pd.DataFrame
            Raw gseapy results (all terms of all libraries)

        Raises
        ------
        EnrichmentError
            If the request fails
        """
        import gseapy as gp

        organism = organism or self.organism
        try:
            enr = gp.enrichr(
                gene_list=genes,
                gene_sets=self.libraries_for(organism),
                organism=organism.enrichr_organism,
                outdir=None,
                cutoff=self.config.enrichr_cutoff,
                no_plot=True,
            )
        except Exception as e:
            raise EnrichmentError(f"Enrichr request failed: {e}") from e

        results = enr.results
        if results is None:
            return pd.DataFrame(columns=list(_RENAME))
        return results

    def tidy(self, results: pd.DataFrame, group: str) -> pd.DataFrame:
        """Rename gseapy columns and apply the adjusted p-value cutoff."""
        df = results.rename(columns=_RENAME).copy()
        df.insert(0, "group", str(group))
        for column in ENRICHR_COLUMNS:
            if column not in df.columns:
                df[column] = None
        df = df[ENRICHR_COLUMNS]
        df = df[pd.to_numeric(df["pval_adj"], errors="coerce") <= self.config.enrichr_cutoff]
        return df.sort_values("pval_adj").reset_index(drop=True)

    def annotate(
        self,
        marker_table: pd.DataFrame,
        organism: Optional[OrganismProfile] = None,
    ) -> EnrichrResult:
        """Annotate the markers of every group in a marker table.

        Parameters
        ----------
        marker_table : pd.DataFrame
            Tidy marker table with group and gene columns
        organism : OrganismProfile, optional
            Organism for this call only (default: the one given at construction)

        Returns
        -------
        EnrichrResult
            Combined enrichment table and per-group failures

        Raises
        ------
        EnrichmentError
            If a request fails and fail_on_error is set
        """
        organism = organism or self.organism
        cfg = self.config
        result = EnrichrResult()
        tables = []
        groups = sorted(marker_table["group"].astype(str).unique())

        logger.info(
            "Querying Enrichr for %d groups (libraries: %s)",
            len(groups),
            ", ".join(self.libraries_for(organism)),
        )

        for group in groups:
            genes = top_marker_genes(marker_table, group, cfg.enrichr_max_genes)
            if not genes:
                result.skipped_groups.append(group)
                continue
            try:
                raw = self.query(genes, organism)
            except EnrichmentError as e:
                if cfg.fail_on_error:
                    raise
                logger.warning("Skipping Enrichr annotation of group %s: %s", group, e)
                result.failed_groups[group] = str(e)
                continue
            tidy = self.tidy(raw, group)
            logger.debug("Group %s: %d enriched terms", group, len(tidy))
            tables.append(tidy)

        if tables:
            result.table = pd.concat(tables, ignore_index=True)

        logger.info(
            "Enrichr annotation: %d terms, %d failed groups",
            len(result.table),
            len(result.failed_groups),
        )
        return result
