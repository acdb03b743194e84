"""Local gene-set scoring across groups of cells.

Gene sets from a GMT file are scored with single-sample GSEA on the mean
log-expression of each group (pseudo-bulk). Scores of every gene set are
then standardized across groups, so a set is reported for the groups in
which it is unusually high relative to the other groups.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd
from scipy import sparse
from scipy.stats import norm
from statsmodels.stats.multitest import multipletests

from .config import EnrichmentConfig

SCORING_COLUMNS = [
    "group",
    "gene_set",
    "set_size",
    "es",
    "nes",
    "z_score",
    "pval",
    "qval",
]


@dataclass
class GeneSetScoringResult:
    """Result of scoring gene sets for one grouping column.

    Attributes
    ----------
    group_by : str
        obs column defining the groups
    table : pd.DataFrame
        Significant (group, gene set) pairs (SCORING_COLUMNS)
    n_sets_scored : int
        Gene sets within the size limits
    n_groups : int
        Number of groups scored
    """

    group_by: str
    table: pd.DataFrame = field(default_factory=lambda: pd.DataFrame(columns=SCORING_COLUMNS))
    n_sets_scored: int = 0
    n_groups: int = 0


def pseudobulk_means(adata: Any, group_by: str) -> pd.DataFrame:
    """Mean log-normalized expression per group.

    Returns
    -------
    pd.DataFrame
        Genes x groups matrix
    """
    source = adata.raw if adata.raw is not None else adata
    labels = adata.obs[group_by].astype(str).to_numpy()
    X = source.X

    columns = {}
    for group in sorted(pd.unique(labels)):
        mask = labels == group
        subset = X[mask]
        if sparse.issparse(subset):
            columns[group] = np.asarray(subset.mean(axis=0)).ravel()
        else:
            columns[group] = np.asarray(subset, dtype=float).mean(axis=0)
    return pd.DataFrame(columns, index=pd.Index(source.var_names.astype(str), name="gene"))


class GeneSetScorer:
    """Score GMT gene sets per group with ssGSEA.

    Parameters
    ----------
    config : EnrichmentConfig, optional
        Enrichment configuration. If None, uses defaults.
    logger : logging.Logger, optional
        Logger instance. If None, creates default logger.
    """

    def __init__(
        self,
        config: Optional[EnrichmentConfig] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config or EnrichmentConfig()
        self.logger = logger or logging.getLogger(__name__)

    def restrict_gene_sets(
        self, gene_sets: Dict[str, List[str]], genes: pd.Index
    ) -> Dict[str, List[str]]:
        """Intersect gene sets with measured genes and apply size limits."""
        cfg = self.config
        present = set(genes)
        kept = {}
        for name, members in gene_sets.items():
            overlap = sorted(set(members) & present)
            if cfg.min_set_size <= len(overlap) <= cfg.max_set_size:
                kept[name] = overlap
        self.logger.debug(
            "Gene sets within size limits [%d, %d]: %d of %d",
            cfg.min_set_size,
            cfg.max_set_size,
            len(kept),
            len(gene_sets),
        )
        return kept

    def run_ssgsea(self, data: pd.DataFrame, gene_sets: Dict[str, List[str]]) -> pd.DataFrame:
        """Run ssGSEA and return a long table (group, gene_set, es, nes)."""
        import gseapy as gp

        cfg = self.config
        ss = gp.ssgsea(
            data=data,
            gene_sets=gene_sets,
            outdir=None,
            min_size=cfg.min_set_size,
            max_size=cfg.max_set_size,
            permutation_num=0,
            no_plot=True,
            threads=cfg.parallel_objects,
            seed=cfg.random_seed,
        )
        res = ss.res2d.rename(
            columns={"Name": "group", "Term": "gene_set", "ES": "es", "NES": "nes"}
        )
        res = res[["group", "gene_set", "es", "nes"]].copy()
        res["group"] = res["group"].astype(str)
        res["gene_set"] = res["gene_set"].astype(str)
        res["es"] = res["es"].astype(float)
        res["nes"] = res["nes"].astype(float)
        return res

    @staticmethod
    def standardize(scores: pd.DataFrame) -> pd.DataFrame:
        """Add z-scores across groups, one-sided p-values and BH q-values."""
        scores = scores.copy()
        grouped = scores.groupby("gene_set")["nes"]
        mean = grouped.transform("mean")
        std = grouped.transform(lambda s: s.std(ddof=0))
        z = (scores["nes"] - mean) / std.replace(0, np.nan)
        scores["z_score"] = z.fillna(0.0)
        scores["pval"] = norm.sf(scores["z_score"].to_numpy())
        if len(scores):
            scores["qval"] = multipletests(scores["pval"].to_numpy(), method="fdr_bh")[1]
        else:
            scores["qval"] = pd.Series(dtype=float)
        return scores

    def score(
        self,
        adata: Any,
        gene_sets: Dict[str, List[str]],
        group_by: str,
    ) -> Optional[GeneSetScoringResult]:
        """Score gene sets for every level of a grouping column.

        Parameters
        ----------
        adata : AnnData
            AnnData with log-normalized expression in raw
        gene_sets : Dict[str, List[str]]
            Gene sets as read from a GMT file
        group_by : str
            Column in adata.obs

        Returns
        -------
        Optional[GeneSetScoringResult]
            Scoring result, or None with fewer than two groups or no usable gene set

        Raises
        ------
        KeyError
            If the grouping column is missing
        """
        cfg = self.config
        if group_by not in adata.obs:
            raise KeyError(f"Grouping column '{group_by}' not found in adata.obs")

        data = pseudobulk_means(adata, group_by)
        if data.shape[1] < 2:
            self.logger.info(
                "Skipping gene-set scoring for '%s': %d group(s)", group_by, data.shape[1]
            )
            return None

        usable = self.restrict_gene_sets(gene_sets, data.index)
        if not usable:
            self.logger.warning(
                "No gene set of size %d-%d overlaps the data; skipping '%s'",
                cfg.min_set_size,
                cfg.max_set_size,
                group_by,
            )
            return None

        self.logger.info(
            "Scoring %d gene sets across %d groups of '%s' (threads=%d)",
            len(usable),
            data.shape[1],
            group_by,
            cfg.parallel_objects,
        )
        scores = self.standardize(self.run_ssgsea(data, usable))
        scores["set_size"] = scores["gene_set"].map(lambda s: len(usable.get(s, [])))

        passed = (scores["pval"] <= cfg.p_threshold) & (scores["qval"] <= cfg.q_threshold)
        table = scores.loc[passed, SCORING_COLUMNS]
        table = table.sort_values(["group", "pval"]).reset_index(drop=True)

        self.logger.info(
            "Gene-set scoring for '%s': %d significant (group, set) pairs",
            group_by,
            len(table),
        )
        return GeneSetScoringResult(
            group_by=group_by,
            table=table,
            n_sets_scored=len(usable),
            n_groups=data.shape[1],
        )
