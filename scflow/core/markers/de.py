"""Marker-gene detection.

Runs one-vs-rest differential expression per grouping column and returns
a tidy, filtered marker table per grouping.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import logging
import time

import pandas as pd

from .config import MarkerConfig

MARKER_COLUMNS = [
    "group",
    "gene",
    "score",
    "logfoldchange",
    "pval",
    "pval_adj",
    "pct_in",
    "pct_out",
]

_RENAME = {
    "names": "gene",
    "scores": "score",
    "logfoldchanges": "logfoldchange",
    "pvals": "pval",
    "pvals_adj": "pval_adj",
    "pct_nz_group": "pct_in",
    "pct_nz_reference": "pct_out",
}


@dataclass
class MarkerResult:
    """Result from marker detection for one grouping column.

    Attributes
    ----------
    group_by : str
        obs column the markers were computed for
    table : pd.DataFrame
        Tidy marker table (MARKER_COLUMNS)
    n_markers_per_group : Dict[str, int]
        Markers passing the thresholds per group
    elapsed_seconds : float
        Time taken for the test
    """

    group_by: str
    table: pd.DataFrame = field(default_factory=lambda: pd.DataFrame(columns=MARKER_COLUMNS))
    n_markers_per_group: Dict[str, int] = field(default_factory=dict)
    elapsed_seconds: float = 0.0


class MarkerFinder:
    """Marker-gene finder on log-normalized expression.

    Parameters
    ----------
    config : MarkerConfig, optional
        Marker configuration. If None, uses defaults.
    logger : logging.Logger, optional
        Logger instance. If None, creates default logger.

    Example
    -------
    >>> finder = MarkerFinder(MarkerConfig(padj_threshold=0.05))
    >>> results = finder.find_all(adata)
    >>> results["cluster"].table.head()
    """

    def __init__(
        self,
        config: Optional[MarkerConfig] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config or MarkerConfig()
        self.logger = logger or logging.getLogger(__name__)

    def filter_table(self, df: pd.DataFrame) -> pd.DataFrame:
        """Apply significance, fold-change and detection thresholds."""
        cfg = self.config
        mask = df["pval_adj"] <= cfg.padj_threshold
        if cfg.only_positive:
            mask &= df["logfoldchange"] >= cfg.logfc_threshold
        else:
            mask &= df["logfoldchange"].abs() >= cfg.logfc_threshold
        if "pct_in" in df.columns:
            mask &= df["pct_in"] >= cfg.min_pct
        return df.loc[mask].reset_index(drop=True)

    def find_markers(self, adata: Any, group_by: str) -> Optional[MarkerResult]:
        """Find markers for every level of one grouping column.

        Parameters
        ----------
        adata : AnnData
            AnnData with log-normalized expression in raw
        group_by : str
            Column in adata.obs

        Returns
        -------
        Optional[MarkerResult]
            Marker result, or None if the column has fewer than two testable groups

        Raises
        ------
        KeyError
            If the grouping column is missing
        """
        import scanpy as sc

        cfg = self.config
        if group_by not in adata.obs:
            raise KeyError(f"Grouping column '{group_by}' not found in adata.obs")

        sizes = adata.obs[group_by].astype(str).value_counts()
        testable = sorted(sizes[sizes >= 2].index.tolist())
        if len(testable) < 2:
            self.logger.info(
                "Skipping markers for '%s': %d testable group(s)", group_by, len(testable)
            )
            return None

        # rank_genes_groups requires a categorical grouping column
        if not isinstance(adata.obs[group_by].dtype, pd.CategoricalDtype):
            adata.obs[group_by] = adata.obs[group_by].astype(str).astype("category")

        key = f"rank_genes_{group_by}"
        self.logger.info(
            "Finding markers for '%s' (%d groups, method=%s)",
            group_by,
            len(testable),
            cfg.method,
        )
        start = time.time()
        sc.tl.rank_genes_groups(
            adata,
            groupby=group_by,
            groups=testable,
            reference="rest",
            method=cfg.method,
            use_raw=adata.raw is not None,
            tie_correct=cfg.tie_correct if cfg.method == "wilcoxon" else False,
            pts=True,
            key_added=key,
        )
        elapsed = time.time() - start

        df = sc.get.rank_genes_groups_df(adata, group=None, key=key)
        # the full test statistics for every gene are not kept
        del adata.uns[key]

        if "group" not in df.columns:
            df.insert(0, "group", testable[0])
        df = df.rename(columns=_RENAME)
        df["group"] = df["group"].astype(str)
        df["gene"] = df["gene"].astype(str)
        for column in MARKER_COLUMNS:
            if column not in df.columns:
                df[column] = float("nan")
        df = self.filter_table(df[MARKER_COLUMNS])
        df = df.sort_values(["group", "pval_adj", "logfoldchange"], ascending=[True, True, False])
        df = df.reset_index(drop=True)

        result = MarkerResult(group_by=group_by, table=df, elapsed_seconds=elapsed)
        result.n_markers_per_group = {
            group: int((df["group"] == group).sum()) for group in testable
        }
        self.logger.info(
            "Markers for '%s': %d genes across %d groups in %.1fs",
            group_by,
            len(df),
            len(testable),
            elapsed,
        )
        return result

    def find_all(self, adata: Any) -> Dict[str, MarkerResult]:
        """Find markers for every configured grouping column.

        Results are stored in ``adata.uns["marker_genes"][group_by]``.
        Groupings without testable groups are skipped.
        """
        results: Dict[str, MarkerResult] = {}
        store = dict(adata.uns.get("marker_genes", {}))
        for group_by in self.config.group_by:
            if group_by not in adata.obs:
                self.logger.warning("Grouping column '%s' not in obs; skipping", group_by)
                continue
            result = self.find_markers(adata, group_by)
            if result is None:
                continue
            results[group_by] = result
            store[group_by] = result.table
        adata.uns["marker_genes"] = store
        return results


def top_marker_genes(
    table: pd.DataFrame, group: str, n_genes: Optional[int] = None
) -> List[str]:
    """Top marker genes of one group, ordered as in the table."""
    genes = table.loc[table["group"] == str(group), "gene"].astype(str).tolist()
    return genes if n_genes is None else genes[:n_genes]
