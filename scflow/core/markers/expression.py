"""Per-group expression summaries.

Most expressed genes and QC metric summaries per level of a grouping
column (sample, cluster).
"""

import logging
from typing import Any, Dict, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from scipy import sparse

logger = logging.getLogger(__name__)

QC_SUMMARY_METRICS = ["nUMI", "nGene", "percent_mt", "percent_ribo"]


def _count_fractions(adata: Any) -> Tuple[Any, pd.Index]:
    """Per-cell fraction of counts of every gene.

    Counts come from ``obsm["raw_counts"]`` after normalization, from
    ``layers["counts"]`` before it, and otherwise from expm1 of raw.
    """
    if adata.raw is not None and "raw_counts" in adata.obsm:
        X, genes, logged = adata.obsm["raw_counts"], adata.raw.var_names, False
    elif adata.raw is None and "counts" in adata.layers:
        X, genes, logged = adata.layers["counts"], adata.var_names, False
    else:
        source = adata.raw if adata.raw is not None else adata
        X, genes, logged = source.X, source.var_names, True

    if sparse.issparse(X):
        X = sparse.csr_matrix(X, dtype=float, copy=True)
        if logged:
            X.data = np.expm1(X.data)
        totals = np.asarray(X.sum(axis=1)).ravel()
        totals[totals == 0] = 1.0
        fractions = sparse.diags(1.0 / totals) @ X
    else:
        X = np.asarray(X, dtype=float)
        if logged:
            X = np.expm1(X)
        totals = X.sum(axis=1)
        totals[totals == 0] = 1.0
        fractions = X / totals[:, None]
    return fractions, genes


def most_expressed_genes(
    adata: Any,
    group_by: str,
    top_n: int = 100,
) -> pd.DataFrame:
    """Genes with the highest mean share of transcripts per group.

    Parameters
    ----------
    adata : AnnData
        AnnData with counts (``obsm["raw_counts"]`` or ``layers["counts"]``)
        or log-normalized expression in raw
    group_by : str
        Column in adata.obs
    top_n : int
        Number of genes reported per group

    Returns
    -------
    pd.DataFrame
        Tidy table with columns group, gene, pct (percent of transcripts)
    """
    if group_by not in adata.obs:
        raise KeyError(f"Grouping column '{group_by}' not found in adata.obs")

    fractions, genes = _count_fractions(adata)
    labels = adata.obs[group_by].astype(str).to_numpy()

    records = []
    for group in sorted(pd.unique(labels)):
        mask = labels == group
        mean = np.asarray(fractions[mask].mean(axis=0)).ravel()
        order = np.argsort(-mean)[:top_n]
        for idx in order:
            records.append(
                {"group": group, "gene": str(genes[idx]), "pct": float(100 * mean[idx])}
            )

    table = pd.DataFrame(records, columns=["group", "gene", "pct"])
    logger.info(
        "Most expressed genes for '%s': top %d in %d groups",
        group_by,
        top_n,
        table["group"].nunique(),
    )
    return table


def qc_summary(
    adata: Any,
    group_by: str,
    metrics: Optional[Sequence[str]] = None,
) -> pd.DataFrame:
    """Summarize QC metrics per group.

    Parameters
    ----------
    adata : AnnData
        AnnData with QC metrics in obs
    group_by : str
        Column in adata.obs
    metrics : Sequence[str], optional
        Metrics to summarize (default: QC_SUMMARY_METRICS present in obs)

    Returns
    -------
    pd.DataFrame
        One row per group: n_cells plus median and mean of each metric
    """
    if group_by not in adata.obs:
        raise KeyError(f"Grouping column '{group_by}' not found in adata.obs")

    if metrics is None:
        metrics = [m for m in QC_SUMMARY_METRICS if m in adata.obs]

    obs = adata.obs[[group_by, *metrics]].copy()
    obs[group_by] = obs[group_by].astype(str)
    grouped = obs.groupby(group_by, sort=True)

    summary = grouped.size().rename("n_cells").to_frame()
    for metric in metrics:
        summary[f"{metric}_median"] = grouped[metric].median()
        summary[f"{metric}_mean"] = grouped[metric].mean()

    summary.index.name = "group"
    return summary.reset_index()


def summarize_groups(
    adata: Any,
    group_by: Sequence[str],
    top_n: int = 100,
) -> Dict[str, Dict[str, pd.DataFrame]]:
    """Compute most-expressed genes and QC summaries for several groupings.

    Results are stored in ``adata.uns["most_expressed_genes"]`` and
    ``adata.uns["qc_summary"]``.
    """
    expressed = dict(adata.uns.get("most_expressed_genes", {}))
    summaries = dict(adata.uns.get("qc_summary", {}))
    for column in group_by:
        if column not in adata.obs:
            logger.warning("Grouping column '%s' not in obs; skipping", column)
            continue
        expressed[column] = most_expressed_genes(adata, column, top_n=top_n)
        summaries[column] = qc_summary(adata, column)
    adata.uns["most_expressed_genes"] = expressed
    adata.uns["qc_summary"] = summaries
    return {"most_expressed_genes": expressed, "qc_summary": summaries}
