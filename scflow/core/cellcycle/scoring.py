"""Cell-cycle phase scoring.

Scores S and G2/M programs per cell on log-normalized expression and
assigns a phase (G1, S or G2M).
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd

from ...config import OrganismProfile

logger = logging.getLogger(__name__)

PHASES = ["G1", "S", "G2M"]


@dataclass
class CellCycleResult:
    """Result from cell-cycle scoring.

    Attributes
    ----------
    s_genes : List[str]
        S-phase genes found in the data
    g2m_genes : List[str]
        G2/M-phase genes found in the data
    phase_counts : Dict[str, int]
        Number of cells per phase
    scored : bool
        False when the gene lists did not overlap the data
    """

    s_genes: List[str] = field(default_factory=list)
    g2m_genes: List[str] = field(default_factory=list)
    phase_counts: Dict[str, int] = field(default_factory=dict)
    scored: bool = True


def _available_genes(adata: Any, genes: List[str]) -> List[str]:
    names = adata.raw.var_names if adata.raw is not None else adata.var_names
    present = set(names)
    return [g for g in genes if g in present]


def score_cell_cycle(
    adata: Any,
    organism: OrganismProfile,
    random_seed: int = 0,
) -> CellCycleResult:
    """Score cell-cycle phases into ``adata.obs``.

    Writes ``S_score``, ``G2M_score`` and categorical ``phase``; stores the
    gene lists used in ``adata.uns["gene_lists"]``.

    Parameters
    ----------
    adata : AnnData
        AnnData with log-normalized expression in raw (or X)
    organism : OrganismProfile
        Organism providing S and G2/M gene lists
    random_seed : int
        Seed for control gene sampling

    Returns
    -------
    CellCycleResult
        Scoring summary
    """
    import scanpy as sc

    s_genes = _available_genes(adata, organism.s_genes)
    g2m_genes = _available_genes(adata, organism.g2m_genes)
    result = CellCycleResult(s_genes=s_genes, g2m_genes=g2m_genes)

    gene_lists = dict(adata.uns.get("gene_lists", {}))
    gene_lists["S_genes"] = s_genes
    gene_lists["G2M_genes"] = g2m_genes
    adata.uns["gene_lists"] = gene_lists

    if not s_genes or not g2m_genes:
        logger.warning(
            "Cell-cycle genes missing from data (S: %d/%d, G2M: %d/%d); "
            "assigning all cells to G1",
            len(s_genes),
            len(organism.s_genes),
            len(g2m_genes),
            len(organism.g2m_genes),
        )
        adata.obs["S_score"] = np.nan
        adata.obs["G2M_score"] = np.nan
        adata.obs["phase"] = pd.Categorical(["G1"] * adata.n_obs, categories=PHASES)
        result.scored = False
        result.phase_counts = {"G1": adata.n_obs, "S": 0, "G2M": 0}
        return result

    logger.info(
        "Scoring cell cycle with %d S and %d G2M genes", len(s_genes), len(g2m_genes)
    )
    sc.tl.score_genes_cell_cycle(
        adata,
        s_genes=s_genes,
        g2m_genes=g2m_genes,
        use_raw=adata.raw is not None,
        random_state=random_seed,
    )
    adata.obs["phase"] = pd.Categorical(
        adata.obs["phase"].astype(str), categories=PHASES
    )

    result.phase_counts = {
        str(k): int(v) for k, v in adata.obs["phase"].value_counts(sort=False).items()
    }
    logger.info("Cell-cycle phases: %s", result.phase_counts)
    return result
