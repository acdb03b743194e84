"""Experiment metadata attached to the analysis object."""

import logging
from datetime import date
from importlib.metadata import PackageNotFoundError, version
from typing import Any, Dict, List, Optional

import pandas as pd

from ...io.h5ad import sanitize_uns

logger = logging.getLogger(__name__)

# Distributions whose versions are recorded with the results
TRACKED_PACKAGES = [
    "scflow",
    "anndata",
    "scanpy",
    "numpy",
    "pandas",
    "scipy",
    "scikit-learn",
    "igraph",
    "gseapy",
    "statsmodels",
    "networkx",
]


def package_versions(packages: Optional[List[str]] = None) -> Dict[str, str]:
    """Installed versions of the tracked distributions."""
    versions = {}
    for name in packages or TRACKED_PACKAGES:
        try:
            versions[name] = version(name)
        except PackageNotFoundError:
            versions[name] = "not installed"
    return versions


def _flagged_genes(adata: Any, column: str) -> List[str]:
    source = adata.raw if adata.raw is not None else adata
    if column not in source.var:
        return []
    return source.var_names[source.var[column].to_numpy(dtype=bool)].astype(str).tolist()


def annotate_experiment(adata: Any, ctx: Any) -> Dict[str, Any]:  # ctx: RunContext
    """Attach sample label, experiment description and parameters.

    Writes ``obs["sample"]``, ``uns["experiment"]``, ``uns["parameters"]``
    and completes ``uns["gene_lists"]`` with mitochondrial, ribosomal and
    highly variable genes.

    Parameters
    ----------
    adata : AnnData
        Analysis object (modified in place)
    ctx : RunContext
        Run context providing the configuration, organism and run date

    Returns
    -------
    Dict[str, Any]
        The experiment record
    """
    config = ctx.config
    project = config.project
    run_date: date = ctx.run_date

    adata.obs["sample"] = pd.Categorical([project.sample] * adata.n_obs)

    experiment = {
        "project": project.name,
        "organism": ctx.organism.code,
        "organism_name": ctx.organism.name,
        "sample": project.sample,
        "input_matrix": project.input_matrix,
        "gene_sets": project.gene_sets,
        "date_of_analysis": run_date.isoformat(),
        "n_cells": int(adata.n_obs),
        "software": package_versions(),
        "description": project.experiment,
    }
    adata.uns["experiment"] = sanitize_uns(experiment)
    adata.uns["parameters"] = sanitize_uns(config.to_dict())

    gene_lists = dict(adata.uns.get("gene_lists", {}))
    gene_lists["mitochondrial_genes"] = _flagged_genes(adata, "mt")
    gene_lists["ribosomal_genes"] = _flagged_genes(adata, "ribo")
    if "highly_variable" in adata.var:
        gene_lists["highly_variable_genes"] = adata.var_names[
            adata.var["highly_variable"].to_numpy(dtype=bool)
        ].astype(str).tolist()
    adata.uns["gene_lists"] = gene_lists

    logger.info(
        "Annotated experiment '%s' (sample %s, %s, %s)",
        project.name,
        project.sample,
        ctx.organism.code,
        run_date.isoformat(),
    )
    return experiment
