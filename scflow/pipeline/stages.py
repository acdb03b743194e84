"""Stage functions of the default analysis.

Every stage takes the shared AnnData (None before loading) and the run
context, and returns the AnnData the next stage works on.
"""

from typing import Any, List

from ..core.annotation import annotate_experiment
from ..core.cellcycle import score_cell_cycle
from ..core.clustering import ClusteringEngine, build_cluster_tree
from ..core.embedding import EmbeddingEngine
from ..core.enrichment import EnrichrAnnotator, GeneSetScorer
from ..core.export import export_viewer, output_path, save_snapshot
from ..core.markers import MarkerFinder, summarize_groups
from ..core.preprocessing import (
    CellFilter,
    Normalizer,
    annotate_gene_groups,
    load_count_matrix,
    summarize_matrix,
)
from ..core.trajectory import TrajectoryEngine
from .stage import RunContext, Stage


def _require(adata: Any, stage_id: str) -> Any:
    if adata is None:
        raise ValueError(
            f"Stage '{stage_id}' needs an AnnData; start from 'load' or resume from a snapshot"
        )
    return adata


def run_load(adata: Any, ctx: RunContext) -> Any:
    """Load the count matrix (and check the gene-set file)."""
    if ctx.config.enrichment.gene_set_scoring_enabled:
        ctx.get_gene_sets()
    adata = load_count_matrix(ctx.config.project.input_matrix)
    ctx.results["load"] = summarize_matrix(adata, ctx.config.project.input_matrix).to_dict()
    return adata


def run_filter(adata: Any, ctx: RunContext) -> Any:
    adata = _require(adata, "filter")
    annotate_gene_groups(adata, ctx.organism)
    adata, result = CellFilter(ctx.config.preprocessing.qc).filter(adata)
    ctx.results["filter"] = result.to_dict()
    return adata


def run_normalize(adata: Any, ctx: RunContext) -> Any:
    adata = _require(adata, "normalize")
    adata, result = Normalizer(ctx.config.preprocessing.normalization).normalize(adata)
    ctx.results["normalize"] = result.to_dict()
    return adata


def run_pca(adata: Any, ctx: RunContext) -> Any:
    adata = _require(adata, "pca")
    n_pcs = ClusteringEngine(ctx.config.clustering).run_pca(adata)
    ctx.results["pca"] = {"n_pcs": n_pcs}
    return adata


def run_cluster(adata: Any, ctx: RunContext) -> Any:
    adata = _require(adata, "cluster")
    result = ClusteringEngine(ctx.config.clustering).run_clustering(adata)
    ctx.results["cluster"] = {
        "n_clusters": result.n_clusters,
        "cluster_sizes": result.cluster_sizes,
    }
    return adata


def run_cluster_tree(adata: Any, ctx: RunContext) -> Any:
    adata = _require(adata, "cluster_tree")
    cfg = ctx.config.clustering.clustering
    tree = build_cluster_tree(adata, cluster_key=cfg.cluster_key, linkage_method=cfg.tree_linkage)
    ctx.results["cluster_tree"] = {"newick": tree["newick"]}
    return adata


def run_cell_cycle(adata: Any, ctx: RunContext) -> Any:
    adata = _require(adata, "cell_cycle")
    result = score_cell_cycle(adata, ctx.organism, random_seed=ctx.config.cell_cycle.random_seed)
    ctx.results["cell_cycle"] = {"scored": result.scored, "phase_counts": result.phase_counts}
    return adata


def run_embeddings(adata: Any, ctx: RunContext) -> Any:
    adata = _require(adata, "embeddings")
    result = EmbeddingEngine(ctx.config.embedding).run(adata)
    ctx.results["embeddings"] = dict(result.embeddings)
    return adata


def run_annotate(adata: Any, ctx: RunContext) -> Any:
    adata = _require(adata, "annotate")
    annotate_experiment(adata, ctx)
    return adata


def run_qc_summary(adata: Any, ctx: RunContext) -> Any:
    adata = _require(adata, "qc_summary")
    cfg = ctx.config.markers
    summarize_groups(adata, cfg.group_by, top_n=cfg.most_expressed_top_n)
    return adata


def run_markers(adata: Any, ctx: RunContext) -> Any:
    adata = _require(adata, "markers")
    results = MarkerFinder(ctx.config.markers).find_all(adata)
    ctx.results["markers"] = {
        group_by: result.n_markers_per_group for group_by, result in results.items()
    }
    return adata


def _store_enrichment(adata: Any, method: str, group_by: str, table: Any) -> None:
    pathways = dict(adata.uns.get("enriched_pathways", {}))
    by_method = dict(pathways.get(method, {}))
    by_method[group_by] = table
    pathways[method] = by_method
    adata.uns["enriched_pathways"] = pathways


def run_enrichr(adata: Any, ctx: RunContext) -> Any:
    adata = _require(adata, "enrichr")
    annotator = EnrichrAnnotator(ctx.config.enrichment, ctx.organism)
    summary = {}
    for group_by, table in adata.uns.get("marker_genes", {}).items():
        if len(table) == 0:
            ctx.logger.info("No markers for '%s'; skipping Enrichr", group_by)
            continue
        result = annotator.annotate(table)
        _store_enrichment(adata, "enrichr", group_by, result.table)
        summary[group_by] = {"n_terms": len(result.table), "failed_groups": result.failed_groups}
    ctx.results["enrichr"] = summary
    return adata


def run_gene_set_scoring(adata: Any, ctx: RunContext) -> Any:
    adata = _require(adata, "gene_set_scoring")
    gene_sets = ctx.get_gene_sets()
    scorer = GeneSetScorer(ctx.config.enrichment)
    summary = {}
    for group_by in ctx.config.markers.group_by:
        if group_by not in adata.obs:
            ctx.logger.warning("Grouping column '%s' not in obs; skipping", group_by)
            continue
        result = scorer.score(adata, gene_sets, group_by)
        if result is None:
            continue
        _store_enrichment(adata, "gene_set_scoring", group_by, result.table)
        summary[group_by] = len(result.table)
    ctx.results["gene_set_scoring"] = summary
    return adata


def run_trajectory(adata: Any, ctx: RunContext) -> Any:
    adata = _require(adata, "trajectory")
    results = TrajectoryEngine(ctx.config.trajectory).run_all(adata)
    ctx.results["trajectory"] = {
        name: {"n_cells": result.n_cells, "n_states": result.n_states}
        for name, result in results.items()
    }
    return adata


def run_export_viewer(adata: Any, ctx: RunContext) -> Any:
    adata = _require(adata, "export_viewer")
    path = export_viewer(
        adata,
        output_path(ctx.config, "viewer", ctx.run_date),
        cluster_key=ctx.config.clustering.clustering.cluster_key,
        compression=ctx.config.export.compression,
    )
    ctx.outputs["viewer"] = path
    return adata


def run_snapshot(adata: Any, ctx: RunContext) -> Any:
    adata = _require(adata, "snapshot")
    path = save_snapshot(
        adata,
        output_path(ctx.config, "snapshot", ctx.run_date),
        compression=ctx.config.export.compression,
    )
    ctx.outputs["snapshot"] = path
    return adata


def build_default_stages() -> List[Stage]:
    """The default analysis as a chain of stages."""
    specs = [
        ("load", "Count matrix loading", run_load, None),
        ("filter", "Cell filtering and QC metrics", run_filter, None),
        ("normalize", "Normalization and scaling", run_normalize, None),
        ("pca", "Principal component analysis", run_pca, None),
        ("cluster", "Leiden clustering", run_cluster, None),
        ("cluster_tree", "Cluster tree", run_cluster_tree, None),
        ("cell_cycle", "Cell-cycle scoring", run_cell_cycle, lambda c: c.cell_cycle.enabled),
        ("embeddings", "t-SNE and UMAP embeddings", run_embeddings, None),
        ("annotate", "Experiment metadata", run_annotate, None),
        ("qc_summary", "QC summaries and most expressed genes", run_qc_summary, None),
        ("markers", "Marker genes", run_markers, None),
        (
            "enrichr",
            "Enrichr annotation",
            run_enrichr,
            lambda c: c.enrichment.enrichr_enabled,
        ),
        (
            "gene_set_scoring",
            "Gene-set scoring",
            run_gene_set_scoring,
            lambda c: c.enrichment.gene_set_scoring_enabled and bool(c.project.gene_sets),
        ),
        ("trajectory", "Trajectory inference", run_trajectory, lambda c: c.trajectory.enabled),
        ("export_viewer", "Viewer export", run_export_viewer, None),
        ("snapshot", "Snapshot", run_snapshot, None),
    ]

    stages = []
    previous = None
    for stage_id, name, func, enabled in specs:
        stages.append(
            Stage(
                stage_id=stage_id,
                name=name,
                func=func,
                depends_on=[previous] if previous else [],
                optional=enabled is not None,
                enabled=enabled,
            )
        )
        previous = stage_id
    return stages
