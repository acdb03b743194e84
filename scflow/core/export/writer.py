"""Export of the analysis object.

Two files are written per run, both named after the project and the run
date:

- ``<project>_<date>_viewer.h5ad``: compact exchange file for interactive
  viewers (log-normalized expression, cell metadata, embeddings and every
  result table bundled under ``uns["viewer"]``)
- ``<project>_<date>.h5ad``: full snapshot that can be reloaded to resume
"""

import logging
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd

from ...io.h5ad import ensure_output_dir, sanitize_uns

logger = logging.getLogger(__name__)

VIEWER_FORMAT_VERSION = "1.0"

# obs columns a viewer file cannot do without
REQUIRED_VIEWER_COLUMNS = ["sample", "cluster", "nUMI", "nGene", "percent_mt"]

OPTIONAL_VIEWER_COLUMNS = ["percent_ribo", "phase", "S_score", "G2M_score"]

VIEWER_UNS_KEYS = [
    "experiment",
    "parameters",
    "gene_lists",
    "cluster_tree",
    "most_expressed_genes",
    "qc_summary",
    "marker_genes",
    "enriched_pathways",
    "trajectories",
]

OUTPUT_KINDS = ("viewer", "snapshot")


def output_path(config: Any, kind: str, run_date: Optional[date] = None) -> Path:  # config: AnalysisConfig
    """Path of an output file.

    Parameters
    ----------
    config : AnalysisConfig
        Analysis configuration (project and export sections)
    kind : str
        "viewer" or "snapshot"
    run_date : date, optional
        Date embedded in the file name (default: today)

    Returns
    -------
    Path
        ``<output_dir>/<project>_<date><suffix>``
    """
    if kind not in OUTPUT_KINDS:
        raise ValueError(f"Unknown output kind '{kind}'. Expected one of {OUTPUT_KINDS}")

    run_date = run_date or date.today()
    export = config.export
    suffix = export.viewer_suffix if kind == "viewer" else export.snapshot_suffix
    stamp = run_date.strftime(export.date_format)
    return Path(config.project.output_dir) / f"{config.project.name}_{stamp}{suffix}"


def viewer_obs_columns(adata: Any, cluster_key: str = "cluster") -> List[str]:
    """obs columns written to the viewer file, required ones first.

    Raises
    ------
    ValueError
        If a required column is missing
    """
    required = [cluster_key if c == "cluster" else c for c in REQUIRED_VIEWER_COLUMNS]
    missing = [c for c in required if c not in adata.obs]
    if missing:
        raise ValueError(
            f"Cannot export viewer file; missing obs column(s): {', '.join(missing)}"
        )
    optional = [c for c in OPTIONAL_VIEWER_COLUMNS if c in adata.obs]
    pseudotimes = sorted(c for c in adata.obs if str(c).startswith("dpt_pseudotime_"))
    return required + optional + pseudotimes


def build_viewer(adata: Any, cluster_key: str = "cluster") -> Any:
    """Build the compact viewer AnnData from the analysis object.

    Parameters
    ----------
    adata : AnnData
        Fully analysed object
    cluster_key : str
        Cluster column in adata.obs

    Returns
    -------
    AnnData
        Viewer object with log-normalized expression of all genes and,
        when available, their counts in ``layers["counts"]``
    """
    import anndata as ad

    columns = viewer_obs_columns(adata, cluster_key)

    if adata.raw is not None:
        X = adata.raw.X.copy()
        var = pd.DataFrame(index=adata.raw.var_names.astype(str))
        source_var = adata.raw.var
    else:
        X = adata.X.copy()
        var = pd.DataFrame(index=adata.var_names.astype(str))
        source_var = adata.var
    for flag in ("mt", "ribo"):
        if flag in source_var:
            var[flag] = source_var[flag].to_numpy(dtype=bool)
    var["highly_variable"] = np.isin(var.index, adata.var_names.astype(str))

    obsm = {key: np.asarray(value) for key, value in adata.obsm.items() if key.startswith("X_")}

    bundle: Dict[str, Any] = {"format_version": VIEWER_FORMAT_VERSION, "cluster_key": cluster_key}
    for key in VIEWER_UNS_KEYS:
        if key in adata.uns:
            bundle[key] = adata.uns[key]

    viewer = ad.AnnData(
        X=X,
        obs=adata.obs[columns].copy(),
        var=var,
        obsm=obsm,
        uns={"viewer": sanitize_uns(bundle)},
    )
    if adata.raw is not None and "raw_counts" in adata.obsm:
        viewer.layers["counts"] = adata.obsm["raw_counts"].copy()
    elif adata.raw is None and "counts" in adata.layers:
        viewer.layers["counts"] = adata.layers["counts"].copy()
    return viewer


def export_viewer(
    adata: Any,
    path: Path,
    cluster_key: str = "cluster",
    compression: Optional[str] = None,
) -> Path:
    """Write the viewer exchange file.

    Raises
    ------
    ValueError
        If required obs columns are missing
    """
    viewer = build_viewer(adata, cluster_key)
    path = ensure_output_dir(path)
    viewer.write_h5ad(path, compression=compression)
    logger.info(
        "Exported viewer file %s (%d cells, %d genes, embeddings: %s)",
        path,
        viewer.n_obs,
        viewer.n_vars,
        ", ".join(sorted(viewer.obsm.keys())) or "none",
    )
    return path


def save_snapshot(adata: Any, path: Path, compression: Optional[str] = None) -> Path:
    """Write the full analysis object."""
    path = ensure_output_dir(path)
    adata.write_h5ad(path, compression=compression)
    logger.info("Saved snapshot %s", path)
    return path


def load_snapshot(path: Path) -> Any:
    """Reload a snapshot written by save_snapshot.

    Raises
    ------
    FileNotFoundError
        If the file does not exist
    """
    import anndata as ad

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Snapshot not found: {path}")
    adata = ad.read_h5ad(path)
    logger.info("Loaded snapshot %s (%d cells, %d genes)", path, adata.n_obs, adata.n_vars)
    return adata
