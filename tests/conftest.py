"""Pytest configuration and shared fixtures for scflow tests."""

import logging
import sys
from pathlib import Path
from types import SimpleNamespace

import pytest
import pandas as pd
import yaml

# Add package to path
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

# Import mock data generators
from tests.fixtures import (
    create_count_adata,
    create_processed_adata,
    create_trajectory_adata,
    group_marker_genes,
    write_gmt,
)
from scflow.config.organism import HUMAN_S_GENES


# ============================================================================
# Mock Data Fixtures
# ============================================================================


@pytest.fixture
def counts_adata():
    """Raw count AnnData with three groups of 80 cells."""
    return create_count_adata()


@pytest.fixture(scope="session")
def _processed_adata_session():
    return create_processed_adata()


@pytest.fixture
def processed_adata(_processed_adata_session):
    """Normalized, clustered, cell-cycle scored AnnData (fresh copy per test)."""
    return _processed_adata_session.copy()


@pytest.fixture(scope="session")
def _trajectory_adata_session():
    return create_trajectory_adata()


@pytest.fixture
def trajectory_adata(_trajectory_adata_session):
    """Processed AnnData of one continuous process with latent time in obs["t"]."""
    return _trajectory_adata_session.copy()


@pytest.fixture
def gene_sets() -> dict:
    """Gene sets matching the mock group markers, plus a too-small set."""
    sets = {
        f"GROUP{group}_MARKERS": genes for group, genes in group_marker_genes().items()
    }
    sets["S_PHASE"] = list(HUMAN_S_GENES)
    sets["TINY"] = ["GENE0000", "GENE0001"]
    return sets


@pytest.fixture
def gmt_file(tmp_path, gene_sets) -> Path:
    """GMT file holding the mock gene sets."""
    path = tmp_path / "gene_sets.gmt"
    write_gmt(path, gene_sets)
    return path


# ============================================================================
# Config Fixtures
# ============================================================================


@pytest.fixture
def config_dict(tmp_path, gmt_file) -> dict:
    """Analysis configuration sized for the mock data."""
    matrix = tmp_path / "filtered_feature_bc_matrix.h5"
    matrix.touch()
    return {
        "project": {
            "name": "pbmc_test",
            "organism": "hg",
            "sample": "pbmc",
            "input_matrix": str(matrix),
            "gene_sets": str(gmt_file),
            "output_dir": str(tmp_path / "results"),
        },
        "qc": {"min_genes": 50},
        "normalization": {"n_top_genes": 200},
        "reduction": {"n_pcs": 20},
        "clustering": {"n_pcs": 20, "neighbors_k": 15, "resolution": 0.5},
        "embedding": {"n_pcs": 20, "compute_3d": False},
        "markers": {"most_expressed_top_n": 10},
        "enrichment": {"p_threshold": 0.1},
        "trajectory": {
            "n_pcs": 20,
            "neighbors_k": 15,
            "runs": [
                {"name": "all_cells"},
                {"name": "groups_0_1", "subset": {"true_group": ["0", "1"]}},
            ],
        },
        "export": {"compression": None},
    }


@pytest.fixture
def config_file(tmp_path, config_dict) -> Path:
    """YAML file of config_dict."""
    path = tmp_path / "analysis.yaml"
    with open(path, "w") as f:
        yaml.safe_dump(config_dict, f)
    return path


@pytest.fixture(autouse=True)
def restore_scflow_logger():
    """Undo handler and propagation changes made by PipelineLogger."""
    logger = logging.getLogger("scflow")
    state = (list(logger.handlers), logger.propagate, logger.level)
    yield
    for handler in logger.handlers:
        if handler not in state[0]:
            handler.close()
    logger.handlers, logger.propagate, logger.level = state


@pytest.fixture
def tmp_output_dir(tmp_path) -> Path:
    """Create temporary output directory."""
    output_dir = tmp_path / "output"
    output_dir.mkdir()
    return output_dir


# ============================================================================
# gseapy Fixtures (no network access)
# ============================================================================


@pytest.fixture
def fake_enrichr(monkeypatch):
    """Replace gseapy.enrichr; records the submitted gene lists."""
    import gseapy

    calls = []

    def enrichr(gene_list, gene_sets, organism, outdir=None, cutoff=0.05, no_plot=True, **kwargs):
        calls.append({"genes": list(gene_list), "libraries": list(gene_sets), "organism": organism})
        results = pd.DataFrame(
            {
                "Gene_set": [gene_sets[0], gene_sets[0]],
                "Term": ["strong term", "weak term"],
                "Overlap": ["5/50", "1/300"],
                "P-value": [1e-6, 0.2],
                "Adjusted P-value": [1e-4, 0.5],
                "Old P-value": [0, 0],
                "Old Adjusted P-value": [0, 0],
                "Odds Ratio": [12.0, 1.1],
                "Combined Score": [160.0, 1.8],
                "Genes": [";".join(gene_list[:5]), gene_list[0]],
            }
        )
        return SimpleNamespace(results=results)

    monkeypatch.setattr(gseapy, "enrichr", enrichr)
    return calls


@pytest.fixture
def fake_ssgsea(monkeypatch):
    """Replace gseapy.ssgsea with mean expression of each set's genes."""
    import gseapy

    def ssgsea(data, gene_sets, **kwargs):
        records = []
        for name, genes in gene_sets.items():
            members = [g for g in genes if g in data.index]
            for sample in data.columns:
                score = float(data.loc[members, sample].mean())
                records.append({"Name": sample, "Term": name, "ES": score, "NES": score})
        return SimpleNamespace(res2d=pd.DataFrame(records))

    monkeypatch.setattr(gseapy, "ssgsea", ssgsea)
    return ssgsea
