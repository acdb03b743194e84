"""Unit tests for the command-line interface."""

from pathlib import Path

import anndata as ad
import numpy as np
import pandas as pd
import pytest
import yaml
from click.testing import CliRunner

from scflow import __version__
from scflow.cli.main import cli


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


class TestCommands:
    """Tests for informational commands."""

    def test_version(self, runner):
        """Test --version."""
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_stages(self, runner):
        """Test the stage listing."""
        result = runner.invoke(cli, ["stages"])
        assert result.exit_code == 0
        lines = result.output.strip().splitlines()
        assert len(lines) == 16
        assert "load" in lines[0]
        assert "snapshot" in lines[-1]
        assert "(optional)" in [line for line in lines if "enrichr" in line][0]

    def test_inspect(self, runner, tmp_path):
        """Test the snapshot summary."""
        adata = ad.AnnData(
            X=np.zeros((4, 3), dtype=np.float32),
            obs=pd.DataFrame({"cluster": ["0", "0", "1", "1"]}, index=list("abcd")),
        )
        adata.obsm["X_umap"] = np.zeros((4, 2))
        adata.obsm["raw_counts"] = np.zeros((4, 5))
        adata.uns["experiment"] = {"project": "pbmc", "date_of_analysis": "2024-05-01"}
        adata.uns["cluster_tree"] = {"newick": "(0:1,1:1);", "order": ["0", "1"]}
        path = tmp_path / "pbmc.h5ad"
        adata.write_h5ad(path)

        result = runner.invoke(cli, ["inspect", str(path)])
        assert result.exit_code == 0, result.output
        assert "Cells: 4" in result.output
        assert "Genes: 3" in result.output
        assert "Project: pbmc" in result.output
        assert "Date of analysis: 2024-05-01" in result.output
        assert "Embedding X_umap: 2 dimensions" in result.output
        assert "raw_counts" not in result.output
        assert "Cluster tree: 2 clusters (0, 1)" in result.output


class TestConfigCommands:
    """Tests for init-config and validate."""

    def test_init_config(self, runner, tmp_path):
        """Test writing and refusing to overwrite the default configuration."""
        path = tmp_path / "analysis.yaml"
        result = runner.invoke(cli, ["init-config", str(path)])
        assert result.exit_code == 0
        assert "Wrote default configuration to" in result.output
        assert "project" in yaml.safe_load(path.read_text())

        result = runner.invoke(cli, ["init-config", str(path)])
        assert result.exit_code == 1
        assert "--force" in result.output

        result = runner.invoke(cli, ["init-config", str(path), "--force"])
        assert result.exit_code == 0

    def test_validate_default_config(self, runner, tmp_path):
        """Test that the default configuration needs an input matrix."""
        path = tmp_path / "analysis.yaml"
        runner.invoke(cli, ["init-config", str(path)])

        result = runner.invoke(cli, ["validate", "--config", str(path)])
        assert result.exit_code == 1
        assert "project.input_matrix is required" in result.output

    def test_validate(self, runner, config_file):
        """Test a valid configuration."""
        result = runner.invoke(cli, ["validate", "--config", str(config_file), "--check-files"])
        assert result.exit_code == 0, result.output
        assert "Configuration is valid" in result.output

    def test_validate_unknown_key(self, runner, tmp_path):
        """Test that unknown keys are reported."""
        path = tmp_path / "bad.yaml"
        path.write_text(yaml.safe_dump({"clustering": {"resolutoin": 1.0}}))
        result = runner.invoke(cli, ["validate", "--config", str(path)])
        assert result.exit_code == 1
        assert "resolutoin" in result.output


class TestRunCommand:
    """Tests for the run command."""

    def test_dry_run(self, runner, config_file):
        """Test the execution plan."""
        result = runner.invoke(cli, ["run", "--config", str(config_file), "--dry-run"])
        assert result.exit_code == 0, result.output
        assert "Pipeline stages: load -> filter" in result.output
        assert "Dry run - no stages will be executed" in result.output
        assert "  enrichr: Enrichr annotation [run]" in result.output

    def test_dry_run_disabled_stage(self, runner, tmp_path, config_dict):
        """Test that disabled stages are marked in the plan."""
        config_dict["enrichment"]["enrichr_enabled"] = False
        path = tmp_path / "no_enrichr.yaml"
        path.write_text(yaml.safe_dump(config_dict))

        result = runner.invoke(
            cli, ["run", "-c", str(path), "--dry-run", "--start", "markers", "--end", "trajectory"]
        )
        assert result.exit_code == 0, result.output
        assert "Pipeline stages: markers -> enrichr -> gene_set_scoring -> trajectory" in result.output
        assert "  enrichr: Enrichr annotation [skip (disabled)]" in result.output

    def test_dry_run_unknown_stage(self, runner, config_file):
        """Test that an unknown start stage fails."""
        result = runner.invoke(cli, ["run", "-c", str(config_file), "--dry-run", "--start", "plots"])
        assert result.exit_code == 1
        assert "Start stage 'plots' not found" in result.output

    def test_resume_requires_start(self, runner, config_file, tmp_path):
        """Test that --resume-from needs --start."""
        snapshot = tmp_path / "snap.h5ad"
        snapshot.touch()
        result = runner.invoke(cli, ["run", "-c", str(config_file), "--resume-from", str(snapshot)])
        assert result.exit_code == 1
        assert "--resume-from requires --start" in result.output

    def test_bad_date(self, runner, config_file):
        """Test that malformed dates are rejected."""
        result = runner.invoke(cli, ["run", "-c", str(config_file), "--date", "05/01/2024"])
        assert result.exit_code != 0
        assert "YYYY-MM-DD" in result.output

    def test_run_partial(self, runner, monkeypatch, config_file, config_dict, counts_adata):
        """Test a run through clustering with a stubbed matrix reader."""
        monkeypatch.setattr(
            "scflow.pipeline.stages.load_count_matrix", lambda path, genome=None: counts_adata
        )
        result = runner.invoke(
            cli, ["run", "-c", str(config_file), "--end", "cluster", "--date", "2024-05-01"]
        )
        assert result.exit_code == 0, result.output
        assert "Pipeline completed successfully" in result.output

        log_dir = Path(config_dict["project"]["output_dir"]) / "logs"
        logs = list(log_dir.glob("pipeline_*.log"))
        assert len(logs) == 1
        text = logs[0].read_text()
        assert "Stage cluster completed successfully" in text
        assert "configuration:" in text
        assert (log_dir / "run_summary.jsonl").exists()
