"""Unit tests for pipeline configuration, stages and execution."""

import json
import logging
from datetime import date

import pytest
import yaml

from scflow.pipeline import (
    AnalysisConfig,
    ColoredFormatter,
    PipelineExecutor,
    PipelineLogger,
    RunContext,
    Stage,
    build_default_stages,
)
from scflow.pipeline.stages import run_load


# ============================================================================
# Helpers
# ============================================================================


def _append(step):
    """Stage function appending its name to a list standing in for AnnData."""

    def func(adata, ctx):
        return (adata or []) + [step]

    return func


def _fake_stages(optional_enabled: bool = True):
    return [
        Stage("load", "Load", _append("load")),
        Stage("filter", "Filter", _append("filter"), depends_on=["load"]),
        Stage(
            "extra",
            "Optional extra",
            _append("extra"),
            depends_on=["filter"],
            optional=True,
            enabled=lambda config: optional_enabled,
        ),
        Stage("export", "Export", _append("export"), depends_on=["extra"]),
    ]


@pytest.fixture
def context() -> RunContext:
    """Run context over the default configuration."""
    return RunContext.from_config(AnalysisConfig(), run_date=date(2024, 5, 1))


# ============================================================================
# Configuration
# ============================================================================


class TestAnalysisConfig:
    """Tests for AnalysisConfig."""

    def test_defaults(self):
        """Test default configuration values."""
        config = AnalysisConfig()
        assert config.project.organism == "hg"
        assert config.preprocessing.qc.min_genes > 0
        assert config.cell_cycle.enabled
        assert config.export.date_format == "%Y-%m-%d"
        assert config.trajectory.cluster_key == config.clustering.clustering.cluster_key

    def test_from_dict(self, config_dict):
        """Test that every section is applied."""
        config = AnalysisConfig.from_dict(config_dict)
        assert config.project.name == "pbmc_test"
        assert config.preprocessing.qc.min_genes == 50
        assert config.preprocessing.normalization.n_top_genes == 200
        assert config.clustering.reduction.n_pcs == 20
        assert config.clustering.clustering.resolution == 0.5
        assert config.embedding.compute_3d is False
        assert config.enrichment.p_threshold == 0.1
        assert [run.name for run in config.trajectory.runs] == ["all_cells", "groups_0_1"]
        assert config.export.compression is None

    def test_from_yaml(self, config_file):
        """Test loading from a YAML file."""
        config = AnalysisConfig.from_yaml(config_file)
        assert config.project.sample == "pbmc"
        assert config.config_path == config_file

    def test_from_yaml_analysis_wrapper(self, tmp_path, config_dict):
        """Test that a top-level 'analysis' key is unwrapped."""
        path = tmp_path / "wrapped.yaml"
        path.write_text(yaml.safe_dump({"analysis": config_dict}))
        assert AnalysisConfig.from_yaml(path).project.name == "pbmc_test"

    def test_from_yaml_missing(self, tmp_path):
        """Test that a missing file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            AnalysisConfig.from_yaml(tmp_path / "missing.yaml")

    def test_unknown_section(self):
        """Test that an unknown section raises ValueError."""
        with pytest.raises(ValueError, match="Unknown configuration section"):
            AnalysisConfig.from_dict({"plots": {}})

    def test_unknown_key(self):
        """Test that an unknown key raises ValueError."""
        with pytest.raises(ValueError, match="Unknown key\\(s\\) in section 'qc'"):
            AnalysisConfig.from_dict({"qc": {"min_gene": 100}})

    def test_trajectory_inherits_cluster_key(self):
        """Test that trajectories use the clustering column by default."""
        config = AnalysisConfig.from_dict({"clustering": {"cluster_key": "leiden"}})
        assert config.trajectory.cluster_key == "leiden"

        config = AnalysisConfig.from_dict(
            {"clustering": {"cluster_key": "leiden"}, "trajectory": {"cluster_key": "cell_type"}}
        )
        assert config.trajectory.cluster_key == "cell_type"

    def test_validate_valid(self, config_dict):
        """Test a valid configuration with file checks."""
        valid, errors = AnalysisConfig.from_dict(config_dict).validate(check_files=True)
        assert valid, errors

    def test_validate_default(self):
        """Test that the default configuration lacks inputs."""
        valid, errors = AnalysisConfig().validate()
        assert not valid
        assert "project.input_matrix is required" in errors
        assert any("project.gene_sets is required" in e for e in errors)

    def test_validate_organism(self, config_dict):
        """Test that an unknown organism is reported."""
        config_dict["project"]["organism"] = "zebrafish"
        valid, errors = AnalysisConfig.from_dict(config_dict).validate()
        assert not valid
        assert any("Unknown organism" in e for e in errors)

    def test_validate_missing_files(self, config_dict, tmp_path):
        """Test that missing inputs are reported only with check_files."""
        config_dict["project"]["input_matrix"] = str(tmp_path / "nope.h5")
        config = AnalysisConfig.from_dict(config_dict)
        assert config.validate()[0]
        valid, errors = config.validate(check_files=True)
        assert not valid
        assert any("Input matrix not found" in e for e in errors)

    def test_validate_phase_subset_without_cell_cycle(self, config_dict):
        """Test that phase subsets need cell-cycle scoring."""
        config_dict["cell_cycle"] = {"enabled": False}
        config_dict["trajectory"]["runs"] = [{"name": "G1_only", "subset": {"phase": ["G1"]}}]
        valid, errors = AnalysisConfig.from_dict(config_dict).validate()
        assert not valid
        assert any("subsets on phase" in e for e in errors)

    def test_yaml_round_trip(self, tmp_path, config_dict):
        """Test that to_yaml output loads back to the same configuration."""
        config = AnalysisConfig.from_dict(config_dict)
        path = config.to_yaml(tmp_path / "out" / "analysis.yaml")
        assert AnalysisConfig.from_yaml(path).to_dict() == config.to_dict()


# ============================================================================
# Stages and context
# ============================================================================


class TestStages:
    """Tests for Stage and the default stage list."""

    def test_is_enabled(self, context):
        """Test enablement of required and optional stages."""
        config = context.config
        assert Stage("a", "A", _append("a")).is_enabled(config)
        assert Stage("b", "B", _append("b"), optional=True).is_enabled(config)
        stage = Stage("c", "C", _append("c"), optional=True, enabled=lambda c: c.cell_cycle.enabled)
        assert stage.is_enabled(config)
        config.cell_cycle.enabled = False
        assert not stage.is_enabled(config)

    def test_default_order(self, context):
        """Test the default stage sequence."""
        executor = PipelineExecutor(context)
        assert executor.get_execution_order() == [
            "load",
            "filter",
            "normalize",
            "pca",
            "cluster",
            "cluster_tree",
            "cell_cycle",
            "embeddings",
            "annotate",
            "qc_summary",
            "markers",
            "enrichr",
            "gene_set_scoring",
            "trajectory",
            "export_viewer",
            "snapshot",
        ]

    def test_default_optional(self):
        """Test which default stages can be switched off."""
        optional = {stage.stage_id for stage in build_default_stages() if stage.optional}
        assert optional == {"cell_cycle", "enrichr", "gene_set_scoring", "trajectory"}

    def test_gene_set_scoring_needs_file(self, context):
        """Test that gene-set scoring is off without a GMT file."""
        stages = {stage.stage_id: stage for stage in build_default_stages()}
        assert not stages["gene_set_scoring"].is_enabled(context.config)

    def test_context_gene_sets(self, config_dict, gene_sets):
        """Test that gene sets are loaded once from the GMT file."""
        ctx = RunContext.from_config(AnalysisConfig.from_dict(config_dict))
        assert ctx.organism.code == "hg"
        loaded = ctx.get_gene_sets()
        assert loaded["GROUP0_MARKERS"] == gene_sets["GROUP0_MARKERS"]
        assert ctx.get_gene_sets() is loaded

    def test_context_without_gene_sets(self, context):
        """Test that no GMT file gives None."""
        assert context.get_gene_sets() is None

    def test_run_load(self, monkeypatch, config_dict, counts_adata):
        """Test the load stage with a stubbed reader."""
        seen = []

        def fake_load(path, genome=None):
            seen.append(path)
            return counts_adata

        monkeypatch.setattr("scflow.pipeline.stages.load_count_matrix", fake_load)
        ctx = RunContext.from_config(AnalysisConfig.from_dict(config_dict))
        adata = run_load(None, ctx)

        assert adata is counts_adata
        assert seen == [config_dict["project"]["input_matrix"]]
        assert ctx.results["load"]["n_cells"] == counts_adata.n_obs
        assert ctx.gene_sets is not None

    def test_stage_requires_adata(self, context):
        """Test that stages after load refuse a missing object."""
        stages = {stage.stage_id: stage for stage in build_default_stages()}
        with pytest.raises(ValueError, match="needs an AnnData"):
            stages["markers"].func(None, context)


# ============================================================================
# Executor
# ============================================================================


class TestPipelineExecutor:
    """Tests for PipelineExecutor with stand-in stages."""

    def test_order_and_plan(self, context):
        """Test topological order and start/end restriction."""
        executor = PipelineExecutor(context, stages=_fake_stages())
        assert executor.get_execution_order() == ["load", "filter", "extra", "export"]
        assert executor.plan("filter", "extra") == ["filter", "extra"]
        assert executor.plan(end_stage="load") == ["load"]

    def test_plan_unknown_stage(self, context):
        """Test that unknown boundary stages raise ValueError."""
        executor = PipelineExecutor(context, stages=_fake_stages())
        with pytest.raises(ValueError, match="Start stage 'nope' not found"):
            executor.plan("nope")
        with pytest.raises(ValueError, match="End stage"):
            executor.plan("export", "load")

    def test_circular_dependency(self, context):
        """Test cycle detection."""
        stages = [
            Stage("a", "A", _append("a"), depends_on=["b"]),
            Stage("b", "B", _append("b"), depends_on=["a"]),
        ]
        with pytest.raises(ValueError, match="Circular dependency"):
            PipelineExecutor(context, stages=stages).get_execution_order()

    def test_unknown_dependency(self, context):
        """Test that unknown dependencies fail validation and the run."""
        stages = [Stage("a", "A", _append("a"), depends_on=["missing"])]
        executor = PipelineExecutor(context, stages=stages)
        valid, errors = executor.validate_dependencies()
        assert not valid
        assert "unknown stage 'missing'" in errors[0]
        with pytest.raises(ValueError, match="missing"):
            executor.run()

    def test_run(self, context):
        """Test that stages run in order and pass the object along."""
        executor = PipelineExecutor(context, stages=_fake_stages())
        result = executor.run()

        assert result == ["load", "filter", "extra", "export"]
        assert executor.completed_stages == result
        assert set(executor.timings) == set(result)
        assert executor.skipped_stages == []

    def test_skip_disabled(self, context):
        """Test that disabled optional stages are skipped."""
        executor = PipelineExecutor(context, stages=_fake_stages(optional_enabled=False))
        result = executor.run()

        assert result == ["load", "filter", "export"]
        assert executor.skipped_stages == ["extra"]

    def test_resume_requires_adata(self, context):
        """Test that a later start needs an input object."""
        executor = PipelineExecutor(context, stages=_fake_stages())
        with pytest.raises(ValueError, match="requires an AnnData"):
            executor.run(start_stage="filter")
        assert executor.run(adata=["snapshot"], start_stage="extra") == [
            "snapshot",
            "extra",
            "export",
        ]

    def test_error_propagates(self, context, tmp_path):
        """Test that a failing stage stops the run and re-raises."""

        def broken(adata, ctx):
            raise RuntimeError("stage exploded")

        stages = _fake_stages()
        stages[1] = Stage("filter", "Filter", broken, depends_on=["load"])
        logger = PipelineLogger(str(tmp_path / "logs"), log_name="scflow_test_exec", console=False)
        logger.setup()
        executor = PipelineExecutor(context, stages=stages, logger=logger)

        with pytest.raises(RuntimeError, match="stage exploded"):
            executor.run()
        logger.close()

        assert executor.completed_stages == ["load"]
        assert "Stage filter failed: stage exploded" in logger.log_file.read_text()

    def test_dry_run(self, context):
        """Test that a dry run executes nothing."""
        executor = PipelineExecutor(context, stages=_fake_stages())
        assert executor.run(adata="untouched", dry_run=True) == "untouched"
        assert executor.completed_stages == []

    def test_summary_file(self, context, tmp_path):
        """Test the JSON-lines run summary."""
        path = tmp_path / "logs" / "summary.jsonl"
        executor = PipelineExecutor(context, stages=_fake_stages(False), summary_path=path)
        executor.run()

        record = json.loads(path.read_text().splitlines()[-1])
        assert record["run_date"] == "2024-05-01"
        assert record["completed_stages"] == ["load", "filter", "export"]
        assert record["skipped_stages"] == ["extra"]


# ============================================================================
# Logging
# ============================================================================


class TestPipelineLogger:
    """Tests for PipelineLogger."""

    @pytest.mark.parametrize(
        "seconds,expected",
        [(45.23, "45.2s"), (83, "1m 23s"), (8100, "2h 15m")],
    )
    def test_format_duration(self, seconds, expected):
        """Test human-readable durations."""
        assert PipelineLogger.format_duration(seconds) == expected

    def test_setup_writes_file(self, tmp_path):
        """Test that stage events reach the timestamped log file."""
        logger = PipelineLogger(str(tmp_path), log_name="scflow_test_logger", console=False)
        logger.setup()
        logger.log_stage_start("markers", "Marker genes")
        logger.log_stage_complete("markers", 83)
        logger.log_stage_skipped("enrichr", "disabled in configuration")
        logger.close()

        text = logger.log_file.read_text()
        assert logger.log_file.name.startswith("pipeline_")
        assert "Starting stage markers: Marker genes" in text
        assert "Stage markers completed successfully in 1m 23s" in text
        assert "[SKIP] Stage enrichr" in text
        assert logger.logger.handlers == []

    def test_stage_position_and_summary(self, tmp_path):
        """Test the stage counter and DEBUG-level result summaries."""
        logger = PipelineLogger(
            str(tmp_path), log_level="debug", log_name="scflow_test_debug", console=False
        )
        logger.setup()
        logger.log_stage_start("cluster", "Leiden clustering", position=(5, 16))
        logger.log_stage_complete("cluster", 2.0, {"n_clusters": 3})
        logger.log_stage_error("cluster", RuntimeError("boom"))
        logger.close()

        text = logger.log_file.read_text()
        assert "[5/16] Starting stage cluster: Leiden clustering" in text
        assert "cluster.n_clusters: 3" in text
        assert "Stage cluster failed: boom" in text

    def test_unknown_level(self, tmp_path):
        """Test that an unknown level name raises ValueError."""
        with pytest.raises(ValueError, match="Unknown log level"):
            PipelineLogger(str(tmp_path), log_level="LOUD", log_name="scflow_test_level")

    def test_colored_formatter_restores_levelname(self):
        """Test that coloring does not leak into other handlers."""
        formatter = ColoredFormatter("%(levelname)s %(message)s", "%H:%M:%S", PipelineLogger.COLORS)
        record = logging.LogRecord("scflow", logging.WARNING, __file__, 1, "careful", None, None)

        text = formatter.format(record)
        assert PipelineLogger.COLORS["WARNING"] in text
        assert record.levelname == "WARNING"


# ============================================================================
# Default pipeline
# ============================================================================


class TestDefaultPipeline:
    """End-to-end run of the default stages on mock counts."""

    def test_run_from_filter(self, config_dict, counts_adata, fake_enrichr, fake_ssgsea):
        """Test a full run producing the viewer file and the snapshot."""
        from scflow.core.export import load_snapshot

        config = AnalysisConfig.from_dict(config_dict)
        ctx = RunContext.from_config(config, run_date=date(2024, 5, 1))
        executor = PipelineExecutor(ctx)
        adata = executor.run(adata=counts_adata, start_stage="filter")

        assert executor.completed_stages[0] == "filter"
        assert executor.completed_stages[-1] == "snapshot"
        assert executor.skipped_stages == []

        viewer = ctx.outputs["viewer"]
        snapshot = ctx.outputs["snapshot"]
        assert viewer.name == "pbmc_test_2024-05-01_viewer.h5ad"
        assert snapshot.name == "pbmc_test_2024-05-01.h5ad"
        assert viewer.exists() and snapshot.exists()

        for key in (
            "experiment",
            "parameters",
            "gene_lists",
            "cluster_tree",
            "most_expressed_genes",
            "qc_summary",
            "marker_genes",
            "enriched_pathways",
            "trajectories",
        ):
            assert key in adata.uns, key
        assert set(adata.uns["enriched_pathways"]) == {"enrichr", "gene_set_scoring"}
        assert set(adata.uns["trajectories"]) == {"all_cells", "groups_0_1"}
        assert {"X_pca", "X_tsne", "X_umap"} <= set(adata.obsm)
        assert fake_enrichr

        # separated groups may leave cells unreachable from the root
        restored = load_snapshot(snapshot)
        assert restored.n_obs == adata.n_obs
        assert "dpt_pseudotime_all_cells" in restored.obs
        assert set(restored.uns["trajectories"]) == {"all_cells", "groups_0_1"}
