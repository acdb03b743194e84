"""Command-line interface for scflow.

Provides CLI commands for running the analysis and inspecting its outputs.
"""

import logging
import sys
from datetime import date, datetime
from pathlib import Path
from typing import Optional

import click

from .. import __version__


def setup_logging(verbose: bool = False, debug: bool = False) -> logging.Logger:
    """Setup logging for CLI commands."""
    level = logging.DEBUG if debug else (logging.INFO if verbose else logging.WARNING)
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S",
    )
    return logging.getLogger("scflow")


def _parse_date(value: Optional[str]) -> Optional[date]:
    if value is None:
        return None
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError as e:
        raise click.BadParameter(f"expected YYYY-MM-DD, got '{value}'") from e


@click.group()
@click.version_option(version=__version__, prog_name="scflow")
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
@click.option("--debug", is_flag=True, help="Enable debug output")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, debug: bool) -> None:
    """scflow: single-cell RNA-seq analysis from count matrix to viewer export.

    Runs a fixed sequence of stages (loading, filtering, normalization,
    clustering, embeddings, markers, enrichment, trajectories, export)
    configured by one YAML file.

    Examples:

        # Write a configuration to edit
        scflow init-config analysis.yaml

        # Check it
        scflow validate --config analysis.yaml

        # Run the analysis
        scflow run --config analysis.yaml

        # Re-run trajectories and export from a saved snapshot
        scflow run --config analysis.yaml --resume-from results/pbmc_2024-05-01.h5ad --start trajectory
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["debug"] = debug
    ctx.obj["logger"] = setup_logging(verbose, debug)


@cli.command()
@click.option("--config", "-c", required=True, type=click.Path(exists=True),
              help="Analysis configuration file (YAML)")
@click.option("--start", "start_stage", help="Stage to start from")
@click.option("--end", "end_stage", help="Stage to end at")
@click.option("--resume-from", type=click.Path(exists=True),
              help="Snapshot (.h5ad) to resume from; requires --start")
@click.option("--date", "run_date", help="Date of analysis used in output names (YYYY-MM-DD)")
@click.option("--dry-run", is_flag=True, help="Show execution plan without running")
@click.pass_context
def run(
    ctx: click.Context,
    config: str,
    start_stage: Optional[str],
    end_stage: Optional[str],
    resume_from: Optional[str],
    run_date: Optional[str],
    dry_run: bool,
) -> None:
    """Run the analysis from configuration.

    Executes the stages in order and writes the viewer file, the snapshot
    and a timestamped log into the project output directory.
    """
    logger = ctx.obj["logger"]
    debug = ctx.obj["debug"]

    from scflow.core.export import load_snapshot
    from scflow.io import log_yaml
    from scflow.pipeline import AnalysisConfig, PipelineExecutor, PipelineLogger, RunContext

    logger.info(f"Loading analysis config: {config}")
    try:
        analysis = AnalysisConfig.from_yaml(Path(config))
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if resume_from and not start_stage:
        click.echo("Error: --resume-from requires --start", err=True)
        sys.exit(1)

    fresh_start = start_stage in (None, "load")
    valid, errors = analysis.validate(check_files=fresh_start and not dry_run)
    if not valid:
        for error in errors:
            click.echo(f"Error: {error}", err=True)
        sys.exit(1)

    context = RunContext.from_config(analysis, run_date=_parse_date(run_date))

    if dry_run:
        executor = PipelineExecutor(context)
        try:
            order = executor.plan(start_stage, end_stage)
        except ValueError as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)
        click.echo(f"Pipeline stages: {' -> '.join(order)}")
        click.echo("Dry run - no stages will be executed")
        for stage_id in order:
            stage = executor.stages[stage_id]
            state = "run" if stage.is_enabled(analysis) else "skip (disabled)"
            click.echo(f"  {stage_id}: {stage.name} [{state}]")
        return

    log_dir = Path(analysis.project.output_dir) / "logs"
    pipeline_logger = PipelineLogger(str(log_dir), log_level="DEBUG" if debug else "INFO")
    pipeline_logger.setup()
    context.logger = pipeline_logger.logger
    log_yaml(None, {"configuration": analysis.to_dict()}, logger=pipeline_logger.logger)

    executor = PipelineExecutor(
        context,
        logger=pipeline_logger,
        summary_path=log_dir / "run_summary.jsonl",
    )

    try:
        adata = load_snapshot(Path(resume_from)) if resume_from else None
        executor.run(adata=adata, start_stage=start_stage, end_stage=end_stage)
    except Exception as e:
        click.echo(f"Pipeline failed: {e}", err=True)
        click.echo(f"See log: {pipeline_logger.log_file}", err=True)
        sys.exit(1)
    finally:
        pipeline_logger.close()

    click.echo("Pipeline completed successfully")
    for kind, path in context.outputs.items():
        click.echo(f"  {kind}: {path}")
    click.echo(f"  log: {pipeline_logger.log_file}")


@cli.command()
def stages() -> None:
    """List the analysis stages in execution order."""
    from scflow.pipeline import build_default_stages

    for i, stage in enumerate(build_default_stages(), start=1):
        suffix = " (optional)" if stage.optional else ""
        click.echo(f"{i:2d}. {stage.stage_id:<18} {stage.name}{suffix}")


@cli.command()
@click.option("--config", "-c", required=True, type=click.Path(exists=True),
              help="Analysis configuration file (YAML)")
@click.option("--check-files", is_flag=True, help="Also check that input files exist")
def validate(config: str, check_files: bool) -> None:
    """Validate an analysis configuration."""
    from scflow.pipeline import AnalysisConfig

    try:
        analysis = AnalysisConfig.from_yaml(Path(config))
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    valid, errors = analysis.validate(check_files=check_files)
    if not valid:
        for error in errors:
            click.echo(f"Error: {error}", err=True)
        sys.exit(1)
    click.echo("Configuration is valid")


@cli.command("init-config")
@click.argument("output", type=click.Path())
@click.option("--force", is_flag=True, help="Overwrite an existing file")
def init_config(output: str, force: bool) -> None:
    """Write the default analysis configuration to OUTPUT."""
    from scflow.pipeline import AnalysisConfig

    path = Path(output)
    if path.exists() and not force:
        click.echo(f"Error: {path} exists; use --force to overwrite", err=True)
        sys.exit(1)
    AnalysisConfig().to_yaml(path)
    click.echo(f"Wrote default configuration to {path}")


@cli.command()
@click.argument("snapshot", type=click.Path(exists=True))
def inspect(snapshot: str) -> None:
    """Summarize a saved snapshot or viewer file."""
    from scflow.core.clustering import parse_newick_leaves
    from scflow.core.export import load_snapshot

    adata = load_snapshot(Path(snapshot))
    uns = adata.uns.get("viewer", adata.uns)

    click.echo(f"File: {snapshot}")
    click.echo(f"Cells: {adata.n_obs}")
    click.echo(f"Genes: {adata.n_vars}")
    if "experiment" in uns:
        experiment = uns["experiment"]
        click.echo(f"Project: {experiment.get('project', '?')}")
        click.echo(f"Date of analysis: {experiment.get('date_of_analysis', '?')}")
    click.echo(f"obs columns: {', '.join(map(str, adata.obs.columns))}")
    for key in sorted(k for k in adata.obsm.keys() if k.startswith("X_")):
        click.echo(f"Embedding {key}: {adata.obsm[key].shape[1]} dimensions")
    click.echo(f"uns keys: {', '.join(sorted(map(str, uns.keys())))}")
    if "cluster_tree" in uns:
        leaves = parse_newick_leaves(uns["cluster_tree"]["newick"]) or []
        click.echo(f"Cluster tree: {len(leaves)} clusters ({', '.join(leaves)})")
    for name, trajectory in uns.get("trajectories", {}).items():
        click.echo(f"Trajectory {name}: {len(trajectory['meta'])} cells, "
                   f"{len(trajectory['edges'])} edges")


def main() -> None:
    """Main entry point for CLI."""
    cli(obj={})


if __name__ == "__main__":
    main()
