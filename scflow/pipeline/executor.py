"""In-memory pipeline execution."""

import logging
import time
from collections import deque
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from ..io.logging import log_json
from .logger import PipelineLogger
from .stage import RunContext, Stage
from .stages import build_default_stages


class PipelineExecutor:
    """Runs analysis stages in dependency order on one AnnData.

    Stages run sequentially in the calling thread. A failing stage is
    logged and its exception re-raised; later stages do not run.

    Parameters
    ----------
    context : RunContext
        Run context shared by all stages
    stages : List[Stage], optional
        Stages to run. Default: build_default_stages()
    logger : PipelineLogger, optional
        Logger for stage events
    summary_path : Path, optional
        JSON-lines file receiving one record per completed run

    Attributes
    ----------
    stages : Dict[str, Stage]
        Stages by stage_id
    completed_stages : List[str]
        Stages completed in the current run
    skipped_stages : List[str]
        Optional stages disabled by the configuration
    timings : Dict[str, float]
        Seconds spent per completed stage

    Example
    -------
    >>> ctx = RunContext.from_config(AnalysisConfig.from_yaml("analysis.yaml"))
    >>> logger = PipelineLogger("results/logs")
    >>> logger.setup()
    >>> executor = PipelineExecutor(ctx, logger=logger)
    >>> adata = executor.run()
    """

    def __init__(
        self,
        context: RunContext,
        stages: Optional[List[Stage]] = None,
        logger: Optional[PipelineLogger] = None,
        summary_path: Optional[Path] = None,
    ):
        self.context = context
        self.stages: Dict[str, Stage] = {
            stage.stage_id: stage for stage in (stages or build_default_stages())
        }
        self.logger = logger
        self.summary_path = Path(summary_path) if summary_path else None
        self.completed_stages: List[str] = []
        self.skipped_stages: List[str] = []
        self.timings: Dict[str, float] = {}

    def _log(self, message: str, *args: Any) -> None:
        if self.logger:
            self.logger.log(logging.INFO, message, *args)

    def validate_dependencies(self) -> Tuple[bool, List[str]]:
        """Check that every dependency names a known stage.

        Returns
        -------
        Tuple[bool, List[str]]
            (valid, errors) where valid is True if all dependencies are valid
        """
        errors = []
        for stage_id, stage in self.stages.items():
            for dep in stage.depends_on:
                if dep not in self.stages:
                    errors.append(f"Stage '{stage_id}' depends on unknown stage '{dep}'")
        return (len(errors) == 0, errors)

    def get_execution_order(self) -> List[str]:
        """Compute stage execution order via topological sort.

        Uses Kahn's algorithm; stages without mutual dependencies keep
        their registration order.

        Raises
        ------
        ValueError
            If circular dependencies detected
        """
        in_degree = {stage_id: 0 for stage_id in self.stages}

        for stage_id, stage in self.stages.items():
            for dep in stage.depends_on:
                if dep in self.stages:
                    in_degree[stage_id] += 1

        queue = deque([sid for sid, degree in in_degree.items() if degree == 0])
        order = []

        while queue:
            stage_id = queue.popleft()
            order.append(stage_id)

            for other_id, other_stage in self.stages.items():
                if stage_id in other_stage.depends_on:
                    in_degree[other_id] -= 1
                    if in_degree[other_id] == 0:
                        queue.append(other_id)

        if len(order) != len(self.stages):
            raise ValueError("Circular dependency detected - cannot compute execution order")

        return order

    def plan(
        self,
        start_stage: Optional[str] = None,
        end_stage: Optional[str] = None,
    ) -> List[str]:
        """Execution order restricted to [start_stage, end_stage].

        Raises
        ------
        ValueError
            If a boundary stage is unknown or end precedes start
        """
        order = self.get_execution_order()

        if start_stage:
            if start_stage not in order:
                raise ValueError(f"Start stage '{start_stage}' not found")
            order = order[order.index(start_stage):]

        if end_stage:
            if end_stage not in order:
                raise ValueError(f"End stage '{end_stage}' not found after start stage")
            order = order[: order.index(end_stage) + 1]

        return order

    def run(
        self,
        adata: Any = None,
        start_stage: Optional[str] = None,
        end_stage: Optional[str] = None,
        dry_run: bool = False,
    ) -> Any:
        """Execute the pipeline from start_stage to end_stage.

        Parameters
        ----------
        adata : AnnData, optional
            Object to start from. Required unless the run starts with 'load'.
        start_stage : str, optional
            Stage ID to start from (default: first stage)
        end_stage : str, optional
            Stage ID to end at (default: last stage)
        dry_run : bool
            If True, log the execution plan without running

        Returns
        -------
        AnnData
            The object returned by the last stage (input object on dry run)

        Raises
        ------
        ValueError
            If the plan is invalid or a later start lacks an input object
        Exception
            Any stage error, re-raised after logging
        """
        valid, errors = self.validate_dependencies()
        if not valid:
            raise ValueError("; ".join(errors))

        order = self.plan(start_stage, end_stage)
        config = self.context.config

        self._log("Pipeline execution plan: %s", " -> ".join(order))
        if dry_run:
            self._log("DRY RUN MODE - No stages will be executed")
            for stage_id in order:
                stage = self.stages[stage_id]
                state = "run" if stage.is_enabled(config) else "skip (disabled)"
                self._log("[DRY RUN] %s: %s -> %s", stage_id, stage.name, state)
            return adata

        if adata is None and order and order[0] != "load" and "load" in self.stages:
            raise ValueError(
                f"Starting at stage '{order[0]}' requires an AnnData; "
                "resume from a snapshot"
            )

        run_start = time.time()
        for i, stage_id in enumerate(order, start=1):
            stage = self.stages[stage_id]
            if not stage.is_enabled(config):
                if self.logger:
                    self.logger.log_stage_skipped(stage_id, "disabled in configuration")
                self.skipped_stages.append(stage_id)
                continue

            if self.logger:
                self.logger.log_stage_start(stage_id, stage.name, position=(i, len(order)))
            start_time = time.time()
            try:
                adata = stage.func(adata, self.context)
            except Exception as e:
                if self.logger:
                    self.logger.log_stage_error(stage_id, e)
                raise

            duration = time.time() - start_time
            self.timings[stage_id] = duration
            self.completed_stages.append(stage_id)
            if self.logger:
                self.logger.log_stage_complete(
                    stage_id, duration, self.context.results.get(stage_id)
                )

        total = time.time() - run_start
        self._log("Pipeline completed successfully in %s", PipelineLogger.format_duration(total))
        if self.summary_path is not None:
            log_json(self.summary_path, self.summary(total))
        return adata

    def summary(self, total_seconds: float = 0.0) -> Dict[str, Any]:
        """Record of the last run (stages, timings, outputs, stage results)."""
        return {
            "timestamp": datetime.now().isoformat(),
            "project": self.context.config.project.name,
            "run_date": self.context.run_date.isoformat(),
            "completed_stages": self.completed_stages,
            "skipped_stages": self.skipped_stages,
            "timings": self.timings,
            "total_seconds": total_seconds,
            "outputs": {k: str(v) for k, v in self.context.outputs.items()},
            "results": self.context.results,
        }
