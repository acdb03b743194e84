"""Run logging: a timestamped log file plus colored console output."""

import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from ..io.logging import get_timestamped_log_path

FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
CONSOLE_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


class ColoredFormatter(logging.Formatter):
    """Formatter coloring the level name; the record itself is left unchanged."""

    def __init__(self, fmt: str, datefmt: str, colors: Dict[str, str]):
        super().__init__(fmt=fmt, datefmt=datefmt)
        self.colors = colors

    def format(self, record: logging.LogRecord) -> str:
        levelname = record.levelname
        record.levelname = (
            f"{self.colors.get(levelname, self.colors['RESET'])}{levelname}{self.colors['RESET']}"
        )
        try:
            return super().format(record)
        finally:
            record.levelname = levelname


class PipelineLogger:
    """Log destination of one analysis run.

    Handlers are attached to the ``scflow`` logger, so the module loggers of
    every stage (``scflow.core.*``) write into the same run log. The file
    receives the logger name of each message; the console gets a shorter,
    colored line.

    Parameters
    ----------
    log_dir : str
        Directory for the run log, created if missing
    log_level : str
        Level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    log_name : str
        Logger to configure. Default: "scflow"
    console : bool
        Also log to stdout

    Attributes
    ----------
    log_file : Path
        ``<log_dir>/pipeline_<YYYYmmdd_HHMMSS>.log``
    logger : logging.Logger
        Configured logger

    Example
    -------
    >>> run_log = PipelineLogger("results/logs")
    >>> run_log.setup()
    >>> run_log.log_stage_start("markers", "Marker genes", position=(11, 16))
    >>> run_log.log_stage_complete("markers", 45.2, {"cluster": {"0": 120}})
    >>> run_log.close()
    """

    COLORS = {
        "DEBUG": "\033[0;36m",
        "INFO": "\033[0;34m",
        "WARNING": "\033[1;33m",
        "ERROR": "\033[0;31m",
        "CRITICAL": "\033[1;31m",
        "RESET": "\033[0m",
    }

    SEPARATOR = "=" * 80

    def __init__(
        self,
        log_dir: str,
        log_level: str = "INFO",
        log_name: str = "scflow",
        console: bool = True,
    ):
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.log_file = get_timestamped_log_path(self.log_dir / "pipeline.log")

        self.console = console
        self.level = logging.getLevelName(log_level.upper())
        if not isinstance(self.level, int):
            raise ValueError(f"Unknown log level '{log_level}'")

        self.logger = logging.getLogger(log_name)
        self.logger.setLevel(self.level)
        self.logger.propagate = False
        self.logger.handlers = []

    def setup(self) -> None:
        """Attach the file handler and, if enabled, the console handler."""
        self._attach(
            logging.FileHandler(self.log_file, mode="w", encoding="utf-8"),
            logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"),
        )
        if self.console:
            self._attach(
                logging.StreamHandler(sys.stdout),
                ColoredFormatter(CONSOLE_FORMAT, "%H:%M:%S", self.COLORS),
            )

    def _attach(self, handler: logging.Handler, formatter: logging.Formatter) -> None:
        handler.setLevel(self.level)
        handler.setFormatter(formatter)
        self.logger.addHandler(handler)

    def close(self) -> None:
        """Detach and close all handlers."""
        for handler in list(self.logger.handlers):
            handler.close()
            self.logger.removeHandler(handler)

    def log(self, level: int, message: str, *args: Any) -> None:
        """Log a message at the given level."""
        self.logger.log(level, message, *args)

    def log_stage_start(
        self, stage_id: str, stage_name: str, position: Optional[tuple] = None
    ) -> None:
        """Log the start of a stage, optionally as ``[i/n]``."""
        counter = f"[{position[0]}/{position[1]}] " if position else ""
        self.logger.info(self.SEPARATOR)
        self.logger.info("%sStarting stage %s: %s", counter, stage_id, stage_name)
        self.logger.info(self.SEPARATOR)

    def log_stage_complete(
        self, stage_id: str, duration: float, summary: Optional[Dict[str, Any]] = None
    ) -> None:
        """Log a completed stage and, at DEBUG level, its result summary."""
        self.logger.info(
            "Stage %s completed successfully in %s", stage_id, self.format_duration(duration)
        )
        for key, value in (summary or {}).items():
            self.logger.debug("  %s.%s: %s", stage_id, key, value)

    def log_stage_skipped(self, stage_id: str, reason: str) -> None:
        """Log a stage that is not run."""
        self.logger.info("[SKIP] Stage %s: %s", stage_id, reason)

    def log_stage_error(self, stage_id: str, error: BaseException) -> None:
        """Log a failed stage; the traceback goes to the log file."""
        self.logger.error("Stage %s failed: %s", stage_id, error, exc_info=error)

    @staticmethod
    def format_duration(seconds: float) -> str:
        """Format seconds as "45.2s", "1m 23s" or "2h 15m"."""
        if seconds < 60:
            return f"{seconds:.1f}s"
        minutes, secs = divmod(int(seconds), 60)
        if minutes < 60:
            return f"{minutes}m {secs}s"
        hours, minutes = divmod(minutes, 60)
        return f"{hours}h {minutes}m"
