"""Run log files for scflow.

Every run leaves three kinds of records in ``<output_dir>/logs``: the
timestamped pipeline log, the configuration as a YAML document inside that
log, and one JSON line per run in ``run_summary.jsonl``.
"""

from __future__ import annotations

import json
import logging
from datetime import date, datetime
from pathlib import Path
from typing import Any, Optional, Union

import numpy as np
import yaml

PathLike = Union[str, Path]

TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"


def get_timestamped_log_path(log_path: PathLike, when: Optional[datetime] = None) -> Path:
    """Insert a timestamp before the suffix of a log path.

    ``logs/pipeline.log`` becomes ``logs/pipeline_20240501_093012.log``, so
    repeated runs into the same output directory keep their logs.

    Parameters
    ----------
    log_path : PathLike
        Base log file path; ``.log`` is used when it has no suffix
    when : datetime, optional
        Time to embed (default: now)

    Returns
    -------
    Path
        Timestamped log path
    """
    log_path = Path(log_path)
    stamp = (when or datetime.now()).strftime(TIMESTAMP_FORMAT)
    return log_path.with_name(f"{log_path.stem}_{stamp}{log_path.suffix or '.log'}")


def _json_default(value: Any) -> Any:
    # stage summaries carry numpy counts, dates and output paths
    if isinstance(value, np.generic):
        return value.item()
    if isinstance(value, np.ndarray):
        return value.tolist()
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value)


def log_json(log_path: PathLike, record: dict[str, Any]) -> None:
    """Append one record as a JSON line, creating the directory if needed."""
    path = Path(log_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("a", encoding="utf-8") as handle:
        handle.write(json.dumps(record, default=_json_default) + "\n")


def format_yaml(record: dict[str, Any]) -> str:
    """Render a record as a YAML document terminated by ``---``."""
    return yaml.safe_dump(record, sort_keys=False).rstrip("\n") + "\n---"


def log_yaml(
    log_path: Optional[PathLike],
    record: dict[str, Any],
    *,
    logger: Optional[logging.Logger] = None,
) -> None:
    """Write a record as a YAML document to a logger or a file.

    Parameters
    ----------
    log_path : PathLike, optional
        File the document is appended to when no logger is given
    record : dict
        Plain-data record (e.g. ``{"configuration": config.to_dict()}``)
    logger : logging.Logger, optional
        Logger receiving the document at INFO level

    Raises
    ------
    ValueError
        If neither log_path nor logger is given
    """
    document = format_yaml(record)
    if logger is not None:
        logger.info("%s", document)
        return
    if log_path is None:
        raise ValueError("log_path is required when no logger is given")

    path = Path(log_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("a", encoding="utf-8") as handle:
        handle.write(document + "\n")
