"""Helpers for writing analysis results into h5ad files."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping, Union

import numpy as np
import pandas as pd

PathLike = Union[str, Path]


def ensure_output_dir(path: PathLike) -> Path:
    """Create the parent directory of an output file and return the path."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    return path


def sanitize_uns(value: Any) -> Any:
    """Convert a nested structure into something h5ad can store in ``uns``.

    None values are dropped from mappings, tuples and sets become lists,
    lists of mappings become mappings keyed by position, paths become
    strings and numpy scalars become Python scalars.
    DataFrames and arrays are returned unchanged.

    Parameters
    ----------
    value : Any
        Value to convert

    Returns
    -------
    Any
        Converted value (None if the value itself is None)
    """
    if value is None:
        return None
    if isinstance(value, (pd.DataFrame, np.ndarray)):
        return value
    if isinstance(value, Mapping):
        cleaned = {}
        for key, item in value.items():
            item = sanitize_uns(item)
            if item is not None:
                cleaned[str(key)] = item
        return cleaned
    if isinstance(value, (list, tuple, set)):
        items = [sanitize_uns(item) for item in value]
        items = [item for item in items if item is not None]
        # h5ad has no encoding for lists of mappings
        if items and all(isinstance(item, Mapping) for item in items):
            return {str(i): item for i, item in enumerate(items)}
        return items
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, np.generic):
        return value.item()
    return value
