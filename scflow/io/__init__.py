"""I/O utilities for scflow.

Provides run log files (timestamped logs, JSON and YAML records) and
helpers for writing h5ad files.
"""

from .logging import format_yaml, get_timestamped_log_path, log_json, log_yaml
from .h5ad import ensure_output_dir, sanitize_uns

__all__ = [
    # Logging
    "format_yaml",
    "get_timestamped_log_path",
    "log_json",
    "log_yaml",
    # h5ad
    "ensure_output_dir",
    "sanitize_uns",
]
