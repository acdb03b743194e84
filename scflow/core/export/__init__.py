"""Export module.

Pipeline Stages
---------------
- export_viewer: Compact viewer exchange file
- snapshot: Full h5ad snapshot

Example Usage
-------------
>>> from scflow.core.export import export_viewer, output_path, save_snapshot
>>> export_viewer(adata, output_path(config, "viewer"))
>>> save_snapshot(adata, output_path(config, "snapshot"))
"""

__version__ = "1.0.0"

from .writer import (
    OPTIONAL_VIEWER_COLUMNS,
    OUTPUT_KINDS,
    REQUIRED_VIEWER_COLUMNS,
    VIEWER_FORMAT_VERSION,
    VIEWER_UNS_KEYS,
    build_viewer,
    export_viewer,
    load_snapshot,
    output_path,
    save_snapshot,
    viewer_obs_columns,
)

__all__ = [
    "__version__",
    "OPTIONAL_VIEWER_COLUMNS",
    "OUTPUT_KINDS",
    "REQUIRED_VIEWER_COLUMNS",
    "VIEWER_FORMAT_VERSION",
    "VIEWER_UNS_KEYS",
    "build_viewer",
    "export_viewer",
    "load_snapshot",
    "output_path",
    "save_snapshot",
    "viewer_obs_columns",
]
