"""Command-line interface for scflow.

Example Usage
-------------
    # From command line:
    scflow --help
    scflow init-config analysis.yaml
    scflow run --config analysis.yaml
    scflow inspect results/pbmc_2024-05-01.h5ad
"""

from .main import cli, main

__all__ = [
    "cli",
    "main",
]
