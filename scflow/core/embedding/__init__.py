"""Embedding module (t-SNE and UMAP, 2D and 3D)."""

from .engine import (
    EmbeddingConfig,
    EmbeddingEngine,
    EmbeddingResult,
)

__all__ = [
    "EmbeddingConfig",
    "EmbeddingEngine",
    "EmbeddingResult",
]
