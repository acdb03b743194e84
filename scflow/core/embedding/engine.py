"""Low-dimensional embeddings for visualization.

Computes 2D t-SNE and UMAP with scanpy and, optionally, their 3D
counterparts (scikit-learn t-SNE, scanpy UMAP with three components).
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import logging

import numpy as np


@dataclass
class EmbeddingConfig:
    """Configuration for embeddings.

    Attributes
    ----------
    n_pcs : int
        Principal components used as input
    tsne_perplexity : float
        t-SNE perplexity (capped by the number of cells)
    umap_min_dist : float
        UMAP min_dist
    umap_spread : float
        UMAP spread
    compute_3d : bool
        Also compute 3D t-SNE and UMAP
    random_seed : int
        Random seed for reproducibility
    """

    n_pcs: int = 30
    tsne_perplexity: float = 30.0
    umap_min_dist: float = 0.3
    umap_spread: float = 1.0
    compute_3d: bool = True
    random_seed: int = 1337


@dataclass
class EmbeddingResult:
    """Names and shapes of the embeddings computed."""

    embeddings: Dict[str, List[int]] = field(default_factory=dict)
    perplexity_used: float = 0.0


class EmbeddingEngine:
    """Compute t-SNE and UMAP embeddings.

    Parameters
    ----------
    config : EmbeddingConfig, optional
        Embedding configuration. If None, uses defaults.
    logger : logging.Logger, optional
        Logger instance. If None, creates default logger.

    Example
    -------
    >>> engine = EmbeddingEngine(EmbeddingConfig(compute_3d=False))
    >>> result = engine.run(adata)
    >>> adata.obsm["X_umap"].shape
    (2700, 2)
    """

    def __init__(
        self,
        config: Optional[EmbeddingConfig] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config or EmbeddingConfig()
        self.logger = logger or logging.getLogger(__name__)

    def effective_perplexity(self, n_obs: int) -> float:
        """Cap perplexity so that 3 * perplexity stays below the number of cells."""
        cap = max((n_obs - 1) / 3.0, 1.0)
        return float(min(self.config.tsne_perplexity, cap))

    def _n_pcs(self, adata: Any) -> int:
        return min(self.config.n_pcs, adata.obsm["X_pca"].shape[1])

    def run_tsne(self, adata: Any, perplexity: float) -> None:
        """2D t-SNE on PCA into ``obsm["X_tsne"]``."""
        import scanpy as sc

        sc.tl.tsne(
            adata,
            n_pcs=self._n_pcs(adata),
            use_rep="X_pca",
            perplexity=perplexity,
            random_state=self.config.random_seed,
        )

    def run_tsne_3d(self, adata: Any, perplexity: float) -> None:
        """3D t-SNE on PCA into ``obsm["X_tsne_3d"]``."""
        from sklearn.manifold import TSNE

        X = np.asarray(adata.obsm["X_pca"][:, : self._n_pcs(adata)])
        tsne = TSNE(
            n_components=3,
            perplexity=perplexity,
            init="pca",
            random_state=self.config.random_seed,
        )
        adata.obsm["X_tsne_3d"] = tsne.fit_transform(X).astype(np.float32)

    def run_umap(self, adata: Any, n_components: int = 2) -> np.ndarray:
        """UMAP on the existing neighborhood graph; returns the coordinates."""
        import scanpy as sc

        sc.tl.umap(
            adata,
            n_components=n_components,
            min_dist=self.config.umap_min_dist,
            spread=self.config.umap_spread,
            random_state=self.config.random_seed,
        )
        return adata.obsm["X_umap"]

    def run(self, adata: Any) -> EmbeddingResult:
        """Compute all configured embeddings.

        Parameters
        ----------
        adata : AnnData
            AnnData with X_pca and a neighborhood graph (modified in place)

        Returns
        -------
        EmbeddingResult
            Computed embedding names and shapes

        Raises
        ------
        KeyError
            If PCA or the neighborhood graph is missing
        """
        if "X_pca" not in adata.obsm:
            raise KeyError("X_pca not found in adata.obsm; run PCA first")
        if "neighbors" not in adata.uns:
            raise KeyError("Neighborhood graph not found; run clustering first")

        perplexity = self.effective_perplexity(adata.n_obs)
        if perplexity < self.config.tsne_perplexity:
            self.logger.warning(
                "t-SNE perplexity reduced from %.1f to %.1f for %d cells",
                self.config.tsne_perplexity,
                perplexity,
                adata.n_obs,
            )

        self.logger.info("Computing 2D t-SNE (perplexity=%.1f)", perplexity)
        self.run_tsne(adata, perplexity)

        if self.config.compute_3d:
            self.logger.info("Computing 3D t-SNE")
            self.run_tsne_3d(adata, perplexity)

            # computed first so the 2D result keeps the canonical X_umap key
            self.logger.info("Computing 3D UMAP")
            adata.obsm["X_umap_3d"] = self.run_umap(adata, n_components=3).copy()

        self.logger.info(
            "Computing 2D UMAP (min_dist=%.2f, spread=%.2f)",
            self.config.umap_min_dist,
            self.config.umap_spread,
        )
        self.run_umap(adata, n_components=2)

        result = EmbeddingResult(perplexity_used=perplexity)
        for key in ("X_tsne", "X_tsne_3d", "X_umap", "X_umap_3d"):
            if key in adata.obsm:
                result.embeddings[key] = list(adata.obsm[key].shape)
        self.logger.info("Embeddings: %s", result.embeddings)
        return result
