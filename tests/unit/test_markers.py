"""Unit tests for marker genes and expression summaries."""

import numpy as np
import pandas as pd
import pytest

from scflow.core.markers import (
    MARKER_COLUMNS,
    MarkerConfig,
    MarkerFinder,
    most_expressed_genes,
    qc_summary,
    summarize_groups,
    top_marker_genes,
)
from tests.fixtures import group_marker_genes


class TestMarkerConfig:
    """Tests for MarkerConfig."""

    def test_defaults(self):
        """Test default thresholds."""
        config = MarkerConfig()
        assert config.method == "wilcoxon"
        assert config.group_by == ["sample", "cluster"]
        assert config.validate() == []

    def test_validate(self):
        """Test invalid thresholds are reported."""
        config = MarkerConfig(min_pct=2.0, padj_threshold=0, group_by=[])
        errors = config.validate()
        assert len(errors) == 3


class TestMarkerFinder:
    """Tests for MarkerFinder."""

    def test_filter_table(self):
        """Test threshold filtering of a tidy table."""
        df = pd.DataFrame(
            {
                "group": ["0", "0", "0", "0"],
                "gene": ["A", "B", "C", "D"],
                "score": [10.0, 8.0, 6.0, -5.0],
                "logfoldchange": [2.0, 0.1, 1.5, -2.0],
                "pval": [1e-10, 1e-8, 1e-6, 1e-9],
                "pval_adj": [1e-8, 1e-6, 0.2, 1e-7],
                "pct_in": [0.9, 0.8, 0.7, 0.05],
                "pct_out": [0.1, 0.5, 0.2, 0.6],
            }
        )
        positive = MarkerFinder(MarkerConfig(padj_threshold=0.01)).filter_table(df)
        assert positive["gene"].tolist() == ["A"]

        both = MarkerFinder(
            MarkerConfig(padj_threshold=0.01, only_positive=False, min_pct=0.0)
        ).filter_table(df)
        assert both["gene"].tolist() == ["A", "D"]

    def test_find_cluster_markers(self, processed_adata):
        """Test markers of the simulated groups."""
        finder = MarkerFinder(MarkerConfig())
        result = finder.find_markers(processed_adata, "true_group")

        table = result.table
        assert list(table.columns) == MARKER_COLUMNS
        assert (table["pval_adj"] <= 0.01).all()
        assert (table["logfoldchange"] >= 0.25).all()
        assert set(result.n_markers_per_group) == {"0", "1", "2"}

        expected = set(group_marker_genes()["0"])
        top = set(top_marker_genes(table, "0", 20))
        assert len(top & expected) >= 15
        assert "rank_genes_true_group" not in processed_adata.uns

    def test_single_group_skipped(self, processed_adata):
        """Test that a column with one level is skipped."""
        assert MarkerFinder().find_markers(processed_adata, "sample") is None

    def test_missing_column_raises(self, processed_adata):
        """Test that a missing column raises KeyError."""
        with pytest.raises(KeyError, match="donor"):
            MarkerFinder().find_markers(processed_adata, "donor")

    def test_find_all(self, processed_adata):
        """Test that results are stored per grouping column."""
        finder = MarkerFinder(MarkerConfig(group_by=["sample", "cluster", "donor"]))
        results = finder.find_all(processed_adata)

        assert set(results) == {"cluster"}
        assert set(processed_adata.uns["marker_genes"]) == {"cluster"}

    def test_top_marker_genes(self):
        """Test top gene selection keeps table order."""
        table = pd.DataFrame({"group": ["1", "0", "1", "1"], "gene": ["A", "B", "C", "D"]})
        assert top_marker_genes(table, "1", 2) == ["A", "C"]
        assert top_marker_genes(table, 0) == ["B"]
        assert top_marker_genes(table, "7") == []


class TestExpressionSummaries:
    """Tests for most expressed genes and QC summaries."""

    def test_most_expressed_genes(self, processed_adata):
        """Test per-group top genes."""
        table = most_expressed_genes(processed_adata, "true_group", top_n=5)

        assert list(table.columns) == ["group", "gene", "pct"]
        assert table.groupby("group").size().tolist() == [5, 5, 5]
        assert table["pct"].between(0, 100).all()
        for _, group in table.groupby("group"):
            assert group["pct"].is_monotonic_decreasing

    def test_most_expressed_uses_all_genes(self, processed_adata):
        """Test that genes outside the HVG set can be reported."""
        table = most_expressed_genes(processed_adata, "sample", top_n=processed_adata.raw.n_vars)
        assert len(table) == processed_adata.raw.n_vars

    def test_most_expressed_from_counts(self, processed_adata):
        """Test that shares are computed from the counts of all genes."""
        counts = processed_adata.obsm["raw_counts"].toarray()
        shares = 100 * (counts / counts.sum(axis=1, keepdims=True)).mean(axis=0)
        top = int(np.argmax(shares))

        table = most_expressed_genes(processed_adata, "sample", top_n=1)
        assert table["gene"].iloc[0] == processed_adata.raw.var_names[top]
        assert table["pct"].iloc[0] == pytest.approx(shares[top])

    def test_qc_summary(self, processed_adata):
        """Test QC metric summary per group."""
        summary = qc_summary(processed_adata, "true_group")
        assert summary["n_cells"].sum() == processed_adata.n_obs
        assert {"nUMI_median", "nGene_mean", "percent_mt_median"} <= set(summary.columns)
        assert summary["group"].tolist() == ["0", "1", "2"]

    def test_summary_missing_column(self, processed_adata):
        """Test that a missing column raises KeyError."""
        with pytest.raises(KeyError):
            qc_summary(processed_adata, "donor")

    def test_summarize_groups(self, processed_adata):
        """Test that summaries are stored in uns."""
        summarize_groups(processed_adata, ["sample", "cluster", "donor"], top_n=3)
        assert set(processed_adata.uns["most_expressed_genes"]) == {"sample", "cluster"}
        assert set(processed_adata.uns["qc_summary"]) == {"sample", "cluster"}
