"""Unit tests for organism profiles."""

import pytest

from scflow.config import (
    OrganismProfile,
    get_organism_profile,
    list_available_organisms,
    list_organism_aliases,
    register_organism_profile,
)
from scflow.config.organism import ORGANISM_ALIASES, ORGANISM_REGISTRY, to_mouse_symbols


class TestOrganismRegistry:
    """Tests for organism lookup."""

    def test_default_is_human(self):
        """Test that no organism resolves to the human profile."""
        profile = get_organism_profile()
        assert profile.code == "hg"
        assert profile.mt_prefix == "MT-"

    @pytest.mark.parametrize("alias", ["human", "HUMAN", " hs ", "hg"])
    def test_human_aliases(self, alias):
        """Test alias and case-insensitive lookup."""
        assert get_organism_profile(alias).code == "hg"

    def test_mouse_profile(self):
        """Test mouse naming conventions."""
        profile = get_organism_profile("mouse")
        assert profile.code == "mm"
        assert profile.mt_prefix == "mt-"
        assert "Mki67" in profile.g2m_genes
        assert profile.enrichr_organism == "mouse"

    def test_unknown_organism_raises(self):
        """Test that an unknown organism raises ValueError."""
        with pytest.raises(ValueError, match="Unknown organism"):
            get_organism_profile("zebrafish")

    def test_list_available(self):
        """Test that built-in profiles are listed."""
        assert {"hg", "mm"} <= set(list_available_organisms())
        assert list_organism_aliases()["mouse"] == "mm"

    def test_register_profile(self):
        """Test registering a custom profile."""
        profile = OrganismProfile(code="rn", name="Rattus norvegicus", aliases=["rat"])
        register_organism_profile(profile)
        try:
            assert get_organism_profile("rat") is profile
        finally:
            ORGANISM_REGISTRY.pop("rn", None)
            ORGANISM_ALIASES.pop("rat", None)


class TestOrganismProfile:
    """Tests for OrganismProfile."""

    def test_gene_groups(self):
        """Test mitochondrial and ribosomal gene detection."""
        profile = get_organism_profile("hg")
        assert profile.is_mitochondrial("MT-CO1")
        assert not profile.is_mitochondrial("CD3E")
        assert profile.is_ribosomal("RPL13A")
        assert profile.is_ribosomal("RPS6")
        assert not profile.is_ribosomal("MKI67")

    def test_cell_cycle_lists(self):
        """Test that human cell-cycle lists are populated and disjoint."""
        profile = get_organism_profile("hg")
        assert "PCNA" in profile.s_genes
        assert "MKI67" in profile.g2m_genes
        assert not set(profile.s_genes) & set(profile.g2m_genes)

    def test_to_mouse_symbols(self):
        """Test human to mouse symbol capitalization."""
        assert to_mouse_symbols(["MKI67", "TOP2A"]) == ["Mki67", "Top2a"]

