"""Centralized organism-specific configuration.

This module provides a registry of organism profiles: gene naming
conventions used for QC (mitochondrial and ribosomal genes), cell-cycle
gene lists, and the Enrichr organism and libraries. All modules (QC,
cell cycle, enrichment) should use this single source of truth.

Example
-------
>>> from scflow.config import get_organism_profile
>>> profile = get_organism_profile("mouse")
>>> profile.code
'mm'
>>> profile.mt_prefix
'mt-'
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional


# Tirosh et al. 2016, as distributed with Seurat (cc.genes)
HUMAN_S_GENES = [
    "MCM5", "PCNA", "TYMS", "FEN1", "MCM2", "MCM4", "RRM1", "UNG", "GINS2",
    "MCM6", "CDCA7", "DTL", "PRIM1", "UHRF1", "MLF1IP", "HELLS", "RFC2",
    "RPA2", "NASP", "RAD51AP1", "GMNN", "WDR76", "SLBP", "CCNE2", "UBR7",
    "POLD3", "MSH2", "ATAD2", "RAD51", "RRM2", "CDC45", "CDC6", "EXO1",
    "TIPIN", "DSCC1", "BLM", "CASP8AP2", "USP1", "CLSPN", "POLA1", "CHAF1B",
    "BRIP1", "E2F8",
]

HUMAN_G2M_GENES = [
    "HMGB2", "CDK1", "NUSAP1", "UBE2C", "BIRC5", "TPX2", "TOP2A", "NDC80",
    "CKS2", "NUF2", "CKS1B", "MKI67", "TMPO", "CENPF", "TACC3", "FAM64A",
    "SMC4", "CCNB2", "CKAP2L", "CKAP2", "AURKB", "BUB1", "KIF11", "ANP32E",
    "TUBB4B", "GTSE1", "KIF20B", "HJURP", "CDCA3", "HN1", "CDC20", "TTK",
    "CDC25C", "KIF2C", "RANGAP1", "NCAPD2", "DLGAP5", "CDCA2", "CDCA8",
    "ECT2", "KIF23", "HMMR", "AURKA", "PSRC1", "ANLN", "LBR", "CKAP5",
    "CENPE", "CTCF", "NEK2", "G2E3", "GAS2L3", "CBX5", "CENPA",
]


def to_mouse_symbols(genes: Iterable[str]) -> List[str]:
    """Convert human gene symbols to mouse-style capitalization (``MKI67`` -> ``Mki67``)."""
    return [g[:1].upper() + g[1:].lower() for g in genes]


@dataclass
class OrganismProfile:
    """Configuration for an organism.

    Attributes
    ----------
    code : str
        Canonical short code (e.g. "hg", "mm")
    name : str
        Human-readable organism name
    aliases : List[str]
        Alternative names for this organism
    mt_prefix : str
        Prefix identifying mitochondrial genes
    ribo_prefixes : List[str]
        Prefixes identifying ribosomal protein genes
    enrichr_organism : str
        Organism name understood by the Enrichr service
    enrichr_libraries : List[str]
        Default Enrichr gene-set libraries
    s_genes : List[str]
        S-phase marker genes
    g2m_genes : List[str]
        G2/M-phase marker genes
    """

    code: str
    name: str = ""
    aliases: List[str] = field(default_factory=list)
    mt_prefix: str = "MT-"
    ribo_prefixes: List[str] = field(default_factory=lambda: ["RPL", "RPS"])
    enrichr_organism: str = "human"
    enrichr_libraries: List[str] = field(default_factory=list)
    s_genes: List[str] = field(default_factory=list)
    g2m_genes: List[str] = field(default_factory=list)

    def is_mitochondrial(self, gene: str) -> bool:
        """Check whether a gene symbol is mitochondrial."""
        return str(gene).startswith(self.mt_prefix)

    def is_ribosomal(self, gene: str) -> bool:
        """Check whether a gene symbol is a ribosomal protein gene."""
        return str(gene).startswith(tuple(self.ribo_prefixes))


# =============================================================================
# Registry
# =============================================================================

ORGANISM_REGISTRY: Dict[str, OrganismProfile] = {}

ORGANISM_ALIASES: Dict[str, str] = {}

_BUILTINS_LOADED = False


def register_organism_profile(profile: OrganismProfile) -> None:
    """Register an organism profile.

    Parameters
    ----------
    profile : OrganismProfile
        Profile to register
    """
    code = profile.code.lower()
    ORGANISM_REGISTRY[code] = profile

    for alias in profile.aliases:
        ORGANISM_ALIASES[alias.lower()] = code


def get_organism_profile(organism: Optional[str] = None) -> OrganismProfile:
    """Get an organism profile by code or alias.

    Parameters
    ----------
    organism : str, optional
        Organism code or alias. If None, returns the human profile.

    Returns
    -------
    OrganismProfile
        Organism profile

    Raises
    ------
    ValueError
        If organism is not registered
    """
    _ensure_builtins_loaded()

    if organism is None:
        return ORGANISM_REGISTRY["hg"]

    key = organism.strip().lower()
    if key in ORGANISM_ALIASES:
        key = ORGANISM_ALIASES[key]

    if key not in ORGANISM_REGISTRY:
        available = sorted(ORGANISM_REGISTRY.keys())
        alias_info = [f"{k} -> {v}" for k, v in ORGANISM_ALIASES.items()]
        raise ValueError(
            f"Unknown organism: '{organism}'. "
            f"Available: {available}. "
            f"Aliases: {alias_info}"
        )

    return ORGANISM_REGISTRY[key]


def list_available_organisms() -> List[str]:
    """List all registered organism codes."""
    _ensure_builtins_loaded()
    return sorted(ORGANISM_REGISTRY.keys())


def list_organism_aliases() -> Dict[str, str]:
    """List all organism aliases as a map of alias -> code."""
    _ensure_builtins_loaded()
    return dict(ORGANISM_ALIASES)


def _ensure_builtins_loaded() -> None:
    global _BUILTINS_LOADED
    if _BUILTINS_LOADED:
        return

    _load_builtin_profiles()
    _BUILTINS_LOADED = True


def _load_builtin_profiles() -> None:
    register_organism_profile(
        OrganismProfile(
            code="hg",
            name="Homo sapiens",
            aliases=["human", "hs", "hsa", "homo_sapiens"],
            mt_prefix="MT-",
            ribo_prefixes=["RPL", "RPS"],
            enrichr_organism="human",
            enrichr_libraries=[
                "GO_Biological_Process_2023",
                "KEGG_2021_Human",
                "WikiPathway_2023_Human",
            ],
            s_genes=list(HUMAN_S_GENES),
            g2m_genes=list(HUMAN_G2M_GENES),
        )
    )
    register_organism_profile(
        OrganismProfile(
            code="mm",
            name="Mus musculus",
            aliases=["mouse", "mmu", "mus_musculus"],
            mt_prefix="mt-",
            ribo_prefixes=["Rpl", "Rps"],
            enrichr_organism="mouse",
            enrichr_libraries=[
                "GO_Biological_Process_2023",
                "KEGG_2019_Mouse",
                "WikiPathways_2019_Mouse",
            ],
            s_genes=to_mouse_symbols(HUMAN_S_GENES),
            g2m_genes=to_mouse_symbols(HUMAN_G2M_GENES),
        )
    )
