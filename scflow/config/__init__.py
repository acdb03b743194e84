"""Centralized organism configuration for scflow.

This module provides organism-specific settings (gene naming conventions,
cell-cycle genes, Enrichr libraries) used by the QC, cell-cycle and
enrichment modules.

Example
-------
>>> from scflow.config import get_organism_profile, list_available_organisms
>>>
>>> print(list_available_organisms())
['hg', 'mm']
>>>
>>> profile = get_organism_profile("human")
>>> print(profile.enrichr_organism)
'human'
"""

from .organism import (
    OrganismProfile,
    get_organism_profile,
    list_available_organisms,
    list_organism_aliases,
    register_organism_profile,
    to_mouse_symbols,
)

__all__ = [
    "OrganismProfile",
    "get_organism_profile",
    "list_available_organisms",
    "list_organism_aliases",
    "register_organism_profile",
    "to_mouse_symbols",
]
