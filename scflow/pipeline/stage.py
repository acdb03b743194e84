"""Stage and run-context representation for pipeline execution."""

import logging
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from ..config import OrganismProfile, get_organism_profile
from .config import AnalysisConfig


@dataclass
class RunContext:
    """State shared by all stages of one run.

    Attributes
    ----------
    config : AnalysisConfig
        Analysis configuration
    organism : OrganismProfile
        Resolved organism profile
    run_date : date
        Date of analysis; used in output names
    logger : logging.Logger
        Logger for stage summaries
    gene_sets : Dict[str, List[str]], optional
        Gene sets loaded from the GMT file
    results : Dict[str, Any]
        Summary returned by each completed stage
    outputs : Dict[str, Path]
        Files written by the run
    """

    config: AnalysisConfig
    organism: OrganismProfile
    run_date: date = field(default_factory=date.today)
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger("scflow"))
    gene_sets: Optional[Dict[str, List[str]]] = None
    results: Dict[str, Any] = field(default_factory=dict)
    outputs: Dict[str, Path] = field(default_factory=dict)

    @classmethod
    def from_config(
        cls,
        config: AnalysisConfig,
        run_date: Optional[date] = None,
        logger: Optional[logging.Logger] = None,
    ) -> "RunContext":
        """Build a context, resolving the organism profile."""
        return cls(
            config=config,
            organism=get_organism_profile(config.project.organism),
            run_date=run_date or date.today(),
            logger=logger or logging.getLogger("scflow"),
        )

    def get_gene_sets(self) -> Optional[Dict[str, List[str]]]:
        """Gene sets of the configured GMT file, loaded on first use."""
        from ..core.preprocessing import load_gene_sets

        if self.gene_sets is None and self.config.project.gene_sets:
            self.gene_sets = load_gene_sets(self.config.project.gene_sets)
        return self.gene_sets


StageFunc = Callable[[Any, RunContext], Any]


@dataclass
class Stage:
    """A single analysis step operating on the shared AnnData.

    Attributes
    ----------
    stage_id : str
        Short identifier (e.g., "load", "markers")
    name : str
        Human-readable stage name
    func : Callable
        ``func(adata, ctx) -> AnnData``
    depends_on : List[str]
        Stage IDs this stage depends on
    optional : bool
        Whether the stage can be switched off in the configuration
    enabled : Callable, optional
        Predicate on the AnalysisConfig; optional stages run only when it is true

    Example
    -------
    >>> stage = Stage(
    ...     stage_id="cell_cycle",
    ...     name="Cell-cycle scoring",
    ...     func=run_cell_cycle,
    ...     depends_on=["cluster_tree"],
    ...     optional=True,
    ...     enabled=lambda config: config.cell_cycle.enabled,
    ... )
    """

    stage_id: str
    name: str
    func: StageFunc
    depends_on: List[str] = field(default_factory=list)
    optional: bool = False
    enabled: Optional[Callable[[AnalysisConfig], bool]] = None

    def is_enabled(self, config: AnalysisConfig) -> bool:
        """Whether the stage runs under this configuration."""
        if not self.optional or self.enabled is None:
            return True
        return bool(self.enabled(config))

    def to_dict(self) -> Dict[str, Any]:
        """Convert stage to dictionary for display."""
        return {
            "stage_id": self.stage_id,
            "name": self.name,
            "depends_on": self.depends_on,
            "optional": self.optional,
        }
