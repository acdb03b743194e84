"""Cell-cycle scoring module."""

from .scoring import (
    PHASES,
    CellCycleResult,
    score_cell_cycle,
)

__all__ = [
    "PHASES",
    "CellCycleResult",
    "score_cell_cycle",
]
