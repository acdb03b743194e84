"""Pipeline orchestration module.

Provides the YAML analysis configuration, the default stage sequence and
in-memory stage execution with structured logging.

Example Usage
-------------
>>> from scflow.pipeline import (
...     AnalysisConfig,
...     PipelineExecutor,
...     PipelineLogger,
...     RunContext,
... )
>>> # Load configuration
>>> config = AnalysisConfig.from_yaml("analysis.yaml")
>>> valid, errors = config.validate()
>>> # Setup logging
>>> logger = PipelineLogger("results/logs")
>>> logger.setup()
>>> # Execute pipeline
>>> executor = PipelineExecutor(RunContext.from_config(config), logger=logger)
>>> adata = executor.run()
"""

__version__ = "1.0.0"

# Configuration
from .config import (
    AnalysisConfig,
    CellCycleConfig,
    ExportConfig,
    ProjectConfig,
)

# Stage representation
from .stage import RunContext, Stage

# Default stages
from .stages import build_default_stages

# Logging
from .logger import (
    ColoredFormatter,
    PipelineLogger,
)

# Execution
from .executor import PipelineExecutor

__all__ = [
    # Version
    "__version__",
    # Config
    "AnalysisConfig",
    "CellCycleConfig",
    "ExportConfig",
    "ProjectConfig",
    # Stage
    "RunContext",
    "Stage",
    "build_default_stages",
    # Logging
    "ColoredFormatter",
    "PipelineLogger",
    # Execution
    "PipelineExecutor",
]
