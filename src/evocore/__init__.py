"""evocore - learn reusable patterns from agent workflows.

Records the outcomes of multi-step agent workflows, mines them for tool
sequences, capability combinations, duration estimates and avoidance
rules, ranks those patterns as suggestions for new work, promotes
successful workflows into skill templates and scores community-shared
patterns by trend.
"""

from evocore.core.config import EngineConfig, LogConfig
from evocore.engine import EvolutionEngine, Storage

__version__ = "0.1.0"

__all__ = [
    "EngineConfig",
    "EvolutionEngine",
    "LogConfig",
    "Storage",
    "__version__",
]
