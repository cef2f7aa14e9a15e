"""Full-refresh table materialization with an atomic swap."""

from larder.materializations.strategies import SwapMode, FullRefreshConfig
from larder.materializations.engine import MaterializationEngine

__all__ = [
    "SwapMode",
    "FullRefreshConfig",
    "MaterializationEngine",
]
