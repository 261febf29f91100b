"""mode-fusion - concurrent multi-mode analysis with insight merging."""

from mode_fusion.combinations import (
    CombinationCatalog,
    Insight,
    MergeStrategy,
    MultiModeAnalysisRequest,
    MultiModeAnalysisResponse,
    MultiModeAnalyzer,
    ThinkingMode,
    analyze_multi_mode,
)
from mode_fusion.config import Config, get_config, reload_config

__version__ = "0.1.0"

__all__ = [
    "CombinationCatalog",
    "Config",
    "Insight",
    "MergeStrategy",
    "MultiModeAnalysisRequest",
    "MultiModeAnalysisResponse",
    "MultiModeAnalyzer",
    "ThinkingMode",
    "analyze_multi_mode",
    "get_config",
    "reload_config",
]
