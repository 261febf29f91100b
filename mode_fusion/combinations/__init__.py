"""Multi-mode analysis: catalog, orchestration, merging and conflict resolution."""

from .analyzer import MultiModeAnalyzer, analyze_multi_mode
from .catalog import CombinationCatalog, default_catalog, default_merge_config, load_combinations
from .conflicts import ConflictDetector, ConflictResolver, ResolutionOutcome
from .merger import InsightGroup, InsightMerger, MergeResult
from .orchestrator import ModeAnalyzer, ModeOrchestrator, OrchestrationResult
from .presets import PRESETS
from .templates import TemplateModeAnalyzer, default_analyzers
from .types import (
    AnalysisPhase,
    AnalysisProgress,
    ConflictingInsight,
    ConflictResolution,
    ConflictType,
    DialecticalMergeConfig,
    HierarchicalMergeConfig,
    Insight,
    InsightRef,
    IntersectionMergeConfig,
    MergedAnalysis,
    MergeStatistics,
    MergeStrategy,
    ModeAnalysisResult,
    ModeCombination,
    ModeError,
    MultiModeAnalysisRequest,
    MultiModeAnalysisResponse,
    ResolutionStrategy,
    ThinkingMode,
    UnionMergeConfig,
    WeightedMergeConfig,
)

__all__ = [
    # Facade
    "MultiModeAnalyzer",
    "analyze_multi_mode",
    # Catalog
    "CombinationCatalog",
    "PRESETS",
    "default_catalog",
    "default_merge_config",
    "load_combinations",
    # Pipeline stages
    "ConflictDetector",
    "ConflictResolver",
    "InsightGroup",
    "InsightMerger",
    "MergeResult",
    "ModeAnalyzer",
    "ModeOrchestrator",
    "OrchestrationResult",
    "ResolutionOutcome",
    "TemplateModeAnalyzer",
    "default_analyzers",
    # Types
    "AnalysisPhase",
    "AnalysisProgress",
    "ConflictResolution",
    "ConflictType",
    "ConflictingInsight",
    "DialecticalMergeConfig",
    "HierarchicalMergeConfig",
    "Insight",
    "InsightRef",
    "IntersectionMergeConfig",
    "MergeStatistics",
    "MergeStrategy",
    "MergedAnalysis",
    "ModeAnalysisResult",
    "ModeCombination",
    "ModeError",
    "MultiModeAnalysisRequest",
    "MultiModeAnalysisResponse",
    "ResolutionStrategy",
    "ThinkingMode",
    "UnionMergeConfig",
    "WeightedMergeConfig",
]
