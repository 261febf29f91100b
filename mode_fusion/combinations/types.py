"""Type definitions for multi-mode analysis.

This module contains the pydantic models and enums shared by the catalog,
orchestrator, merger, conflict resolver and facade. Separated from logic for
clean imports and testability.
"""

from __future__ import annotations

import math
import uuid
from collections.abc import Callable
from datetime import UTC, datetime
from enum import Enum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from mode_fusion.utils.errors import CombinationValidationError


class ThinkingMode(str, Enum):
    """Reasoning modes an analyzer can be registered for."""

    # Core
    SEQUENTIAL = "sequential"
    SHANNON = "shannon"
    MATHEMATICS = "mathematics"
    PHYSICS = "physics"
    HYBRID = "hybrid"
    # Engineering & theory
    ENGINEERING = "engineering"
    COMPUTABILITY = "computability"
    CRYPTANALYTIC = "cryptanalytic"
    ALGORITHMIC = "algorithmic"
    # Advanced runtime
    METAREASONING = "metareasoning"
    RECURSIVE = "recursive"
    MODAL = "modal"
    STOCHASTIC = "stochastic"
    CONSTRAINT = "constraint"
    OPTIMIZATION = "optimization"
    # Fundamental triad
    INDUCTIVE = "inductive"
    DEDUCTIVE = "deductive"
    ABDUCTIVE = "abductive"
    # Causal & probabilistic
    CAUSAL = "causal"
    BAYESIAN = "bayesian"
    COUNTERFACTUAL = "counterfactual"
    TEMPORAL = "temporal"
    GAMETHEORY = "gametheory"
    EVIDENTIAL = "evidential"
    # Analytical
    ANALOGICAL = "analogical"
    FIRSTPRINCIPLES = "firstprinciples"
    # Scientific
    SYSTEMSTHINKING = "systemsthinking"
    SCIENTIFICMETHOD = "scientificmethod"
    FORMALLOGIC = "formallogic"
    # Academic
    SYNTHESIS = "synthesis"
    ARGUMENTATION = "argumentation"
    CRITIQUE = "critique"
    ANALYSIS = "analysis"

    CUSTOM = "custom"


class MergeStrategy(str, Enum):
    """Algebras for combining insights from several modes."""

    UNION = "union"  # Keep every deduplicated insight
    INTERSECTION = "intersection"  # Only insights every mode agrees on
    WEIGHTED = "weighted"  # Score insights by mode weights
    HIERARCHICAL = "hierarchical"  # Primary mode with supporting modes
    DIALECTICAL = "dialectical"  # Thesis / antithesis / synthesis


class ConflictType(str, Enum):
    """Kinds of tension between two insights."""

    DIRECT_CONTRADICTION = "direct_contradiction"
    PARTIAL_OVERLAP = "partial_overlap"
    SCOPE_DIFFERENCE = "scope_difference"
    CONFIDENCE_MISMATCH = "confidence_mismatch"
    EVIDENCE_CONFLICT = "evidence_conflict"


class ResolutionStrategy(str, Enum):
    """How a conflict was (or was not) reconciled."""

    FAVOR_HIGHER_CONFIDENCE = "favor_higher_confidence"
    SYNTHESIZE = "synthesize"
    PRESERVE_BOTH = "preserve_both"
    DEFER = "defer"


# =============================================================================
# Merge configuration variants
# =============================================================================


class UnionMergeConfig(BaseModel):
    """Union has no tunables."""

    model_config = ConfigDict(frozen=True)

    strategy: Literal["union"] = "union"

    def referenced_modes(self) -> set[ThinkingMode]:
        return set()


class IntersectionMergeConfig(BaseModel):
    """Intersection has no tunables."""

    model_config = ConfigDict(frozen=True)

    strategy: Literal["intersection"] = "intersection"

    def referenced_modes(self) -> set[ThinkingMode]:
        return set()


class WeightedMergeConfig(BaseModel):
    """Per-mode weights and the minimum combined score to keep an insight."""

    model_config = ConfigDict(frozen=True)

    strategy: Literal["weighted"] = "weighted"
    weights: dict[ThinkingMode, float] = Field(default_factory=dict)
    threshold: float = Field(default=0.5, ge=0.0)
    default_weight: float = Field(default=0.6, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def _check_weights(self) -> WeightedMergeConfig:
        for mode, weight in self.weights.items():
            if not 0.0 <= weight <= 1.0:
                raise CombinationValidationError(
                    f"Weight for {mode.value} must be within [0, 1], got {weight}"
                )
        return self

    def weight_for(self, mode: ThinkingMode) -> float:
        return self.weights.get(mode, self.default_weight)

    def referenced_modes(self) -> set[ThinkingMode]:
        return set(self.weights)


class HierarchicalMergeConfig(BaseModel):
    """A primary mode whose insights always survive, plus supporting modes."""

    model_config = ConfigDict(frozen=True)

    strategy: Literal["hierarchical"] = "hierarchical"
    primary_mode: ThinkingMode
    supporting_modes: tuple[ThinkingMode, ...] = ()
    allow_override: bool = False
    override_threshold: int = Field(default=2, ge=1)

    @model_validator(mode="after")
    def _check_primary(self) -> HierarchicalMergeConfig:
        if self.primary_mode in self.supporting_modes:
            raise CombinationValidationError(
                f"Primary mode {self.primary_mode.value} cannot also be a supporting mode"
            )
        return self

    def referenced_modes(self) -> set[ThinkingMode]:
        return {self.primary_mode, *self.supporting_modes}


class DialecticalMergeConfig(BaseModel):
    """Thesis and antithesis modes, with optional synthesis modes."""

    model_config = ConfigDict(frozen=True)

    strategy: Literal["dialectical"] = "dialectical"
    thesis_mode: ThinkingMode
    antithesis_mode: ThinkingMode
    synthesis_modes: tuple[ThinkingMode, ...] = ()
    preserve_originals: bool = False

    @model_validator(mode="after")
    def _check_roles(self) -> DialecticalMergeConfig:
        if self.thesis_mode == self.antithesis_mode:
            raise CombinationValidationError("Thesis and antithesis modes must differ")
        return self

    def referenced_modes(self) -> set[ThinkingMode]:
        return {self.thesis_mode, self.antithesis_mode, *self.synthesis_modes}


MergeConfig = Annotated[
    UnionMergeConfig
    | IntersectionMergeConfig
    | WeightedMergeConfig
    | HierarchicalMergeConfig
    | DialecticalMergeConfig,
    Field(discriminator="strategy"),
]


class ModeCombination(BaseModel):
    """A named, reusable set of modes plus its merge strategy configuration."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    name: str
    description: str = ""
    modes: tuple[ThinkingMode, ...]
    merge_config: MergeConfig = Field(default_factory=UnionMergeConfig)
    use_case: str = ""
    tags: tuple[str, ...] = ()

    @model_validator(mode="after")
    def _check_modes(self) -> ModeCombination:
        if not self.modes:
            raise CombinationValidationError(f"Combination {self.id} must name at least one mode")
        if len(set(self.modes)) != len(self.modes):
            raise CombinationValidationError(f"Combination {self.id} lists a mode twice")
        unknown = self.merge_config.referenced_modes() - set(self.modes)
        if unknown:
            names = ", ".join(sorted(m.value for m in unknown))
            raise CombinationValidationError(
                f"Combination {self.id} {self.merge_config.strategy} config references "
                f"modes outside the combination: {names}"
            )
        return self

    @property
    def merge_strategy(self) -> MergeStrategy:
        """Strategy implied by the configuration variant."""
        return MergeStrategy(self.merge_config.strategy)

    def mode_priority(self) -> Callable[[ThinkingMode], int]:
        """Sort key ranking modes by their declared order; unknown modes sort last."""
        order = {mode: index for index, mode in enumerate(self.modes)}
        return lambda mode: order.get(mode, len(order))


# =============================================================================
# Insights and conflicts
# =============================================================================


class Insight(BaseModel):
    """One atomic finding produced by a mode analyzer."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    content: str
    source_mode: ThinkingMode
    # Not range-checked; the merger clamps and notes out-of-range values
    confidence: float
    evidence: list[str] = Field(default_factory=list)
    related_insights: list[str] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    category: str | None = None
    priority: int | None = None
    notes: list[str] = Field(default_factory=list)

    def sanitized(self) -> Insight:
        """Return a copy with confidence clamped to [0, 1], or self if already valid."""
        value = self.confidence
        if math.isfinite(value) and 0.0 <= value <= 1.0:
            return self
        clamped = 0.0 if math.isnan(value) or value < 0.0 else 1.0
        note = f"confidence {value!r} outside [0, 1] clamped to {clamped}"
        return self.model_copy(update={"confidence": clamped, "notes": [*self.notes, note]})


class InsightRef(BaseModel):
    """The parts of an insight a conflict record carries."""

    model_config = ConfigDict(frozen=True)

    mode: ThinkingMode
    content: str
    confidence: float
    insight_id: str

    @classmethod
    def of(cls, insight: Insight) -> InsightRef:
        return cls(
            mode=insight.source_mode,
            content=insight.content,
            confidence=insight.confidence,
            insight_id=insight.id,
        )


class ConflictResolution(BaseModel):
    """Outcome of reconciling a conflict."""

    model_config = ConfigDict(frozen=True)

    resolved_insight: str
    explanation: str
    preserved_from: list[ThinkingMode] = Field(default_factory=list)
    resolution_strategy: ResolutionStrategy
    confidence: float = Field(ge=0.0, le=1.0)


class ConflictingInsight(BaseModel):
    """A detected tension between two insights backed by different modes."""

    model_config = ConfigDict(frozen=True)

    insight1: InsightRef
    insight2: InsightRef
    conflict_type: ConflictType
    severity: float = Field(ge=0.0, le=1.0)
    resolution: ConflictResolution | None = None

    @property
    def is_resolved(self) -> bool:
        return self.resolution is not None

    @property
    def insight_ids(self) -> frozenset[str]:
        return frozenset((self.insight1.insight_id, self.insight2.insight_id))

    def with_resolution(self, resolution: ConflictResolution) -> ConflictingInsight:
        return self.model_copy(update={"resolution": resolution})


# =============================================================================
# Results
# =============================================================================


class MergeStatistics(BaseModel):
    """Counts and timing for one merge."""

    model_config = ConfigDict(frozen=True)

    total_insights_before: int = 0
    total_insights_after: int = 0
    duplicates_removed: int = 0
    conflicts_detected: int = 0
    conflicts_resolved: int = 0
    average_confidence: float = 0.0
    merge_time: float = 0.0  # ms


class MergedAnalysis(BaseModel):
    """The externally visible result of one analysis run."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    primary_insights: list[Insight] = Field(default_factory=list)
    supporting_evidence: dict[str, list[ThinkingMode]] = Field(default_factory=dict)
    conflicts: list[ConflictingInsight] = Field(default_factory=list)
    synthesized_conclusion: str = ""
    confidence_score: float = Field(default=0.0, ge=0.0, le=1.0)
    contributing_modes: list[ThinkingMode] = Field(default_factory=list)
    merge_strategy: MergeStrategy = MergeStrategy.UNION
    statistics: MergeStatistics = Field(default_factory=MergeStatistics)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    combination_id: str | None = None
    notes: list[str] = Field(default_factory=list)


class ModeAnalysisResult(BaseModel):
    """Outcome of running one mode."""

    mode: ThinkingMode
    success: bool
    insights: list[Insight] = Field(default_factory=list)
    error: str | None = None
    error_code: str | None = None
    execution_time: float = 0.0  # ms
    attempts: int = 0


class ModeError(BaseModel):
    """A recoverable failure of one mode."""

    mode: ThinkingMode
    message: str
    code: str | None = None
    recoverable: bool = True


# --- Request/Response Models ---


class MultiModeAnalysisRequest(BaseModel):
    """Request for multi-mode analysis."""

    thought: str = Field(min_length=1, description="The problem to analyze")
    preset: str | None = None
    custom_modes: list[ThinkingMode] | None = None
    merge_strategy: MergeStrategy | None = None
    session_id: str | None = None
    timeout_per_mode: float | None = Field(default=None, gt=0, description="Milliseconds")
    context: str | None = None


class MultiModeAnalysisResponse(BaseModel):
    """Response from multi-mode analysis."""

    analysis: MergedAnalysis
    mode_results: dict[ThinkingMode, ModeAnalysisResult] = Field(default_factory=dict)
    success: bool
    errors: list[ModeError] = Field(default_factory=list)
    execution_time: float = 0.0  # ms


class AnalysisPhase(str, Enum):
    """Phases reported to progress callbacks."""

    INITIALIZING = "initializing"
    EXECUTING_MODES = "executing_modes"
    COLLECTING_INSIGHTS = "collecting_insights"
    MERGING = "merging"
    RESOLVING_CONFLICTS = "resolving_conflicts"
    COMPLETE = "complete"


class AnalysisProgress(BaseModel):
    """Progress information during analysis."""

    phase: AnalysisPhase
    percentage: int = Field(ge=0, le=100)
    modes_completed: int = 0
    total_modes: int = 0
    current_mode: ThinkingMode | None = None
    message: str = ""
