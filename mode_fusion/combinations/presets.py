"""Built-in mode combination presets.

Pre-defined combinations of reasoning modes tuned for common analysis
scenarios. Weights and thresholds are fixed; tuning them from history is
out of scope.
"""

from __future__ import annotations

from .types import (
    DialecticalMergeConfig,
    HierarchicalMergeConfig,
    ModeCombination,
    ThinkingMode,
    WeightedMergeConfig,
)

COMPREHENSIVE_ANALYSIS = ModeCombination(
    id="comprehensive_analysis",
    name="Comprehensive Analysis",
    description=(
        "Analyzes a problem from multiple perspectives using deductive, inductive, and "
        "abductive reasoning along with systems thinking"
    ),
    modes=(
        ThinkingMode.DEDUCTIVE,
        ThinkingMode.INDUCTIVE,
        ThinkingMode.ABDUCTIVE,
        ThinkingMode.SYSTEMSTHINKING,
        ThinkingMode.FIRSTPRINCIPLES,
    ),
    merge_config=WeightedMergeConfig(
        weights={
            ThinkingMode.DEDUCTIVE: 0.9,
            ThinkingMode.INDUCTIVE: 0.8,
            ThinkingMode.ABDUCTIVE: 0.7,
            ThinkingMode.SYSTEMSTHINKING: 0.85,
            ThinkingMode.FIRSTPRINCIPLES: 0.9,
        },
        threshold=0.5,
        default_weight=0.6,
    ),
    use_case="Use when you need a thorough understanding of a complex problem from multiple angles",
    tags=("analysis", "comprehensive", "multi-perspective"),
)

HYPOTHESIS_TESTING = ModeCombination(
    id="hypothesis_testing",
    name="Hypothesis Testing",
    description="Evaluates hypotheses using scientific method, Bayesian reasoning, and evidential analysis",
    modes=(
        ThinkingMode.SCIENTIFICMETHOD,
        ThinkingMode.BAYESIAN,
        ThinkingMode.EVIDENTIAL,
        ThinkingMode.DEDUCTIVE,
    ),
    merge_config=HierarchicalMergeConfig(
        primary_mode=ThinkingMode.SCIENTIFICMETHOD,
        supporting_modes=(ThinkingMode.BAYESIAN, ThinkingMode.EVIDENTIAL, ThinkingMode.DEDUCTIVE),
        allow_override=True,
        override_threshold=2,
    ),
    use_case="Use when evaluating hypotheses with evidence, updating beliefs based on new data",
    tags=("scientific", "hypothesis", "evidence-based"),
)

DECISION_MAKING = ModeCombination(
    id="decision_making",
    name="Decision Making",
    description="Analyzes decisions using game theory, optimization, and counterfactual analysis",
    modes=(
        ThinkingMode.GAMETHEORY,
        ThinkingMode.OPTIMIZATION,
        ThinkingMode.COUNTERFACTUAL,
        ThinkingMode.BAYESIAN,
    ),
    merge_config=WeightedMergeConfig(
        weights={
            ThinkingMode.GAMETHEORY: 0.9,
            ThinkingMode.OPTIMIZATION: 0.85,
            ThinkingMode.COUNTERFACTUAL: 0.8,
            ThinkingMode.BAYESIAN: 0.75,
        },
        threshold=0.6,
        default_weight=0.5,
    ),
    use_case=(
        "Use when making strategic decisions, evaluating options, or analyzing competitive scenarios"
    ),
    tags=("decision", "strategy", "optimization"),
)

ROOT_CAUSE = ModeCombination(
    id="root_cause",
    name="Root Cause Analysis",
    description="Identifies root causes using causal inference, systems thinking, and first principles",
    modes=(
        ThinkingMode.CAUSAL,
        ThinkingMode.SYSTEMSTHINKING,
        ThinkingMode.FIRSTPRINCIPLES,
        ThinkingMode.ABDUCTIVE,
    ),
    merge_config=HierarchicalMergeConfig(
        primary_mode=ThinkingMode.CAUSAL,
        supporting_modes=(
            ThinkingMode.SYSTEMSTHINKING,
            ThinkingMode.FIRSTPRINCIPLES,
            ThinkingMode.ABDUCTIVE,
        ),
        allow_override=False,
        override_threshold=3,
    ),
    use_case="Use when diagnosing problems, finding root causes, or understanding causal chains",
    tags=("causal", "diagnosis", "root-cause"),
)

FUTURE_PLANNING = ModeCombination(
    id="future_planning",
    name="Future Planning",
    description=(
        "Plans future scenarios using temporal reasoning, counterfactuals, and Bayesian prediction"
    ),
    modes=(
        ThinkingMode.TEMPORAL,
        ThinkingMode.COUNTERFACTUAL,
        ThinkingMode.BAYESIAN,
        ThinkingMode.OPTIMIZATION,
    ),
    merge_config=DialecticalMergeConfig(
        thesis_mode=ThinkingMode.TEMPORAL,
        antithesis_mode=ThinkingMode.COUNTERFACTUAL,
        synthesis_modes=(ThinkingMode.BAYESIAN,),
        preserve_originals=True,
    ),
    use_case="Use when planning for the future, scenario analysis, or forecasting",
    tags=("planning", "future", "temporal", "scenarios"),
)

PRESETS: tuple[ModeCombination, ...] = (
    COMPREHENSIVE_ANALYSIS,
    HYPOTHESIS_TESTING,
    DECISION_MAKING,
    ROOT_CAUSE,
    FUTURE_PLANNING,
)
