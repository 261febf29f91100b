"""Deterministic template analyzers, one per thinking mode.

These stand in for real mode analyzers so the pipeline can run end to end.
Each produces a single mode-flavoured insight about the problem, plus a
context insight when context is supplied.
"""

from __future__ import annotations

from dataclasses import dataclass

from .types import Insight, ThinkingMode

BASE_CONFIDENCE = 0.8


@dataclass(frozen=True)
class InsightTemplate:
    """Shape of the insight a template analyzer emits."""

    content: str  # formatted with {excerpt}
    category: str
    evidence: tuple[str, ...]
    priority: int = 5
    confidence_factor: float = 1.0
    excerpt_length: int = 30


TEMPLATES: dict[ThinkingMode, InsightTemplate] = {
    ThinkingMode.DEDUCTIVE: InsightTemplate(
        content="Logical deduction from premises: {excerpt}",
        category="deductive_conclusion",
        evidence=("Premise analysis", "Logical inference"),
        priority=8,
        excerpt_length=50,
    ),
    ThinkingMode.INDUCTIVE: InsightTemplate(
        content="Pattern identified from analysis: Generalizing observations about {excerpt}",
        category="inductive_generalization",
        evidence=("Pattern recognition", "Statistical inference"),
        priority=7,
        confidence_factor=0.9,
    ),
    ThinkingMode.ABDUCTIVE: InsightTemplate(
        content="Best explanation hypothesis: Most likely cause for {excerpt}",
        category="abductive_hypothesis",
        evidence=("Inference to best explanation",),
        priority=6,
        confidence_factor=0.85,
    ),
    ThinkingMode.CAUSAL: InsightTemplate(
        content="Causal relationship identified: Factors influencing {excerpt}",
        category="causal_mechanism",
        evidence=("Causal graph analysis", "Intervention analysis"),
        priority=8,
    ),
    ThinkingMode.BAYESIAN: InsightTemplate(
        content="Probability assessment: Updated belief about {excerpt}",
        category="probabilistic_assessment",
        evidence=("Prior probability", "Evidence likelihood", "Posterior calculation"),
        priority=7,
    ),
    ThinkingMode.SYSTEMSTHINKING: InsightTemplate(
        content="System dynamics: Feedback loops and interactions in {excerpt}",
        category="systems_insight",
        evidence=("Feedback loop analysis", "Stock-flow modeling"),
        priority=7,
        confidence_factor=0.9,
    ),
    ThinkingMode.FIRSTPRINCIPLES: InsightTemplate(
        content="First principles analysis: Core assumptions about {excerpt}",
        category="foundational_insight",
        evidence=("Fundamental axioms", "Deconstruction analysis"),
        priority=9,
    ),
    ThinkingMode.GAMETHEORY: InsightTemplate(
        content="Strategic analysis: Nash equilibrium considerations for {excerpt}",
        category="strategic_insight",
        evidence=("Payoff matrix", "Equilibrium analysis"),
        priority=7,
        confidence_factor=0.95,
    ),
    ThinkingMode.COUNTERFACTUAL: InsightTemplate(
        content="Counterfactual scenario: Alternative outcomes if {excerpt}",
        category="counterfactual_scenario",
        evidence=("World state modeling", "Alternative history analysis"),
        priority=6,
        confidence_factor=0.8,
    ),
    ThinkingMode.TEMPORAL: InsightTemplate(
        content="Temporal analysis: Timeline and sequencing for {excerpt}",
        category="temporal_insight",
        evidence=("Event sequencing", "Allen interval analysis"),
        priority=7,
    ),
    ThinkingMode.OPTIMIZATION: InsightTemplate(
        content="Optimization insight: Optimal approach for {excerpt}",
        category="optimization_result",
        evidence=("Constraint satisfaction", "Objective optimization"),
        priority=8,
    ),
}


def excerpt(text: str, length: int) -> str:
    """First ``length`` characters of ``text``, with an ellipsis when cut."""
    text = " ".join(text.split())
    return text if len(text) <= length else text[:length] + "..."


def generic_template(mode: ThinkingMode) -> InsightTemplate:
    return InsightTemplate(
        content=f"Analysis via {mode.value}: Key observations about {{excerpt}}",
        category="general_insight",
        evidence=(f"{mode.value} methodology",),
        confidence_factor=0.85,
        excerpt_length=40,
    )


class TemplateModeAnalyzer:
    """Synchronous analyzer that fills a fixed template for one mode."""

    def __init__(self, mode: ThinkingMode, base_confidence: float = BASE_CONFIDENCE) -> None:
        self.mode = mode
        self.base_confidence = base_confidence
        self.template = TEMPLATES.get(mode) or generic_template(mode)

    def __call__(self, problem: str, context: str | None = None) -> list[Insight]:
        template = self.template
        confidence = self.base_confidence * template.confidence_factor
        insights = [
            Insight(
                content=template.content.format(excerpt=excerpt(problem, template.excerpt_length)),
                source_mode=self.mode,
                confidence=confidence,
                evidence=list(template.evidence),
                category=template.category,
                priority=template.priority,
            )
        ]
        if context:
            insights.append(
                Insight(
                    content=(
                        f"Context-aware insight: Considering {excerpt(context, 30)} "
                        f"in relation to the problem"
                    ),
                    source_mode=self.mode,
                    confidence=self.base_confidence * 0.9,
                    evidence=["Contextual analysis"],
                    category="contextual_insight",
                    priority=6,
                )
            )
        return insights

    def __repr__(self) -> str:
        return f"TemplateModeAnalyzer({self.mode.value})"


def default_analyzers() -> dict[ThinkingMode, TemplateModeAnalyzer]:
    """A template analyzer for every thinking mode."""
    return {mode: TemplateModeAnalyzer(mode) for mode in ThinkingMode}
