#!/usr/bin/env python3
"""Basic usage example for mode-fusion.

Demonstrates the multi-mode analysis workflow with the template analyzers:
1. Analyze a problem with a preset
2. Override the preset's merge strategy
3. Analyze with an ad hoc list of modes and a progress callback

Run: python examples/basic_usage.py
"""

from __future__ import annotations

import asyncio

from mode_fusion.combinations import (
    AnalysisProgress,
    MultiModeAnalysisResponse,
    MultiModeAnalyzer,
    ThinkingMode,
)
from mode_fusion.utils import configure_logging

PROBLEM = "Why did customer churn spike after the pricing change in March?"


def show(response: MultiModeAnalysisResponse) -> None:
    analysis = response.analysis
    print(f"    Combination: {analysis.combination_id} ({analysis.merge_strategy.value})")
    print(f"    Modes: {', '.join(m.value for m in analysis.contributing_modes)}")
    print(f"    Insights: {len(analysis.primary_insights)}")
    for insight in analysis.primary_insights[:3]:
        print(f"      - [{insight.source_mode.value} {insight.confidence:.2f}] {insight.content}")
    print(f"    Conflicts: {len(analysis.conflicts)}")
    print(f"    Confidence: {analysis.confidence_score:.2f}")
    for note in analysis.notes:
        print(f"    Note: {note}")


def on_progress(progress: AnalysisProgress) -> None:
    print(f"    {progress.percentage:3d}% {progress.phase.value} {progress.message}")


async def main() -> None:
    """Run the basic analysis workflow."""
    configure_logging(level="WARNING")

    print("=" * 60)
    print("mode-fusion Basic Usage Example")
    print("=" * 60)

    analyzer = MultiModeAnalyzer()
    print(f"\nPresets: {', '.join(c.id for c in analyzer.available_presets())}")

    # 1. Preset
    print("\n[1] Root cause preset...")
    show(await analyzer.analyze_with_preset(PROBLEM, "root_cause"))

    # 2. Strategy override
    print("\n[2] Root cause preset merged as union...")
    show(await analyzer.analyze_with_preset(PROBLEM, "root_cause", merge_strategy="union"))

    # 3. Custom modes
    print("\n[3] Custom modes, dialectical...")
    response = await analyzer.analyze(
        {
            "thought": PROBLEM,
            "custom_modes": [ThinkingMode.CAUSAL, ThinkingMode.COUNTERFACTUAL, ThinkingMode.BAYESIAN],
            "merge_strategy": "dialectical",
            "context": "Prices rose 20% for the starter plan",
        },
        on_progress=on_progress,
    )
    show(response)

    print("\n" + "=" * 60)
    print("Done!")


if __name__ == "__main__":
    asyncio.run(main())
