"""pytest configuration and fixtures."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Sequence
from typing import Any

import pytest

from mode_fusion.combinations.types import Insight, ModeCombination, ThinkingMode
from mode_fusion.config import (
    AnalyzerConfig,
    Config,
    ConflictConfig,
    InputLimitsConfig,
    MergerConfig,
    OrchestratorConfig,
)

A = ThinkingMode.DEDUCTIVE
B = ThinkingMode.INDUCTIVE
C = ThinkingMode.ABDUCTIVE
D = ThinkingMode.CAUSAL


def make_insight(
    content: str,
    mode: ThinkingMode = A,
    confidence: float = 0.8,
    **kwargs: Any,
) -> Insight:
    """Build an insight with sensible defaults."""
    return Insight(content=content, source_mode=mode, confidence=confidence, **kwargs)


class StaticAnalyzer:
    """Async analyzer returning fixed output after an optional delay."""

    def __init__(self, output: Sequence[Any], delay: float = 0.0) -> None:
        self.output = output
        self.delay = delay
        self.calls = 0

    async def __call__(self, problem: str, context: str | None = None) -> Sequence[Any]:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        return self.output


class FailingAnalyzer:
    """Async analyzer that fails a given number of times before succeeding."""

    def __init__(self, failures: int = 1_000_000, output: Sequence[Any] = ()) -> None:
        self.failures = failures
        self.output = output
        self.calls = 0

    async def __call__(self, problem: str, context: str | None = None) -> Sequence[Any]:
        self.calls += 1
        if self.calls <= self.failures:
            raise RuntimeError(f"analyzer exploded on call {self.calls}")
        return self.output


def blocking_analyzer(output: Sequence[Any], delay: float) -> Callable[..., Sequence[Any]]:
    """Synchronous analyzer that sleeps in its worker thread."""

    def analyze(problem: str, context: str | None = None) -> Sequence[Any]:
        time.sleep(delay)
        return output

    return analyze


def make_config() -> Config:
    """Configuration with fixed values, independent of the environment."""
    return Config(
        orchestrator=OrchestratorConfig(
            timeout_per_mode_ms=2000.0,
            global_timeout_ms=0.0,
            max_parallel_modes=5,
            max_attempts=1,
            retry_base_delay=0.01,
        ),
        merger=MergerConfig(similarity_threshold=0.8, min_confidence=0.0),
        conflicts=ConflictConfig(
            min_similarity=0.3,
            topical_threshold=0.5,
            confidence_gap=0.3,
            unresolved_penalty=0.5,
            deferred_penalty=0.5,
        ),
        analyzer=AnalyzerConfig(
            default_preset="comprehensive_analysis", conclusion_top_n=3, combinations_file=""
        ),
        input_limits=InputLimitsConfig(max_thought_size=1000, max_context_size=2000),
    )


@pytest.fixture
def config() -> Config:
    return make_config()


@pytest.fixture
def union_combo() -> ModeCombination:
    """Two-mode union combination."""
    return ModeCombination(id="pair", name="Pair", modes=(A, B))


@pytest.fixture
def sample_problem() -> str:
    """Provide a sample problem statement."""
    return "Why did customer churn spike after the pricing change in March?"
