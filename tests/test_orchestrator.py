"""Unit tests for mode_fusion/combinations/orchestrator.py."""

from __future__ import annotations

import asyncio
import time

import pytest
from conftest import A, B, C, D, FailingAnalyzer, StaticAnalyzer, blocking_analyzer, make_insight

from mode_fusion.combinations.orchestrator import (
    ANALYZER_ERROR,
    ANALYZER_NOT_FOUND,
    GLOBAL_TIMEOUT,
    INVALID_OUTPUT,
    TIMEOUT,
    ModeOrchestrator,
    coerce_insights,
)
from mode_fusion.combinations.types import Insight, ModeAnalysisResult, ThinkingMode
from mode_fusion.config import Config, OrchestratorConfig
from mode_fusion.utils.errors import AnalyzerOutputError
from mode_fusion.utils.logging import get_mode, get_session_id


def fast_config(**overrides: float) -> OrchestratorConfig:
    values = {
        "timeout_per_mode_ms": 1000.0,
        "global_timeout_ms": 0.0,
        "max_parallel_modes": 5,
        "max_attempts": 1,
        "retry_base_delay": 0.01,
    }
    values.update(overrides)
    return OrchestratorConfig(**values)


class TestCoerceInsights:
    """Test analyzer output coercion."""

    def test_dict_defaults_source_mode(self) -> None:
        [insight] = coerce_insights(A, [{"content": "X is the cause", "confidence": 0.7}])
        assert insight.source_mode == A
        assert insight.confidence == 0.7

    def test_insight_passthrough(self) -> None:
        original = make_insight("X", mode=A)
        assert coerce_insights(A, [original]) == [original]

    def test_foreign_mode_reattributed(self) -> None:
        original = make_insight("X", mode=B)
        [insight] = coerce_insights(A, [original])
        assert insight.source_mode == A
        assert insight.id == original.id
        assert "re-attributed" in insight.notes[-1]

    def test_dict_claiming_other_mode_reattributed(self) -> None:
        [insight] = coerce_insights(A, [{"content": "X", "confidence": 0.5, "source_mode": "causal"}])
        assert insight.source_mode == A

    def test_empty_output_is_valid(self) -> None:
        assert coerce_insights(A, []) == []

    @pytest.mark.parametrize("output", [None, "text", {"content": "X"}, 42])
    def test_non_sequence_rejected(self, output: object) -> None:
        with pytest.raises(AnalyzerOutputError):
            coerce_insights(A, output)

    def test_bad_item_rejected(self) -> None:
        with pytest.raises(AnalyzerOutputError, match="item 1"):
            coerce_insights(A, [{"content": "ok", "confidence": 0.5}, {"confidence": 0.5}])


class TestModeOrchestrator:
    """Test concurrent execution and failure isolation."""

    @pytest.mark.asyncio
    async def test_all_modes_succeed(self) -> None:
        analyzers = {
            A: StaticAnalyzer([{"content": "from A", "confidence": 0.9}]),
            B: StaticAnalyzer([{"content": "from B", "confidence": 0.7}]),
        }
        outcome = await ModeOrchestrator(analyzers, fast_config()).run("problem", [A, B])

        assert outcome.successful_modes == [A, B]
        assert outcome.errors == []
        assert outcome.insights_by_mode()[B][0].content == "from B"
        assert all(r.attempts == 1 for r in outcome.results.values())

    @pytest.mark.asyncio
    async def test_results_in_request_order(self) -> None:
        analyzers = {
            A: StaticAnalyzer([{"content": "slow", "confidence": 0.5}], delay=0.05),
            B: StaticAnalyzer([{"content": "fast", "confidence": 0.5}]),
        }
        outcome = await ModeOrchestrator(analyzers, fast_config()).run("problem", [A, B])
        assert list(outcome.results) == [A, B]

    @pytest.mark.asyncio
    async def test_duplicate_modes_run_once(self) -> None:
        analyzer = StaticAnalyzer([])
        outcome = await ModeOrchestrator({A: analyzer}, fast_config()).run("problem", [A, A])
        assert list(outcome.results) == [A]
        assert analyzer.calls == 1

    @pytest.mark.asyncio
    async def test_three_of_four_time_out(self) -> None:
        """One fast mode succeeds while three slow modes time out."""
        slow = [{"content": "late", "confidence": 0.5}]
        analyzers = {
            A: StaticAnalyzer([{"content": "on time", "confidence": 0.8}]),
            B: StaticAnalyzer(slow, delay=5),
            C: StaticAnalyzer(slow, delay=5),
            D: StaticAnalyzer(slow, delay=5),
        }
        start = time.perf_counter()
        outcome = await ModeOrchestrator(analyzers, fast_config()).run(
            "problem", [A, B, C, D], timeout_per_mode=100
        )
        elapsed = time.perf_counter() - start

        assert elapsed < 2
        assert outcome.successful_modes == [A]
        assert len(outcome.errors) == 3
        assert {e.code for e in outcome.errors} == {TIMEOUT}
        assert all(e.recoverable for e in outcome.errors)
        assert "timed out" in outcome.results[B].error

    @pytest.mark.asyncio
    async def test_exception_isolated(self) -> None:
        analyzers = {
            A: FailingAnalyzer(),
            B: StaticAnalyzer([{"content": "fine", "confidence": 0.6}]),
        }
        outcome = await ModeOrchestrator(analyzers, fast_config()).run("problem", [A, B])

        assert outcome.successful_modes == [B]
        [error] = outcome.errors
        assert error.mode == A
        assert error.code == ANALYZER_ERROR
        assert "exploded" in error.message

    @pytest.mark.asyncio
    async def test_missing_analyzer(self) -> None:
        outcome = await ModeOrchestrator({}, fast_config()).run("problem", [A])
        [error] = outcome.errors
        assert error.code == ANALYZER_NOT_FOUND
        assert outcome.results[A].success is False

    @pytest.mark.asyncio
    async def test_invalid_output(self) -> None:
        outcome = await ModeOrchestrator({A: StaticAnalyzer("not a list")}, fast_config()).run(
            "problem", [A]
        )
        assert outcome.errors[0].code == INVALID_OUTPUT

    @pytest.mark.asyncio
    async def test_all_fail_returns_normally(self) -> None:
        analyzers = {A: FailingAnalyzer(), B: FailingAnalyzer()}
        outcome = await ModeOrchestrator(analyzers, fast_config()).run("problem", [A, B])
        assert outcome.successful_modes == []
        assert len(outcome.errors) == 2
        assert outcome.insights_by_mode() == {}

    @pytest.mark.asyncio
    async def test_global_deadline_cancels_pending(self) -> None:
        analyzers = {
            A: StaticAnalyzer([{"content": "quick", "confidence": 0.5}]),
            B: StaticAnalyzer([], delay=5),
        }
        start = time.perf_counter()
        outcome = await ModeOrchestrator(analyzers, fast_config()).run(
            "problem", [A, B], timeout_per_mode=5000, global_timeout=100
        )
        assert time.perf_counter() - start < 2
        assert outcome.successful_modes == [A]
        assert outcome.errors[0].code == GLOBAL_TIMEOUT

    @pytest.mark.asyncio
    async def test_sync_analyzers_run_in_parallel(self) -> None:
        analyzers = {
            A: blocking_analyzer([{"content": "a", "confidence": 0.5}], delay=0.2),
            B: blocking_analyzer([{"content": "b", "confidence": 0.5}], delay=0.2),
            C: blocking_analyzer([{"content": "c", "confidence": 0.5}], delay=0.2),
        }
        start = time.perf_counter()
        outcome = await ModeOrchestrator(analyzers, fast_config()).run("problem", [A, B, C])
        assert time.perf_counter() - start < 0.5
        assert outcome.successful_modes == [A, B, C]

    @pytest.mark.asyncio
    async def test_sync_analyzer_timeout_discarded(self) -> None:
        analyzers = {
            A: blocking_analyzer([{"content": "late", "confidence": 0.5}], delay=0.3),
            B: StaticAnalyzer([{"content": "b", "confidence": 0.5}]),
        }
        outcome = await ModeOrchestrator(analyzers, fast_config()).run(
            "problem", [A, B], timeout_per_mode=50
        )
        assert outcome.results[A].error_code == TIMEOUT
        assert outcome.results[A].insights == []

    @pytest.mark.asyncio
    async def test_retry_recovers(self) -> None:
        analyzer = FailingAnalyzer(failures=2, output=[{"content": "third time", "confidence": 0.5}])
        orchestrator = ModeOrchestrator({A: analyzer}, fast_config(max_attempts=3))
        outcome = await orchestrator.run("problem", [A])

        assert outcome.successful_modes == [A]
        assert outcome.results[A].attempts == 3
        assert analyzer.calls == 3

    @pytest.mark.asyncio
    async def test_retry_exhausted(self) -> None:
        analyzer = FailingAnalyzer()
        outcome = await ModeOrchestrator({A: analyzer}, fast_config(max_attempts=2)).run(
            "problem", [A]
        )
        assert outcome.results[A].error_code == ANALYZER_ERROR
        assert outcome.results[A].attempts == 2

    @pytest.mark.asyncio
    async def test_parallelism_bound(self) -> None:
        running = 0
        peak = 0

        async def tracked(problem: str, context: str | None = None) -> list[Insight]:
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            await asyncio.sleep(0.02)
            running -= 1
            return []

        modes = [A, B, C, D]
        analyzers = {mode: tracked for mode in modes}
        await ModeOrchestrator(analyzers, fast_config(max_parallel_modes=2)).run("problem", modes)
        assert peak == 2

    @pytest.mark.asyncio
    async def test_context_passed_to_analyzers(self) -> None:
        seen: list[tuple[str, str | None]] = []

        async def recorder(problem: str, context: str | None = None) -> list[Insight]:
            seen.append((problem, context))
            return []

        await ModeOrchestrator({A: recorder}, fast_config()).run("problem", [A], context="ctx")
        assert seen == [("problem", "ctx")]

    @pytest.mark.asyncio
    async def test_log_context_reaches_analyzers(self) -> None:
        seen: list[tuple[str | None, str | None]] = []

        async def recorder(problem: str, context: str | None = None) -> list[Insight]:
            seen.append((get_session_id(), get_mode()))
            return []

        await ModeOrchestrator({A: recorder}, fast_config()).run(
            "problem", [A], session_id="sess-7"
        )
        assert seen == [("sess-7", A.value)]
        assert get_session_id() is None

    @pytest.mark.asyncio
    async def test_on_mode_complete_called_per_mode(self) -> None:
        completed: list[ModeAnalysisResult] = []
        analyzers = {A: StaticAnalyzer([]), B: FailingAnalyzer()}
        await ModeOrchestrator(analyzers, fast_config()).run(
            "problem", [A, B], on_mode_complete=completed.append
        )
        assert {r.mode for r in completed} == {A, B}

    @pytest.mark.asyncio
    async def test_callback_failure_does_not_break_run(self) -> None:
        def broken(result: ModeAnalysisResult) -> None:
            raise RuntimeError("callback bug")

        outcome = await ModeOrchestrator({A: StaticAnalyzer([])}, fast_config()).run(
            "problem", [A], on_mode_complete=broken
        )
        assert outcome.successful_modes == [A]

    @pytest.mark.asyncio
    async def test_defaults_from_config(self, config: Config) -> None:
        orchestrator = ModeOrchestrator({ThinkingMode.CAUSAL: StaticAnalyzer([])}, config.orchestrator)
        outcome = await orchestrator.run("problem", [ThinkingMode.CAUSAL])
        assert outcome.execution_time >= 0
        assert orchestrator.supported_modes == [ThinkingMode.CAUSAL]
