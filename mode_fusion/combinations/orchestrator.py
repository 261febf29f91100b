"""Concurrent execution of mode analyzers.

Each requested mode runs in its own task with a per-mode timeout. Failures
are isolated into ``ModeError`` records; a global deadline bounds the join.
"""

from __future__ import annotations

import asyncio
import inspect
import time
from collections.abc import Awaitable, Callable, Iterable, Mapping, Sequence
from concurrent.futures import Executor
from dataclasses import dataclass, field
from typing import Any, Union

from loguru import logger
from pydantic import ValidationError

from mode_fusion.config import OrchestratorConfig, get_config
from mode_fusion.utils.errors import AnalyzerNotFoundError, AnalyzerOutputError, ModeTimeoutError
from mode_fusion.utils.logging import log_context
from mode_fusion.utils.retry import RetryPolicy, call_with_retry

from .types import Insight, ModeAnalysisResult, ModeError, ThinkingMode

AnalyzerOutput = Sequence[Union[Insight, Mapping[str, Any]]]

# (problem, context) -> insights; sync or async
ModeAnalyzer = Callable[[str, Union[str, None]], Union[AnalyzerOutput, Awaitable[AnalyzerOutput]]]

ModeCompleteCallback = Callable[[ModeAnalysisResult], None]

# Error codes reported in ModeError.code / ModeAnalysisResult.error_code
TIMEOUT = "timeout"
GLOBAL_TIMEOUT = "global_timeout"
ANALYZER_ERROR = "analyzer_error"
ANALYZER_NOT_FOUND = "analyzer_not_found"
INVALID_OUTPUT = "invalid_output"


@dataclass
class OrchestrationResult:
    """Per-mode outcomes of one orchestration run, keyed in request order."""

    results: dict[ThinkingMode, ModeAnalysisResult] = field(default_factory=dict)
    errors: list[ModeError] = field(default_factory=list)
    execution_time: float = 0.0  # ms

    @property
    def successful_modes(self) -> list[ThinkingMode]:
        return [mode for mode, result in self.results.items() if result.success]

    def insights_by_mode(self) -> dict[ThinkingMode, list[Insight]]:
        """Insights of every successful mode, in request order."""
        return {
            mode: list(result.insights) for mode, result in self.results.items() if result.success
        }


def coerce_insights(mode: ThinkingMode, output: Any) -> list[Insight]:
    """Turn analyzer output into insights attributed to ``mode``.

    Args:
        mode: The mode whose analyzer produced ``output``.
        output: A sequence of ``Insight`` objects or insight dicts.

    Returns:
        Validated insights. Dicts default ``source_mode`` to ``mode``; insights
        claiming another mode are re-attributed with a note.

    Raises:
        AnalyzerOutputError: If the output or any item cannot be coerced.

    """
    if isinstance(output, (str, bytes, Mapping)) or not isinstance(output, Iterable):
        raise AnalyzerOutputError(mode.value, f"expected a sequence, got {type(output).__name__}")

    insights: list[Insight] = []
    for index, item in enumerate(output):
        if isinstance(item, Insight):
            insight = item
        elif isinstance(item, Mapping):
            try:
                insight = Insight.model_validate({"source_mode": mode, **item})
            except ValidationError as e:
                raise AnalyzerOutputError(mode.value, f"item {index}: {e}") from e
        else:
            raise AnalyzerOutputError(
                mode.value, f"item {index} is {type(item).__name__}, not an insight"
            )

        if insight.source_mode != mode:
            note = f"re-attributed from {insight.source_mode.value} to {mode.value}"
            logger.warning(f"Insight {insight.id} {note}")
            insight = insight.model_copy(
                update={"source_mode": mode, "notes": [*insight.notes, note]}
            )
        insights.append(insight)
    return insights


def _is_async(analyzer: ModeAnalyzer) -> bool:
    return inspect.iscoroutinefunction(analyzer) or inspect.iscoroutinefunction(
        getattr(analyzer, "__call__", None)
    )


class ModeOrchestrator:
    """Runs mode analyzers concurrently with isolation and timeouts.

    Usage:
        orchestrator = ModeOrchestrator({ThinkingMode.CAUSAL: causal_analyzer})
        outcome = await orchestrator.run("Why did sales drop?", [ThinkingMode.CAUSAL])
    """

    def __init__(
        self,
        analyzers: Mapping[ThinkingMode, ModeAnalyzer],
        config: OrchestratorConfig | None = None,
        executor: Executor | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            analyzers: Analyzer callable per mode.
            config: Timeouts, parallelism and retry settings.
            executor: Executor for synchronous analyzers (default: loop's default).

        """
        self._analyzers = dict(analyzers)
        self._config = config or get_config().orchestrator
        self._executor = executor
        self._retry_policy = RetryPolicy(
            max_attempts=max(1, self._config.max_attempts),
            base_delay=self._config.retry_base_delay,
        )

    @property
    def supported_modes(self) -> list[ThinkingMode]:
        return list(self._analyzers)

    async def run(
        self,
        problem: str,
        modes: Sequence[ThinkingMode],
        *,
        context: str | None = None,
        timeout_per_mode: float | None = None,
        global_timeout: float | None = None,
        session_id: str | None = None,
        on_mode_complete: ModeCompleteCallback | None = None,
    ) -> OrchestrationResult:
        """Run every mode's analyzer concurrently.

        Never raises for mode failures; each failure becomes a recoverable
        ``ModeError``. Modes still running at the global deadline are
        cancelled and reported with code ``global_timeout``.

        Args:
            problem: Problem text passed to every analyzer.
            modes: Modes to run; duplicates are ignored.
            context: Optional context passed to every analyzer.
            timeout_per_mode: Per-mode timeout in ms (default: config).
            global_timeout: Deadline for the whole run in ms (default: config,
                else the sum of per-mode timeouts).
            session_id: Caller session id attached to every mode's log records.
            on_mode_complete: Called with each mode's result as it finishes.

        Returns:
            OrchestrationResult keyed by mode in request order.

        """
        start = time.perf_counter()
        ordered = list(dict.fromkeys(modes))
        per_mode_ms = timeout_per_mode or self._config.timeout_per_mode_ms
        deadline_ms = global_timeout or self._config.global_timeout_ms or per_mode_ms * len(ordered)
        semaphore = asyncio.Semaphore(max(1, self._config.max_parallel_modes))

        logger.debug(
            f"Running {len(ordered)} modes (timeout {per_mode_ms:.0f}ms per mode, "
            f"deadline {deadline_ms:.0f}ms)"
        )

        # Tasks copy the current context, so the session id follows each mode
        with log_context(session_id=session_id):
            tasks = {
                mode: asyncio.create_task(
                    self._run_mode(
                        mode, problem, context, per_mode_ms, semaphore, on_mode_complete
                    ),
                    name=f"mode-{mode.value}",
                )
                for mode in ordered
            }
        done, pending = (set(), set())
        if tasks:
            done, pending = await asyncio.wait(tasks.values(), timeout=deadline_ms / 1000)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        outcome = OrchestrationResult()
        for mode, task in tasks.items():
            if task in done:
                result = task.result()
            else:
                elapsed = (time.perf_counter() - start) * 1000
                result = ModeAnalysisResult(
                    mode=mode,
                    success=False,
                    error=f"Mode {mode.value} cancelled at global deadline of {deadline_ms:.0f}ms",
                    error_code=GLOBAL_TIMEOUT,
                    execution_time=elapsed,
                )
                logger.warning(result.error)
                self._notify(on_mode_complete, result)
            outcome.results[mode] = result
            if not result.success:
                outcome.errors.append(
                    ModeError(mode=mode, message=result.error or "", code=result.error_code)
                )

        outcome.execution_time = (time.perf_counter() - start) * 1000
        logger.info(
            f"Orchestration finished: {len(outcome.successful_modes)}/{len(ordered)} modes "
            f"succeeded in {outcome.execution_time:.1f}ms"
        )
        return outcome

    async def _run_mode(
        self,
        mode: ThinkingMode,
        problem: str,
        context: str | None,
        timeout_ms: float,
        semaphore: asyncio.Semaphore,
        on_mode_complete: ModeCompleteCallback | None,
    ) -> ModeAnalysisResult:
        with log_context(mode=mode.value):
            analyzer = self._analyzers.get(mode)
            if analyzer is None:
                error = AnalyzerNotFoundError(mode.value)
                result = self._failure(mode, error, ANALYZER_NOT_FOUND, 0.0, 0)
            else:
                async with semaphore:
                    result = await self._invoke(mode, analyzer, problem, context, timeout_ms)
            self._notify(on_mode_complete, result)
            return result

    async def _invoke(
        self,
        mode: ThinkingMode,
        analyzer: ModeAnalyzer,
        problem: str,
        context: str | None,
        timeout_ms: float,
    ) -> ModeAnalysisResult:
        attempts = 0

        async def attempt() -> Any:
            nonlocal attempts
            attempts += 1
            if _is_async(analyzer):
                return await analyzer(problem, context)  # type: ignore[misc]
            loop = asyncio.get_running_loop()
            output = await loop.run_in_executor(self._executor, lambda: analyzer(problem, context))
            if inspect.isawaitable(output):
                output = await output
            return output

        start = time.perf_counter()
        try:
            output, _ = await asyncio.wait_for(
                call_with_retry(attempt, self._retry_policy, label=f"mode {mode.value}"),
                timeout=timeout_ms / 1000,
            )
        except TimeoutError:
            elapsed = (time.perf_counter() - start) * 1000
            error = ModeTimeoutError(mode.value, timeout_ms)
            return self._failure(mode, error, TIMEOUT, elapsed, attempts)
        except Exception as e:
            elapsed = (time.perf_counter() - start) * 1000
            return self._failure(mode, e, ANALYZER_ERROR, elapsed, attempts)

        elapsed = (time.perf_counter() - start) * 1000
        try:
            insights = coerce_insights(mode, output)
        except AnalyzerOutputError as e:
            return self._failure(mode, e, INVALID_OUTPUT, elapsed, attempts)

        logger.debug(f"Mode {mode.value} produced {len(insights)} insights in {elapsed:.1f}ms")
        return ModeAnalysisResult(
            mode=mode,
            success=True,
            insights=insights,
            execution_time=elapsed,
            attempts=attempts,
        )

    @staticmethod
    def _failure(
        mode: ThinkingMode,
        error: Exception,
        code: str,
        elapsed: float,
        attempts: int,
    ) -> ModeAnalysisResult:
        message = str(error) or type(error).__name__
        logger.warning(f"Mode {mode.value} failed ({code}): {message}")
        return ModeAnalysisResult(
            mode=mode,
            success=False,
            error=message,
            error_code=code,
            execution_time=elapsed,
            attempts=attempts,
        )

    @staticmethod
    def _notify(callback: ModeCompleteCallback | None, result: ModeAnalysisResult) -> None:
        if callback is None:
            return
        try:
            callback(result)
        except Exception as e:
            logger.warning(f"Mode completion callback failed for {result.mode.value}: {e}")
