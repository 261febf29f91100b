"""Multi-mode analyzer - the public entry point of the pipeline.

Resolves a combination for the request, runs the modes concurrently, merges
their insights, resolves conflicts and assembles the final analysis.

Usage:
    analyzer = MultiModeAnalyzer()
    response = await analyzer.analyze_with_preset("Why did churn spike?", "root_cause")
    print(response.analysis.synthesized_conclusion)
"""

from __future__ import annotations

import time
import uuid
from collections.abc import Callable, Mapping, Sequence
from typing import Any

from pydantic import ValidationError

from mode_fusion.config import Config, get_config
from mode_fusion.utils.errors import CombinationValidationError, RequestValidationError
from mode_fusion.utils.logging import get_logger, log_context

from .catalog import CombinationCatalog, default_catalog, default_merge_config
from .conflicts import ConflictDetector, ConflictResolver, ResolutionOutcome
from .merger import InsightMerger, MergeResult
from .orchestrator import ModeAnalyzer, ModeOrchestrator, OrchestrationResult
from .templates import default_analyzers
from .types import (
    AnalysisPhase,
    AnalysisProgress,
    ConflictingInsight,
    Insight,
    MergedAnalysis,
    MergeStrategy,
    ModeAnalysisResult,
    ModeCombination,
    MultiModeAnalysisRequest,
    MultiModeAnalysisResponse,
    ThinkingMode,
)

log = get_logger(__name__)

ProgressCallback = Callable[[AnalysisProgress], None]

CUSTOM_COMBINATION_ID = "custom"


class MultiModeAnalyzer:
    """Facade over catalog, orchestrator, merger and conflict resolver."""

    def __init__(
        self,
        catalog: CombinationCatalog | None = None,
        analyzers: Mapping[ThinkingMode, ModeAnalyzer] | None = None,
        config: Config | None = None,
    ) -> None:
        """Initialize the analyzer.

        Args:
            catalog: Combination catalog (default: presets plus COMBINATIONS_FILE).
            analyzers: Analyzer per mode (default: template analyzers).
            config: Configuration (default: global config).

        """
        self._config = config or get_config()
        self._catalog = catalog if catalog is not None else default_catalog(self._config)
        self._analyzers = dict(analyzers) if analyzers is not None else default_analyzers()
        self._orchestrator = ModeOrchestrator(self._analyzers, self._config.orchestrator)
        detector = ConflictDetector(self._config.conflicts)
        self._merger = InsightMerger(self._config.merger, detector=detector)
        self._resolver = ConflictResolver(detector, self._config.conflicts)

    @property
    def catalog(self) -> CombinationCatalog:
        return self._catalog

    def available_presets(self) -> list[ModeCombination]:
        return self._catalog.list()

    def supported_modes(self) -> list[ThinkingMode]:
        return list(self._analyzers)

    async def analyze_with_preset(
        self,
        thought: str,
        preset: str,
        context: str | None = None,
        **kwargs: Any,
    ) -> MultiModeAnalysisResponse:
        """Analyze ``thought`` with a catalog preset."""
        request = self._validate(
            {"thought": thought, "preset": preset, "context": context, **kwargs}
        )
        return await self.analyze(request)

    async def analyze_with_modes(
        self,
        thought: str,
        modes: Sequence[ThinkingMode | str],
        merge_strategy: MergeStrategy | str = MergeStrategy.UNION,
        context: str | None = None,
        **kwargs: Any,
    ) -> MultiModeAnalysisResponse:
        """Analyze ``thought`` with an ad hoc list of modes."""
        request = self._validate(
            {
                "thought": thought,
                "custom_modes": list(modes),
                "merge_strategy": merge_strategy,
                "context": context,
                **kwargs,
            }
        )
        return await self.analyze(request)

    async def analyze(
        self,
        request: MultiModeAnalysisRequest | Mapping[str, Any],
        on_progress: ProgressCallback | None = None,
    ) -> MultiModeAnalysisResponse:
        """Run a full multi-mode analysis.

        Args:
            request: Request model or a dict in its shape.
            on_progress: Called at each phase with an ``AnalysisProgress``.

        Returns:
            Response with ``success=False`` and an empty analysis when no mode
            succeeded; otherwise the merged analysis and recoverable errors.

        Raises:
            RequestValidationError: If the request is malformed, names an
                unknown preset or resolves to fewer than two modes. Raised
                before any analyzer runs.

        """
        start = time.perf_counter()
        request = self._validate(request)
        combination, notes = self._resolve_combination(request)
        total = len(combination.modes)

        with log_context(trace_id=uuid.uuid4().hex, session_id=request.session_id):
            log.info(
                f"Analyzing with {combination.id} ({combination.merge_strategy.value}, "
                f"{total} modes)"
            )
            self._report(
                on_progress, AnalysisPhase.INITIALIZING, 0, total, message="Resolved modes"
            )

            completed = 0

            def on_mode_complete(result: ModeAnalysisResult) -> None:
                nonlocal completed
                completed += 1
                status = "completed" if result.success else f"failed ({result.error_code})"
                self._report(
                    on_progress,
                    AnalysisPhase.EXECUTING_MODES,
                    10 + int(50 * completed / total),
                    total,
                    completed=completed,
                    current_mode=result.mode,
                    message=f"Mode {result.mode.value} {status}",
                )

            outcome = await self._orchestrator.run(
                request.thought,
                combination.modes,
                context=request.context,
                timeout_per_mode=request.timeout_per_mode,
                session_id=request.session_id,
                on_mode_complete=on_mode_complete,
            )

            if not outcome.successful_modes:
                log.warning(f"All {total} modes failed")
                self._report(
                    on_progress,
                    AnalysisPhase.COMPLETE,
                    100,
                    total,
                    completed,
                    message="No mode succeeded",
                )
                return self._failed_response(combination, outcome, notes, start)

            self._report(on_progress, AnalysisPhase.COLLECTING_INSIGHTS, 60, total, completed)
            insights_by_mode = outcome.insights_by_mode()

            self._report(on_progress, AnalysisPhase.MERGING, 70, total, completed)
            merged = self._merger.merge(insights_by_mode, combination)

            self._report(on_progress, AnalysisPhase.RESOLVING_CONFLICTS, 85, total, completed)
            resolution = self._resolver.resolve(merged, combination)

            analysis = self._build_analysis(combination, outcome, merged, resolution, notes)
            self._report(
                on_progress,
                AnalysisPhase.COMPLETE,
                100,
                total,
                completed,
                message="Analysis complete",
            )

            elapsed = (time.perf_counter() - start) * 1000
            log.info(
                f"Analysis finished in {elapsed:.1f}ms: {len(analysis.primary_insights)} insights, "
                f"{len(analysis.conflicts)} conflicts, confidence {analysis.confidence_score:.2f}"
            )
            return MultiModeAnalysisResponse(
                analysis=analysis,
                mode_results=outcome.results,
                success=True,
                errors=outcome.errors,
                execution_time=elapsed,
            )

    # --- Request handling ---

    def _validate(
        self, request: MultiModeAnalysisRequest | Mapping[str, Any]
    ) -> MultiModeAnalysisRequest:
        if not isinstance(request, MultiModeAnalysisRequest):
            try:
                request = MultiModeAnalysisRequest.model_validate(dict(request))
            except ValidationError as e:
                raise RequestValidationError(
                    "Invalid analysis request",
                    details={"errors": e.errors(include_url=False, include_context=False)},
                ) from e

        limits = self._config.input_limits
        if len(request.thought) > limits.max_thought_size:
            raise RequestValidationError(
                f"Thought exceeds {limits.max_thought_size} characters",
                details={"size": len(request.thought), "limit": limits.max_thought_size},
            )
        if request.context and len(request.context) > limits.max_context_size:
            raise RequestValidationError(
                f"Context exceeds {limits.max_context_size} characters",
                details={"size": len(request.context), "limit": limits.max_context_size},
            )
        return request

    def _resolve_combination(
        self, request: MultiModeAnalysisRequest
    ) -> tuple[ModeCombination, list[str]]:
        notes: list[str] = []
        custom = request.custom_modes is not None
        preset = None
        if request.preset or not custom:
            preset = self._catalog.require(request.preset or self._config.analyzer.default_preset)

        if request.custom_modes is not None:
            modes = list(dict.fromkeys(request.custom_modes))
            strategy = request.merge_strategy or (
                preset.merge_strategy if preset else MergeStrategy.UNION
            )
            combination_id = CUSTOM_COMBINATION_ID
        elif preset is not None:
            modes = list(preset.modes)
            strategy = request.merge_strategy or preset.merge_strategy
            combination_id = preset.id
        else:
            raise RequestValidationError("Request names neither a preset nor custom modes")

        if len(modes) < 2:
            raise RequestValidationError(
                "Multi-mode analysis needs at least two distinct modes",
                details={"modes": [m.value for m in modes]},
            )

        if preset is not None and not custom and strategy == preset.merge_strategy:
            return preset, notes

        try:
            combination = ModeCombination(
                id=combination_id,
                name=preset.name if preset and not custom else "Custom Combination",
                description=preset.description if preset else "",
                modes=tuple(modes),
                merge_config=default_merge_config(strategy, modes),
                use_case=preset.use_case if preset else "",
                tags=preset.tags if preset else (),
            )
        except (ValidationError, CombinationValidationError) as e:
            raise RequestValidationError(
                f"Invalid merge configuration for {combination_id}: {e}",
                details={"strategy": MergeStrategy(strategy).value},
            ) from e

        if preset is not None and strategy != preset.merge_strategy:
            notes.append(
                f"Merge strategy {MergeStrategy(strategy).value} replaces "
                f"{preset.merge_strategy.value} from preset {preset.id}"
            )
        return combination, notes

    # --- Result assembly ---

    def _build_analysis(
        self,
        combination: ModeCombination,
        outcome: OrchestrationResult,
        merged: MergeResult,
        resolution: ResolutionOutcome,
        notes: list[str],
    ) -> MergedAnalysis:
        primary = resolution.primary_insights
        kept_ids = {i.id for i in primary}
        conflicts = resolution.conflicts
        resolved = sum(1 for c in conflicts if c.is_resolved)

        statistics = merged.statistics.model_copy(
            update={
                "total_insights_after": len(primary),
                "conflicts_detected": len(conflicts),
                "conflicts_resolved": resolved,
                "average_confidence": (
                    sum(i.confidence for i in primary) / len(primary) if primary else 0.0
                ),
            }
        )
        overriding = [i for i in merged.overriding_ids if i in kept_ids]
        return MergedAnalysis(
            primary_insights=primary,
            supporting_evidence={
                insight_id: modes
                for insight_id, modes in merged.supporting_evidence.items()
                if insight_id in kept_ids
            },
            conflicts=conflicts,
            synthesized_conclusion=self._conclusion(combination, primary, conflicts, overriding),
            confidence_score=self._confidence(primary, conflicts, resolution.deferred),
            contributing_modes=outcome.successful_modes,
            merge_strategy=combination.merge_strategy,
            statistics=statistics,
            combination_id=combination.id,
            notes=notes,
        )

    def _confidence(
        self,
        primary: list[Insight],
        conflicts: list[ConflictingInsight],
        deferred: list[ConflictingInsight],
    ) -> float:
        """Mean primary confidence, penalised for unresolved and deferred conflicts."""
        if not primary:
            return 0.0
        score = sum(i.confidence for i in primary) / len(primary)
        if conflicts:
            unresolved = sum(1 for c in conflicts if not c.is_resolved)
            score *= 1.0 - self._config.conflicts.unresolved_penalty * unresolved / len(conflicts)
        for conflict in deferred:
            score *= 1.0 - self._config.conflicts.deferred_penalty * conflict.severity
        return max(0.0, min(1.0, score))

    def _conclusion(
        self,
        combination: ModeCombination,
        primary: list[Insight],
        conflicts: list[ConflictingInsight],
        overriding_ids: list[str],
    ) -> str:
        if not primary:
            return "No insights generated from the analysis."

        priority = combination.mode_priority()
        ranked = sorted(primary, key=lambda i: (-i.confidence, priority(i.source_mode), i.id))
        top = ranked[: max(1, self._config.analyzer.conclusion_top_n)]
        conclusion = "Multi-mode analysis reveals: " + " Furthermore, ".join(i.content for i in top)

        if overriding_ids:
            conclusion += (
                f" Overriding evidence: {len(overriding_ids)} insight(s) from supporting modes "
                f"met the override threshold."
            )
        if conflicts:
            resolved = sum(1 for c in conflicts if c.is_resolved)
            conclusion += f" Note: {len(conflicts)} conflict(s) detected, {resolved} resolved."
        return conclusion

    @staticmethod
    def _failed_response(
        combination: ModeCombination,
        outcome: OrchestrationResult,
        notes: list[str],
        start: float,
    ) -> MultiModeAnalysisResponse:
        analysis = MergedAnalysis(
            synthesized_conclusion="No mode produced insights.",
            merge_strategy=combination.merge_strategy,
            combination_id=combination.id,
            notes=notes,
        )
        return MultiModeAnalysisResponse(
            analysis=analysis,
            mode_results=outcome.results,
            success=False,
            errors=outcome.errors,
            execution_time=(time.perf_counter() - start) * 1000,
        )

    @staticmethod
    def _report(
        callback: ProgressCallback | None,
        phase: AnalysisPhase,
        percentage: int,
        total: int,
        completed: int = 0,
        current_mode: ThinkingMode | None = None,
        message: str = "",
    ) -> None:
        log.debug(f"{phase.value}: {message or phase.value} ({percentage}%)")
        if callback is None:
            return
        progress = AnalysisProgress(
            phase=phase,
            percentage=percentage,
            modes_completed=completed,
            total_modes=total,
            current_mode=current_mode,
            message=message,
        )
        try:
            callback(progress)
        except Exception as e:
            log.warning(f"Progress callback failed at {phase.value}: {e}")


async def analyze_multi_mode(
    request: MultiModeAnalysisRequest | Mapping[str, Any],
    analyzers: Mapping[ThinkingMode, ModeAnalyzer] | None = None,
    catalog: CombinationCatalog | None = None,
    config: Config | None = None,
) -> MultiModeAnalysisResponse:
    """Build a ``MultiModeAnalyzer`` and run one analysis."""
    return await MultiModeAnalyzer(catalog=catalog, analyzers=analyzers, config=config).analyze(
        request
    )
