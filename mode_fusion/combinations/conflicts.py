"""Conflict detection and resolution between insights from different modes.

The detector classifies each cross-mode pair of insights using lexical
signals from ``mode_fusion.utils.similarity``. The resolver applies the
policy of the combination's merge strategy to every detected conflict.
"""

from __future__ import annotations

import re
from collections import Counter
from collections.abc import Callable, Collection, Mapping, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, assert_never

from loguru import logger

from mode_fusion.config import ConflictConfig, get_config
from mode_fusion.utils.similarity import (
    SimilarityFunction,
    extract_conclusion,
    is_scope_difference,
    polarity_opposed,
    topical_similarity,
)

from .types import (
    ConflictingInsight,
    ConflictResolution,
    ConflictType,
    DialecticalMergeConfig,
    HierarchicalMergeConfig,
    Insight,
    InsightRef,
    IntersectionMergeConfig,
    ModeCombination,
    ResolutionStrategy,
    ThinkingMode,
    UnionMergeConfig,
    WeightedMergeConfig,
)

if TYPE_CHECKING:
    from .merger import MergeResult

# Base severity per conflict type before confidence and dissimilarity terms
SEVERITY_BASE: dict[ConflictType, float] = {
    ConflictType.DIRECT_CONTRADICTION: 0.6,
    ConflictType.EVIDENCE_CONFLICT: 0.45,
    ConflictType.CONFIDENCE_MISMATCH: 0.35,
    ConflictType.PARTIAL_OVERLAP: 0.25,
    ConflictType.SCOPE_DIFFERENCE: 0.2,
}

# Conflicts about what the insights claim, as opposed to how strongly
CONTENT_CONFLICTS = frozenset(
    {
        ConflictType.DIRECT_CONTRADICTION,
        ConflictType.SCOPE_DIFFERENCE,
        ConflictType.PARTIAL_OVERLAP,
    }
)

_MODE_ORDER = {mode: index for index, mode in enumerate(ThinkingMode)}
_SENTENCE_SPLIT = re.compile(r"[.!?]+")


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def _declaration_order(mode: ThinkingMode) -> int:
    return _MODE_ORDER[mode]


def key_point(content: str, limit: int = 100) -> str:
    """First sentence of ``content``, truncated and with a lowercase first letter."""
    sentences = [s.strip() for s in _SENTENCE_SPLIT.split(content) if s.strip()]
    main = sentences[0] if sentences else content.strip()
    if len(main) > limit:
        main = main[:limit] + "..."
    return main[:1].lower() + main[1:]


def synthesize(
    conflict: ConflictingInsight,
    first: Insight,
    second: Insight,
    source: Insight | None = None,
) -> tuple[Insight, ConflictingInsight]:
    """Create a synthesis insight for a conflict and mark the conflict resolved.

    Args:
        conflict: The conflict between ``first`` and ``second``.
        first: Insight taken as the thesis side.
        second: Insight taken as the antithesis side.
        source: Optional insight whose content becomes the synthesis.

    Returns:
        Tuple of (new synthesis insight, conflict with a ``synthesize`` resolution).

    """
    confidence = _clamp((1.0 - conflict.severity) * (first.confidence + second.confidence) / 2)
    related = [first.id, second.id]
    if source is not None:
        content = source.content
        mode = source.source_mode
        related.append(source.id)
    else:
        content = (
            f"While {key_point(first.content)}, it is also important to consider that "
            f"{key_point(second.content)}. A balanced view incorporates both perspectives."
        )
        mode = first.source_mode

    insight = Insight(
        content=content,
        source_mode=mode,
        confidence=confidence,
        evidence=[
            f"{first.source_mode.value}: {first.content}",
            f"{second.source_mode.value}: {second.content}",
        ],
        related_insights=related,
        category="synthesis",
    )
    resolution = ConflictResolution(
        resolved_insight=content,
        explanation=(
            f"Synthesized insights from {first.source_mode.value} and "
            f"{second.source_mode.value} into a unified perspective"
        ),
        preserved_from=[first.source_mode, second.source_mode],
        resolution_strategy=ResolutionStrategy.SYNTHESIZE,
        confidence=confidence,
    )
    return insight, conflict.with_resolution(resolution)


class ConflictDetector:
    """Classifies tension between pairs of insights from different modes."""

    def __init__(
        self,
        config: ConflictConfig | None = None,
        similarity: SimilarityFunction = topical_similarity,
    ) -> None:
        self._config = config or get_config().conflicts
        self._similarity = similarity

    def detect(
        self,
        a: Insight,
        b: Insight,
        priority: Callable[[ThinkingMode], int] | None = None,
        modes: Collection[ThinkingMode] | None = None,
    ) -> ConflictingInsight | None:
        """Classify the pair ``(a, b)``.

        Args:
            a: First insight.
            b: Second insight.
            priority: Mode sort key used to order the pair canonically
                (default: mode declaration order).
            modes: Every mode that reported either insight (default: the
                two source modes).

        Returns:
            The conflict, or None when the pair is backed by a single mode or
            their topical similarity is below ``min_similarity``.

        """
        backing = set(modes) if modes is not None else set()
        backing.update((a.source_mode, b.source_mode))
        if len(backing) < 2:
            return None
        similarity = self._similarity(a.content, b.content)
        if similarity < self._config.min_similarity:
            return None

        conflict_type = self._classify(a, b, similarity)
        delta = abs(a.confidence - b.confidence)
        severity = _clamp(SEVERITY_BASE[conflict_type] + 0.25 * delta + 0.25 * (1.0 - similarity))

        rank = priority or _declaration_order
        first, second = sorted((a, b), key=lambda i: (rank(i.source_mode), i.id))
        return ConflictingInsight(
            insight1=InsightRef.of(first),
            insight2=InsightRef.of(second),
            conflict_type=conflict_type,
            severity=severity,
        )

    def detect_all(
        self,
        insights: Sequence[Insight],
        priority: Callable[[ThinkingMode], int] | None = None,
        modes_of: Mapping[str, Sequence[ThinkingMode]] | None = None,
    ) -> list[ConflictingInsight]:
        """Detect conflicts over every cross-mode pair of ``insights``.

        ``modes_of`` maps an insight id to every mode that reported it, so two
        merged insights whose representatives share a mode are still compared
        when their supporting modes differ.
        """
        modes_of = modes_of or {}
        conflicts = []
        for i, a in enumerate(insights):
            for b in insights[i + 1 :]:
                modes = [*modes_of.get(a.id, ()), *modes_of.get(b.id, ())]
                conflict = self.detect(a, b, priority, modes)
                if conflict is not None:
                    conflicts.append(conflict)
        return conflicts

    def _classify(self, a: Insight, b: Insight, similarity: float) -> ConflictType:
        opposed = polarity_opposed(a.content, b.content)
        topical = similarity >= self._config.topical_threshold

        if topical and opposed:
            return ConflictType.DIRECT_CONTRADICTION

        if topical and self._conclusions_match(a.content, b.content):
            if abs(a.confidence - b.confidence) >= self._config.confidence_gap:
                return ConflictType.CONFIDENCE_MISMATCH
            if a.evidence and b.evidence:
                evidence_a = {e.lower() for e in a.evidence}
                evidence_b = {e.lower() for e in b.evidence}
                if evidence_a.isdisjoint(evidence_b):
                    return ConflictType.EVIDENCE_CONFLICT

        if is_scope_difference(a.content, b.content):
            return ConflictType.SCOPE_DIFFERENCE
        return ConflictType.PARTIAL_OVERLAP

    def _conclusions_match(self, text_a: str, text_b: str) -> bool:
        conclusion_a = extract_conclusion(text_a)
        conclusion_b = extract_conclusion(text_b)
        if conclusion_a is None or conclusion_b is None:
            return True
        return self._similarity(
            conclusion_a, conclusion_b
        ) >= self._config.topical_threshold and not polarity_opposed(conclusion_a, conclusion_b)


@dataclass
class ResolutionOutcome:
    """Primary insights and conflicts after resolution."""

    primary_insights: list[Insight] = field(default_factory=list)
    conflicts: list[ConflictingInsight] = field(default_factory=list)
    deferred: list[ConflictingInsight] = field(default_factory=list)
    synthesized: list[Insight] = field(default_factory=list)
    removed_ids: set[str] = field(default_factory=set)

    @property
    def unresolved(self) -> list[ConflictingInsight]:
        return [c for c in self.conflicts if not c.is_resolved]


class ConflictResolver:
    """Applies a combination's conflict policy to merged insights.

    Usage:
        resolver = ConflictResolver()
        outcome = resolver.resolve(merge_result, combination)
    """

    def __init__(
        self,
        detector: ConflictDetector | None = None,
        config: ConflictConfig | None = None,
        overrides: Mapping[ConflictType, ResolutionStrategy] | None = None,
    ) -> None:
        """Initialize the resolver.

        Args:
            detector: Detector for conflicts among merged insights.
            config: Conflict settings (used for the default detector).
            overrides: Resolution strategy per conflict type, applied to
                every strategy except dialectical.

        """
        self._config = config or get_config().conflicts
        self._detector = detector or ConflictDetector(self._config)
        self._overrides = dict(overrides or {})

    def resolve(self, merge_result: MergeResult, combination: ModeCombination) -> ResolutionOutcome:
        """Detect and resolve conflicts among the merged primary insights.

        Only insights produced by analyzers take part in detection; conflicts
        already recorded by the merger are carried over unchanged. Conflicts
        are recorded by descending severity. A favored loser is dropped only
        while the insight favored over it survives.

        Args:
            merge_result: Output of ``InsightMerger.merge``.
            combination: Combination whose strategy selects the policy.

        Returns:
            ResolutionOutcome with surviving insights and every conflict.

        """
        priority = combination.mode_priority()
        analyzer_ids = merge_result.analyzer_insight_ids()
        by_id = {i.id: i for i in merge_result.primary_insights}
        candidates = [i for i in merge_result.primary_insights if i.id in analyzer_ids]

        handled = {c.insight_ids for c in merge_result.conflicts}
        detected = [
            c
            for c in self._detector.detect_all(
                candidates, priority, merge_result.supporting_evidence
            )
            if c.insight_ids not in handled
        ]
        detected.sort(key=lambda c: -c.severity)

        outcome = ResolutionOutcome(conflicts=list(merge_result.conflicts))
        # (index into outcome.conflicts, winner, loser) for favored pairs
        contests: list[tuple[int, Insight, Insight]] = []
        for conflict in detected:
            strategy = self._strategy_for(conflict, combination)
            first = by_id[conflict.insight1.insight_id]
            second = by_id[conflict.insight2.insight_id]

            match strategy:
                case ResolutionStrategy.FAVOR_HIGHER_CONFIDENCE:
                    if first.confidence >= second.confidence:
                        contests.append((len(outcome.conflicts), first, second))
                    else:
                        contests.append((len(outcome.conflicts), second, first))
                case ResolutionStrategy.PRESERVE_BOTH:
                    conflict = conflict.with_resolution(
                        ConflictResolution(
                            resolved_insight=f"{first.content} | {second.content}",
                            explanation="Both perspectives retained",
                            preserved_from=[first.source_mode, second.source_mode],
                            resolution_strategy=strategy,
                            confidence=_clamp((first.confidence + second.confidence) / 2),
                        )
                    )
                case ResolutionStrategy.SYNTHESIZE:
                    synthesis, conflict = synthesize(conflict, first, second)
                    outcome.synthesized.append(synthesis)
                    preserve = isinstance(combination.merge_config, DialecticalMergeConfig) and (
                        combination.merge_config.preserve_originals
                    )
                    if not preserve:
                        outcome.removed_ids.update((first.id, second.id))
                case ResolutionStrategy.DEFER:
                    outcome.deferred.append(conflict)
                case _:
                    assert_never(strategy)
            outcome.conflicts.append(conflict)

        self._settle(contests, outcome, priority)

        survivors = [i for i in merge_result.primary_insights if i.id not in outcome.removed_ids]
        survivors.extend(outcome.synthesized)
        survivors.sort(key=lambda i: (-i.confidence, priority(i.source_mode), i.id))
        outcome.primary_insights = survivors

        resolved = outcome.conflicts[len(merge_result.conflicts) :]
        if detected:
            logger.debug(
                f"Resolved {sum(c.is_resolved for c in resolved)}/{len(detected)} conflicts "
                f"({len(outcome.deferred)} deferred, {len(outcome.removed_ids)} insights dropped)"
            )
        return outcome

    @staticmethod
    def _settle(
        contests: list[tuple[int, Insight, Insight]],
        outcome: ResolutionOutcome,
        priority: Callable[[ThinkingMode], int],
    ) -> None:
        """Drop favored losers and record each favored resolution.

        A loser is dropped only when one of its winners survives. Insights are
        visited strongest first, so every winner is settled before its losers
        and an insight that is itself dropped no longer evicts anyone.
        """
        beaten_by: dict[str, list[str]] = {}
        contenders: dict[str, Insight] = {}
        for _, winner, loser in contests:
            beaten_by.setdefault(loser.id, []).append(winner.id)
            contenders[winner.id] = winner
            contenders[loser.id] = loser

        dropped = set(outcome.removed_ids)
        for insight in sorted(
            contenders.values(), key=lambda i: (-i.confidence, priority(i.source_mode), i.id)
        ):
            if any(w not in dropped for w in beaten_by.get(insight.id, ())):
                dropped.add(insight.id)

        for index, winner, loser in contests:
            conflict = outcome.conflicts[index]
            pair = [conflict.insight1.mode, conflict.insight2.mode]
            if winner.id in dropped and loser.id not in dropped:
                resolution = ConflictResolution(
                    resolved_insight=loser.content,
                    explanation=(
                        f"Kept {loser.source_mode.value} insight; the "
                        f"{winner.source_mode.value} insight favored over it was "
                        f"dropped by a stronger insight"
                    ),
                    preserved_from=pair,
                    resolution_strategy=ResolutionStrategy.FAVOR_HIGHER_CONFIDENCE,
                    confidence=_clamp(loser.confidence),
                )
            else:
                resolution = ConflictResolution(
                    resolved_insight=winner.content,
                    explanation=(
                        f"Favored {winner.source_mode.value} insight "
                        f"(confidence {winner.confidence:.2f}) over "
                        f"{loser.source_mode.value} ({loser.confidence:.2f})"
                    ),
                    preserved_from=pair,
                    resolution_strategy=ResolutionStrategy.FAVOR_HIGHER_CONFIDENCE,
                    confidence=_clamp(winner.confidence),
                )
            outcome.conflicts[index] = conflict.with_resolution(resolution)
        outcome.removed_ids = dropped

    def _strategy_for(
        self, conflict: ConflictingInsight, combination: ModeCombination
    ) -> ResolutionStrategy:
        config = combination.merge_config
        match config:
            case DialecticalMergeConfig():
                return ResolutionStrategy.SYNTHESIZE
            case _ if conflict.conflict_type in self._overrides:
                return self._overrides[conflict.conflict_type]
            case UnionMergeConfig() | IntersectionMergeConfig() | WeightedMergeConfig():
                return ResolutionStrategy.FAVOR_HIGHER_CONFIDENCE
            case HierarchicalMergeConfig():
                # Ties favor insight1, so insight2 is the lower side on equal confidence
                lower = (
                    conflict.insight1
                    if conflict.insight1.confidence < conflict.insight2.confidence
                    else conflict.insight2
                )
                if lower.mode == config.primary_mode:
                    return ResolutionStrategy.DEFER
                return ResolutionStrategy.FAVOR_HIGHER_CONFIDENCE
            case _:
                assert_never(config)

    @staticmethod
    def statistics(conflicts: Sequence[ConflictingInsight]) -> dict[str, Any]:
        """Summary counts for a list of conflicts."""
        by_type = Counter(c.conflict_type.value for c in conflicts)
        return {
            "total": len(conflicts),
            "by_type": dict(by_type),
            "average_severity": (
                sum(c.severity for c in conflicts) / len(conflicts) if conflicts else 0.0
            ),
            "resolved": sum(1 for c in conflicts if c.is_resolved),
        }
