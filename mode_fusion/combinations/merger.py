"""Insight merging across reasoning modes.

Merging runs in two steps:

1. Deduplication: near-duplicate insights are grouped as connected components
   of the similarity graph, so grouping does not depend on arrival order.
   Each group keeps its highest-confidence member as representative.
2. Strategy: the combination's merge configuration decides which groups
   survive (union, intersection, weighted, hierarchical, dialectical).
"""

from __future__ import annotations

import time
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import assert_never

from loguru import logger

from mode_fusion.config import MergerConfig, get_config
from mode_fusion.utils.similarity import (
    SimilarityFunction,
    polarity_opposed,
    token_overlap,
    topical_similarity,
)

from .conflicts import CONTENT_CONFLICTS, ConflictDetector, synthesize
from .types import (
    ConflictingInsight,
    DialecticalMergeConfig,
    HierarchicalMergeConfig,
    Insight,
    IntersectionMergeConfig,
    MergeStatistics,
    MergeStrategy,
    ModeCombination,
    ThinkingMode,
    UnionMergeConfig,
    WeightedMergeConfig,
)

# Minimum topical similarity for a synthesis-mode insight to bridge both sides
SYNTHESIS_RELEVANCE = 0.3


@dataclass(frozen=True)
class InsightGroup:
    """Near-duplicate insights unified under one representative."""

    representative: Insight
    members: tuple[Insight, ...]
    modes: tuple[ThinkingMode, ...]  # distinct, in combination order

    def supported_by(self, mode: ThinkingMode) -> bool:
        return mode in self.modes


@dataclass
class MergeResult:
    """Output of ``InsightMerger.merge``."""

    primary_insights: list[Insight] = field(default_factory=list)
    supporting_evidence: dict[str, list[ThinkingMode]] = field(default_factory=dict)
    groups: list[InsightGroup] = field(default_factory=list)
    conflicts: list[ConflictingInsight] = field(default_factory=list)
    overriding_ids: list[str] = field(default_factory=list)
    strategy: MergeStrategy = MergeStrategy.UNION
    statistics: MergeStatistics = field(default_factory=MergeStatistics)

    def analyzer_insight_ids(self) -> set[str]:
        """Ids of every insight that came from an analyzer."""
        return {member.id for group in self.groups for member in group.members}


@dataclass
class _Selection:
    insights: list[Insight] = field(default_factory=list)
    groups: list[InsightGroup] = field(default_factory=list)
    conflicts: list[ConflictingInsight] = field(default_factory=list)
    overriding_ids: list[str] = field(default_factory=list)


class _DisjointSet:
    def __init__(self, size: int) -> None:
        self._parent = list(range(size))

    def find(self, i: int) -> int:
        while self._parent[i] != i:
            self._parent[i] = self._parent[self._parent[i]]
            i = self._parent[i]
        return i

    def union(self, i: int, j: int) -> None:
        root_i, root_j = self.find(i), self.find(j)
        if root_i != root_j:
            self._parent[max(root_i, root_j)] = min(root_i, root_j)


class InsightMerger:
    """Merges per-mode insights according to a combination's strategy.

    Usage:
        merger = InsightMerger()
        result = merger.merge({ThinkingMode.CAUSAL: [...], ThinkingMode.BAYESIAN: [...]}, combo)
    """

    def __init__(
        self,
        config: MergerConfig | None = None,
        similarity: SimilarityFunction = token_overlap,
        detector: ConflictDetector | None = None,
    ) -> None:
        """Initialize the merger.

        Args:
            config: Deduplication threshold and confidence floor.
            similarity: Near-duplicate score in [0, 1] (default: token overlap).
            detector: Conflict detector for the dialectical strategy.

        """
        self._config = config or get_config().merger
        self._similarity = similarity
        self._detector = detector or ConflictDetector()

    def merge(
        self,
        insights_by_mode: Mapping[ThinkingMode, Sequence[Insight]],
        combination: ModeCombination,
    ) -> MergeResult:
        """Deduplicate insights and apply the combination's strategy.

        Never raises for malformed insight data: out-of-range confidences are
        clamped and noted.

        Args:
            insights_by_mode: Insights of each successful mode.
            combination: Combination supplying mode order and strategy.

        Returns:
            MergeResult with surviving insights, evidence and statistics.

        """
        start = time.perf_counter()
        priority = combination.mode_priority()

        insights: list[Insight] = []
        for mode in sorted(insights_by_mode, key=priority):
            for insight in insights_by_mode[mode]:
                sanitized = insight.sanitized()
                if sanitized is not insight:
                    logger.warning(f"Insight {insight.id} from {mode.value}: {sanitized.notes[-1]}")
                insights.append(sanitized)

        groups = self._group(insights, priority)
        selection = self._apply_strategy(groups, combination, priority)

        primary = [i for i in selection.insights if i.confidence >= self._config.min_confidence]
        primary.sort(key=lambda i: (-i.confidence, priority(i.source_mode), i.id))
        kept_ids = {i.id for i in primary}
        supporting_evidence = {
            group.representative.id: list(group.modes)
            for group in selection.groups
            if group.representative.id in kept_ids
        }

        statistics = MergeStatistics(
            total_insights_before=len(insights),
            total_insights_after=len(primary),
            duplicates_removed=len(insights) - len(groups),
            conflicts_detected=len(selection.conflicts),
            conflicts_resolved=sum(1 for c in selection.conflicts if c.is_resolved),
            average_confidence=(
                sum(i.confidence for i in primary) / len(primary) if primary else 0.0
            ),
            merge_time=(time.perf_counter() - start) * 1000,
        )
        logger.debug(
            f"Merged {statistics.total_insights_before} insights into "
            f"{statistics.total_insights_after} ({combination.merge_strategy.value}, "
            f"{statistics.duplicates_removed} duplicates)"
        )
        return MergeResult(
            primary_insights=primary,
            supporting_evidence=supporting_evidence,
            groups=groups,
            conflicts=selection.conflicts,
            overriding_ids=[i for i in selection.overriding_ids if i in kept_ids],
            strategy=combination.merge_strategy,
            statistics=statistics,
        )

    # --- Step 1: deduplication ---

    def _group(
        self,
        insights: list[Insight],
        priority: Callable[[ThinkingMode], int],
    ) -> list[InsightGroup]:
        components = _DisjointSet(len(insights))
        for i, a in enumerate(insights):
            for j in range(i + 1, len(insights)):
                b = insights[j]
                if self._is_duplicate(a, b):
                    components.union(i, j)

        members_by_root: dict[int, list[Insight]] = {}
        for index, insight in enumerate(insights):
            members_by_root.setdefault(components.find(index), []).append(insight)

        def rank(insight: Insight) -> tuple[float, int, str]:
            return (-insight.confidence, priority(insight.source_mode), insight.id)

        groups = []
        for members in members_by_root.values():
            members.sort(key=rank)
            modes = sorted({m.source_mode for m in members}, key=priority)
            groups.append(
                InsightGroup(representative=members[0], members=tuple(members), modes=tuple(modes))
            )
        groups.sort(key=lambda g: rank(g.representative))
        return groups

    def _is_duplicate(self, a: Insight, b: Insight) -> bool:
        if self._similarity(a.content, b.content) < self._config.similarity_threshold:
            return False
        return not polarity_opposed(a.content, b.content)

    # --- Step 2: strategy ---

    def _apply_strategy(
        self,
        groups: list[InsightGroup],
        combination: ModeCombination,
        priority: Callable[[ThinkingMode], int],
    ) -> _Selection:
        config = combination.merge_config
        match config:
            case UnionMergeConfig():
                return _Selection(insights=[g.representative for g in groups], groups=groups)
            case IntersectionMergeConfig():
                required = set(combination.modes)
                kept = [g for g in groups if required <= set(g.modes)]
                return _Selection(insights=[g.representative for g in kept], groups=kept)
            case WeightedMergeConfig():
                return self._weighted(groups, config)
            case HierarchicalMergeConfig():
                return self._hierarchical(groups, config)
            case DialecticalMergeConfig():
                return self._dialectical(groups, config, priority)
            case _:
                assert_never(config)

    @staticmethod
    def _weighted(groups: list[InsightGroup], config: WeightedMergeConfig) -> _Selection:
        selection = _Selection()
        for group in groups:
            score = sum(config.weight_for(mode) for mode in group.modes)
            if score < config.threshold:
                continue
            rescored = group.representative.model_copy(
                update={"confidence": min(1.0, score / len(group.modes))}
            )
            selection.insights.append(rescored)
            selection.groups.append(group)
        return selection

    @staticmethod
    def _hierarchical(groups: list[InsightGroup], config: HierarchicalMergeConfig) -> _Selection:
        selection = _Selection()
        for group in groups:
            if group.supported_by(config.primary_mode):
                selection.insights.append(group.representative)
                selection.groups.append(group)
            elif config.allow_override and len(group.modes) >= config.override_threshold:
                selection.insights.append(group.representative)
                selection.groups.append(group)
                selection.overriding_ids.append(group.representative.id)
        return selection

    def _dialectical(
        self,
        groups: list[InsightGroup],
        config: DialecticalMergeConfig,
        priority: Callable[[ThinkingMode], int],
    ) -> _Selection:
        thesis = [g for g in groups if g.supported_by(config.thesis_mode)]
        antithesis = [
            g
            for g in groups
            if g.supported_by(config.antithesis_mode) and not g.supported_by(config.thesis_mode)
        ]
        sides = {id(g) for g in thesis} | {id(g) for g in antithesis}
        others = [g for g in groups if id(g) not in sides]
        candidates = [g for g in others if any(g.supported_by(m) for m in config.synthesis_modes)]

        selection = _Selection()
        in_conflict: set[int] = set()
        consumed: set[int] = set()
        for t in thesis:
            for a in antithesis:
                conflict = self._detector.detect(
                    t.representative, a.representative, priority, [*t.modes, *a.modes]
                )
                if conflict is None or conflict.conflict_type not in CONTENT_CONFLICTS:
                    continue
                bridge = self._find_bridge(t, a, candidates, consumed)
                source = None
                if bridge is not None:
                    consumed.add(id(bridge))
                    source = bridge.representative
                synthesis, resolved = synthesize(
                    conflict, t.representative, a.representative, source
                )
                selection.insights.append(synthesis)
                selection.conflicts.append(resolved)
                in_conflict.update((id(t), id(a)))

        for group in groups:
            if id(group) in consumed:
                continue
            if id(group) in in_conflict and not config.preserve_originals:
                continue
            selection.insights.append(group.representative)
            selection.groups.append(group)
        return selection

    @staticmethod
    def _find_bridge(
        thesis: InsightGroup,
        antithesis: InsightGroup,
        candidates: list[InsightGroup],
        consumed: set[int],
    ) -> InsightGroup | None:
        for group in candidates:
            if id(group) in consumed:
                continue
            content = group.representative.content
            if (
                topical_similarity(content, thesis.representative.content) > SYNTHESIS_RELEVANCE
                and topical_similarity(content, antithesis.representative.content)
                > SYNTHESIS_RELEVANCE
            ):
                return group
        return None
