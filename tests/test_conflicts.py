"""Unit tests for mode_fusion/combinations/conflicts.py."""

from __future__ import annotations

import pytest
from conftest import A, B, C, make_insight

from mode_fusion.combinations.conflicts import ConflictDetector, ConflictResolver, key_point
from mode_fusion.combinations.merger import InsightMerger
from mode_fusion.combinations.types import (
    ConflictType,
    DialecticalMergeConfig,
    HierarchicalMergeConfig,
    ModeCombination,
    ResolutionStrategy,
)
from mode_fusion.config import Config


@pytest.fixture
def detector(config: Config) -> ConflictDetector:
    return ConflictDetector(config.conflicts)


@pytest.fixture
def merger(config: Config, detector: ConflictDetector) -> InsightMerger:
    return InsightMerger(config.merger, detector=detector)


@pytest.fixture
def resolver(config: Config, detector: ConflictDetector) -> ConflictResolver:
    return ConflictResolver(detector, config.conflicts)


class TestKeyPoint:
    """Test key point extraction for synthesized text."""

    def test_first_sentence_lowercased(self) -> None:
        assert key_point("Prices rose. Demand fell.") == "prices rose"

    def test_truncated(self) -> None:
        assert key_point("x" * 150) == "x" * 100 + "..."


class TestConflictDetector:
    """Test conflict classification."""

    def test_direct_contradiction(self, detector: ConflictDetector) -> None:
        low = make_insight("risk is low", mode=A, confidence=0.8)
        high = make_insight("risk is high", mode=B, confidence=0.85)

        conflict = detector.detect(low, high)

        assert conflict is not None
        assert conflict.conflict_type == ConflictType.DIRECT_CONTRADICTION
        assert conflict.severity == pytest.approx(0.6 + 0.25 * 0.05)
        assert not conflict.is_resolved

    def test_same_mode_ignored(self, detector: ConflictDetector) -> None:
        assert detector.detect(make_insight("risk is low", mode=A), make_insight("risk is high", mode=A)) is None

    def test_dissimilar_ignored(self, detector: ConflictDetector) -> None:
        assert detector.detect(make_insight("cats sleep", mode=A), make_insight("dogs bark", mode=B)) is None

    def test_confidence_mismatch(self, detector: ConflictDetector) -> None:
        a = make_insight("Caching reduces latency", mode=A, confidence=0.9)
        b = make_insight("caching reduces latency considerably", mode=B, confidence=0.4)
        conflict = detector.detect(a, b)
        assert conflict is not None
        assert conflict.conflict_type == ConflictType.CONFIDENCE_MISMATCH

    def test_evidence_conflict(self, detector: ConflictDetector) -> None:
        a = make_insight("Caching reduces latency", mode=A, confidence=0.7, evidence=["Load test"])
        b = make_insight(
            "caching reduces latency considerably", mode=B, confidence=0.6, evidence=["Survey"]
        )
        conflict = detector.detect(a, b)
        assert conflict is not None
        assert conflict.conflict_type == ConflictType.EVIDENCE_CONFLICT

    def test_shared_evidence_case_insensitive(self, detector: ConflictDetector) -> None:
        a = make_insight("Caching reduces latency", mode=A, confidence=0.7, evidence=["Load test"])
        b = make_insight(
            "caching reduces latency considerably", mode=B, confidence=0.6, evidence=["load TEST"]
        )
        conflict = detector.detect(a, b)
        assert conflict is not None
        assert conflict.conflict_type == ConflictType.SCOPE_DIFFERENCE

    def test_scope_difference_markers(self, detector: ConflictDetector) -> None:
        a = make_insight("Overall, users prefer dark mode", mode=A)
        b = make_insight("Specifically, some users prefer dark mode", mode=B)
        conflict = detector.detect(a, b)
        assert conflict is not None
        assert conflict.conflict_type == ConflictType.SCOPE_DIFFERENCE

    def test_partial_overlap(self, detector: ConflictDetector) -> None:
        a = make_insight("Pricing drives churn in enterprise accounts", mode=A)
        b = make_insight("Pricing drives expansion in enterprise accounts", mode=B)
        conflict = detector.detect(a, b)
        assert conflict is not None
        assert conflict.conflict_type == ConflictType.PARTIAL_OVERLAP

    def test_diverging_conclusions_not_mismatch(self, detector: ConflictDetector) -> None:
        a = make_insight(
            "Traffic doubled in May across all regions. Therefore we need servers",
            mode=A,
            confidence=0.9,
        )
        b = make_insight(
            "Traffic doubled in May across all regions. Therefore marketing worked",
            mode=B,
            confidence=0.4,
        )
        conflict = detector.detect(a, b)
        assert conflict is not None
        assert conflict.conflict_type == ConflictType.PARTIAL_OVERLAP

    def test_severity_grows_with_confidence_gap(self, detector: ConflictDetector) -> None:
        close = detector.detect(
            make_insight("risk is low", mode=A, confidence=0.8),
            make_insight("risk is high", mode=B, confidence=0.85),
        )
        far = detector.detect(
            make_insight("risk is low", mode=A, confidence=0.2),
            make_insight("risk is high", mode=B, confidence=0.9),
        )
        assert close is not None and far is not None
        assert far.severity > close.severity

    def test_canonical_pair_order(self, detector: ConflictDetector) -> None:
        combo = ModeCombination(id="ba", name="BA", modes=(B, A))
        a = make_insight("risk is low", mode=A)
        b = make_insight("risk is high", mode=B)
        forward = detector.detect(a, b, combo.mode_priority())
        backward = detector.detect(b, a, combo.mode_priority())
        assert forward == backward
        assert forward is not None and forward.insight1.mode == B

    def test_detect_all(self, detector: ConflictDetector) -> None:
        insights = [
            make_insight("risk is low", mode=A),
            make_insight("risk is high", mode=B),
            make_insight("risk is low indeed", mode=A),
            make_insight("unrelated weather report", mode=C),
        ]
        conflicts = detector.detect_all(insights)
        assert len(conflicts) == 2
        assert all(c.insight1.mode != c.insight2.mode for c in conflicts)

    def test_supporting_modes_make_pair_cross_mode(self, detector: ConflictDetector) -> None:
        low = make_insight("risk is low", mode=A)
        high = make_insight("risk is high", mode=A)

        assert detector.detect_all([low, high]) == []
        [conflict] = detector.detect_all([low, high], modes_of={low.id: [A, B], high.id: [A]})
        assert conflict.conflict_type == ConflictType.DIRECT_CONTRADICTION


class TestConflictResolver:
    """Test strategy-specific resolution."""

    def test_favor_higher_confidence(
        self,
        merger: InsightMerger,
        resolver: ConflictResolver,
        union_combo: ModeCombination,
    ) -> None:
        """The higher-confidence side of a contradiction survives."""
        low = make_insight("risk is low", mode=A, confidence=0.8)
        high = make_insight("risk is high", mode=B, confidence=0.85)

        merged = merger.merge({A: [low], B: [high]}, union_combo)
        outcome = resolver.resolve(merged, union_combo)

        assert [i.content for i in outcome.primary_insights] == ["risk is high"]
        [conflict] = outcome.conflicts
        assert conflict.conflict_type == ConflictType.DIRECT_CONTRADICTION
        assert conflict.resolution is not None
        assert conflict.resolution.resolution_strategy == ResolutionStrategy.FAVOR_HIGHER_CONFIDENCE
        assert conflict.resolution.resolved_insight == "risk is high"
        assert conflict.resolution.preserved_from == [A, B]
        assert outcome.removed_ids == {low.id}

    def test_tie_favors_first_of_pair(
        self,
        merger: InsightMerger,
        resolver: ConflictResolver,
        union_combo: ModeCombination,
    ) -> None:
        a = make_insight("risk is low", mode=A, confidence=0.7)
        b = make_insight("risk is high", mode=B, confidence=0.7)
        outcome = resolver.resolve(merger.merge({A: [a], B: [b]}, union_combo), union_combo)
        assert [i.id for i in outcome.primary_insights] == [a.id]

    def test_hierarchical_defers_when_primary_is_weaker(
        self, merger: InsightMerger, resolver: ConflictResolver
    ) -> None:
        combo = ModeCombination(
            id="h",
            name="H",
            modes=(A, B),
            merge_config=HierarchicalMergeConfig(
                primary_mode=A, supporting_modes=(B,), allow_override=True, override_threshold=1
            ),
        )
        primary = make_insight("risk is low", mode=A, confidence=0.6)
        supporting = make_insight("risk is high", mode=B, confidence=0.9)

        outcome = resolver.resolve(merger.merge({A: [primary], B: [supporting]}, combo), combo)

        assert {i.id for i in outcome.primary_insights} == {primary.id, supporting.id}
        [conflict] = outcome.deferred
        assert not conflict.is_resolved
        assert outcome.unresolved == [conflict]

    def test_hierarchical_favors_stronger_primary(
        self, merger: InsightMerger, resolver: ConflictResolver
    ) -> None:
        combo = ModeCombination(
            id="h",
            name="H",
            modes=(A, B),
            merge_config=HierarchicalMergeConfig(
                primary_mode=A, supporting_modes=(B,), allow_override=True, override_threshold=1
            ),
        )
        primary = make_insight("risk is low", mode=A, confidence=0.9)
        supporting = make_insight("risk is high", mode=B, confidence=0.6)

        outcome = resolver.resolve(merger.merge({A: [primary], B: [supporting]}, combo), combo)

        assert [i.id for i in outcome.primary_insights] == [primary.id]
        assert outcome.deferred == []

    def test_dialectical_merger_conflicts_not_redone(
        self, merger: InsightMerger, resolver: ConflictResolver
    ) -> None:
        combo = ModeCombination(
            id="d",
            name="D",
            modes=(A, B),
            merge_config=DialecticalMergeConfig(
                thesis_mode=A, antithesis_mode=B, preserve_originals=True
            ),
        )
        thesis = make_insight("The market will grow next year", mode=A, confidence=0.8)
        antithesis = make_insight("The market will not grow next year", mode=B, confidence=0.6)

        merged = merger.merge({A: [thesis], B: [antithesis]}, combo)
        outcome = resolver.resolve(merged, combo)

        assert len(outcome.primary_insights) == 3
        assert len(outcome.conflicts) == 1
        assert outcome.synthesized == []

    def test_dialectical_synthesizes_further_conflicts(
        self, merger: InsightMerger, resolver: ConflictResolver
    ) -> None:
        combo = ModeCombination(
            id="d",
            name="D",
            modes=(A, B, C),
            merge_config=DialecticalMergeConfig(thesis_mode=A, antithesis_mode=B),
        )
        thesis = make_insight("risk is low", mode=A, confidence=0.8)
        antithesis = make_insight("Hiring pipeline is healthy", mode=B, confidence=0.7)
        other = make_insight("risk is high", mode=C, confidence=0.6)

        merged = merger.merge({A: [thesis], B: [antithesis], C: [other]}, combo)
        outcome = resolver.resolve(merged, combo)

        [synthesis] = outcome.synthesized
        assert synthesis.category == "synthesis"
        ids = {i.id for i in outcome.primary_insights}
        assert ids == {antithesis.id, synthesis.id}
        assert outcome.conflicts[0].resolution is not None
        assert outcome.conflicts[0].resolution.resolution_strategy == ResolutionStrategy.SYNTHESIZE

    @pytest.mark.parametrize(
        ("override", "resolved"),
        [(ResolutionStrategy.PRESERVE_BOTH, True), (ResolutionStrategy.DEFER, False)],
    )
    def test_overrides_keep_both(
        self,
        config: Config,
        detector: ConflictDetector,
        merger: InsightMerger,
        union_combo: ModeCombination,
        override: ResolutionStrategy,
        resolved: bool,
    ) -> None:
        resolver = ConflictResolver(
            detector, config.conflicts, overrides={ConflictType.DIRECT_CONTRADICTION: override}
        )
        low = make_insight("risk is low", mode=A, confidence=0.8)
        high = make_insight("risk is high", mode=B, confidence=0.85)

        outcome = resolver.resolve(merger.merge({A: [low], B: [high]}, union_combo), union_combo)

        assert {i.id for i in outcome.primary_insights} == {low.id, high.id}
        assert outcome.conflicts[0].is_resolved is resolved

    def test_processed_by_severity(
        self,
        merger: InsightMerger,
        resolver: ConflictResolver,
        union_combo: ModeCombination,
    ) -> None:
        insights = {
            A: [
                make_insight("Pricing drives churn in enterprise accounts", mode=A, confidence=0.7),
                make_insight("risk is low", mode=A, confidence=0.5),
            ],
            B: [
                make_insight("Pricing drives expansion in enterprise accounts", mode=B, confidence=0.6),
                make_insight("risk is high", mode=B, confidence=0.9),
            ],
        }
        outcome = resolver.resolve(merger.merge(insights, union_combo), union_combo)
        severities = [c.severity for c in outcome.conflicts]
        assert severities == sorted(severities, reverse=True)
        assert outcome.conflicts[0].conflict_type == ConflictType.DIRECT_CONTRADICTION

    def test_dropped_insight_evicts_nothing(
        self, merger: InsightMerger, resolver: ConflictResolver
    ) -> None:
        """An insight favored in one conflict but dropped in another keeps no victims."""
        combo = ModeCombination(id="trio", name="Trio", modes=(A, B, C))
        strong = make_insight("risk is high", mode=A, confidence=0.9)
        middle = make_insight("risk is low for alpha beta", mode=B, confidence=0.6)
        weak = make_insight("risk is high for alpha beta gamma", mode=C, confidence=0.3)

        merged = merger.merge({A: [strong], B: [middle], C: [weak]}, combo)
        outcome = resolver.resolve(merged, combo)

        assert [i.id for i in outcome.primary_insights] == [strong.id, weak.id]
        assert outcome.removed_ids == {middle.id}
        contradiction, scope = outcome.conflicts
        assert contradiction.conflict_type == ConflictType.DIRECT_CONTRADICTION
        assert contradiction.resolution is not None
        assert contradiction.resolution.resolved_insight == weak.content
        assert scope.conflict_type == ConflictType.SCOPE_DIFFERENCE
        assert scope.resolution is not None
        assert scope.resolution.resolved_insight == strong.content

    def test_merged_group_conflicts_with_same_mode_insight(
        self,
        merger: InsightMerger,
        resolver: ConflictResolver,
        union_combo: ModeCombination,
    ) -> None:
        low = make_insight("risk is low", mode=A, confidence=0.8)
        echo = make_insight("risk is low", mode=B, confidence=0.7)
        high = make_insight("risk is high", mode=A, confidence=0.6)

        merged = merger.merge({A: [low, high], B: [echo]}, union_combo)
        outcome = resolver.resolve(merged, union_combo)

        assert [i.id for i in outcome.primary_insights] == [low.id]
        [conflict] = outcome.conflicts
        assert conflict.conflict_type == ConflictType.DIRECT_CONTRADICTION

    def test_statistics(
        self,
        merger: InsightMerger,
        resolver: ConflictResolver,
        union_combo: ModeCombination,
    ) -> None:
        low = make_insight("risk is low", mode=A, confidence=0.8)
        high = make_insight("risk is high", mode=B, confidence=0.85)
        outcome = resolver.resolve(merger.merge({A: [low], B: [high]}, union_combo), union_combo)

        stats = ConflictResolver.statistics(outcome.conflicts)

        assert stats["total"] == 1
        assert stats["by_type"] == {"direct_contradiction": 1}
        assert stats["resolved"] == 1
        assert stats["average_severity"] == pytest.approx(outcome.conflicts[0].severity)

    def test_statistics_empty(self) -> None:
        assert ConflictResolver.statistics([]) == {
            "total": 0,
            "by_type": {},
            "average_severity": 0.0,
            "resolved": 0,
        }
