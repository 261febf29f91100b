"""Combination catalog - read-only registry of mode combinations.

Lookups read the last published snapshot without locking. Runtime
registration builds a new snapshot under a lock and swaps it in, so readers
never observe a half-updated registry.
"""

from __future__ import annotations

import json
import threading
from collections.abc import Iterable, Mapping, Sequence
from pathlib import Path
from types import MappingProxyType
from typing import Any

import yaml
from loguru import logger
from pydantic import ValidationError

from mode_fusion.config import Config, get_config
from mode_fusion.utils.errors import CatalogLoadError, UnknownCombinationError

from .presets import PRESETS
from .types import (
    DialecticalMergeConfig,
    HierarchicalMergeConfig,
    IntersectionMergeConfig,
    ModeCombination,
    MergeStrategy,
    ThinkingMode,
    UnionMergeConfig,
    WeightedMergeConfig,
)


def default_merge_config(
    strategy: MergeStrategy | str,
    modes: Sequence[ThinkingMode],
) -> (
    UnionMergeConfig
    | IntersectionMergeConfig
    | WeightedMergeConfig
    | HierarchicalMergeConfig
    | DialecticalMergeConfig
):
    """Derive a configuration for ``strategy`` from an ordered mode list.

    Hierarchical uses the first mode as primary; dialectical uses the first
    two modes as thesis and antithesis and the rest as synthesis modes.

    Args:
        strategy: Strategy to configure.
        modes: Participating modes in priority order.

    Returns:
        Configuration variant matching ``strategy``.

    """
    strategy = MergeStrategy(strategy)
    match strategy:
        case MergeStrategy.UNION:
            return UnionMergeConfig()
        case MergeStrategy.INTERSECTION:
            return IntersectionMergeConfig()
        case MergeStrategy.WEIGHTED:
            return WeightedMergeConfig()
        case MergeStrategy.HIERARCHICAL:
            return HierarchicalMergeConfig(
                primary_mode=modes[0],
                supporting_modes=tuple(modes[1:]),
            )
        case MergeStrategy.DIALECTICAL:
            if len(modes) < 2:
                raise ValueError("Dialectical merging needs at least two modes")
            return DialecticalMergeConfig(
                thesis_mode=modes[0],
                antithesis_mode=modes[1],
                synthesis_modes=tuple(modes[2:]),
            )


def load_combinations(path: str | Path) -> list[ModeCombination]:
    """Load combinations from a YAML or JSON file.

    The file holds either a list of combination records or a mapping with a
    ``combinations`` list.

    Args:
        path: File to read.

    Returns:
        Validated combinations in file order.

    Raises:
        CatalogLoadError: If the file is unreadable or any entry is malformed.

    """
    file_path = Path(path)
    try:
        with file_path.open() as f:
            if file_path.suffix == ".json":
                data = json.load(f)
            else:
                data = yaml.safe_load(f)
    except (OSError, json.JSONDecodeError, yaml.YAMLError) as e:
        raise CatalogLoadError(f"Failed to read combinations file {file_path}: {e}") from e

    if isinstance(data, dict):
        data = data.get("combinations")
    if not isinstance(data, list):
        raise CatalogLoadError(f"{file_path}: expected a list of combinations")

    combinations: list[ModeCombination] = []
    for index, entry in enumerate(data):
        try:
            combinations.append(ModeCombination.model_validate(entry))
        except ValidationError as e:
            label = entry.get("id", f"#{index}") if isinstance(entry, dict) else f"#{index}"
            raise CatalogLoadError(f"{file_path}: invalid combination {label}: {e}") from e

    logger.info(f"Loaded {len(combinations)} combinations from {file_path}")
    return combinations


class CombinationCatalog:
    """Registry of mode combinations keyed by identifier.

    Usage:
        catalog = CombinationCatalog.with_presets()
        combo = catalog.lookup("root_cause")
        planning = catalog.filter_by_tag("planning")
    """

    def __init__(self, combinations: Iterable[ModeCombination] = ()) -> None:
        """Initialize the catalog.

        Args:
            combinations: Initial combinations; ids must be unique.

        Raises:
            CatalogLoadError: If two combinations share an id.

        """
        entries: dict[str, ModeCombination] = {}
        for combination in combinations:
            if combination.id in entries:
                raise CatalogLoadError(f"Duplicate combination id: {combination.id}")
            entries[combination.id] = combination
        self._snapshot: Mapping[str, ModeCombination] = MappingProxyType(entries)
        self._publish_lock = threading.Lock()

    @classmethod
    def with_presets(cls) -> CombinationCatalog:
        """Catalog holding the built-in presets."""
        return cls(PRESETS)

    @classmethod
    def from_file(cls, path: str | Path, include_presets: bool = True) -> CombinationCatalog:
        """Catalog built from a combinations file, optionally on top of the presets.

        File entries replace presets with the same id.
        """
        loaded = load_combinations(path)
        if not include_presets:
            return cls(loaded)
        merged = {c.id: c for c in PRESETS}
        merged.update({c.id: c for c in loaded})
        return cls(merged.values())

    # --- Lookup ---

    def lookup(self, combination_id: str) -> ModeCombination | None:
        """Return the combination with ``combination_id``, or None."""
        return self._snapshot.get(combination_id)

    def require(self, combination_id: str) -> ModeCombination:
        """Return the combination with ``combination_id``.

        Raises:
            UnknownCombinationError: If no such combination exists.

        """
        combination = self._snapshot.get(combination_id)
        if combination is None:
            raise UnknownCombinationError(combination_id, available=self.ids())
        return combination

    def __contains__(self, combination_id: object) -> bool:
        return combination_id in self._snapshot

    def __len__(self) -> int:
        return len(self._snapshot)

    def ids(self) -> list[str]:
        """All combination ids in registration order."""
        return list(self._snapshot)

    def list(self) -> list[ModeCombination]:
        """All combinations in registration order."""
        return list(self._snapshot.values())

    # --- Projections ---

    def filter_by_tag(self, tag: str) -> list[ModeCombination]:
        """Combinations carrying ``tag`` (case-insensitive)."""
        wanted = tag.lower()
        return [c for c in self._snapshot.values() if wanted in (t.lower() for t in c.tags)]

    def filter_by_mode(self, mode: ThinkingMode | str) -> list[ModeCombination]:
        """Combinations that include ``mode``."""
        wanted = ThinkingMode(mode)
        return [c for c in self._snapshot.values() if wanted in c.modes]

    def filter_by_strategy(self, strategy: MergeStrategy | str) -> list[ModeCombination]:
        """Combinations that merge with ``strategy``."""
        wanted = MergeStrategy(strategy)
        return [c for c in self._snapshot.values() if c.merge_strategy == wanted]

    def metadata(self, combination_id: str) -> dict[str, Any] | None:
        """Summary of a combination without its strategy configuration."""
        combination = self._snapshot.get(combination_id)
        if combination is None:
            return None
        return {
            "id": combination.id,
            "name": combination.name,
            "description": combination.description,
            "mode_count": len(combination.modes),
            "strategy": combination.merge_strategy.value,
            "tags": list(combination.tags),
        }

    # --- Construction ---

    def compose(
        self,
        combination_ids: Sequence[str],
        name: str,
        strategy: MergeStrategy | str = MergeStrategy.UNION,
    ) -> ModeCombination:
        """Build an ad hoc combination from existing ones.

        Modes and tags are the set union of the referenced combinations, in
        first-appearance order. The result is not registered.

        Args:
            combination_ids: Combinations to merge.
            name: Human-readable name for the result.
            strategy: Merge strategy for the result (default: union).

        Returns:
            New combination with id ``custom_<ids>``.

        Raises:
            UnknownCombinationError: If any id is not in the catalog.

        """
        modes: dict[ThinkingMode, None] = {}
        tags: dict[str, None] = {}
        for combination_id in combination_ids:
            source = self.require(combination_id)
            modes.update(dict.fromkeys(source.modes))
            tags.update(dict.fromkeys(source.tags))
        tags["custom"] = None

        mode_list = list(modes)
        return ModeCombination(
            id=f"custom_{'_'.join(combination_ids)}",
            name=name,
            description=f"Custom combination of {', '.join(combination_ids)}",
            modes=tuple(mode_list),
            merge_config=default_merge_config(strategy, mode_list),
            use_case="Custom combination for specialized analysis",
            tags=tuple(tags),
        )

    def register(self, combination: ModeCombination, replace: bool = False) -> None:
        """Publish a new snapshot that includes ``combination``.

        Args:
            combination: Combination to add.
            replace: Allow replacing an existing id.

        Raises:
            CatalogLoadError: If the id exists and ``replace`` is False.

        """
        with self._publish_lock:
            if combination.id in self._snapshot and not replace:
                raise CatalogLoadError(f"Combination already registered: {combination.id}")
            entries = dict(self._snapshot)
            entries[combination.id] = combination
            self._snapshot = MappingProxyType(entries)
        logger.debug(f"Registered combination {combination.id}")


def default_catalog(config: Config | None = None) -> CombinationCatalog:
    """Catalog for ``config`` (default: global config).

    Uses ``COMBINATIONS_FILE`` on top of the presets when configured.
    """
    combinations_file = (config or get_config()).analyzer.combinations_file
    if combinations_file:
        return CombinationCatalog.from_file(combinations_file)
    return CombinationCatalog.with_presets()
