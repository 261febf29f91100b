"""mode-fusion configuration.

Centralized configuration management with environment variable support
and ``.env`` file loading.

Usage:
    from mode_fusion.config import get_config
    print(get_config().orchestrator.timeout_per_mode_ms)
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any

from dotenv import load_dotenv
from loguru import logger

load_dotenv()


def _get_env(key: str, default: str = "") -> str:
    """Get environment variable, treating empty string as unset."""
    value = os.getenv(key, default)
    return value if value else default


def _get_env_int(key: str, default: int) -> int:
    """Get environment variable as integer."""
    value = os.getenv(key)
    if value:
        try:
            return int(value)
        except ValueError:
            logger.warning(f"Invalid integer for {key}: {value}, using default {default}")
    return default


def _get_env_float(key: str, default: float) -> float:
    """Get environment variable as float."""
    value = os.getenv(key)
    if value:
        try:
            return float(value)
        except ValueError:
            logger.warning(f"Invalid float for {key}: {value}, using default {default}")
    return default


@dataclass(frozen=True)
class OrchestratorConfig:
    """Concurrent mode execution settings. Timeouts are in milliseconds."""

    timeout_per_mode_ms: float = field(
        default_factory=lambda: _get_env_float("MODE_TIMEOUT_MS", 30000.0)
    )
    # 0 means derived from the sum of per-mode timeouts
    global_timeout_ms: float = field(
        default_factory=lambda: _get_env_float("GLOBAL_TIMEOUT_MS", 0.0)
    )
    max_parallel_modes: int = field(default_factory=lambda: _get_env_int("MAX_PARALLEL_MODES", 5))
    max_attempts: int = field(default_factory=lambda: _get_env_int("MODE_MAX_ATTEMPTS", 1))
    retry_base_delay: float = field(
        default_factory=lambda: _get_env_float("MODE_RETRY_BASE_DELAY", 0.05)
    )


@dataclass(frozen=True)
class MergerConfig:
    """Insight deduplication settings."""

    similarity_threshold: float = field(
        default_factory=lambda: _get_env_float("DEDUP_SIMILARITY_THRESHOLD", 0.8)
    )
    min_confidence: float = field(
        default_factory=lambda: _get_env_float("MIN_INSIGHT_CONFIDENCE", 0.0)
    )


@dataclass(frozen=True)
class ConflictConfig:
    """Conflict classification and confidence penalty settings."""

    min_similarity: float = field(
        default_factory=lambda: _get_env_float("CONFLICT_MIN_SIMILARITY", 0.3)
    )
    topical_threshold: float = field(
        default_factory=lambda: _get_env_float("CONFLICT_TOPICAL_THRESHOLD", 0.5)
    )
    confidence_gap: float = field(
        default_factory=lambda: _get_env_float("CONFLICT_CONFIDENCE_GAP", 0.3)
    )
    unresolved_penalty: float = field(
        default_factory=lambda: _get_env_float("UNRESOLVED_CONFLICT_PENALTY", 0.5)
    )
    deferred_penalty: float = field(
        default_factory=lambda: _get_env_float("DEFERRED_CONFLICT_PENALTY", 0.5)
    )


@dataclass(frozen=True)
class AnalyzerConfig:
    """Facade behaviour."""

    default_preset: str = field(
        default_factory=lambda: _get_env("DEFAULT_PRESET", "comprehensive_analysis")
    )
    conclusion_top_n: int = field(default_factory=lambda: _get_env_int("CONCLUSION_TOP_N", 3))
    combinations_file: str = field(default_factory=lambda: _get_env("COMBINATIONS_FILE", ""))


@dataclass(frozen=True)
class InputLimitsConfig:
    """Input size limits."""

    max_thought_size: int = field(default_factory=lambda: _get_env_int("MAX_THOUGHT_SIZE", 50000))
    max_context_size: int = field(default_factory=lambda: _get_env_int("MAX_CONTEXT_SIZE", 100000))


@dataclass(frozen=True)
class Config:
    """Root configuration object."""

    orchestrator: OrchestratorConfig = field(default_factory=OrchestratorConfig)
    merger: MergerConfig = field(default_factory=MergerConfig)
    conflicts: ConflictConfig = field(default_factory=ConflictConfig)
    analyzer: AnalyzerConfig = field(default_factory=AnalyzerConfig)
    input_limits: InputLimitsConfig = field(default_factory=InputLimitsConfig)

    def to_dict(self) -> dict[str, Any]:
        """Convert config to dictionary (for logging/debugging)."""
        return {
            "orchestrator": {
                "timeout_per_mode_ms": self.orchestrator.timeout_per_mode_ms,
                "global_timeout_ms": self.orchestrator.global_timeout_ms,
                "max_parallel_modes": self.orchestrator.max_parallel_modes,
                "max_attempts": self.orchestrator.max_attempts,
            },
            "merger": {
                "similarity_threshold": self.merger.similarity_threshold,
                "min_confidence": self.merger.min_confidence,
            },
            "conflicts": {
                "min_similarity": self.conflicts.min_similarity,
                "topical_threshold": self.conflicts.topical_threshold,
                "confidence_gap": self.conflicts.confidence_gap,
                "unresolved_penalty": self.conflicts.unresolved_penalty,
                "deferred_penalty": self.conflicts.deferred_penalty,
            },
            "analyzer": {
                "default_preset": self.analyzer.default_preset,
                "conclusion_top_n": self.analyzer.conclusion_top_n,
                "combinations_file": self.analyzer.combinations_file,
            },
            "input_limits": {
                "max_thought_size": self.input_limits.max_thought_size,
                "max_context_size": self.input_limits.max_context_size,
            },
        }


# Global config instance (lazy-loaded)
_config: Config | None = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config


def reload_config() -> Config:
    """Reload configuration (for testing)."""
    global _config
    _config = Config()
    return _config
