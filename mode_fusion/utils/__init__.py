"""Utility modules for mode-fusion."""

from .errors import (
    AnalyzerNotFoundError,
    AnalyzerOutputError,
    CatalogLoadError,
    CombinationValidationError,
    ModeFusionError,
    ModeTimeoutError,
    RequestValidationError,
    UnknownCombinationError,
)
from .logging import configure_logging, get_logger, log_context
from .retry import RetryPolicy, call_with_retry
from .similarity import (
    SimilarityFunction,
    polarity_opposed,
    token_overlap,
    topical_similarity,
)

__all__ = [
    # Errors
    "AnalyzerNotFoundError",
    "AnalyzerOutputError",
    "CatalogLoadError",
    "CombinationValidationError",
    "ModeFusionError",
    "ModeTimeoutError",
    "RequestValidationError",
    "UnknownCombinationError",
    # Logging
    "configure_logging",
    "get_logger",
    "log_context",
    # Retry
    "RetryPolicy",
    "call_with_retry",
    # Similarity
    "SimilarityFunction",
    "polarity_opposed",
    "token_overlap",
    "topical_similarity",
]
