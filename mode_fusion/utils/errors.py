"""Custom exceptions for mode-fusion."""

from __future__ import annotations

from typing import Any


class ModeFusionError(Exception):
    """Base exception for mode-fusion."""

    pass


class CombinationValidationError(ModeFusionError, ValueError):
    """Raised when a mode combination is malformed.

    Subclasses ValueError so pydantic validators surface it as a
    ValidationError during model construction.
    """

    pass


class CatalogLoadError(ModeFusionError):
    """Raised when a combination catalog file cannot be loaded."""

    pass


class AnalyzerNotFoundError(ModeFusionError):
    """Raised when no analyzer is registered for a mode."""

    def __init__(self, mode: str) -> None:
        self.mode = mode
        super().__init__(f"No analyzer registered for mode: {mode}")


class ModeTimeoutError(ModeFusionError):
    """Raised when a mode analyzer exceeds its time budget."""

    def __init__(self, mode: str, timeout_ms: float) -> None:
        self.mode = mode
        self.timeout_ms = timeout_ms
        super().__init__(f"Mode {mode} timed out after {timeout_ms:.0f}ms")


class RequestValidationError(ModeFusionError):
    """Raised when an analysis request is rejected before any analyzer runs.

    Provides structured error information that a surrounding transport
    layer can return to its caller.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize request validation error.

        Args:
            message: Human-readable error message.
            details: Optional dictionary with additional error details.

        """
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization.

        Returns:
            Dictionary representation of the error.

        """
        return {
            "error": True,
            "type": type(self).__name__,
            "message": self.message,
            "details": self.details,
        }


class UnknownCombinationError(RequestValidationError):
    """Raised when a preset or combination id is not in the catalog."""

    def __init__(self, combination_id: str, available: list[str] | None = None) -> None:
        self.combination_id = combination_id
        super().__init__(
            f"Unknown combination: {combination_id}",
            details={"combination_id": combination_id, "available": available or []},
        )


class AnalyzerOutputError(ModeFusionError):
    """Raised when analyzer output cannot be coerced into insights."""

    def __init__(self, mode: str, reason: str) -> None:
        self.mode = mode
        self.reason = reason
        super().__init__(f"Mode {mode} returned invalid output: {reason}")
