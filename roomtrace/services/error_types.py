"""
Custom Error Types for the Room Extraction Pipeline

Separates input errors that must reach the caller from internal geometry
failures that a stage absorbs by returning its input unchanged.
"""

import logging
from typing import Optional, Dict, Any, Callable, TypeVar, Sized

from shapely.errors import GEOSException

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RoomTraceError(Exception):
    """Base exception for all room extraction errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self):
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class SettingsError(RoomTraceError):
    """
    Settings could not be loaded or validated.

    Examples:
    - Settings file is not valid JSON
    - A threshold has the wrong type or a negative value
    """
    pass


class GeometryStageError(RoomTraceError):
    """
    A geometry stage failed on its input.

    Only raised when a stage guard runs in strict mode; the pipeline itself
    recovers from these failures by passing the stage input through.
    """

    def __init__(self, stage: str, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.stage = stage


GEOMETRY_FAILURES = (GEOSException, ValueError, ZeroDivisionError, FloatingPointError)


def is_geometry_failure(e: Exception) -> bool:
    """Whether an exception comes from numerical or topological trouble"""
    return isinstance(e, GEOMETRY_FAILURES)


def run_stage(
    stage: str,
    operation: Callable[[T], T],
    stage_input: T,
    strict: bool = False
) -> T:
    """
    Run one geometry stage and fail open on geometry failures.

    Args:
        stage: Stage name used in log messages
        operation: Callable taking the stage input and returning its output
        stage_input: Collection handed to the stage
        strict: Raise GeometryStageError instead of passing the input through

    Returns:
        The stage output, or the unchanged input when the stage failed
    """
    try:
        return operation(stage_input)
    except GEOMETRY_FAILURES as e:
        size = len(stage_input) if isinstance(stage_input, Sized) else None
        if strict:
            raise GeometryStageError(
                stage,
                f"Stage {stage} failed: {e}",
                {"input_size": size, "error_type": type(e).__name__}
            ) from e
        logger.error(f"Stage {stage} failed on {size} items, passing input through: "
                     f"{type(e).__name__}: {e}")
        return stage_input
