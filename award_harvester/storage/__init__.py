"""On-disk layout and JSON persistence."""

from .path_planner import (
    FORBIDDEN_CHARACTERS,
    UNKNOWN_AGENCY,
    UNKNOWN_RECIPIENT,
    UNKNOWN_YEAR,
    PathPlanner,
    extract_year,
    sanitize_segment,
)
from .persister import JsonPersister


__all__ = [
    "FORBIDDEN_CHARACTERS",
    "JsonPersister",
    "PathPlanner",
    "UNKNOWN_AGENCY",
    "UNKNOWN_RECIPIENT",
    "UNKNOWN_YEAR",
    "extract_year",
    "sanitize_segment",
]
