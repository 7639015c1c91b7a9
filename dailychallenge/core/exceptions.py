"""
Exception hierarchy for the daily challenge service.

Only failures that should abort an operation are raised. Per-entity lookup
misses are counted as skipped by the orchestrator, and challenge state
conflicts (wrong phase, budget exhausted, asset not on roster) are returned
as result objects instead of exceptions.
"""


class DailyChallengeError(Exception):
    """Base class for all service errors."""


class DataSourceUnavailableError(DailyChallengeError):
    """Raw order records could not be fetched by either the narrow or the broad query."""

    def __init__(self, stat_date, cause: Exception | None = None):
        self.stat_date = stat_date
        self.cause = cause
        message = f"Order records unavailable for {stat_date}"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)


class EntityResolutionError(DailyChallengeError):
    """An entity display name did not resolve to a stored identifier."""

    def __init__(self, entity_type: str, name: str):
        self.entity_type = entity_type
        self.name = name
        super().__init__(f"{entity_type} not found: {name}")


class TrendDataError(DailyChallengeError):
    """Trend history for an entity could not be loaded."""
