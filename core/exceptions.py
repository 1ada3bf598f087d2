"""
Custom exception hierarchy for the analytics core.

Exception Hierarchy:
    AnalyticsError (base)
    ├── StoreError                - Store unavailable or statement failed
    │   └── SnapshotPersistenceError - Snapshot row could not be written
    └── ExtractorError            - One metric extractor failed (isolated)

    ValidationError               - Input validation failed
    QueryTimeoutError             - Store query exceeded its timeout
"""


class AnalyticsError(Exception):
    """Base exception for all analytics-core errors."""

    def __init__(self, message: str, details: str = None):
        self.message = message
        self.details = details
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


class StoreError(AnalyticsError):
    """The backing store rejected or failed a statement."""


class SnapshotPersistenceError(StoreError):
    """
    Snapshot could not be saved.

    Fatal to update_analytics(); the read path swallows it and
    substitutes an all-zero snapshot.
    """

    def __init__(self, user_id: str, period: str, details: str = None):
        super().__init__(f"Failed to persist analytics for {user_id}/{period}", details)
        self.user_id = user_id
        self.period = period


class ExtractorError(AnalyticsError):
    """
    A single metric extractor failed.

    Never escapes the orchestrator: the metric is left at its identity value.
    """

    def __init__(self, metric: str, details: str = None):
        super().__init__(f"Extractor '{metric}' failed", details)
        self.metric = metric


class ValidationError(Exception):
    """
    Input validation failed.

    Used for validating user input before processing.
    """

    def __init__(self, field: str, message: str, value: any = None):
        self.field = field
        self.message = message
        self.value = value
        super().__init__(f"{field}: {message}")

    def __str__(self) -> str:
        if self.value is not None:
            return f"{self.field}: {self.message} (got: {self.value!r})"
        return f"{self.field}: {self.message}"


class QueryTimeoutError(StoreError):
    """
    Database query exceeded timeout.

    Indicates a long-running query that should be investigated:
    - Missing index
    - Too much data being scanned
    - Complex join/aggregation
    """

    def __init__(self, query: str, timeout: float, details: str = None):
        self.query = query[:200] + "..." if len(query) > 200 else query
        self.timeout = timeout
        message = f"Query timed out after {timeout}s"
        super().__init__(message, details)

    def __str__(self) -> str:
        return f"QueryTimeoutError: Query timed out after {self.timeout}s - {self.query}"
