"""
Core library for the Invoice Swift analytics backend.

This package contains the logic used by the web/ package:
- models: Snapshot and source-record dataclasses
- store: DuckDB store with repository mixins
- analytics_service: Recompute orchestrator and read path
- events / broker: Recompute notifications (in-process, optional Redis relay)
- stream_manager: Server-sent event streams
- chatbot: Rule-based business assistant
- exceptions / validators / config / observability: Ambient support
"""

# Import in dependency order
from core.exceptions import (
    AnalyticsError,
    StoreError,
    SnapshotPersistenceError,
    ExtractorError,
    ValidationError,
    QueryTimeoutError,
)

from core.validators import (
    validate_period,
    validate_user_id,
    validate_query,
    validate_amount,
    validate_payment_type,
)

from core.config import config

__all__ = [
    # Exceptions
    "AnalyticsError",
    "StoreError",
    "SnapshotPersistenceError",
    "ExtractorError",
    "ValidationError",
    "QueryTimeoutError",
    # Validators
    "validate_period",
    "validate_user_id",
    "validate_query",
    "validate_amount",
    "validate_payment_type",
    # Config
    "config",
]
