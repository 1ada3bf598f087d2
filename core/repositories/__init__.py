"""
Repository mixins for the analytics DuckDB store.

- SourcesMixin: Source-data writes (invoices, payments, expenses, ...)
- MetricsMixin: Metric extractor aggregations
- SnapshotsMixin: Snapshot persistence
- BusinessDataMixin: All-time business aggregates for the chatbot
"""
from core.repositories.business import BusinessDataMixin
from core.repositories.metrics import MetricsMixin
from core.repositories.snapshots import SnapshotsMixin
from core.repositories.sources import SourcesMixin

__all__ = [
    "SourcesMixin",
    "MetricsMixin",
    "SnapshotsMixin",
    "BusinessDataMixin",
]
