"""
Tests for core.exceptions module.
"""
import pytest

from core.exceptions import (
    AnalyticsError,
    StoreError,
    SnapshotPersistenceError,
    ExtractorError,
    ValidationError,
    QueryTimeoutError,
)


class TestAnalyticsError:
    """Tests for base AnalyticsError exception."""

    def test_message_only(self):
        error = AnalyticsError("Something went wrong")
        assert str(error) == "Something went wrong"
        assert error.message == "Something went wrong"
        assert error.details is None

    def test_message_with_details(self):
        error = AnalyticsError("Failed to save", "disk full")
        assert str(error) == "Failed to save: disk full"
        assert error.details == "disk full"


class TestSnapshotPersistenceError:
    """Tests for SnapshotPersistenceError exception."""

    def test_inheritance(self):
        error = SnapshotPersistenceError("user-1", "30days")
        assert isinstance(error, StoreError)
        assert isinstance(error, AnalyticsError)

    def test_carries_key(self):
        error = SnapshotPersistenceError("user-1", "7days", "constraint violated")
        assert error.user_id == "user-1"
        assert error.period == "7days"
        assert "user-1/7days" in str(error)
        assert "constraint violated" in str(error)


class TestExtractorError:
    """Tests for ExtractorError exception."""

    def test_metric_in_message(self):
        error = ExtractorError("top_products", "boom")
        assert error.metric == "top_products"
        assert str(error) == "Extractor 'top_products' failed: boom"

    def test_is_not_store_error(self):
        assert not isinstance(ExtractorError("kpis"), StoreError)


class TestValidationError:
    """Tests for ValidationError exception."""

    def test_field_and_message(self):
        error = ValidationError("period", "Must be one of: 7days")
        assert error.field == "period"
        assert str(error) == "period: Must be one of: 7days"

    def test_with_value(self):
        error = ValidationError("period", "Invalid", "2weeks")
        assert str(error) == "period: Invalid (got: '2weeks')"

    def test_not_analytics_error(self):
        """Input errors are a separate family from runtime failures."""
        assert not isinstance(ValidationError("f", "m"), AnalyticsError)


class TestQueryTimeoutError:
    """Tests for QueryTimeoutError exception."""

    def test_is_store_error(self):
        assert isinstance(QueryTimeoutError("SELECT 1", 5.0), StoreError)

    def test_long_query_truncated(self):
        error = QueryTimeoutError("SELECT " + "x" * 500, 1.5)
        assert len(error.query) == 203
        assert error.query.endswith("...")
        assert "1.5s" in str(error)

    def test_can_be_raised(self):
        with pytest.raises(StoreError):
            raise QueryTimeoutError("SELECT 1", 1.0)
