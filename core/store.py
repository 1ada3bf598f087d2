"""
DuckDB store for the Invoice Swift analytics core.

Holds the tenant source collections (invoices, payments, expenses, purchases,
customers, items) and the persisted analytics snapshots.

Domain-specific query methods are organized into repository mixins:
- SourcesMixin: Source-data writes (invoices, payments, expenses, ...)
- MetricsMixin: Metric extractor aggregations
- SnapshotsMixin: Snapshot upsert / lookup / purge
- BusinessDataMixin: Business summary for the chatbot
"""
import asyncio
from concurrent.futures import ThreadPoolExecutor
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, TypeVar, Union

import duckdb

from core.config import config
from core.exceptions import QueryTimeoutError
from core.observability import get_logger
from core.repositories import BusinessDataMixin, MetricsMixin, SnapshotsMixin, SourcesMixin

logger = get_logger(__name__)

T = TypeVar("T")

MEMORY_DB = ":memory:"

SCHEMA_SQL = """
-- ═══════════════════════════════════════════════════════════════════════
-- SOURCE COLLECTIONS (owned by the CRUD collaborators)
-- ═══════════════════════════════════════════════════════════════════════
CREATE SEQUENCE IF NOT EXISTS seq_invoices_id START 1;
CREATE SEQUENCE IF NOT EXISTS seq_invoice_items_id START 1;
CREATE SEQUENCE IF NOT EXISTS seq_payments_id START 1;
CREATE SEQUENCE IF NOT EXISTS seq_expenses_id START 1;
CREATE SEQUENCE IF NOT EXISTS seq_purchases_id START 1;
CREATE SEQUENCE IF NOT EXISTS seq_customers_id START 1;
CREATE SEQUENCE IF NOT EXISTS seq_items_id START 1;

CREATE TABLE IF NOT EXISTS invoices (
    id BIGINT PRIMARY KEY DEFAULT(nextval('seq_invoices_id')),
    user_id VARCHAR NOT NULL,
    customer_name VARCHAR NOT NULL,
    subtotal DECIMAL(14, 2) NOT NULL DEFAULT 0,
    tax_rate DOUBLE DEFAULT 0,
    tax_amount DECIMAL(14, 2) NOT NULL DEFAULT 0,
    total_amount DECIMAL(14, 2) NOT NULL,
    status VARCHAR DEFAULT 'draft',
    created_at TIMESTAMP NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_invoices_user_created ON invoices(user_id, created_at);

-- Invoice line items (grouped by free-text description for top products)
CREATE TABLE IF NOT EXISTS invoice_items (
    id BIGINT PRIMARY KEY DEFAULT(nextval('seq_invoice_items_id')),
    invoice_id BIGINT NOT NULL,
    description VARCHAR NOT NULL,
    quantity DOUBLE NOT NULL,
    unit_price DECIMAL(14, 2) NOT NULL,
    total DECIMAL(14, 2) NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_invoice_items_invoice ON invoice_items(invoice_id);

CREATE TABLE IF NOT EXISTS payments (
    id BIGINT PRIMARY KEY DEFAULT(nextval('seq_payments_id')),
    user_id VARCHAR NOT NULL,
    customer_id BIGINT,
    amount DECIMAL(14, 2) NOT NULL,
    payment_method VARCHAR,
    payment_type VARCHAR NOT NULL,   -- 'Received' | 'Paid'
    status VARCHAR DEFAULT 'completed',
    payment_date TIMESTAMP NOT NULL,
    created_at TIMESTAMP NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_payments_user_date ON payments(user_id, payment_date);

CREATE TABLE IF NOT EXISTS expenses (
    id BIGINT PRIMARY KEY DEFAULT(nextval('seq_expenses_id')),
    user_id VARCHAR NOT NULL,
    amount DECIMAL(14, 2) NOT NULL,
    category VARCHAR,
    description VARCHAR,
    created_at TIMESTAMP NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_expenses_user_created ON expenses(user_id, created_at);

CREATE TABLE IF NOT EXISTS purchases (
    id BIGINT PRIMARY KEY DEFAULT(nextval('seq_purchases_id')),
    user_id VARCHAR NOT NULL,
    vendor_name VARCHAR,
    total_amount DECIMAL(14, 2) NOT NULL,
    created_at TIMESTAMP NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_purchases_user_created ON purchases(user_id, created_at);

CREATE TABLE IF NOT EXISTS customers (
    id BIGINT PRIMARY KEY DEFAULT(nextval('seq_customers_id')),
    user_id VARCHAR NOT NULL,
    name VARCHAR NOT NULL,
    email VARCHAR,
    phone VARCHAR,
    created_at TIMESTAMP NOT NULL
);

CREATE TABLE IF NOT EXISTS items (
    id BIGINT PRIMARY KEY DEFAULT(nextval('seq_items_id')),
    user_id VARCHAR NOT NULL,
    name VARCHAR NOT NULL,
    selling_price DECIMAL(14, 2) DEFAULT 0,
    created_at TIMESTAMP NOT NULL
);

-- Current stock level per item
CREATE TABLE IF NOT EXISTS inventory (
    user_id VARCHAR NOT NULL,
    item_id BIGINT NOT NULL,
    current_stock DOUBLE NOT NULL DEFAULT 0,
    PRIMARY KEY (user_id, item_id)
);

-- Company profile (one per tenant)
CREATE TABLE IF NOT EXISTS companies (
    user_id VARCHAR PRIMARY KEY,
    business_name VARCHAR,
    company_name VARCHAR,
    email VARCHAR,
    phone VARCHAR
);

-- ═══════════════════════════════════════════════════════════════════════
-- ANALYTICS SNAPSHOTS (one row per user/period, written by the orchestrator)
-- ═══════════════════════════════════════════════════════════════════════
CREATE TABLE IF NOT EXISTS analytics_snapshots (
    user_id VARCHAR NOT NULL,
    period VARCHAR NOT NULL,
    start_date TIMESTAMP,
    end_date TIMESTAMP,
    total_sales DOUBLE NOT NULL DEFAULT 0,
    total_purchases DOUBLE NOT NULL DEFAULT 0,
    total_expenses DOUBLE NOT NULL DEFAULT 0,
    net_profit DOUBLE NOT NULL DEFAULT 0,
    payment_methods VARCHAR NOT NULL DEFAULT '[]',   -- JSON
    sales_by_date VARCHAR NOT NULL DEFAULT '[]',     -- JSON
    top_products VARCHAR NOT NULL DEFAULT '[]',      -- JSON
    top_customers VARCHAR NOT NULL DEFAULT '[]',     -- JSON
    payment_flow VARCHAR NOT NULL DEFAULT '{}',      -- JSON
    daily_payments VARCHAR NOT NULL DEFAULT '[]',    -- JSON
    kpis VARCHAR NOT NULL DEFAULT '{}',              -- JSON
    last_updated TIMESTAMP NOT NULL,
    created_at TIMESTAMP NOT NULL,
    PRIMARY KEY (user_id, period)
);
"""

COUNTED_TABLES = (
    "invoices", "invoice_items", "payments", "expenses", "purchases",
    "customers", "items", "analytics_snapshots",
)


class AnalyticsStore(SourcesMixin, MetricsMixin, SnapshotsMixin, BusinessDataMixin):
    """
    Async-compatible DuckDB store.

    Features:
    - Persistent storage (or ":memory:" for tests)
    - Serialized connection access behind one asyncio lock
    - Thread offloading to avoid blocking the event loop
    - Per-query timeout
    """

    def __init__(
        self,
        db_path: Union[str, Path] = None,
        query_timeout: float = None,
    ):
        self.db_path = str(db_path or config.database.path)
        self.query_timeout = query_timeout or config.database.query_timeout
        self._connection: Optional[duckdb.DuckDBPyConnection] = None
        self._lock = asyncio.Lock()  # Serializes all database access

        # Thread pool for offloading blocking DB operations
        self._executor: Optional[ThreadPoolExecutor] = None

        # Stats for monitoring
        self._total_queries = 0

    @property
    def is_memory(self) -> bool:
        return self.db_path == MEMORY_DB

    async def connect(self) -> None:
        """Initialize database connection, schema, and thread pool."""
        if not self.is_memory:
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        async with self._lock:
            if self._connection is None:
                self._connection = duckdb.connect(self.db_path)
                self._connection.execute(SCHEMA_SQL)

                self._executor = ThreadPoolExecutor(
                    max_workers=1,  # DuckDB connection requires serialized access
                    thread_name_prefix="duckdb"
                )

                logger.info(f"DuckDB connected: {self.db_path}")

    async def close(self) -> None:
        """Close database connection and thread pool."""
        async with self._lock:
            if self._executor:
                self._executor.shutdown(wait=True)
                self._executor = None

            if self._connection:
                self._connection.close()
                self._connection = None
                logger.info("DuckDB connection closed")

    @property
    def is_connected(self) -> bool:
        return self._connection is not None

    def get_connection_info(self) -> Dict[str, Any]:
        """Get connection info for monitoring."""
        return {
            "status": "active" if self._connection else "not_initialized",
            "total_queries": self._total_queries,
            "db_path": self.db_path,
        }

    @asynccontextmanager
    async def connection(self):
        """Get database connection (lock held for the duration of the block)."""
        if self._connection is None:
            await self.connect()
        async with self._lock:
            yield self._connection

    # ─── Query Execution with Timeout ────────────────────────────────────────

    async def _run(self, func: Callable[[duckdb.DuckDBPyConnection], T], label: str, timeout: float = None) -> T:
        """
        Run a blocking callable against the connection in the worker thread.

        Raises:
            QueryTimeoutError: If the call exceeds timeout
        """
        timeout = timeout or self.query_timeout
        async with self.connection() as conn:
            self._total_queries += 1
            loop = asyncio.get_running_loop()
            try:
                return await asyncio.wait_for(
                    loop.run_in_executor(self._executor, func, conn),
                    timeout=timeout,
                )
            except asyncio.TimeoutError:
                raise QueryTimeoutError(label, timeout, "Execution exceeded timeout")

    async def _execute(self, query: str, params: list = None) -> None:
        """Execute a statement (INSERT/UPDATE/DELETE)."""
        await self._run(lambda conn: conn.execute(query, params or []), query)

    async def _fetch_one(self, query: str, params: list = None) -> Optional[tuple]:
        """Execute query and fetch one row."""
        return await self._run(lambda conn: conn.execute(query, params or []).fetchone(), query)

    async def _fetch_all(self, query: str, params: list = None) -> List[tuple]:
        """Execute query and fetch all rows."""
        return await self._run(lambda conn: conn.execute(query, params or []).fetchall(), query)

    async def _transaction(self, func: Callable[[duckdb.DuckDBPyConnection], T], label: str) -> T:
        """Run several statements atomically."""

        def _wrapped(conn):
            conn.execute("BEGIN TRANSACTION")
            try:
                result = func(conn)
            except Exception:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
            return result

        return await self._run(_wrapped, label)

    async def get_stats(self) -> Dict[str, Any]:
        """Row counts per table."""
        def _count(conn):
            return {
                table: conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
                for table in COUNTED_TABLES
            }

        counts = await self._run(_count, "get_stats")
        return {**counts, "total_queries": self._total_queries}


# ═══════════════════════════════════════════════════════════════════════════════
# SINGLETON INSTANCE
# ═══════════════════════════════════════════════════════════════════════════════

_store_instance: Optional[AnalyticsStore] = None
_store_lock = asyncio.Lock()


async def get_store() -> AnalyticsStore:
    """Get singleton store instance (coroutine-safe)."""
    global _store_instance
    async with _store_lock:
        if _store_instance is None:
            _store_instance = AnalyticsStore()
            await _store_instance.connect()
    return _store_instance


async def close_store() -> None:
    """Close singleton store instance."""
    global _store_instance
    if _store_instance:
        await _store_instance.close()
        _store_instance = None
