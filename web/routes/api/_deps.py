"""Shared dependencies for API route modules."""
import logging
import time
from typing import Optional

from fastapi import Header, HTTPException, Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from core.analytics_service import AnalyticsService
from core.config import config
from core.events import EventBus
from core.exceptions import ValidationError
from core.store import AnalyticsStore
from core.stream_manager import StreamManager
from core.validators import (
    validate_period,
    validate_user_id,
    validate_query,
)

# Shared limiter instance
limiter = Limiter(key_func=get_remote_address)

READ_LIMIT = config.web.read_rate_limit
WRITE_LIMIT = config.web.write_rate_limit
ADMIN_LIMIT = config.web.admin_rate_limit

# Shared logger factory
def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)

# Track startup time for uptime calculation
START_TIME = time.time()


def get_service(request: Request) -> AnalyticsService:
    return request.app.state.analytics


def get_store(request: Request) -> AnalyticsStore:
    return request.app.state.store


def get_bus(request: Request) -> EventBus:
    return request.app.state.bus


def get_streams(request: Request) -> StreamManager:
    return request.app.state.streams


async def get_user_id(x_user_id: Optional[str] = Header(None, alias="X-User-Id")) -> str:
    """Tenant identity of the caller; requests without it are rejected."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Authentication required")
    try:
        return validate_user_id(x_user_id)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))


def parse_period(period: Optional[str]) -> str:
    """Validate a period query value; empty means the default period."""
    try:
        return validate_period(period, default=config.analytics.default_period)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
