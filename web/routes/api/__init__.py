"""
API routes split by domain.

Each sub-module defines its own APIRouter which is composed
into the top-level router exposed by this package.
"""
from fastapi import APIRouter

from .health import router as health_router
from .analytics import router as analytics_router
from .sources import router as sources_router
from .chatbot import router as chatbot_router

router = APIRouter(tags=["api"])

router.include_router(health_router)
router.include_router(analytics_router)
router.include_router(sources_router)
router.include_router(chatbot_router)
