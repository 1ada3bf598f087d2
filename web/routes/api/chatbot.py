"""Business assistant endpoints."""
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from core.chatbot import answer_query, build_business_data
from core.models import utcnow
from core.store import AnalyticsStore
from web.schemas import ChatbotQueryRequest, ChatbotQueryResponse
from ._deps import (
    limiter, get_store, get_user_id, get_logger,
    validate_query, ValidationError, READ_LIMIT,
)

router = APIRouter(prefix="/chatbot")
logger = get_logger(__name__)


@router.get("/data")
@limiter.limit(READ_LIMIT)
async def get_business_data(
    request: Request,
    user_id: str = Depends(get_user_id),
    store: AnalyticsStore = Depends(get_store),
):
    """All-time business summary the assistant answers from."""
    try:
        return await build_business_data(store, user_id)
    except Exception as e:
        logger.error(f"Business data failed: {e}", extra={"user_id": user_id})
        return JSONResponse(
            status_code=500,
            content={"message": "Error fetching business data", "error": str(e)},
        )


@router.post("/query", response_model=ChatbotQueryResponse)
@limiter.limit(READ_LIMIT)
async def query_chatbot(
    request: Request,
    body: ChatbotQueryRequest,
    user_id: str = Depends(get_user_id),
    store: AnalyticsStore = Depends(get_store),
):
    """Answer a plain-language question about the caller's business."""
    try:
        query = validate_query(body.query)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        data = await build_business_data(store, user_id)
    except Exception as e:
        logger.error(f"Chatbot query failed: {e}", extra={"user_id": user_id})
        return JSONResponse(
            status_code=500,
            content={"message": "Error processing query", "error": str(e)},
        )

    return {"query": query, "response": answer_query(query, data), "timestamp": utcnow()}
