"""
History Routes

Read and append the caller's search history. Anonymous callers cannot read
history; saving for them is a successful no-op.
"""

import logging
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from typing import List, Annotated, Optional

from .models import HistoryItem, HistorySaveRequest, MessageResponse
from .dependencies import get_history_store
from ..auth.models import UserContext
from ..auth.security import optional_user, require_user
from ..config import settings
from ..core.errors import InvalidArgument
from ..db import HistoryStore
from ..history import save_query

logger = logging.getLogger("hadith.history")

router = APIRouter(prefix="/history", tags=["history"])


@router.get(
    "",
    response_model=List[HistoryItem],
    summary="Most recent searches of the caller",
)
async def get_history(
    user: Annotated[UserContext, Depends(require_user)],
    history: Annotated[HistoryStore, Depends(get_history_store)],
) -> List[HistoryItem]:
    rows = await history.recent(user.user_id, limit=settings.history_limit)
    return [HistoryItem.model_validate(row) for row in rows]


@router.post(
    "",
    response_model=MessageResponse,
    summary="Save a query to the caller's history",
    responses={201: {"model": MessageResponse}},
)
async def post_history(
    req: HistorySaveRequest,
    user: Annotated[Optional[UserContext], Depends(optional_user)],
    history: Annotated[HistoryStore, Depends(get_history_store)],
):
    """
    Append a query unless it repeats the caller's latest entry.

    Store failures propagate to the global handler (500).
    """
    if not isinstance(req.query_text, str) or not req.query_text:
        raise InvalidArgument("Query text is required")

    if user is None:
        return MessageResponse(message="User not logged in, history not saved")

    if not await save_query(history, user.user_id, req.query_text):
        return MessageResponse(message="Duplicate search query, not saved")

    logger.info("Saved search history for user %s", user.user_id)
    return JSONResponse(
        status_code=status.HTTP_201_CREATED,
        content={"message": "Search history saved successfully"},
    )
