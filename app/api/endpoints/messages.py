import logging
from typing import Annotated
from fastapi import APIRouter, HTTPException, Request, status, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.ai_feature.orchestrator import Orchestrator
from app.ai_feature import service
from app.core import schemas, models
from app.core.database import get_db
from app.core.security import get_owned_conversation

router = APIRouter(prefix="/chat/conversations", tags=["Chat"])

db_dep = Annotated[AsyncSession, Depends(get_db)]
conversation_dep = Annotated[models.Conversation, Depends(get_owned_conversation)]


# Built once in the app lifespan; it holds no per-request state
def get_orchestrator(request: Request) -> Orchestrator:
    return request.app.state.orchestrator


orchestrator_dep = Annotated[Orchestrator, Depends(get_orchestrator)]


@router.post("/{conversation_id}/messages", response_model=schemas.ChatResponse)
async def post_message(
    payload: schemas.ChatRequest,
    conversation: conversation_dep,
    db: db_dep,
    orchestrator: orchestrator_dep,
):
    try:
        saved, result = await service.answer_message(
            conversation, payload.message, db, orchestrator
        )
    except Exception:
        # Operators get the traceback, the client gets nothing internal
        logging.exception(f"Chat error in conversation {conversation.id}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to process message",
        )

    return {
        "message": result.message,
        "id": saved.id,
        "metadata": {"tool_calls_count": len(result.tool_calls)},
    }
