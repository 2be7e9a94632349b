import logging
from typing import Annotated, List
from fastapi import APIRouter, HTTPException, status, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import desc, func, select

from app.ai_feature.service import DEFAULT_TITLE
from app.core import schemas, models
from app.core.database import get_db
from app.core.security import get_owned_conversation, user_dep

router = APIRouter(prefix="/chat/conversations", tags=["Conversations"])

db_dep = Annotated[AsyncSession, Depends(get_db)]
conversation_dep = Annotated[models.Conversation, Depends(get_owned_conversation)]


@router.get("", response_model=List[schemas.ConversationResponse])
async def list_conversations(current_user: user_dep, db: db_dep):
    """Own conversations, most recently active first, with message counts."""
    message_count = (
        select(func.count(models.Message.id))
        .where(models.Message.conversation_id == models.Conversation.id)
        .correlate(models.Conversation)
        .scalar_subquery()
    )
    query = (
        select(models.Conversation, message_count.label("message_count"))
        .where(models.Conversation.user_id == current_user.id)
        .order_by(desc(models.Conversation.updated_at))
    )
    result = await db.execute(query)

    return [
        schemas.ConversationResponse.model_validate(conversation).model_copy(
            update={"message_count": count}
        )
        for conversation, count in result.all()
    ]


@router.post(
    "",
    response_model=schemas.ConversationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_conversation(
    payload: schemas.ConversationCreate, current_user: user_dep, db: db_dep
):
    try:
        conversation = models.Conversation(
            user_id=current_user.id, title=payload.title or DEFAULT_TITLE
        )
        db.add(conversation)
        await db.commit()
        await db.refresh(conversation)
        return conversation
    except Exception as error:
        await db.rollback()
        logging.error(f"Failed to create conversation: {error}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create conversation",
        )


@router.get("/{conversation_id}", response_model=schemas.ConversationDetail)
async def get_conversation(conversation: conversation_dep, db: db_dep):
    query = (
        select(models.Message)
        .where(models.Message.conversation_id == conversation.id)
        .order_by(models.Message.created_at)
    )
    result = await db.execute(query)

    return {"conversation": conversation, "messages": result.scalars().all()}


@router.delete("/{conversation_id}")
async def delete_conversation(conversation: conversation_dep, db: db_dep):
    try:
        await db.delete(conversation)
        await db.commit()
        return {"success": True}
    except Exception as error:
        await db.rollback()
        logging.error(f"Failed to delete conversation {conversation.id}: {error}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete conversation",
        )
