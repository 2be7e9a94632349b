from datetime import datetime
from typing import Optional, List, Dict, Any

from pydantic import BaseModel, ConfigDict, Field, EmailStr

from app.core.config import settings


# =========================
# USER
# =========================
class UserBase(BaseModel):
    email: EmailStr


class CreateUser(UserBase):
    password: str = Field(min_length=8)
    model_config = ConfigDict(from_attributes=True)


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class UserResponse(UserBase):
    id: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# =========================
# CONVERSATION
# =========================
class ConversationCreate(BaseModel):
    title: Optional[str] = Field(default=None, max_length=200)


class ConversationResponse(BaseModel):
    id: str
    user_id: int
    title: str
    created_at: datetime
    updated_at: datetime
    message_count: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)


class MessageResponse(BaseModel):
    id: str
    conversation_id: str
    role: str
    content: str
    metadata: Optional[Dict[str, Any]] = Field(
        default=None, validation_alias="meta"
    )
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ConversationDetail(BaseModel):
    conversation: ConversationResponse
    messages: List[MessageResponse]


# =========================
# CHAT
# =========================
class ChatRequest(BaseModel):
    message: str = Field(min_length=1, max_length=settings.MAX_MESSAGE_LENGTH)


class ChatMetadata(BaseModel):
    tool_calls_count: int


class ChatResponse(BaseModel):
    message: str
    id: Optional[str] = None
    metadata: ChatMetadata
