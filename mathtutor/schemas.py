"""Response schemas shared across routers."""
import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class APIModel(BaseModel):
    """Base schema: camelCase on the wire, readable from ORM objects."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


class UserResponse(APIModel):
    id: uuid.UUID
    name: str
    email: str
    created_at: Optional[datetime] = None


class ChatResponse(APIModel):
    id: uuid.UUID
    title: str
    last_message: str
    created_at: datetime
    updated_at: datetime


class MessageResponse(APIModel):
    id: uuid.UUID
    role: str
    content: str
    explanation: Optional[str] = None
    created_at: datetime


class QuizQuestionResponse(APIModel):
    question: str
    answer: str
    explanation: str
    from_chat_id: Optional[uuid.UUID] = None
    is_user_question: bool = False
    is_correct: Optional[bool] = None


class QuizResponse(APIModel):
    id: uuid.UUID
    questions: List[QuizQuestionResponse]
    score: int
    total_questions: int
    completed: bool
    created_at: datetime
    updated_at: datetime
