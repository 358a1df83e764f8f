"""Tutor chat routes."""
import logging
from datetime import datetime, timedelta
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from openai import OpenAIError
from pydantic import BaseModel
from sqlalchemy.orm import Session

from mathtutor.db.sessions import get_db
from mathtutor.models.user import User
from mathtutor.models.chat import Chat, Message
from mathtutor.core.security import get_current_user
from mathtutor.schemas import APIModel, ChatResponse, MessageResponse
from mathtutor.services.llm_service import LLMService, get_llm_service
from mathtutor.services.response_parser import ChatReply, ExtractionError, parse_chat_reply
from mathtutor.utils.ids import parse_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="", tags=["Chat"])

CHAT_NOT_FOUND = "Chat not found"
TITLE_LENGTH = 50


# Request/Response schemas
class ChatTurn(BaseModel):
    role: str = "user"
    content: Optional[str] = None


class SendMessageRequest(APIModel):
    messages: List[ChatTurn]
    chat_id: Optional[str] = None


class AssistantMessage(BaseModel):
    role: str = "assistant"
    content: ChatReply


class Choice(BaseModel):
    message: AssistantMessage
    index: int = 0
    finish_reason: Optional[str] = None


class SendMessageResponse(APIModel):
    choices: List[Choice]
    chat_id: str


class ChatListResponse(BaseModel):
    chats: List[ChatResponse]


class ChatDetailResponse(BaseModel):
    chat: ChatResponse


class ChatMessagesResponse(BaseModel):
    messages: List[MessageResponse]
    chat: ChatResponse


class DeleteResponse(BaseModel):
    success: bool


def _chat_title(first_message: str) -> str:
    text = first_message.strip()
    if len(text) > TITLE_LENGTH:
        return text[:TITLE_LENGTH] + "..."
    return text or "New Chat"


def _llm_role(role: str) -> str:
    return "assistant" if role in ("bot", "assistant") else "user"


def get_owned_chat(db: Session, chat_id: Optional[str], user: User) -> Chat:
    """Load a chat of ``user`` or raise 404."""
    parsed = parse_id(chat_id)
    chat = None
    if parsed is not None:
        chat = db.query(Chat).filter(Chat.id == parsed, Chat.user_id == user.id).first()
    if not chat:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=CHAT_NOT_FOUND)
    return chat


@router.post("/chat", response_model=SendMessageResponse)
def send_message(
    request: SendMessageRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    llm: LLMService = Depends(get_llm_service)
):
    """
    Send the latest user message to the tutor and store the exchange.

    A chat is created for the first message of a conversation; the tutor
    reply is persisted as a bot message and becomes the chat's last message.
    """
    if not request.messages:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="messages must not be empty")

    user_text = request.messages[-1].content
    if not user_text or not user_text.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Last message has no content")

    chat = get_owned_chat(db, request.chat_id, current_user) if request.chat_id else None

    history = [
        {"role": _llm_role(m.role), "content": m.content or ""}
        for m in request.messages
    ]

    try:
        completion = llm.tutor_reply(history)
        reply = parse_chat_reply(completion.content)
    except ExtractionError as e:
        logger.warning("Tutor reply rejected at %s stage: %s", e.stage, e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Invalid response format from AI ({e.stage})"
        )
    except (OpenAIError, ValueError) as e:
        logger.error("Tutor call failed: %s", e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Error contacting the tutor: {str(e)}"
        )

    now = datetime.utcnow()
    if chat is None:
        first = request.messages[0].content or user_text
        chat = Chat(user_id=current_user.id, title=_chat_title(first), created_at=now, updated_at=now)
        db.add(chat)
        db.flush()

    db.add(Message(chat_id=chat.id, role="user", content=user_text, created_at=now))
    db.add(Message(
        chat_id=chat.id,
        role="bot",
        content=reply.quickrep,
        explanation=reply.explication,
        created_at=now + timedelta(microseconds=1)
    ))

    chat.last_message = reply.quickrep
    chat.updated_at = now
    db.commit()

    return SendMessageResponse(
        choices=[Choice(
            message=AssistantMessage(content=reply),
            finish_reason=completion.finish_reason
        )],
        chat_id=str(chat.id)
    )


@router.get("/chats", response_model=ChatListResponse)
def list_chats(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """List the user's chats, most recently active first."""
    chats = db.query(Chat).filter(Chat.user_id == current_user.id).order_by(Chat.updated_at.desc()).all()
    return {"chats": chats}


def _chat_messages(chat_id: str, current_user: User, db: Session):
    chat = get_owned_chat(db, chat_id, current_user)
    messages = (
        db.query(Message)
        .filter(Message.chat_id == chat.id)
        .order_by(Message.created_at.asc())
        .all()
    )
    return {"messages": messages, "chat": chat}


@router.get("/chats/{chat_id}", response_model=ChatMessagesResponse)
def get_chat(chat_id: str, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return _chat_messages(chat_id, current_user, db)


@router.get("/chats/{chat_id}/messages", response_model=ChatMessagesResponse)
def get_chat_messages(chat_id: str, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return _chat_messages(chat_id, current_user, db)


@router.get("/chats/{chat_id}/details", response_model=ChatDetailResponse)
def get_chat_details(chat_id: str, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return {"chat": get_owned_chat(db, chat_id, current_user)}


@router.delete("/chats/{chat_id}", response_model=DeleteResponse)
def delete_chat(chat_id: str, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Delete a chat together with its messages."""
    chat = get_owned_chat(db, chat_id, current_user)
    db.delete(chat)
    db.commit()
    logger.info("Deleted chat %s", chat_id)
    return {"success": True}
