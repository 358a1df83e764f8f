"""Database models."""
from mathtutor.models.user import User
from mathtutor.models.chat import Chat, Message
from mathtutor.models.quiz import Quiz, QuizQuestion

__all__ = [
    "User",
    "Chat",
    "Message",
    "Quiz",
    "QuizQuestion",
]
