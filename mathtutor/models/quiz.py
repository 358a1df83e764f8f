"""Quiz models."""
import uuid
from datetime import datetime
from sqlalchemy import Column, Boolean, DateTime, Text, Integer, ForeignKey, Uuid
from sqlalchemy.orm import relationship
from mathtutor.db.base import Base


class Quiz(Base):
    """Generated quiz and the outcome of its single attempt."""

    __tablename__ = "quizzes"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    score = Column(Integer, nullable=False, default=0)
    total_questions = Column(Integer, nullable=False, default=0)
    completed = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    user = relationship("User", back_populates="quizzes")
    questions = relationship(
        "QuizQuestion",
        back_populates="quiz",
        cascade="all, delete-orphan",
        order_by="QuizQuestion.position",
    )


class QuizQuestion(Base):
    """Question of a quiz, kept in generation order."""

    __tablename__ = "quiz_questions"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    quiz_id = Column(Uuid(as_uuid=True), ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False, index=True)
    from_chat_id = Column(Uuid(as_uuid=True), ForeignKey("chats.id", ondelete="SET NULL"))
    position = Column(Integer, nullable=False)
    question = Column(Text, nullable=False)
    answer = Column(Text, nullable=False)
    explanation = Column(Text, nullable=False)
    is_user_question = Column(Boolean, nullable=False, default=False)
    is_correct = Column(Boolean)  # set on submission

    # Relationships
    quiz = relationship("Quiz", back_populates="questions")
