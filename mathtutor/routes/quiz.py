"""Quiz routes."""
import logging
from typing import List, Optional, Union
from fastapi import APIRouter, Depends, HTTPException, status
from openai import OpenAIError
from sqlalchemy.orm import Session
from pydantic import BaseModel, StrictBool, StrictFloat, StrictInt

from mathtutor.db.sessions import get_db
from mathtutor.models.user import User
from mathtutor.models.chat import Chat, Message
from mathtutor.models.quiz import Quiz, QuizQuestion
from mathtutor.core.security import get_current_user
from mathtutor.core.config import Settings, get_settings
from mathtutor.schemas import APIModel, QuizQuestionResponse, QuizResponse
from mathtutor.services.llm_service import LLMService, get_llm_service
from mathtutor.services.response_parser import ExtractionError, parse_quiz
from mathtutor.utils.ids import parse_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="", tags=["Quiz"])

QUIZ_NOT_FOUND = "Quiz not found"


# Request/Response schemas
class SubmittedQuestion(APIModel):
    question: str
    answer: str
    explanation: str
    is_correct: Optional[StrictBool] = None


class SubmitQuizRequest(APIModel):
    completed: StrictBool
    score: Union[StrictInt, StrictFloat]
    questions: List[SubmittedQuestion]


class QuizHistoryItem(APIModel):
    id: str
    score: int
    questions: List[QuizQuestionResponse]
    total_questions: int
    percentage: float
    created_at: str
    updated_at: str


class QuizStats(APIModel):
    total_quizzes: int
    average_score: float
    best_score: int
    total_completed: int


class QuizHistoryResponse(BaseModel):
    quizzes: List[QuizHistoryItem]
    stats: QuizStats


def _history_messages(db: Session, user: User, max_chats: int) -> List[dict]:
    """Collect recent chat turns of ``user`` formatted for the model."""
    recent_chats = (
        db.query(Chat)
        .filter(Chat.user_id == user.id)
        .order_by(Chat.updated_at.desc())
        .limit(max_chats)
        .all()
    )
    if not recent_chats:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No chat history found. Start by talking with the tutor!"
        )

    messages = (
        db.query(Message)
        .filter(Message.chat_id.in_([c.id for c in recent_chats]))
        .order_by(Message.created_at.desc())
        .all()
    )
    if not messages:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No messages found in chat history. Start by talking with the tutor!"
        )

    return [
        {"role": "user" if m.role == "user" else "assistant", "content": m.content}
        for m in messages
    ]


@router.post("/quiz/generate", response_model=QuizResponse)
def generate_quiz(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    llm: LLMService = Depends(get_llm_service),
    settings: Settings = Depends(get_settings)
):
    """
    Generate a quiz from the user's recent chat history.

    This endpoint:
    1. Collects messages from the most recently active chats
    2. Asks the LLM for similar questions
    3. Extracts and validates the questions from the reply
    4. Saves the quiz (not completed) and returns it

    Raises:
        HTTPException 400: No chat history to build the quiz from
        HTTPException 500: LLM call failed or reply could not be used
    """
    history = _history_messages(db, current_user, settings.QUIZ_HISTORY_CHATS)

    try:
        completion = llm.quiz_questions(history, settings.QUIZ_QUESTION_COUNT)
        generated = parse_quiz(completion.content)
    except ExtractionError as e:
        logger.warning("Quiz reply rejected at %s stage: %s", e.stage, e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to parse AI response ({e.stage}): {str(e)}"
        )
    except (OpenAIError, ValueError) as e:
        logger.error("Quiz generation call failed: %s", e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Error generating quiz: {str(e)}"
        )

    quiz = Quiz(
        user_id=current_user.id,
        total_questions=len(generated.questions),
        questions=[
            QuizQuestion(
                position=order,
                question=q.question,
                answer=q.answer,
                explanation=q.explanation
            )
            for order, q in enumerate(generated.questions)
        ]
    )

    db.add(quiz)
    db.commit()
    db.refresh(quiz)
    logger.info("Created quiz %s with %d question(s)", quiz.id, len(quiz.questions))

    return quiz


@router.patch("/quiz/{quiz_id}", response_model=QuizResponse)
def submit_quiz(
    quiz_id: str,
    request: SubmitQuizRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Record the outcome of a quiz attempt.

    The score is recomputed as the number of submitted questions marked
    correct; the client-provided score is not trusted.
    """
    parsed_id = parse_id(quiz_id)
    quiz = None
    if parsed_id is not None:
        quiz = db.query(Quiz).filter(Quiz.id == parsed_id, Quiz.user_id == current_user.id).first()
    if not quiz:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=QUIZ_NOT_FOUND)

    if quiz.completed:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Quiz already submitted")

    # A submission is final; partial saves are not supported
    if not request.completed:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Quiz submission must mark the quiz completed"
        )

    correct_answers = sum(1 for q in request.questions if q.is_correct)
    total_questions = len(request.questions)

    # Record per-question outcome when the submission lines up with the stored quiz
    if total_questions == len(quiz.questions):
        for stored, submitted in zip(quiz.questions, request.questions):
            stored.is_correct = bool(submitted.is_correct)

    quiz.completed = True
    quiz.score = correct_answers
    quiz.total_questions = total_questions
    db.commit()
    db.refresh(quiz)
    logger.info("Quiz %s submitted: %d/%d", quiz.id, correct_answers, total_questions)

    return quiz


def _percentage(score: int, total: int) -> float:
    return (score / total) * 100 if total else 0.0


def build_stats(quizzes: List[Quiz]) -> QuizStats:
    """Aggregate statistics over completed quizzes."""
    scores = [q.score for q in quizzes]
    return QuizStats(
        total_quizzes=len(quizzes),
        average_score=sum(scores) / len(scores) if scores else 0,
        best_score=max(scores) if scores else 0,
        total_completed=len(quizzes),
    )


@router.get("/quizzes", response_model=QuizHistoryResponse)
def quiz_history(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Completed quizzes of the user, newest first, with summary statistics."""
    quizzes = (
        db.query(Quiz)
        .filter(Quiz.user_id == current_user.id, Quiz.completed.is_(True))
        .order_by(Quiz.created_at.desc())
        .all()
    )

    items = []
    for quiz in quizzes:
        total = quiz.total_questions or len(quiz.questions)
        items.append(QuizHistoryItem(
            id=str(quiz.id),
            score=quiz.score,
            questions=[QuizQuestionResponse.model_validate(q) for q in quiz.questions],
            total_questions=total,
            percentage=_percentage(quiz.score, total),
            created_at=quiz.created_at.isoformat(),
            updated_at=quiz.updated_at.isoformat(),
        ))

    return QuizHistoryResponse(quizzes=items, stats=build_stats(quizzes))
