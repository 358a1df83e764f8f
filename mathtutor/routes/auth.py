"""Authentication routes."""
import logging
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from pydantic import BaseModel, EmailStr, Field, field_validator

from mathtutor.db.sessions import get_db
from mathtutor.models.user import User
from mathtutor.core.security import (
    get_password_hash,
    verify_password,
    create_user_token,
    get_current_user
)
from mathtutor.schemas import APIModel, UserResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


# Request/Response schemas
class RegisterRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(min_length=6)

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, value):
        return value.strip() if isinstance(value, str) else value


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class AuthResponse(APIModel):
    user: UserResponse
    token: str


class MeResponse(APIModel):
    user: UserResponse


def _normalize_email(email: str) -> str:
    return email.strip().lower()


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(request: RegisterRequest, db: Session = Depends(get_db)):
    """
    Register a new user.

    - Creates user account with hashed password
    - Returns the user and a JWT access token
    """
    email = _normalize_email(request.email)

    # Check if user already exists
    existing_user = db.query(User).filter(User.email == email).first()
    if existing_user:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered"
        )

    user = User(
        name=request.name,
        email=email,
        password_hash=get_password_hash(request.password)
    )

    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        # Lost a race against a concurrent registration
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered"
        )
    db.refresh(user)
    logger.info("Registered user %s", user.id)

    return AuthResponse(user=UserResponse.model_validate(user), token=create_user_token(user))


@router.post("/login", response_model=AuthResponse)
def login(request: LoginRequest, db: Session = Depends(get_db)):
    """
    Login with email and password.

    - Validates credentials
    - Returns the user and a JWT access token
    """
    user = db.query(User).filter(User.email == _normalize_email(request.email)).first()
    if not user or not verify_password(request.password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials"
        )

    logger.info("User %s logged in", user.id)
    return AuthResponse(user=UserResponse.model_validate(user), token=create_user_token(user))


@router.get("/me", response_model=MeResponse)
def get_me(current_user: User = Depends(get_current_user)):
    """
    Get current authenticated user information.

    Protected endpoint - requires valid JWT token. A token whose user no
    longer exists is rejected by the auth gate with 401.
    """
    return MeResponse(user=UserResponse.model_validate(current_user))
