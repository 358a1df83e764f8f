"""Security utilities for JWT and password hashing."""
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import JWTError, jwt
from passlib.context import CryptContext
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from mathtutor.core.config import settings
from mathtutor.db.sessions import get_db
from mathtutor.models.user import User
from mathtutor.utils.ids import parse_id

logger = logging.getLogger(__name__)

# Password hashing context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# JWT bearer token scheme; missing headers are answered with 401 below
security = HTTPBearer(auto_error=False)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plain password against a hashed password."""
    try:
        return pwd_context.verify(_truncate_for_bcrypt(plain_password), hashed_password)
    except ValueError:
        # Malformed or unknown hash in storage
        logger.warning("Stored password hash could not be identified")
        return False


def get_password_hash(password: str) -> str:
    """Hash a password."""
    return pwd_context.hash(_truncate_for_bcrypt(password))


def _truncate_for_bcrypt(password: str) -> str:
    """Truncate password to bcrypt's 72-byte limit.

    Bcrypt rejects inputs longer than 72 bytes. We truncate on the UTF-8
    encoded bytes and decode with 'ignore' to avoid splitting multi-byte
    sequences.
    """
    b = password.encode("utf-8")[:72]
    return b.decode("utf-8", "ignore")


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token."""
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    return encoded_jwt


def create_user_token(user: User) -> str:
    """Issue the bearer token handed out on register and login."""
    return create_access_token(
        data={"sub": str(user.id), "email": user.email},
        expires_delta=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def decode_token(token: str) -> dict:
    """Decode and validate a JWT token."""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        return payload
    except JWTError:
        raise _unauthorized("Invalid token")


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db)
) -> User:
    """
    Dependency to get the current authenticated user from JWT token.

    Usage:
        @router.get("/protected")
        def protected_route(current_user: User = Depends(get_current_user)):
            return {"user_id": current_user.id}
    """
    if credentials is None or credentials.scheme.lower() != "bearer" or not credentials.credentials:
        raise _unauthorized("No token provided")

    payload = decode_token(credentials.credentials)

    user_id = parse_id(payload.get("sub"))
    if user_id is None:
        raise _unauthorized("Invalid authentication credentials")

    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise _unauthorized("User not found")

    return user
