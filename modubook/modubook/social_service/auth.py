from passlib.context import CryptContext
from datetime import datetime, timedelta
from typing import Optional
import logging
import secrets
import jwt
from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from .config import settings
from .db import get_db
from .models import User, VerificationToken

logger = logging.getLogger(__name__)

VERIFICATION_TOKEN_BYTES = 32

# Use pbkdf2_sha256 to avoid external bcrypt backend issues in some environments
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(user_id: int) -> str:
    expire = datetime.utcnow() + timedelta(days=settings.ACCESS_TOKEN_EXPIRE_DAYS)
    payload = {"sub": str(user_id), "exp": expire}
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> int:
    """
    Decode a bearer token and return the user id it was issued for.

    Raises:
        jwt.ExpiredSignatureError: token is past its exp claim
        jwt.InvalidTokenError: signature, format or subject is invalid
    """
    data = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    try:
        return int(data.get("sub"))
    except (TypeError, ValueError) as exc:
        raise jwt.InvalidTokenError("Token subject is not a user id") from exc


def generate_verification_token() -> str:
    """Return a 64 character hex token."""
    return secrets.token_hex(VERIFICATION_TOKEN_BYTES)


def create_verification_token(user: User, db: Session) -> VerificationToken:
    """
    Create a verification token for the user. The caller commits.

    Args:
        user: Newly registered (inactive) user
        db: Database session

    Returns:
        The pending VerificationToken
    """
    record = VerificationToken(
        user=user,
        token=generate_verification_token(),
        expires_at=datetime.utcnow() + timedelta(hours=settings.VERIFICATION_TOKEN_EXPIRE_HOURS),
        used=False
    )
    db.add(record)
    return record


def purge_expired_tokens(db: Session) -> int:
    deleted = (
        db.query(VerificationToken)
        .filter(VerificationToken.expires_at < datetime.utcnow())
        .delete(synchronize_session=False)
    )
    db.commit()
    if deleted:
        logger.info("[Verify] Purged expired verification tokens: count=%s", deleted)
    return deleted


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization or not authorization.lower().startswith("bearer "):
        return None
    return authorization.split(" ", 1)[1].strip() or None


def get_current_user(
    db: Session = Depends(get_db),
    authorization: Optional[str] = Header(default=None, alias="Authorization"),
) -> User:
    token = _bearer_token(authorization)
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    try:
        user_id = decode_access_token(token)
    except jwt.ExpiredSignatureError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token expired") from exc
    except jwt.InvalidTokenError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token") from exc

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is not active")
    return user


def get_optional_user(
    db: Session = Depends(get_db),
    authorization: Optional[str] = Header(default=None, alias="Authorization"),
) -> Optional[User]:
    """Like get_current_user, but anonymous or bad credentials yield None."""
    token = _bearer_token(authorization)
    if not token:
        return None
    try:
        user_id = decode_access_token(token)
    except jwt.InvalidTokenError:
        return None

    user = db.query(User).filter(User.id == user_id).first()
    if not user or not user.is_active:
        return None
    return user
