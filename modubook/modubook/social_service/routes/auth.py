"""
Account endpoints: signup, email verification, availability checks and login.
"""
import logging
import smtplib
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..auth import (
    create_access_token,
    create_verification_token,
    get_current_user,
    hash_password,
    verify_password,
)
from ..config import settings
from ..db import get_db
from ..models import User, VerificationToken
from ..rate_limit import limiter
from ..schemas import (
    AccountStatusResponse,
    EmailAvailabilityResponse,
    EmailRequest,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    NicknameAvailabilityResponse,
    NicknameRequest,
    SignupRequest,
    UserOut,
)
from ..utils.email_sender import send_verification_email
from ..utils.validation import is_valid_email, nickname_errors, normalize_email

router = APIRouter(prefix="/api/auth", tags=["auth"])
logger = logging.getLogger(__name__)


def _deliver_verification_email(user: User, token: str) -> None:
    # Email failures are logged only; the account already exists and the user can ask for a resend
    try:
        send_verification_email(user.email, token, user.nickname)
    except (smtplib.SMTPException, OSError) as e:
        logger.error("[Signup] Failed to send verification email: user_id=%s email=%s error=%s", user.id, user.email, e)


@router.post("/signup", response_model=AccountStatusResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.SIGNUP_RATE_LIMIT)
def signup(payload: SignupRequest, request: Request, db: Session = Depends(get_db)):
    if db.query(User).filter(User.email == payload.email).first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already in use")
    if db.query(User).filter(User.nickname == payload.nickname).first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Nickname already in use")

    try:
        user = User(
            email=payload.email,
            password=hash_password(payload.password),
            nickname=payload.nickname,
            status="inactive"
        )
        db.add(user)
        token_record = create_verification_token(user, db)
        db.commit()
        db.refresh(user)
    except IntegrityError as e:
        # Lost a race against a concurrent signup with the same email or nickname
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email or nickname already in use") from e
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("[Signup] Registration error for %s: %s", payload.email, e, exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to register user"
        ) from e

    logger.info("[Signup] New user registered: user_id=%s email=%s nickname=%s", user.id, user.email, user.nickname)
    _deliver_verification_email(user, token_record.token)

    return AccountStatusResponse(
        message="Signup complete. Please check your email to verify your account.",
        user_id=user.id,
        email=user.email,
        nickname=user.nickname,
        status=user.status
    )


@router.get("/verify-email", response_model=AccountStatusResponse)
def verify_email(token: str = Query(..., min_length=32), db: Session = Depends(get_db)):
    record = db.query(VerificationToken).filter(VerificationToken.token == token.strip()).first()
    if not record:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invalid verification token")
    if record.used:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Verification token has already been used")
    if record.is_expired():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Verification token has expired. Please request a new verification email."
        )

    user = record.user
    if user.is_active:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Account is already active")
    if user.status != "inactive":
        logger.warning("[Verify] Verification attempted on %s account: user_id=%s", user.status, user.id)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Account cannot be verified")

    user.status = "active"
    user.email_verified_at = datetime.utcnow()
    record.used = True
    db.add(user)
    db.add(record)
    db.commit()
    db.refresh(user)

    logger.info("[Verify] Email verified: user_id=%s email=%s", user.id, user.email)

    return AccountStatusResponse(
        message="Email verified. You can now log in.",
        user_id=user.id,
        email=user.email,
        nickname=user.nickname,
        status=user.status
    )


@router.post("/resend-verification", response_model=MessageResponse)
@limiter.limit(settings.SIGNUP_RATE_LIMIT)
def resend_verification(payload: EmailRequest, request: Request, db: Session = Depends(get_db)):
    # Generic response to prevent user enumeration
    generic_msg = MessageResponse(message="If the account exists and is not verified, a new email has been sent.")

    user = db.query(User).filter(User.email == normalize_email(payload.email)).first()
    if not user or user.status != "inactive":
        return generic_msg

    db.query(VerificationToken).filter(
        VerificationToken.user_id == user.id,
        VerificationToken.used.is_(False)
    ).update({VerificationToken.used: True}, synchronize_session=False)
    token_record = create_verification_token(user, db)
    db.commit()

    logger.info("[Verify] Verification token reissued: user_id=%s", user.id)
    _deliver_verification_email(user, token_record.token)
    return generic_msg


@router.post("/check-email", response_model=EmailAvailabilityResponse)
@limiter.limit(settings.CHECK_RATE_LIMIT)
def check_email(payload: EmailRequest, request: Request, db: Session = Depends(get_db)):
    email = normalize_email(payload.email)
    if not is_valid_email(email):
        return EmailAvailabilityResponse(email=email, available=False, message="Invalid email format")

    exists = db.query(User.id).filter(User.email == email).first() is not None
    return EmailAvailabilityResponse(
        email=email,
        available=not exists,
        message="Email already in use" if exists else "Email is available"
    )


@router.post("/check-nickname", response_model=NicknameAvailabilityResponse)
@limiter.limit(settings.CHECK_RATE_LIMIT)
def check_nickname(payload: NicknameRequest, request: Request, db: Session = Depends(get_db)):
    nickname = payload.nickname.strip()
    errors = nickname_errors(nickname)
    if errors:
        return NicknameAvailabilityResponse(nickname=nickname, available=False, message=errors[0])

    exists = db.query(User.id).filter(User.nickname == nickname).first() is not None
    return NicknameAvailabilityResponse(
        nickname=nickname,
        available=not exists,
        message="Nickname already in use" if exists else "Nickname is available"
    )


@router.post("/login", response_model=LoginResponse)
def login(credentials: LoginRequest, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == normalize_email(credentials.email)).first()
    if not user or not verify_password(credentials.password, user.password):
        logger.info("[Login] Failed login: email=%s", credentials.email)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password")

    if user.status == "suspended":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is suspended")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Email verification required")

    logger.info("[Login] Successful login: user_id=%s nickname=%s", user.id, user.nickname)
    return LoginResponse(access_token=create_access_token(user.id), token_type="bearer", user=UserOut.model_validate(user))


@router.get("/me", response_model=UserOut)
def me(user: User = Depends(get_current_user)):
    return user
