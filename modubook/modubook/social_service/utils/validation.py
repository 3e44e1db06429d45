"""
Input rules for account fields, shared by request schemas and availability checks.
"""
import re
from typing import List

EMAIL_MAX_LENGTH = 254
PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 20
PASSWORD_SPECIAL_CHARS = "!@#$%^&*"
NICKNAME_MIN_LENGTH = 2
NICKNAME_MAX_LENGTH = 10
POST_TITLE_MAX_LENGTH = 255
POST_CONTENT_MAX_LENGTH = 2000
COMMENT_MAX_LENGTH = 500

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_NICKNAME_RE = re.compile(r"^[가-힣a-zA-Z0-9]+$")


def normalize_email(email: str) -> str:
    return email.strip().lower()


def is_valid_email(email: str) -> bool:
    if not email or not isinstance(email, str):
        return False
    return bool(_EMAIL_RE.match(email)) and len(email) <= EMAIL_MAX_LENGTH


def password_errors(password: str) -> List[str]:
    """
    Collect every password policy violation.

    Args:
        password: Plain text password

    Returns:
        List of human-readable errors, empty when the password is acceptable
    """
    if not password or not isinstance(password, str):
        return ["Password is required"]

    errors = []
    if len(password) < PASSWORD_MIN_LENGTH:
        errors.append(f"Password must be at least {PASSWORD_MIN_LENGTH} characters")
    if len(password) > PASSWORD_MAX_LENGTH:
        errors.append(f"Password must be at most {PASSWORD_MAX_LENGTH} characters")
    if not re.search(r"[a-zA-Z]", password):
        errors.append("Password must contain at least one letter")
    if not re.search(r"[0-9]", password):
        errors.append("Password must contain at least one digit")
    if not any(ch in PASSWORD_SPECIAL_CHARS for ch in password):
        errors.append(f"Password must contain at least one special character ({PASSWORD_SPECIAL_CHARS})")
    return errors


def nickname_errors(nickname: str) -> List[str]:
    if not nickname or not isinstance(nickname, str):
        return ["Nickname is required"]

    errors = []
    if len(nickname) < NICKNAME_MIN_LENGTH:
        errors.append(f"Nickname must be at least {NICKNAME_MIN_LENGTH} characters")
    if len(nickname) > NICKNAME_MAX_LENGTH:
        errors.append(f"Nickname must be at most {NICKNAME_MAX_LENGTH} characters")
    if not _NICKNAME_RE.match(nickname):
        errors.append("Nickname may only contain Korean, English letters and digits")
    return errors
