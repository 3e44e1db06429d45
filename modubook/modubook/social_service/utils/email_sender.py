"""
Verification email delivery.

When SMTP_HOST is not configured (local/dev), the verification link is written
to the log instead of being mailed.
"""
import logging
import smtplib
from email.message import EmailMessage
from urllib.parse import urlencode

from ..config import settings

logger = logging.getLogger(__name__)


def build_verification_url(token: str) -> str:
    return f"{settings.FRONTEND_URL.rstrip('/')}/verify-email?{urlencode({'token': token})}"


def build_verification_message(email: str, token: str, nickname: str) -> EmailMessage:
    verification_url = build_verification_url(token)

    message = EmailMessage()
    message["Subject"] = f"Verify your email - {settings.SMTP_FROM_NAME}"
    message["From"] = f"{settings.SMTP_FROM_NAME} <{settings.SMTP_FROM}>"
    message["To"] = email
    message.set_content(
        f"Hello {nickname},\n\n"
        f"Thanks for signing up. Open the link below to verify your email address:\n"
        f"{verification_url}\n\n"
        f"This link is valid for {settings.VERIFICATION_TOKEN_EXPIRE_HOURS} hours.\n"
        f"If you did not sign up, you can ignore this email.\n"
    )
    message.add_alternative(
        f"<p>Hello {nickname},</p>"
        f"<p>Thanks for signing up. Click the button below to verify your email address.</p>"
        f'<p><a href="{verification_url}">Verify email</a></p>'
        f"<p>If the button does not work, paste this link into your browser:<br>{verification_url}</p>"
        f"<p>This link is valid for {settings.VERIFICATION_TOKEN_EXPIRE_HOURS} hours.</p>",
        subtype="html",
    )
    return message


def send_verification_email(email: str, token: str, nickname: str) -> None:
    """
    Send the account verification email.

    Raises:
        smtplib.SMTPException / OSError: if the SMTP server rejects or is unreachable
    """
    if not settings.SMTP_HOST:
        logger.info(
            "[DEV] Verification link for %s: %s (expires in %sh)",
            email, build_verification_url(token), settings.VERIFICATION_TOKEN_EXPIRE_HOURS
        )
        return

    message = build_verification_message(email, token, nickname)
    with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=10) as smtp:
        if settings.SMTP_USE_TLS:
            smtp.starttls()
        if settings.SMTP_USER:
            smtp.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
        smtp.send_message(message)

    logger.info("[Email] Verification email sent: to=%s", email)
