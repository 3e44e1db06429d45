"""
Pytest configuration for the social service tests.

Points the database, uploads and logs at a temporary directory before the
application is imported, and turns rate limiting off by default.
"""
import os
import tempfile
import uuid

import pytest

_TEST_ROOT = tempfile.mkdtemp(prefix="modubook_tests_")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TEST_ROOT, 'test.db')}"
os.environ["UPLOAD_DIR"] = os.path.join(_TEST_ROOT, "uploads")
os.environ["LOG_DIR"] = os.path.join(_TEST_ROOT, "logs")
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["SMTP_HOST"] = ""

from fastapi.testclient import TestClient  # noqa: E402

from modubook.modubook.social_service.main import app  # noqa: E402
from modubook.modubook.social_service.db import Base, engine, SessionLocal  # noqa: E402
from modubook.modubook.social_service.models import User  # noqa: E402
from modubook.modubook.social_service.auth import hash_password, create_access_token  # noqa: E402

DEFAULT_PASSWORD = "Secret12!"


@pytest.fixture(scope="session")
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture(autouse=True)
def reset_database():
    # Drop all tables and recreate them before each test
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)


def ensure_user(nickname=None, email=None, password=DEFAULT_PASSWORD, status="active"):
    """Insert a user directly and return stable scalar values to avoid DetachedInstance."""
    unique = uuid.uuid4().hex[:6]
    nickname = nickname or f"user{unique}"
    email = email or f"{nickname.lower()}@example.com"
    db = SessionLocal()
    try:
        user = User(email=email, password=hash_password(password), nickname=nickname, status=status)
        db.add(user)
        db.commit()
        db.refresh(user)
        return {"id": user.id, "email": email, "nickname": nickname, "password": password}
    finally:
        db.close()


def auth_header_for(user_id: int):
    token = create_access_token(user_id)
    return {"Authorization": f"Bearer {token}"}
