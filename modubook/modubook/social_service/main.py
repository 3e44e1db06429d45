"""
Modubook social service - book review posts, comments and likes
"""
from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from .auth import purge_expired_tokens
from .config import settings
from .db import SessionLocal, init_db
from .rate_limit import limiter
from .routes import auth, books, comments, health, posts, users
from .utils.logging_config import configure_logging
from .utils.uploads import UPLOAD_URL_PREFIX, ensure_upload_dir

configure_logging()
logger = logging.getLogger(__name__)

SERVICE_NAME = "Modubook API"
SERVICE_VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """Initialize database and drop stale verification tokens on startup"""
    init_db()
    db = SessionLocal()
    try:
        purge_expired_tokens(db)
    finally:
        db.close()
    logger.info("%s started: environment=%s", SERVICE_NAME, settings.ENVIRONMENT)
    yield


app = FastAPI(
    title=SERVICE_NAME,
    description="Book review posts, comments and likes",
    version=SERVICE_VERSION,
    lifespan=lifespan
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router)
app.include_router(auth.router)
app.include_router(users.router)
app.include_router(posts.router)
app.include_router(comments.router)
app.include_router(books.router)

app.mount(UPLOAD_URL_PREFIX, StaticFiles(directory=ensure_upload_dir()), name="uploads")


@app.get("/")
def root():
    """Root endpoint"""
    return {
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "endpoints": {
            "health": "GET /api/health",
            "signup": "POST /api/auth/signup",
            "verify_email": "GET /api/auth/verify-email?token=...",
            "login": "POST /api/auth/login",
            "posts": "GET /api/posts",
            "comments": "GET /api/posts/{post_id}/comments",
            "books": "GET /api/books/search?query=...",
        }
    }
