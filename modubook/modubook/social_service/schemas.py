from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from typing import List, Literal, Optional

from .models import MAX_ROW_ID
from .utils.validation import (
    COMMENT_MAX_LENGTH,
    POST_CONTENT_MAX_LENGTH,
    POST_TITLE_MAX_LENGTH,
    is_valid_email,
    nickname_errors,
    normalize_email,
    password_errors,
)


def _validated_email(v: str) -> str:
    v = normalize_email(v)
    if not is_valid_email(v):
        raise ValueError("Invalid email format")
    return v


def _validated_comment_content(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("Comment content is required")
    if len(v) > COMMENT_MAX_LENGTH:
        raise ValueError(f"Comment cannot exceed {COMMENT_MAX_LENGTH} characters")
    return v


# Accounts
class SignupRequest(BaseModel):
    email: str
    password: str
    nickname: str

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return _validated_email(v)

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        errors = password_errors(v)
        if errors:
            raise ValueError("; ".join(errors))
        return v

    @field_validator("nickname")
    @classmethod
    def validate_nickname(cls, v: str) -> str:
        v = v.strip()
        errors = nickname_errors(v)
        if errors:
            raise ValueError("; ".join(errors))
        return v


class LoginRequest(BaseModel):
    email: str
    password: str


class EmailRequest(BaseModel):
    email: str


class NicknameRequest(BaseModel):
    nickname: str


class UserOut(BaseModel):
    id: int
    email: str
    nickname: str
    status: str

    class Config:
        from_attributes = True


class AccountStatusResponse(BaseModel):
    message: str
    user_id: int
    email: str
    nickname: str
    status: str


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserOut


class EmailAvailabilityResponse(BaseModel):
    email: str
    available: bool
    message: str


class NicknameAvailabilityResponse(BaseModel):
    nickname: str
    available: bool
    message: str


class MessageResponse(BaseModel):
    message: str


class UserProfile(BaseModel):
    id: int
    nickname: str
    profile_picture: Optional[str] = None
    created_at: datetime
    post_count: int


# Posts
class PostAuthor(BaseModel):
    id: int
    nickname: str
    profile_picture: Optional[str] = None


class PostOut(BaseModel):
    id: int
    user_id: int
    title: str
    content: str
    rating: Optional[int] = None
    book_isbn: Optional[str] = None
    book_title: Optional[str] = None
    book_author: Optional[str] = None
    book_cover_url: Optional[str] = None
    images: List[str] = Field(default_factory=list)
    hashtags: List[str] = Field(default_factory=list)
    author: PostAuthor
    like_count: int = 0
    comment_count: int = 0
    is_liked: bool = False
    created_at: datetime
    updated_at: datetime


class Pagination(BaseModel):
    limit: int
    offset: int
    count: int
    total: int


class PostListResponse(BaseModel):
    posts: List[PostOut]
    pagination: Pagination


class PostUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=POST_TITLE_MAX_LENGTH)
    content: Optional[str] = Field(None, min_length=1, max_length=POST_CONTENT_MAX_LENGTH)
    rating: Optional[int] = Field(None, ge=1, le=5)
    book_isbn: Optional[str] = Field(None, max_length=20)
    book_title: Optional[str] = Field(None, max_length=255)
    book_author: Optional[str] = Field(None, max_length=255)
    book_cover_url: Optional[str] = Field(None, max_length=500)


class LikeToggleResponse(BaseModel):
    action: Literal["liked", "unliked"]
    like_count: int
    is_liked: bool


class PostLikerOut(BaseModel):
    user_id: int
    nickname: str
    created_at: datetime


class LikedPostOut(BaseModel):
    post_id: int
    title: str
    liked_at: datetime


# Comments
class CommentCreate(BaseModel):
    content: str
    parent_comment_id: Optional[int] = Field(None, gt=0, le=MAX_ROW_ID)

    @field_validator("content")
    @classmethod
    def validate_content(cls, v: str) -> str:
        return _validated_comment_content(v)


class CommentUpdate(BaseModel):
    content: str

    @field_validator("content")
    @classmethod
    def validate_content(cls, v: str) -> str:
        return _validated_comment_content(v)


class CommentOut(BaseModel):
    id: int
    post_id: int
    user_id: int
    parent_comment_id: Optional[int] = None
    content: str
    nickname: str
    profile_picture: Optional[str] = None
    parent_author_nickname: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class CommentThread(CommentOut):
    replies: List[CommentOut] = Field(default_factory=list)


class CommentListResponse(BaseModel):
    comments: List[CommentThread]
    total: int


# Books
class BookOut(BaseModel):
    isbn: Optional[str] = None
    title: Optional[str] = None
    author: Optional[str] = None
    publisher: Optional[str] = None
    cover_image_url: Optional[str] = None
    description: Optional[str] = None
    pub_date: Optional[str] = None
    link: Optional[str] = None


class BookSearchResponse(BaseModel):
    books: List[BookOut]
    total_results: int
