"""
Post (book review) endpoints, including the like toggle.
"""
import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Set

from fastapi import APIRouter, Depends, File, Form, HTTPException, Path, Query, Request, UploadFile, status
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..auth import get_current_user, get_optional_user
from ..config import settings
from ..db import get_db
from ..models import MAX_ROW_ID, Comment, Hashtag, Like, Post, PostImage, User
from ..rate_limit import limiter
from ..schemas import (
    LikeToggleResponse,
    MessageResponse,
    Pagination,
    PostAuthor,
    PostLikerOut,
    PostListResponse,
    PostOut,
    PostUpdate,
)
from ..utils.hashtags import extract_hashtags
from ..utils.uploads import remove_files, save_images
from ..utils.validation import POST_CONTENT_MAX_LENGTH, POST_TITLE_MAX_LENGTH

router = APIRouter(prefix="/api/posts", tags=["posts"])
logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


def get_post_or_404(post_id: int, db: Session) -> Post:
    post = db.query(Post).filter(Post.id == post_id).first()
    if not post:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Post not found")
    return post


def _require_owner(post: Post, user: User, action: str) -> None:
    if post.user_id != user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=f"You can only {action} your own posts")


def resolve_hashtags(names: Iterable[str], db: Session) -> List[Hashtag]:
    """Return Hashtag rows for the given names, creating the missing ones."""
    names = list(names)
    if not names:
        return []
    existing = {tag.name: tag for tag in db.query(Hashtag).filter(Hashtag.name.in_(names)).all()}
    tags = []
    for name in names:
        tag = existing.get(name)
        if tag is None:
            tag = Hashtag(name=name)
            db.add(tag)
            existing[name] = tag
        tags.append(tag)
    return tags


def _like_counts(post_ids: List[int], db: Session) -> Dict[int, int]:
    if not post_ids:
        return {}
    rows = (
        db.query(Like.post_id, func.count(Like.id))
        .filter(Like.post_id.in_(post_ids))
        .group_by(Like.post_id)
        .all()
    )
    return dict(rows)


def _comment_counts(post_ids: List[int], db: Session) -> Dict[int, int]:
    if not post_ids:
        return {}
    rows = (
        db.query(Comment.post_id, func.count(Comment.id))
        .filter(Comment.post_id.in_(post_ids))
        .group_by(Comment.post_id)
        .all()
    )
    return dict(rows)


def _liked_post_ids(user: Optional[User], post_ids: List[int], db: Session) -> Set[int]:
    if user is None or not post_ids:
        return set()
    rows = db.query(Like.post_id).filter(Like.user_id == user.id, Like.post_id.in_(post_ids)).all()
    return {row[0] for row in rows}


def serialize_post(post: Post, like_count: int = 0, comment_count: int = 0, is_liked: bool = False) -> PostOut:
    return PostOut(
        id=post.id,
        user_id=post.user_id,
        title=post.title,
        content=post.content,
        rating=post.rating,
        book_isbn=post.book_isbn,
        book_title=post.book_title,
        book_author=post.book_author,
        book_cover_url=post.book_cover_url,
        images=[image.url for image in post.images],
        hashtags=[tag.name for tag in post.hashtags],
        author=PostAuthor(
            id=post.author.id,
            nickname=post.author.nickname,
            profile_picture=post.author.profile_picture
        ),
        like_count=like_count,
        comment_count=comment_count,
        is_liked=is_liked,
        created_at=post.created_at,
        updated_at=post.updated_at
    )


def serialize_posts(posts: List[Post], viewer: Optional[User], db: Session) -> List[PostOut]:
    post_ids = [post.id for post in posts]
    like_counts = _like_counts(post_ids, db)
    comment_counts = _comment_counts(post_ids, db)
    liked = _liked_post_ids(viewer, post_ids, db)
    return [
        serialize_post(
            post,
            like_count=like_counts.get(post.id, 0),
            comment_count=comment_counts.get(post.id, 0),
            is_liked=post.id in liked
        )
        for post in posts
    ]


def toggle_like(user_id: int, post_id: int, db: Session) -> LikeToggleResponse:
    """
    Flip the (user, post) like inside one transaction and return the new like count.

    Raises:
        HTTPException: 409 if a concurrent toggle for the same pair won the unique constraint
    """
    try:
        existing = db.query(Like).filter(Like.user_id == user_id, Like.post_id == post_id).first()
        if existing:
            db.delete(existing)
            action = "unliked"
        else:
            db.add(Like(user_id=user_id, post_id=post_id))
            action = "liked"
        db.flush()

        like_count = db.query(func.count(Like.id)).filter(Like.post_id == post_id).scalar()
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.warning("[Like] Concurrent toggle conflict: user_id=%s post_id=%s", user_id, post_id)
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Like state changed concurrently, please retry"
        ) from e
    except SQLAlchemyError:
        db.rollback()
        raise

    return LikeToggleResponse(action=action, like_count=like_count, is_liked=action == "liked")


@router.get("", response_model=PostListResponse)
@limiter.limit(settings.POSTS_RATE_LIMIT)
def list_posts(
    request: Request,
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    hashtag: Optional[str] = Query(None, min_length=1, max_length=31),
    viewer: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db)
):
    query = db.query(Post)
    if hashtag:
        query = query.join(Post.hashtags).filter(Hashtag.name == hashtag.lstrip("#"))

    total = query.count()
    posts = query.order_by(Post.created_at.desc(), Post.id.desc()).offset(offset).limit(limit).all()

    return PostListResponse(
        posts=serialize_posts(posts, viewer, db),
        pagination=Pagination(limit=limit, offset=offset, count=len(posts), total=total)
    )


@router.get("/{post_id}", response_model=PostOut)
@limiter.limit(settings.POSTS_RATE_LIMIT)
def get_post(
    request: Request,
    post_id: int = Path(..., ge=1, le=MAX_ROW_ID),
    viewer: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db)
):
    post = get_post_or_404(post_id, db)
    return serialize_posts([post], viewer, db)[0]


@router.post("", response_model=PostOut, status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.POSTS_RATE_LIMIT)
def create_post(
    request: Request,
    title: str = Form(..., max_length=POST_TITLE_MAX_LENGTH),
    content: str = Form(..., max_length=POST_CONTENT_MAX_LENGTH),
    rating: Optional[int] = Form(None, ge=1, le=5),
    book_isbn: Optional[str] = Form(None, max_length=20),
    book_title: Optional[str] = Form(None, max_length=255),
    book_author: Optional[str] = Form(None, max_length=255),
    book_cover_url: Optional[str] = Form(None, max_length=500),
    images: Optional[List[UploadFile]] = File(None),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    title = title.strip()
    content = content.strip()
    if not title or not content:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Title and content are required")

    saved = save_images(images or [])

    try:
        post = Post(
            user_id=user.id,
            title=title,
            content=content,
            rating=rating,
            book_isbn=book_isbn,
            book_title=book_title,
            book_author=book_author,
            book_cover_url=book_cover_url
        )
        post.images = [
            PostImage(url=url, file_path=file_path, position=position)
            for position, (url, file_path) in enumerate(saved)
        ]
        post.hashtags = resolve_hashtags(extract_hashtags(content), db)
        db.add(post)
        db.commit()
        db.refresh(post)
    except SQLAlchemyError as e:
        db.rollback()
        remove_files([file_path for _, file_path in saved])
        logger.error("[Post] Create failed: user_id=%s error=%s", user.id, e, exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create post"
        ) from e

    logger.info(
        "[Post] Created: post_id=%s user_id=%s images=%s hashtags=%s",
        post.id, user.id, len(saved), len(post.hashtags)
    )
    return serialize_post(post)


@router.put("/{post_id}", response_model=PostOut)
@limiter.limit(settings.POSTS_RATE_LIMIT)
def update_post(
    payload: PostUpdate,
    request: Request,
    post_id: int = Path(..., ge=1, le=MAX_ROW_ID),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    post = get_post_or_404(post_id, db)
    _require_owner(post, user, "edit")

    changes = payload.model_dump(exclude_unset=True)
    for field in ("title", "content"):
        value = changes.pop(field, None)
        if value is None:
            continue
        value = value.strip()
        if not value:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"{field.capitalize()} cannot be empty")
        setattr(post, field, value)
        if field == "content":
            post.hashtags = resolve_hashtags(extract_hashtags(value), db)

    for field, value in changes.items():
        setattr(post, field, value)

    post.updated_at = datetime.utcnow()
    try:
        db.add(post)
        db.commit()
        db.refresh(post)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("[Post] Update failed: post_id=%s user_id=%s error=%s", post_id, user.id, e, exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update post"
        ) from e

    logger.info("[Post] Updated: post_id=%s user_id=%s", post.id, user.id)
    return serialize_posts([post], user, db)[0]


@router.delete("/{post_id}", response_model=MessageResponse)
@limiter.limit(settings.POSTS_RATE_LIMIT)
def delete_post(
    request: Request,
    post_id: int = Path(..., ge=1, le=MAX_ROW_ID),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    post = get_post_or_404(post_id, db)
    _require_owner(post, user, "delete")

    file_paths = [image.file_path for image in post.images]
    db.delete(post)
    db.commit()
    remove_files(file_paths)

    logger.info("[Post] Deleted: post_id=%s user_id=%s", post_id, user.id)
    return MessageResponse(message="Post deleted")


@router.post("/{post_id}/toggle-like", response_model=LikeToggleResponse)
@limiter.limit(settings.POSTS_RATE_LIMIT)
def toggle_post_like(
    request: Request,
    post_id: int = Path(..., ge=1, le=MAX_ROW_ID),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    get_post_or_404(post_id, db)
    result = toggle_like(user.id, post_id, db)
    logger.info(
        "[Like] %s: post_id=%s user_id=%s like_count=%s",
        result.action, post_id, user.id, result.like_count
    )
    return result


@router.get("/{post_id}/likes", response_model=List[PostLikerOut])
def list_post_likes(post_id: int = Path(..., ge=1, le=MAX_ROW_ID), db: Session = Depends(get_db)):
    get_post_or_404(post_id, db)
    rows = (
        db.query(Like, User.nickname)
        .join(User, Like.user_id == User.id)
        .filter(Like.post_id == post_id)
        .order_by(Like.created_at.desc(), Like.id.desc())
        .all()
    )
    return [PostLikerOut(user_id=like.user_id, nickname=nickname, created_at=like.created_at) for like, nickname in rows]
