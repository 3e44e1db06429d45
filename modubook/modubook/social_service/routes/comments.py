"""
Comment endpoints. Replies are limited to a single level: a reply's parent must be a top-level comment.
"""
import logging
from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Path, status
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..db import get_db
from ..models import MAX_ROW_ID, Comment, User
from ..schemas import (
    CommentCreate,
    CommentListResponse,
    CommentOut,
    CommentThread,
    CommentUpdate,
    MessageResponse,
)
from .posts import get_post_or_404

router = APIRouter(prefix="/api", tags=["comments"])
logger = logging.getLogger(__name__)


def serialize_comment(comment: Comment) -> CommentOut:
    return CommentOut(
        id=comment.id,
        post_id=comment.post_id,
        user_id=comment.user_id,
        parent_comment_id=comment.parent_comment_id,
        content=comment.content,
        nickname=comment.author.nickname,
        profile_picture=comment.author.profile_picture,
        parent_author_nickname=comment.parent.author.nickname if comment.parent is not None else None,
        created_at=comment.created_at,
        updated_at=comment.updated_at
    )


def build_comment_threads(comments: List[Comment]) -> List[CommentThread]:
    """
    Group a post's comments into top-level threads, oldest first, each carrying its replies oldest first.

    Args:
        comments: Every comment of one post, in any order

    Returns:
        List of CommentThread for the top-level comments
    """
    ordered = sorted(comments, key=lambda c: (c.created_at, c.id))
    threads = {}
    for comment in ordered:
        if comment.parent_comment_id is None:
            threads[comment.id] = CommentThread(**serialize_comment(comment).model_dump(), replies=[])
    for comment in ordered:
        if comment.parent_comment_id is not None and comment.parent_comment_id in threads:
            threads[comment.parent_comment_id].replies.append(serialize_comment(comment))
    return list(threads.values())


def get_comment_or_404(comment_id: int, db: Session) -> Comment:
    comment = db.query(Comment).filter(Comment.id == comment_id).first()
    if not comment:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Comment not found")
    return comment


@router.post("/posts/{post_id}/comments", response_model=CommentOut, status_code=status.HTTP_201_CREATED)
def create_comment(
    payload: CommentCreate,
    post_id: int = Path(..., ge=1, le=MAX_ROW_ID),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    get_post_or_404(post_id, db)

    if payload.parent_comment_id is not None:
        parent = db.query(Comment).filter(Comment.id == payload.parent_comment_id).first()
        if not parent:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Parent comment not found")
        if parent.post_id != post_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Parent comment belongs to a different post"
            )
        if parent.parent_comment_id is not None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot reply to a reply")

    comment = Comment(
        post_id=post_id,
        user_id=user.id,
        parent_comment_id=payload.parent_comment_id,
        content=payload.content
    )
    db.add(comment)
    db.commit()
    db.refresh(comment)

    logger.info(
        "[Comment] Created: comment_id=%s post_id=%s user_id=%s parent_id=%s",
        comment.id, post_id, user.id, comment.parent_comment_id
    )
    return serialize_comment(comment)


@router.get("/posts/{post_id}/comments", response_model=CommentListResponse)
def list_comments(post_id: int = Path(..., ge=1, le=MAX_ROW_ID), db: Session = Depends(get_db)):
    get_post_or_404(post_id, db)

    comments = (
        db.query(Comment)
        .filter(Comment.post_id == post_id)
        .all()
    )
    threads = build_comment_threads(comments)
    total = len(threads) + sum(len(thread.replies) for thread in threads)
    return CommentListResponse(comments=threads, total=total)


@router.patch("/comments/{comment_id}", response_model=CommentOut)
def update_comment(
    payload: CommentUpdate,
    comment_id: int = Path(..., ge=1, le=MAX_ROW_ID),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    comment = get_comment_or_404(comment_id, db)
    if comment.user_id != user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You can only edit your own comments")

    comment.content = payload.content
    comment.updated_at = datetime.utcnow()
    db.add(comment)
    db.commit()
    db.refresh(comment)

    logger.info("[Comment] Updated: comment_id=%s user_id=%s", comment.id, user.id)
    return serialize_comment(comment)


@router.delete("/comments/{comment_id}", response_model=MessageResponse)
def delete_comment(
    comment_id: int = Path(..., ge=1, le=MAX_ROW_ID),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    comment = get_comment_or_404(comment_id, db)
    if comment.user_id != user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You can only delete your own comments")

    reply_count = len(comment.replies)
    db.delete(comment)
    db.commit()

    logger.info("[Comment] Deleted: comment_id=%s user_id=%s replies_removed=%s", comment_id, user.id, reply_count)
    return MessageResponse(message="Comment deleted")
