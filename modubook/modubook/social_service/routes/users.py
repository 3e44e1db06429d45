from typing import List

from fastapi import APIRouter, Depends, HTTPException, Path, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..db import get_db
from ..models import MAX_ROW_ID, Like, Post, User
from ..schemas import LikedPostOut, UserProfile

router = APIRouter(prefix="/api/users", tags=["users"])


@router.get("/me/likes", response_model=List[LikedPostOut])
def list_my_likes(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    rows = (
        db.query(Like.post_id, Post.title, Like.created_at)
        .join(Post, Like.post_id == Post.id)
        .filter(Like.user_id == user.id)
        .order_by(Like.created_at.desc(), Like.id.desc())
        .all()
    )
    return [LikedPostOut(post_id=post_id, title=title, liked_at=liked_at) for post_id, title, liked_at in rows]


@router.get("/{user_id}", response_model=UserProfile)
def get_user_profile(user_id: int = Path(..., ge=1, le=MAX_ROW_ID), db: Session = Depends(get_db)):
    user = db.query(User).filter(User.id == user_id).first()
    if not user or not user.is_active:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    post_count = db.query(func.count(Post.id)).filter(Post.user_id == user.id).scalar()
    return UserProfile(
        id=user.id,
        nickname=user.nickname,
        profile_picture=user.profile_picture,
        created_at=user.created_at,
        post_count=post_count
    )
