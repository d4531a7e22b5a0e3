# app/routes/user_routes.py
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_async_session
from app.errors import ConflictError, Forbidden, NotFoundError, ValidationError
from app.models.post_model import Post, Comment
from app.models.user_model import User
from app.schemas.post_schemas import PostOut
from app.schemas.user_schemas import ProfileOut, ProfileUpdateIn
from app.utils.post_projection import post_to_out
from app.utils.token_utils import CurrentUser, get_current_user, get_current_user_optional

router = APIRouter(prefix="/api/users", tags=["users"])


async def _profile_out(db: AsyncSession, user_id: int) -> ProfileOut:
    post_count = (
        select(func.count(Post.id)).where(Post.user_id == User.id).correlate(User).scalar_subquery()
    )
    total_likes = (
        select(func.coalesce(func.sum(Post.likes_count), 0))
        .where(Post.user_id == User.id)
        .correlate(User)
        .scalar_subquery()
    )
    total_comments = (
        select(func.count(Comment.id)).where(Comment.user_id == User.id).correlate(User).scalar_subquery()
    )

    row = (
        await db.execute(
            select(User, post_count, total_likes, total_comments).where(User.id == user_id)
        )
    ).first()
    if not row:
        raise NotFoundError("User not found")

    u, posts, likes, comments = row
    return ProfileOut(
        id=u.id,
        username=u.username,
        email=u.email,
        bio=u.bio,
        avatar_url=u.avatar_url,
        created_at=u.created_at,
        post_count=int(posts or 0),
        total_likes=int(likes or 0),
        total_comments=int(comments or 0),
    )


@router.get("/{user_id}", response_model=ProfileOut)
async def get_profile(user_id: int, db: AsyncSession = Depends(get_async_session)):
    return await _profile_out(db, user_id)


@router.get("/{user_id}/posts", response_model=List[PostOut])
async def list_user_posts(
    user_id: int,
    db: AsyncSession = Depends(get_async_session),
    viewer: Optional[CurrentUser] = Depends(get_current_user_optional),
):
    owner = await db.get(User, user_id)
    if not owner:
        raise NotFoundError("User not found")

    is_owner = viewer is not None and viewer.id == user_id

    stmt = select(Post).where(Post.user_id == user_id)
    if not is_owner:
        # anonymous posts are only listed for their owner
        stmt = stmt.where(Post.is_anonymous.is_(False))
    stmt = stmt.order_by(Post.created_at.desc(), Post.id.desc())

    rows = (await db.execute(stmt)).scalars().all()
    return [post_to_out(p, owner.username, owner.avatar_url, reveal=is_owner) for p in rows]


@router.put("/{user_id}", response_model=ProfileOut)
async def update_profile(
    user_id: int,
    payload: ProfileUpdateIn,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
):
    if user.id != user_id:
        raise Forbidden("You can only edit your own profile")

    db_user = await db.get(User, user_id)
    if not db_user:
        raise NotFoundError("User not found")

    if payload.username is not None:
        username = payload.username.strip()
        if not username:
            raise ValidationError("Username cannot be empty")
        if username != db_user.username:
            taken = (
                await db.execute(select(User.id).where(User.username == username, User.id != user_id))
            ).first()
            if taken:
                raise ConflictError("Username already taken")
            db_user.username = username

    if payload.bio is not None:
        db_user.bio = payload.bio
    if payload.avatar_url is not None:
        db_user.avatar_url = payload.avatar_url.strip() or None

    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Username already taken")

    return await _profile_out(db, user_id)
