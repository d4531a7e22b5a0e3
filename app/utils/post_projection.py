# app/utils/post_projection.py
import math
from typing import Optional

from sqlalchemy import Select, select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.moderation_model import FeaturedPost
from app.models.post_model import Post, Comment
from app.models.user_model import User
from app.schemas.post_schemas import PostOut, CommentOut

ANONYMOUS = "Anonymous"

SORT_COLUMNS = {
    "likes": Post.likes_count,
    "comments": Post.comments_count,
}


def _author_bits(is_anonymous: bool, user_id, username, avatar_url, reveal: bool):
    if is_anonymous and not reveal:
        return None, ANONYMOUS, None
    return user_id, username or "", avatar_url


def post_to_out(
    p: Post,
    username: Optional[str],
    avatar_url: Optional[str],
    reveal: bool = False,
) -> PostOut:
    """Public projection; ``reveal`` is for the owner's own listing."""
    user_id, author, avatar = _author_bits(p.is_anonymous, p.user_id, username, avatar_url, reveal)
    return PostOut(
        id=p.id,
        title=p.title,
        content=p.content,
        category=p.category,
        is_anonymous=bool(p.is_anonymous),
        likes_count=int(p.likes_count or 0),
        comments_count=int(p.comments_count or 0),
        created_at=p.created_at,
        user_id=user_id,
        author=author,
        author_avatar=avatar,
    )


def comment_to_out(c: Comment, username: Optional[str], avatar_url: Optional[str]) -> CommentOut:
    user_id, author, avatar = _author_bits(c.is_anonymous, c.user_id, username, avatar_url, False)
    return CommentOut(
        id=c.id,
        post_id=c.post_id,
        content=c.content,
        is_anonymous=bool(c.is_anonymous),
        created_at=c.created_at,
        user_id=user_id,
        author=author,
        author_avatar=avatar,
    )


def posts_with_authors() -> Select:
    return select(Post, User.username, User.avatar_url).outerjoin(User, User.id == Post.user_id)


def apply_post_sort(stmt: Select, sort_by: Optional[str]) -> Select:
    """likes/comments sort by counter first; everything else is recency."""
    column = SORT_COLUMNS.get((sort_by or "").strip().lower())
    if column is not None:
        stmt = stmt.order_by(column.desc())
    return stmt.order_by(Post.created_at.desc(), Post.id.desc())


async def count_rows(db: AsyncSession, stmt: Select) -> int:
    total_stmt = select(func.count()).select_from(stmt.order_by(None).subquery())
    return int((await db.execute(total_stmt)).scalar_one() or 0)


def total_pages(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit else 0


async def is_featured(db: AsyncSession, post_id: int) -> bool:
    stmt = select(FeaturedPost.id).where(FeaturedPost.post_id == post_id)
    return (await db.execute(stmt)).first() is not None
