from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_async_session
from app.models.moderation_model import FeaturedPost
from app.models.post_model import Post
from app.models.user_model import User
from app.schemas.post_schemas import FeaturedPostOut, FeaturedPageOut
from app.utils.post_projection import post_to_out, count_rows, total_pages

router = APIRouter(prefix="/api/useful-posts", tags=["useful-posts"])

SORTS = {
    "likes": (Post.likes_count.desc(), FeaturedPost.approved_at.desc()),
    "comments": (Post.comments_count.desc(), FeaturedPost.approved_at.desc()),
    "created_at": (Post.created_at.desc(),),
}


@router.get("", response_model=FeaturedPageOut)
async def list_useful_posts(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    sort_by: str = Query("approved_at", alias="sortBy"),
    db: AsyncSession = Depends(get_async_session),
):
    stmt = (
        select(Post, User.username, User.avatar_url, FeaturedPost.approved_at)
        .join(FeaturedPost, FeaturedPost.post_id == Post.id)
        .outerjoin(User, User.id == Post.user_id)
    )
    total = await count_rows(db, stmt)

    order = SORTS.get(sort_by, (FeaturedPost.approved_at.desc(),))
    stmt = stmt.order_by(*order, Post.id.desc()).offset((page - 1) * limit).limit(limit)
    rows = (await db.execute(stmt)).all()

    posts = [
        FeaturedPostOut(**post_to_out(p, username, avatar).model_dump(), approved_at=approved_at)
        for (p, username, avatar, approved_at) in rows
    ]
    return FeaturedPageOut(posts=posts, total=total, page=page, total_pages=total_pages(total, limit))
