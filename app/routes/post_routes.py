import logging
from typing import Optional, List

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy import select, update, exists, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_async_session
from app.errors import ConflictError, Forbidden, NotFoundError, ValidationError
from app.limiter import limiter
from app.models.moderation_model import TransferRequest, TransferStatus
from app.models.post_model import Post, Comment, Like
from app.models.user_model import User
from app.schemas.moderation_schemas import TransferRequestOut, TransferRequestCreatedOut
from app.schemas.user_schemas import MessageOut
from app.schemas.post_schemas import (
    CreatePostIn,
    UpdatePostIn,
    CreateCommentIn,
    PostOut,
    PostPageOut,
    PostMutationOut,
    LikeToggleOut,
    CommentOut,
    CommentCreatedOut,
)
from app.utils.post_projection import (
    post_to_out,
    comment_to_out,
    posts_with_authors,
    apply_post_sort,
    count_rows,
    total_pages,
    is_featured,
)
from app.utils.token_utils import CurrentUser, get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/posts", tags=["posts"])


# ------------------------------
# helpers
# ------------------------------
def _clean(value: Optional[str]) -> str:
    return (value or "").strip()


async def _get_post_or_404(db: AsyncSession, post_id: int) -> Post:
    post = await db.get(Post, post_id)
    if not post:
        raise NotFoundError("Post not found")
    return post


async def _find_like(db: AsyncSession, post_id: int, user_id: int) -> Optional[Like]:
    stmt = select(Like).where(Like.post_id == post_id, Like.user_id == user_id).limit(1)
    return (await db.execute(stmt)).scalars().first()


async def _post_out(db: AsyncSession, post: Post) -> PostOut:
    author = await db.get(User, post.user_id)
    return post_to_out(
        post,
        getattr(author, "username", None),
        getattr(author, "avatar_url", None),
    )


async def _page_of_posts(db: AsyncSession, stmt, page: int, limit: int, sort_by: Optional[str]) -> PostPageOut:
    total = await count_rows(db, stmt)
    stmt = apply_post_sort(stmt, sort_by).offset((page - 1) * limit).limit(limit)
    rows = (await db.execute(stmt)).all()
    return PostPageOut(
        posts=[post_to_out(p, username, avatar) for (p, username, avatar) in rows],
        total=total,
        page=page,
        total_pages=total_pages(total, limit),
    )


# ------------------------------
# Routes
# ------------------------------
@router.post("", response_model=PostMutationOut, status_code=status.HTTP_201_CREATED)
@limiter.limit("5/minute;60/day")
async def create_post(
    request: Request,
    payload: CreatePostIn,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
):
    title, content, category = _clean(payload.title), _clean(payload.content), _clean(payload.category)
    if not title or not content or not category:
        raise ValidationError("Title, content, and category are required")

    post = Post(
        user_id=user.id,
        title=title,
        content=content,
        category=category,
        is_anonymous=bool(payload.is_anonymous),
        likes_count=0,
        comments_count=0,
    )
    db.add(post)
    await db.commit()
    await db.refresh(post)

    return PostMutationOut(message="Post created successfully", post=await _post_out(db, post))


@router.get("", response_model=PostPageOut)
async def list_posts(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    sort_by: str = Query("created_at", alias="sortBy"),
    category: Optional[str] = None,
    db: AsyncSession = Depends(get_async_session),
):
    stmt = posts_with_authors()
    if category:
        stmt = stmt.where(Post.category == category)
    return await _page_of_posts(db, stmt, page, limit, sort_by)


@router.get("/search", response_model=PostPageOut)
async def search_posts(
    query: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    sort_by: str = Query("created_at", alias="sortBy"),  # "relevance" orders like recency
    category: Optional[str] = None,
    db: AsyncSession = Depends(get_async_session),
):
    q = _clean(query)
    if not q:
        raise ValidationError("Search query is required")

    # literal substring: % and _ in the query are escaped, not wildcards
    comment_hit = exists().where(Comment.post_id == Post.id, Comment.content.icontains(q, autoescape=True))
    stmt = posts_with_authors().where(
        or_(
            Post.title.icontains(q, autoescape=True),
            Post.content.icontains(q, autoescape=True),
            comment_hit,
        )
    )
    if category:
        stmt = stmt.where(Post.category == category)
    return await _page_of_posts(db, stmt, page, limit, sort_by)


@router.get("/{post_id}", response_model=PostOut)
async def get_post(post_id: int, db: AsyncSession = Depends(get_async_session)):
    row = (await db.execute(posts_with_authors().where(Post.id == post_id))).first()
    if not row:
        raise NotFoundError("Post not found")
    p, username, avatar = row
    return post_to_out(p, username, avatar)


@router.put("/{post_id}", response_model=PostMutationOut)
async def update_post(
    post_id: int,
    payload: UpdatePostIn,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
):
    post = await _get_post_or_404(db, post_id)
    if post.user_id != user.id:
        raise Forbidden("Only the author may edit this post")

    # Only touch fields the client sent
    for field in ("title", "content", "category"):
        value = getattr(payload, field)
        if value is not None:
            if not value.strip():
                raise ValidationError(f"{field.capitalize()} cannot be empty")
            setattr(post, field, value.strip())
    if payload.is_anonymous is not None:
        post.is_anonymous = bool(payload.is_anonymous)

    await db.commit()
    await db.refresh(post)
    return PostMutationOut(message="Post updated successfully", post=await _post_out(db, post))


@router.delete("/{post_id}", response_model=MessageOut)
async def delete_own_post(
    post_id: int,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
):
    post = await _get_post_or_404(db, post_id)
    if post.user_id != user.id:
        raise Forbidden("Only the author may delete this post")

    await db.delete(post)  # cascades to comments, likes, featured row, transfer request
    await db.commit()
    return MessageOut(message="Post deleted successfully")


@router.post("/{post_id}/like", response_model=LikeToggleOut)
@limiter.limit("30/minute;1000/day")
async def toggle_like(
    request: Request,
    post_id: int,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
):
    await _get_post_or_404(db, post_id)

    existing = await _find_like(db, post_id, user.id)

    # like row + counter change commit together
    try:
        if existing:
            await db.delete(existing)
            await db.execute(
                update(Post)
                .where(Post.id == post_id, Post.likes_count > 0)
                .values(likes_count=Post.likes_count - 1)
            )
            liked, message = False, "Post unliked"
        else:
            db.add(Like(post_id=post_id, user_id=user.id))
            await db.flush()
            await db.execute(
                update(Post).where(Post.id == post_id).values(likes_count=Post.likes_count + 1)
            )
            liked, message = True, "Post liked"
        await db.commit()
    except IntegrityError:
        # a concurrent request already inserted this like
        await db.rollback()
        raise ConflictError("Like already recorded")

    count = (await db.execute(select(Post.likes_count).where(Post.id == post_id))).scalar_one()
    return LikeToggleOut(message=message, liked=liked, likes_count=int(count or 0))


@router.post("/{post_id}/comments", response_model=CommentCreatedOut, status_code=status.HTTP_201_CREATED)
@limiter.limit("10/minute;300/day")
async def add_comment(
    request: Request,
    post_id: int,
    payload: CreateCommentIn,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
):
    content = _clean(payload.content)
    if not content:
        raise ValidationError("Content is required")
    await _get_post_or_404(db, post_id)

    comment = Comment(
        post_id=post_id,
        user_id=user.id,
        content=content,
        is_anonymous=bool(payload.is_anonymous),
    )
    db.add(comment)
    await db.execute(
        update(Post).where(Post.id == post_id).values(comments_count=Post.comments_count + 1)
    )
    await db.commit()
    await db.refresh(comment)

    author = await db.get(User, user.id)
    return CommentCreatedOut(
        message="Comment added successfully",
        comment=comment_to_out(comment, getattr(author, "username", None), getattr(author, "avatar_url", None)),
    )


@router.get("/{post_id}/comments", response_model=List[CommentOut])
async def list_comments(post_id: int, db: AsyncSession = Depends(get_async_session)):
    rows = (
        await db.execute(
            select(Comment, User.username, User.avatar_url)
            .outerjoin(User, User.id == Comment.user_id)
            .where(Comment.post_id == post_id)
            .order_by(Comment.created_at.asc(), Comment.id.asc())
        )
    ).all()
    return [comment_to_out(c, username, avatar) for (c, username, avatar) in rows]


@router.post(
    "/{post_id}/request-transfer",
    response_model=TransferRequestCreatedOut,
    status_code=status.HTTP_201_CREATED,
)
async def request_transfer(
    post_id: int,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
):
    await _get_post_or_404(db, post_id)

    if await is_featured(db, post_id):
        raise ConflictError("Post is already featured")

    previous = (
        await db.execute(select(TransferRequest).where(TransferRequest.post_id == post_id))
    ).scalars().first()
    if previous is not None:
        if previous.status == TransferStatus.PENDING.value:
            raise ConflictError("A transfer request is already pending for this post")
        # one row per post: a reviewed request gives way to the new one
        await db.delete(previous)
        await db.flush()

    req = TransferRequest(post_id=post_id, user_id=user.id, status=TransferStatus.PENDING.value)
    db.add(req)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("A transfer request is already pending for this post")
    await db.refresh(req)

    logger.info("Transfer request %s opened for post %s by user %s", req.id, post_id, user.id)
    return TransferRequestCreatedOut(
        message="Transfer request submitted",
        request=TransferRequestOut.model_validate(req),
    )
