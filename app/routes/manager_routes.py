import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from app.database import get_async_session
from app.deps.manager import require_manager
from app.errors import ConflictError, NotFoundError, ValidationError
from app.models.moderation_model import FeaturedPost, TransferRequest, TransferStatus
from app.models.post_model import Post
from app.models.user_model import User
from app.schemas.moderation_schemas import (
    ManagerPostOut,
    ManagerPostPageOut,
    ReviewOut,
    TransferRequestDetailOut,
    TransferRequestListOut,
    TransferRequestOut,
)
from app.schemas.user_schemas import MessageOut
from app.utils.post_projection import count_rows, total_pages, is_featured
from app.utils.token_utils import CurrentUser

logger = logging.getLogger(__name__)

# every route here is gated on the manager allow-list
router = APIRouter(
    prefix="/api/manager",
    tags=["manager"],
    dependencies=[Depends(require_manager)],
)

STATUS_FILTERS = {s.value for s in TransferStatus} | {"all"}


async def _pending_request_or_error(db: AsyncSession, request_id: int) -> TransferRequest:
    req = await db.get(TransferRequest, request_id)
    if not req:
        raise NotFoundError("Transfer request not found")
    if req.status != TransferStatus.PENDING.value:
        raise ConflictError(f"Transfer request already {req.status}")
    return req


@router.get("/all-posts", response_model=ManagerPostPageOut)
async def list_all_posts(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_async_session),
):
    stmt = select(Post, User.username, User.email).outerjoin(User, User.id == Post.user_id)
    total = await count_rows(db, stmt)
    stmt = stmt.order_by(Post.created_at.desc(), Post.id.desc()).offset((page - 1) * limit).limit(limit)
    rows = (await db.execute(stmt)).all()

    posts = [
        ManagerPostOut(
            id=p.id,
            title=p.title,
            content=p.content,
            category=p.category,
            is_anonymous=bool(p.is_anonymous),
            likes_count=int(p.likes_count or 0),
            comments_count=int(p.comments_count or 0),
            created_at=p.created_at,
            user_id=p.user_id,
            username=username or "",
            email=email or "",
        )
        for (p, username, email) in rows
    ]
    return ManagerPostPageOut(posts=posts, total=total, page=page, total_pages=total_pages(total, limit))


@router.get("/transfer-requests", response_model=TransferRequestListOut)
async def list_transfer_requests(
    status: Optional[str] = Query(TransferStatus.PENDING.value),
    db: AsyncSession = Depends(get_async_session),
):
    status_filter = (status or TransferStatus.PENDING.value).strip().lower()
    if status_filter not in STATUS_FILTERS:
        raise ValidationError("Status must be pending, approved, rejected or all")

    author = aliased(User)
    requester = aliased(User)
    stmt = (
        select(TransferRequest, Post, author.username, author.email, requester.username, requester.email)
        .join(Post, Post.id == TransferRequest.post_id)
        .outerjoin(author, author.id == Post.user_id)
        .outerjoin(requester, requester.id == TransferRequest.user_id)
    )
    if status_filter != "all":
        stmt = stmt.where(TransferRequest.status == status_filter)
    stmt = stmt.order_by(TransferRequest.created_at.desc(), TransferRequest.id.desc())

    rows = (await db.execute(stmt)).all()
    return TransferRequestListOut(requests=[
        TransferRequestDetailOut(
            request_id=r.id,
            status=r.status,
            requested_at=r.created_at,
            reviewed_at=r.reviewed_at,
            post_id=p.id,
            title=p.title,
            content=p.content,
            category=p.category,
            is_anonymous=bool(p.is_anonymous),
            likes_count=int(p.likes_count or 0),
            comments_count=int(p.comments_count or 0),
            author_username=a_name or "",
            author_email=a_email or "",
            requester_username=r_name or "",
            requester_email=r_email or "",
        )
        for (r, p, a_name, a_email, r_name, r_email) in rows
    ])


@router.post("/transfer-requests/{request_id}/approve", response_model=ReviewOut)
async def approve_request(
    request_id: int,
    manager: CurrentUser = Depends(require_manager),
    db: AsyncSession = Depends(get_async_session),
):
    req = await _pending_request_or_error(db, request_id)

    # re-check: another approval may have featured the post already
    if await is_featured(db, req.post_id):
        raise ConflictError("Post is already featured")

    now = datetime.now(timezone.utc)
    db.add(FeaturedPost(post_id=req.post_id, approved_at=now))
    req.status = TransferStatus.APPROVED.value
    req.reviewed_at = now

    try:
        await db.commit()
    except IntegrityError:
        # unique index on useful_posts.post_id lost the race for us
        await db.rollback()
        raise ConflictError("Post is already featured")
    await db.refresh(req)

    logger.info("Manager %s approved transfer request %s (post %s)", manager.email, req.id, req.post_id)
    return ReviewOut(message="Transfer request approved", request=TransferRequestOut.model_validate(req))


@router.post("/transfer-requests/{request_id}/reject", response_model=ReviewOut)
async def reject_request(
    request_id: int,
    manager: CurrentUser = Depends(require_manager),
    db: AsyncSession = Depends(get_async_session),
):
    req = await _pending_request_or_error(db, request_id)
    req.status = TransferStatus.REJECTED.value
    req.reviewed_at = datetime.now(timezone.utc)
    await db.commit()
    await db.refresh(req)

    logger.info("Manager %s rejected transfer request %s (post %s)", manager.email, req.id, req.post_id)
    return ReviewOut(message="Transfer request rejected", request=TransferRequestOut.model_validate(req))


@router.delete("/posts/{post_id}", response_model=MessageOut)
async def delete_post(
    post_id: int,
    manager: CurrentUser = Depends(require_manager),
    db: AsyncSession = Depends(get_async_session),
):
    post = await db.get(Post, post_id)
    if not post:
        raise NotFoundError("Post not found")

    await db.delete(post)  # cascades to comments, likes, featured row, transfer request
    await db.commit()

    logger.info("Manager %s deleted post %s", manager.email, post_id)
    return MessageOut(message="Post deleted successfully")
