from fastapi import APIRouter, Depends
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_async_session
from app.errors import Forbidden, NotFoundError
from app.models.post_model import Post, Comment
from app.schemas.user_schemas import MessageOut
from app.utils.token_utils import CurrentUser, get_current_user

router = APIRouter(prefix="/api/comments", tags=["comments"])


@router.delete("/{comment_id}", response_model=MessageOut)
async def delete_comment(
    comment_id: int,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
):
    comment = await db.get(Comment, comment_id)
    if not comment:
        raise NotFoundError("Comment not found")

    # Only the author; anonymity does not change ownership
    if comment.user_id != user.id:
        raise Forbidden("You can only delete your own comments")

    post_id = comment.post_id
    await db.delete(comment)
    await db.execute(
        update(Post)
        .where(Post.id == post_id, Post.comments_count > 0)
        .values(comments_count=Post.comments_count - 1)
    )
    await db.commit()
    return MessageOut(message="Comment deleted successfully")
