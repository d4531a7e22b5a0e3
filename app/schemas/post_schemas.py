from __future__ import annotations

from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional


class CreatePostIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: Optional[str] = Field(default=None, max_length=500)
    content: Optional[str] = None
    category: Optional[str] = Field(default=None, max_length=100)
    is_anonymous: bool = Field(default=False, alias="isAnonymous")


class UpdatePostIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: Optional[str] = Field(default=None, max_length=500)
    content: Optional[str] = None
    category: Optional[str] = Field(default=None, max_length=100)
    is_anonymous: Optional[bool] = Field(default=None, alias="isAnonymous")


class CreateCommentIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    content: Optional[str] = None
    is_anonymous: bool = Field(default=False, alias="isAnonymous")


class PostOut(BaseModel):
    id: int
    title: str
    content: str
    category: str
    is_anonymous: bool
    likes_count: int
    comments_count: int
    created_at: datetime
    # null for anonymous posts outside the owner's own listing
    user_id: Optional[int] = None
    author: str
    author_avatar: Optional[str] = None


class FeaturedPostOut(PostOut):
    approved_at: datetime


class PostPageOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    posts: List[PostOut]
    total: int
    page: int
    total_pages: int = Field(alias="totalPages")


class FeaturedPageOut(PostPageOut):
    posts: List[FeaturedPostOut]


class PostMutationOut(BaseModel):
    message: str
    post: PostOut


class LikeToggleOut(BaseModel):
    message: str
    liked: bool
    likes_count: int


class CommentOut(BaseModel):
    id: int
    post_id: int
    content: str
    is_anonymous: bool
    created_at: datetime
    user_id: Optional[int] = None
    author: str
    author_avatar: Optional[str] = None


class CommentCreatedOut(BaseModel):
    message: str
    comment: CommentOut
