from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional
from datetime import datetime


class TransferRequestOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    post_id: int
    user_id: int
    status: str
    created_at: datetime
    reviewed_at: Optional[datetime] = None


class TransferRequestCreatedOut(BaseModel):
    message: str
    request: TransferRequestOut


class ReviewOut(BaseModel):
    message: str
    request: TransferRequestOut


class TransferRequestDetailOut(BaseModel):
    request_id: int
    status: str
    requested_at: datetime
    reviewed_at: Optional[datetime] = None
    post_id: int
    title: str
    content: str
    category: str
    is_anonymous: bool
    likes_count: int
    comments_count: int
    author_username: str
    author_email: str
    requester_username: str
    requester_email: str


class TransferRequestListOut(BaseModel):
    requests: List[TransferRequestDetailOut]


class ManagerPostOut(BaseModel):
    """Post with the real author, regardless of anonymity."""

    id: int
    title: str
    content: str
    category: str
    is_anonymous: bool
    likes_count: int
    comments_count: int
    created_at: datetime
    user_id: int
    username: str
    email: str


class ManagerPostPageOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    posts: List[ManagerPostOut]
    total: int
    page: int
    total_pages: int = Field(alias="totalPages")
