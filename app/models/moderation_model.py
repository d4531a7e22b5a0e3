from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index, func
from sqlalchemy.orm import relationship
import enum

from app.database import Base


class TransferStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class FeaturedPost(Base):
    """A post promoted into the "useful posts" list by a manager."""

    __tablename__ = "useful_posts"

    id = Column(Integer, primary_key=True, index=True)
    # unique: a post is featured at most once
    post_id = Column(
        Integer,
        ForeignKey("posts.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    approved_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    post = relationship("Post", back_populates="featured")


class TransferRequest(Base):
    __tablename__ = "transfer_requests"
    __table_args__ = (Index("idx_transfer_requests_status", "status"),)

    id = Column(Integer, primary_key=True, index=True)
    post_id = Column(
        Integer,
        ForeignKey("posts.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    # the user who asked for the promotion
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    status = Column(String(20), nullable=False, default=TransferStatus.PENDING.value)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)

    post = relationship("Post", back_populates="transfer_request")
