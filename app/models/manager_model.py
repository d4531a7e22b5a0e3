from sqlalchemy import Column, Integer, String

from app.database import Base

class Manager(Base):
    """Allow-list of emails with moderation rights."""

    __tablename__ = "managers"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, nullable=False)
