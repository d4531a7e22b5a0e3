from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text, func

from app.database import Base

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(255), unique=True, index=True, nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password = Column(String(255), nullable=False)  # bcrypt hash
    avatar_url = Column(String(500), nullable=True)
    bio = Column(Text, nullable=True)
    verified = Column(Boolean, default=False, nullable=False, server_default="0")

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
