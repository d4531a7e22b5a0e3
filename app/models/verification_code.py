from sqlalchemy import Column, Integer, String, DateTime, func
import enum

from app.database import Base


class CodeType(str, enum.Enum):
    REGISTER = "register"
    RESET = "reset"


class VerificationCode(Base):
    __tablename__ = "verification_codes"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), nullable=False, index=True)
    code = Column(String(6), nullable=False)
    type = Column(String(50), nullable=False)  # register | reset
    expires_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
