import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from app import config
from app.models.verification_code import VerificationCode


def generate_code() -> str:
    """Uniformly random 6-digit code (100000-999999)."""
    return str(100000 + secrets.randbelow(900000))


def new_code_row(email: str, code_type: str) -> VerificationCode:
    expires_at = datetime.now(timezone.utc) + timedelta(minutes=config.VERIFICATION_CODE_TTL_MINUTES)
    return VerificationCode(email=email, code=generate_code(), type=code_type, expires_at=expires_at)


async def find_valid_code(
    db: AsyncSession, email: str, code: str, code_type: Optional[str] = None
) -> Optional[VerificationCode]:
    """Most recent unexpired row matching email + code (and type, when given)."""
    stmt = select(VerificationCode).where(
        VerificationCode.email == email,
        VerificationCode.code == code,
        VerificationCode.expires_at > datetime.now(timezone.utc),
    )
    if code_type is not None:
        stmt = stmt.where(VerificationCode.type == code_type)
    stmt = stmt.order_by(VerificationCode.created_at.desc(), VerificationCode.id.desc()).limit(1)
    return (await db.execute(stmt)).scalars().first()


async def consume_code(db: AsyncSession, email: str, code: str) -> None:
    await db.execute(
        delete(VerificationCode).where(
            VerificationCode.email == email,
            VerificationCode.code == code,
        )
    )
