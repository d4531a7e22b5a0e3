import logging

from fastapi import APIRouter, Depends, Request, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from passlib.hash import bcrypt

from app import config
from app import email_service
from app.database import get_async_session
from app.deps.manager import is_manager
from app.errors import (
    ConflictError,
    DeliveryError,
    InvalidCodeError,
    InvalidCredentialsError,
    ValidationError,
)
from app.limiter import limiter
from app.models.user_model import User
from app.models.verification_code import CodeType
from app.schemas.user_schemas import (
    SendVerificationIn,
    VerifyCodeIn,
    RegisterIn,
    LoginIn,
    ResetPasswordIn,
    MessageOut,
    UserOut,
    LoginOut,
    ManagerCheckOut,
)
from app.utils.token_utils import CurrentUser, create_access_token, get_current_user
from app.utils.verification import new_code_row, find_valid_code, consume_code

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _norm_email(email) -> str:
    return (email or "").strip().lower()


def _has_allowed_domain(email: str) -> bool:
    return email.endswith(config.ALLOWED_EMAIL_DOMAIN.lower())


async def _user_by_email(db: AsyncSession, email: str):
    result = await db.execute(select(User).where(func.lower(User.email) == email))
    return result.scalars().first()


@router.post("/send-verification", response_model=MessageOut)
@limiter.limit("3/minute;20/hour")
async def send_verification(
    request: Request,
    payload: SendVerificationIn,
    db: AsyncSession = Depends(get_async_session),
):
    email = _norm_email(payload.email)
    code_type = (payload.type or "").strip().lower()

    if not email or not code_type:
        raise ValidationError("Email and type are required")
    if code_type not in (CodeType.REGISTER.value, CodeType.RESET.value):
        raise ValidationError("Type must be 'register' or 'reset'")

    existing = await _user_by_email(db, email)
    if code_type == CodeType.REGISTER.value:
        if not _has_allowed_domain(email):
            raise ValidationError(f"Email must be {config.ALLOWED_EMAIL_DOMAIN} for registration")
        if existing:
            raise ValidationError("Email already registered")
    elif not existing:
        raise ValidationError("Email not found")

    row = new_code_row(email, code_type)
    db.add(row)
    await db.flush()  # Write to DB without committing yet

    try:
        await run_in_threadpool(email_service.send_verification_code, email, row.code)
    except Exception:
        # Don't keep a code the user never received
        await db.rollback()
        raise DeliveryError("Failed to send verification email")

    await db.commit()
    logger.info("Verification code (%s) issued for %s", code_type, email)
    return MessageOut(message="Verification code sent")


@router.post("/verify-code", response_model=MessageOut)
async def verify_code(payload: VerifyCodeIn, db: AsyncSession = Depends(get_async_session)):
    email = _norm_email(payload.email)
    code = (payload.code or "").strip()
    if not email or not code:
        raise ValidationError("Email and code are required")

    # any purpose; the code is not consumed here
    if not await find_valid_code(db, email, code):
        raise InvalidCodeError("Invalid or expired code")
    return MessageOut(message="Code verified")


@router.post("/register", response_model=MessageOut, status_code=status.HTTP_201_CREATED)
@limiter.limit("5/minute")
async def register(request: Request, payload: RegisterIn, db: AsyncSession = Depends(get_async_session)):
    username = (payload.username or "").strip()
    email = _norm_email(payload.email)
    password = payload.password or ""
    code = (payload.verification_code or "").strip()

    if not username or not email or not password or not code:
        raise ValidationError("All fields are required")
    if not _has_allowed_domain(email):
        raise ValidationError(f"Email must be {config.ALLOWED_EMAIL_DOMAIN}")
    if len(password) < config.MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {config.MIN_PASSWORD_LENGTH} characters")

    if not await find_valid_code(db, email, code, CodeType.REGISTER.value):
        raise InvalidCodeError()

    # Check username OR email conflict in a single round-trip
    result = await db.execute(
        select(User).where((User.username == username) | (func.lower(User.email) == email))
    )
    existing = result.scalars().all()
    if any((u.email or "").lower() == email for u in existing):
        raise ConflictError("Email already registered")
    if any(u.username == username for u in existing):
        raise ConflictError("Username already taken")

    db.add(User(
        username=username,
        email=email,
        password=bcrypt.hash(password),
        verified=True,
    ))
    await consume_code(db, email, code)

    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Username or email already registered")

    logger.info("Registered user %s", email)
    return MessageOut(message="Registration successful")


@router.post("/login", response_model=LoginOut)
@limiter.limit("10/minute")
async def login(request: Request, payload: LoginIn, db: AsyncSession = Depends(get_async_session)):
    email = _norm_email(payload.email)
    password = payload.password or ""
    if not email or not password:
        raise ValidationError("Email and password are required")

    db_user = await _user_by_email(db, email)

    # Same answer for unknown email and wrong password
    if not db_user or not bcrypt.verify(password, db_user.password):
        logger.info("Failed login for %s", email)
        raise InvalidCredentialsError()

    return LoginOut(
        message="Login successful",
        token=create_access_token(db_user),
        user=UserOut.model_validate(db_user),
        is_manager=await is_manager(db, db_user.email),
    )


@router.post("/reset-password", response_model=MessageOut)
@limiter.limit("5/minute")
async def reset_password(request: Request, payload: ResetPasswordIn, db: AsyncSession = Depends(get_async_session)):
    email = _norm_email(payload.email)
    code = (payload.verification_code or "").strip()
    new_password = payload.new_password or ""

    if not email or not code or not new_password:
        raise ValidationError("All fields are required")
    if len(new_password) < config.MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {config.MIN_PASSWORD_LENGTH} characters")

    if not await find_valid_code(db, email, code, CodeType.RESET.value):
        raise InvalidCodeError()

    db_user = await _user_by_email(db, email)
    if not db_user:
        raise ValidationError("User not found")

    db_user.password = bcrypt.hash(new_password)
    await consume_code(db, email, code)
    await db.commit()

    logger.info("Password reset for %s", email)
    return MessageOut(message="Password reset successful")


@router.get("/check-manager", response_model=ManagerCheckOut)
async def check_manager(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
):
    return ManagerCheckOut(is_manager=await is_manager(db, user.email))
