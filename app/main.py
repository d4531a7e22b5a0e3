import asyncio
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError

from app.config import CORS_ALLOWED_ORIGINS, MANAGER_EMAILS
from app.database import AsyncSessionLocal, Base, engine
from app.errors import ApiError, InternalError
from app.logging_config import setup_logging
from app.models import manager_model, moderation_model, post_model, user_model, verification_code  # noqa: F401 - register tables
from app.models.manager_model import Manager
from app.routes import auth, post_routes, comment_routes, user_routes, useful_posts_routes, manager_routes

# 🔒 Rate limiting setup
from app.limiter import limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

setup_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="Campus Wall API")

app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(
        status_code=429,
        content={"message": "Too many requests. Please slow down."}
    )


@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(p) for p in first.get("loc", ()) if p not in ("body", "query", "path"))
    detail = first.get("msg", "Invalid request")
    return JSONResponse(
        status_code=400,
        content={"message": f"{field}: {detail}" if field else detail},
    )


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"message": InternalError.message})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"message": InternalError.message})


# ✅ Enable CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ✅ Include your routers
app.include_router(auth.router)
app.include_router(post_routes.router)
app.include_router(comment_routes.router)
app.include_router(user_routes.router)
app.include_router(useful_posts_routes.router)
app.include_router(manager_routes.router)


@app.get("/api/health")
async def health():
    return {"message": "Backend is working!"}


async def seed_managers(emails=MANAGER_EMAILS, session_factory=AsyncSessionLocal) -> int:
    """Insert manager emails that are not in the allow-list yet."""
    wanted = {e.strip().lower() for e in emails if e.strip()}
    if not wanted:
        return 0
    async with session_factory() as session:
        existing = set(
            (await session.execute(select(func.lower(Manager.email)))).scalars().all()
        )
        missing = sorted(wanted - existing)
        session.add_all([Manager(email=email) for email in missing])
        await session.commit()
    if missing:
        logger.info("Seeded %d manager(s)", len(missing))
    return len(missing)


# ✅ Run DB init on startup
@app.on_event("startup")
async def on_startup():
    # Tiny retry so a momentary DB disconnect doesn't crash the app.
    for attempt in range(2):
        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            await seed_managers()
            break  # success
        except SQLAlchemyError:
            if attempt == 0:
                logger.warning("DB init failed, retrying once", exc_info=True)
                await asyncio.sleep(0.5)
            else:
                # Tables should already exist from previous runs.
                logger.error("Skipping DB init after second failure", exc_info=True)
