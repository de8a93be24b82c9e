import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import models  # noqa: F401 - registers tables on Base
from .config import ALLOWED_ORIGINS
from .database import Base, engine
from .domain.addresses.router import router as addresses_router
from .domain.bookings.router import router as bookings_router
from .domain.calendar.router import router as calendar_router
from .domain.catalog.router import router as catalog_router
from .domain.invites.router import router as invites_router
from .domain.lessons.router import router as lessons_router
from .domain.students.router import router as students_router
from .domain.teachers.router import router as teachers_router
from .domain.timeslots.router import router as timeslots_router
from .domain.users.router import router as users_router
from .routes.bio import router as bio_router
from .routes.timezones import router as timezones_router
from .routes.upload import router as upload_router

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Reduce verbosity of third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting up...")
    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
        logger.info("Database tables created successfully")
    except Exception as e:
        # Several workers may race to create the same tables
        error_msg = str(e)
        if "already exists" in error_msg or "duplicate key" in error_msg:
            logger.info("Database tables already exist (created by another worker)")
        else:
            logger.error(f"Failed to create database tables: {e}")
            raise

    try:
        from .rate_limiter import get_redis_client

        get_redis_client()
        logger.info("Redis connection established")
    except Exception as e:
        logger.warning(f"Redis connection failed - Rate limiting will operate in fail-open mode: {e}")

    yield
    logger.info("Application shutting down...")


app = FastAPI(title="TempoLink API", version="1.0.0", lifespan=lifespan)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Convert 422 validation errors from HTTPBearer to 401 authentication errors
    when the issue is with the Authorization header
    """
    for error in exc.errors():
        if error.get("loc") and "authorization" in str(error.get("loc")).lower():
            logger.warning(
                f"Authentication failed for {request.url.path}: Missing or invalid Authorization header"
            )
            return JSONResponse(
                status_code=401,
                content={
                    "detail": "Not authenticated. Please provide a valid Bearer token in the Authorization header."
                },
            )

    logger.warning(f"Validation error for {request.url.path}: {exc.errors()}")
    return JSONResponse(status_code=422, content={"detail": jsonable_errors(exc)})


def jsonable_errors(exc: RequestValidationError) -> list:
    # ctx may hold the raised ValueError, which JSON cannot encode
    return [{k: v for k, v in error.items() if k != "ctx"} for error in exc.errors()]


app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in ALLOWED_ORIGINS.split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_slow_requests(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    duration_ms = (time.time() - start) * 1000
    if duration_ms > 1000:
        logger.warning(f"🐌 Slow request: {request.method} {request.url.path} took {duration_ms:.0f}ms")
    return response


app.include_router(users_router)
app.include_router(catalog_router)
app.include_router(teachers_router)
app.include_router(timeslots_router)
app.include_router(students_router)
app.include_router(bookings_router)
app.include_router(lessons_router)
app.include_router(calendar_router)
app.include_router(invites_router)
app.include_router(addresses_router)
app.include_router(upload_router)
app.include_router(bio_router)
app.include_router(timezones_router)


@app.get("/")
def root():
    return {"message": "TempoLink API is running"}


@app.get("/health")
def health():
    return {"status": "healthy"}
