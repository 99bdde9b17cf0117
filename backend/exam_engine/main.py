"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from exam_engine.api import admin_router, exams_router, health_router
from exam_engine.config import settings
from exam_engine.core.errors import (
    STORAGE_UNAVAILABLE_MESSAGE,
    ExamEngineError,
    PersistenceFailure,
    ValidationFailure,
)
from exam_engine.db.session import init_db
from exam_engine.schemas.common import ErrorResponse

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s  %(name)-25s  %(levelname)-8s  %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Exam engine starting (env=%s)", settings.ENV)
    if settings.DATABASE_CREATE_TABLES:
        init_db()
        logger.info("Database tables ensured")
    yield
    logger.info("Exam engine stopped")


app = FastAPI(
    title="Exam Engine API",
    description="Timed exam sessions, grading and per-question analytics",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.ALLOWED_HOSTS)


# ── Error envelope ────────────────────────────────────────────────────────────


def _envelope(exc: ExamEngineError) -> JSONResponse:
    body = ErrorResponse(error=exc.message, error_code=exc.code)
    return JSONResponse(status_code=exc.status_code, content=body.model_dump())


@app.exception_handler(ExamEngineError)
async def exam_engine_error_handler(request: Request, exc: ExamEngineError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return _envelope(exc)


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("%s %s database error", request.method, request.url.path, exc_info=exc)
    return _envelope(PersistenceFailure(STORAGE_UNAVAILABLE_MESSAGE))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid input")
    return _envelope(ValidationFailure(f"{field}: {message}" if field else message))


# ── Routes ────────────────────────────────────────────────────────────────────

app.include_router(health_router, tags=["Health"])
app.include_router(exams_router, prefix="/api/exams", tags=["Exams"])
app.include_router(admin_router, prefix="/api/admin", tags=["Admin"])


@app.get("/")
async def root():
    return {
        "name": "Exam Engine API",
        "version": "0.1.0",
        "docs": "/docs",
        "health": "/health",
    }
