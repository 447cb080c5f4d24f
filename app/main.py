"""
Main FastAPI application
"""
import json
import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.errors import DuplicateKeyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config.database import db_config
from app.config.settings import settings
from app.utils.errors import AppError, ConflictError

from app.routes import (
    branch,
    division,
    position,
    organizational_change,
    employee,
    employee_history,
    attendance,
    leave,
    schedule,
    geospatial,
    service_area,
    service_area_assignment,
    service_area_pricing,
)

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown events"""
    # Startup
    await db_config.connect_db()
    await db_config.ensure_indexes()
    logger.info("%s v%s started (env=%s)", settings.APP_NAME, settings.VERSION, settings.APP_ENV)
    if settings.auth_bypass:
        logger.warning("Authentication is disabled for development")
    yield
    # Shutdown
    await db_config.close_db()
    logger.info("Application shutdown")

# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.VERSION,
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def error_body(message: str, errors=None) -> dict:
    body = {"success": False, "message": message}
    if errors:
        body["errors"] = errors
    return body


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.message, exc.errors),
        headers=exc.headers,
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    # Round-trip through json with default=str to handle non-serializable objects (e.g. ValueError)
    safe_errors = json.loads(json.dumps(exc.errors(), default=str))
    logger.info("Validation error on %s %s: %s", request.method, request.url.path, safe_errors)
    return JSONResponse(status_code=400, content=error_body("Validation error", safe_errors))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(DuplicateKeyError)
async def duplicate_key_handler(request: Request, exc: DuplicateKeyError):
    logger.warning("Duplicate key on %s %s: %s", request.method, request.url.path, exc.details)
    return await app_error_handler(request, ConflictError())


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    message = str(exc) if settings.DEBUG else "Internal server error"
    return JSONResponse(status_code=500, content=error_body(message))


# Request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start_time = time.time()
    response = await call_next(request)
    duration = time.time() - start_time
    logger.info("%s %s - %d (%.2fs)", request.method, request.url.path, response.status_code, duration)
    return response

# Include routers
app.include_router(branch.router, prefix="/api")
app.include_router(division.router, prefix="/api")
app.include_router(position.router, prefix="/api")
app.include_router(organizational_change.router, prefix="/api")
app.include_router(employee.router, prefix="/api")
app.include_router(employee_history.router, prefix="/api")

# Time management
app.include_router(attendance.router, prefix="/api")
app.include_router(leave.router, prefix="/api")
app.include_router(schedule.router, prefix="/api")

# Coverage; geospatial before /service-areas/{id}
app.include_router(geospatial.router, prefix="/api")
app.include_router(service_area.router, prefix="/api")
app.include_router(service_area_assignment.router, prefix="/api")
app.include_router(service_area_pricing.router, prefix="/api")


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "app": settings.APP_NAME,
        "version": settings.VERSION,
        "status": "running"
    }

@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy"}
