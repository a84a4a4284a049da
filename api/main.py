"""
FastAPI main application for the Perpustakaan Dunia digital library API.
"""

import time
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.auth import RateLimiter, client_address
from api.config import config as api_config
from api.models import ErrorResponse, HealthResponse, format_validation_errors
from api.routes import routers
from library.database import LibraryDatabase
from library.errors import LibraryError, RateLimitExceededError
from library.security import TokenManager, set_bcrypt_rounds
from library.storage import FileStorage
from utilities.config import config
from utilities.logger import setup_logging

# Setup logging
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    setup_logging(
        log_level=config.log_level,
        log_format=config.log_format,
        log_file=config.get_log_file_path(),
        debug=config.debug
    )
    logger.info("Starting Perpustakaan Dunia API")

    db = LibraryDatabase(config.mongodb_url, config.mongodb_database)
    try:
        await db.connect()
    except Exception as e:
        logger.error("Failed to connect to database", error=str(e))
        raise
    app.state.db = db

    yield

    logger.info("Shutting down Perpustakaan Dunia API")
    await db.disconnect()
    app.state.db = None


# Create FastAPI application
app = FastAPI(
    title=api_config.api_title,
    description="""
    REST API of a digital library.

    ## Features

    * **Catalog**: Browse, search, filter and sort approved books
    * **Uploads**: Authenticated users upload PDF, EPUB, MOBI and TXT files
    * **Moderation**: Admins approve or reject uploaded books
    * **Community**: One rated comment per user per book, favorites, reading progress
    * **Rate Limiting**: 100 requests per 15 minutes per client IP

    ## Authentication

    Log in through `/api/auth/login` and send the token in the Authorization header:

    ```
    Authorization: Bearer <token>
    ```
    """,
    version=api_config.api_version,
    lifespan=lifespan
)

set_bcrypt_rounds(api_config.bcrypt_rounds)

app.state.db = None
app.state.tokens = TokenManager(
    secret_key=api_config.jwt_secret,
    algorithm=api_config.jwt_algorithm,
    expire_days=api_config.access_token_expire_days,
)
app.state.storage = FileStorage(
    books_dir=config.get_books_dir(),
    max_size=config.max_upload_size,
    allowed_extensions=config.allowed_extensions,
)
app.state.rate_limiter = RateLimiter(
    max_requests=api_config.rate_limit_requests,
    window_seconds=api_config.rate_limit_window,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=api_config.cors_origins,
    allow_credentials=api_config.cors_allow_credentials,
    allow_methods=api_config.cors_allow_methods,
    allow_headers=api_config.cors_allow_headers,
)


def error_response(
    status_code: int,
    message: str,
    error: Optional[str] = None,
    headers: Optional[dict] = None
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(message=message, error=error).dict(exclude_none=True),
        headers=headers
    )


@app.middleware("http")
async def rate_limit_and_log(request: Request, call_next):
    """Apply the per-IP rate limit and log every request."""
    limiter: RateLimiter = request.app.state.rate_limiter
    client = client_address(request)

    if not limiter.check_rate_limit(client):
        logger.warning("Rate limit exceeded", client=client, path=request.url.path)
        exc = RateLimitExceededError("Too many requests, please try again later.")
        return error_response(exc.status_code, exc.message, headers=limiter.get_headers(client))

    started = time.perf_counter()
    response = await call_next(request)
    response.headers.update(limiter.get_headers(client))

    logger.info(
        "Request handled",
        method=request.method,
        path=request.url.path,
        status=response.status_code,
        duration_ms=round((time.perf_counter() - started) * 1000, 2)
    )
    return response


# Exception handlers
@app.exception_handler(LibraryError)
async def library_error_handler(request: Request, exc: LibraryError):
    """Map domain errors onto their HTTP status."""
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == status.HTTP_401_UNAUTHORIZED else None
    if exc.status_code >= 500:
        logger.error("Service error", error=exc.message, path=request.url.path)
    return error_response(exc.status_code, exc.message, exc.error, headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed requests are client errors."""
    return error_response(
        status.HTTP_400_BAD_REQUEST,
        "Invalid request",
        format_validation_errors(exc.errors())
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions, including unmatched routes."""
    message = exc.detail
    if exc.status_code == status.HTTP_404_NOT_FOUND and exc.detail == "Not Found":
        message = "Route not found"
    return error_response(exc.status_code, str(message), headers=getattr(exc, "headers", None))


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions."""
    logger.error("Unhandled exception", error=str(exc), path=request.url.path)
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Server error", str(exc))


@app.get("/", tags=["Health"])
async def root():
    return {"message": "Perpustakaan Dunia API is ready", "version": api_config.api_version}


# Health check endpoint (no authentication required)
@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check(request: Request):
    """Health check endpoint."""
    db_status = "unavailable"
    db = request.app.state.db
    if db is not None:
        health_info = await db.health_check()
        db_status = health_info.get("status", "unknown")

    return HealthResponse(
        status="healthy" if db_status == "healthy" else "degraded",
        timestamp=datetime.utcnow(),
        version=api_config.api_version,
        database_status=db_status
    )


for router in routers:
    app.include_router(router)

app.mount("/uploads", StaticFiles(directory=config.upload_dir, check_dir=False), name="uploads")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "api.main:app",
        host=api_config.host,
        port=api_config.port,
        reload=api_config.debug,
        log_level="info"
    )
