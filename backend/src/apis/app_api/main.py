"""
User Directory API

Handles:
1. Paginated user search merging the search index with authoritative stores
2. Field visibility depending on the caller
"""

from pathlib import Path
from dotenv import load_dotenv
import os

# Load .env file from backend/src directory (parent of apis/)
env_path = Path(__file__).parent.parent.parent / '.env'
load_dotenv(dotenv_path=env_path)

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging

from apis.shared.errors import (
    DependencyFailureError,
    ErrorCode,
    InvalidArgumentError,
    create_error_response,
    http_status_to_error_code,
)
from users.index import UserIndex

# Set up logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


# Lifespan event handler (replaces on_event)
@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("=== User Directory API Starting ===")

    user_index = UserIndex()
    if user_index.enabled:
        await user_index.initialize()
        logger.info("Users index ready")

    yield  # Application is running

    # Shutdown
    logger.info("=== User Directory API Shutting Down ===")


# Create FastAPI app with lifespan
app = FastAPI(
    title="User Directory - API",
    version="1.0.0",
    description="User search over the search index and authoritative user stores",
    lifespan=lifespan
)

# Add CORS middleware for local development
if os.getenv('ENVIRONMENT', 'development') == 'development':
    logger.info("Adding CORS middleware for local development")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:4200",  # Frontend dev server
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


# ========== Error handlers ==========

@app.exception_handler(InvalidArgumentError)
async def invalid_argument_handler(request: Request, exc: InvalidArgumentError):
    return JSONResponse(
        status_code=400,
        content=create_error_response(
            code=ErrorCode.BAD_REQUEST,
            message=exc.message,
            status_code=400,
            field=exc.parameter,
            metadata={"limit": exc.limit} if exc.limit is not None else None,
        ),
    )


@app.exception_handler(DependencyFailureError)
async def dependency_failure_handler(request: Request, exc: DependencyFailureError):
    status_code = 504 if exc.timed_out else 503
    return JSONResponse(
        status_code=status_code,
        content=create_error_response(
            code=http_status_to_error_code(status_code),
            message="A backing service is unavailable, please retry later.",
            detail=exc.message,
            status_code=status_code,
            metadata={"dependency": exc.dependency},
        ),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=create_error_response(
            code=http_status_to_error_code(exc.status_code),
            message=str(exc.detail),
            status_code=exc.status_code,
        ),
        headers=exc.headers,
    )


# Import routers
from .health import router as health_router
from .users import router as users_router
# Include routers
app.include_router(health_router)
app.include_router(users_router)

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "apis.app_api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info"
    )
