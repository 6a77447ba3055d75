from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from loguru import logger
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from videotube.database import connect_store, close_store
from videotube.errors import Conflict, InvalidArgument, NotFound, PermissionDenied, Unavailable, VideoTubeError
from videotube.logging_setup import configure_logging
from videotube.routers import videos, comments, likes, subscriptions, playlists
from videotube.utils.rate_limit import limiter

ERROR_STATUS = {
    InvalidArgument: status.HTTP_400_BAD_REQUEST,
    PermissionDenied: status.HTTP_403_FORBIDDEN,
    NotFound: status.HTTP_404_NOT_FOUND,
    Conflict: status.HTTP_409_CONFLICT,
    Unavailable: status.HTTP_503_SERVICE_UNAVAILABLE,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    configure_logging()
    await connect_store()

    yield

    # Shutdown
    await close_store()


app = FastAPI(
    lifespan=lifespan,
    docs_url=None,
    redoc_url=None
)

# Add rate limiter state and exception handler
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure this based on your frontend domain
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(VideoTubeError)
async def videotube_exception_handler(request: Request, exc: VideoTubeError):
    status_code = ERROR_STATUS.get(type(exc), status.HTTP_400_BAD_REQUEST)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=status_code,
        content={
            "status": "error",
            "message": exc.message,
            "data": None
        }
    )


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    # Sanitize error messages to avoid exposing sensitive information
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "status": "error",
            "message": "An unexpected error occurred",
            "data": None
        }
    )


# Include routers
app.include_router(videos.router)
app.include_router(comments.router)
app.include_router(likes.router)
app.include_router(subscriptions.router)
app.include_router(playlists.router)


@app.get("/")
async def root():
    return "works :)"


@app.get("/health")
async def health_check():
    return {
        "status": "success",
        "message": "API is healthy"
    }
