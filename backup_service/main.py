import time
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from backup_service.routers.router import router
from backup_service.core.lifespan import lifespan
from backup_service.core.config import settings
from backup_service.core.logger import logger
from backup_service.core.rate_limiter import limiter

# CORS configuration
if settings.ENABLE_CORS:
    origins = [
        settings.FRONTEND_ENDPOINT,
        settings.BACKEND_ENDPOINT,
    ]
else:
    origins = ["*"]

# Initialize FastAPI app
app = FastAPI(
    title=settings.PROJECT_NAME,
    description="""
    Disaster-recovery backups for the CollabHunts platform.

    ## Admin Endpoints

    **POST /api/v1/backups/database** - Snapshot all configured tables to S3
    **POST /api/v1/backups/media** - Copy storage buckets to S3 and inventory CDN assets
    **POST /api/v1/backups/verify** - Check a recorded run for completeness

    ### Request Body (trigger endpoints):
    - `type` (optional): Run kind recorded in history ("manual", "scheduled", ...)
    - `triggered_by` (optional): Operator id; defaults to the token subject
    - `test_failure` (optional, database only): Simulate a failure after collection

    ### Headers:
    - **Request**: `Authorization: Bearer <admin-jwt>`, `x-request-id`
    - **Response**: `x-request-id`
    """,
    version="2.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc"
)

# Configure rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Request/Response logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start_time = time.time()
    response = await call_next(request)
    duration = time.time() - start_time

    log_data = {
        "method": request.method,
        "path": request.url.path,
        "status_code": response.status_code,
        "duration_ms": int(duration * 1000),
        "client": request.client.host if request.client else "unknown"
    }

    if not request.url.path.endswith("/health"):
        logger.info(f"Request: {log_data}")

    return response

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

# Include routers
app.include_router(router)

# Root endpoint
@app.get("/", tags=["Root"])
async def root():
    return {
        "service": settings.PROJECT_NAME,
        "version": "2.0.0",
        "status": "running",
        "documentation": "/docs"
    }
