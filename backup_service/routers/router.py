# routers/router.py
"""
FastAPI Router for the disaster-recovery backup jobs
"""

from fastapi import (
    APIRouter,
    Depends,
    HTTPException,
    Request,
    Response,
    status
)
from starlette.concurrency import run_in_threadpool

from backup_service.core.auth import AdminPrincipal, verify_admin_token
from backup_service.core.config import settings
from backup_service.core.exceptions import BackupConfigurationError, BackupNotFoundError
from backup_service.core.logger import logger
from backup_service.core.rate_limiter import limit_param, limiter
from backup_service.core.redis_client import redis_health_check
from backup_service.schemas.backup_models import BackupStatus, BackupVerification
from backup_service.schemas.request_models import (
    BackupRunRequest,
    BackupRunResponse,
    HealthResponse,
    VerifyBackupRequest,
)
from backup_service.services.database_backup_service import DatabaseBackupService
from backup_service.services.dependencies import (
    get_database_backup_service,
    get_media_backup_service,
    get_verification_service,
)
from backup_service.services.media_backup_service import MediaBackupService
from backup_service.services.verification_service import BackupVerificationService


# ============================================================================
# ROUTER CONFIGURATION
# ============================================================================

router = APIRouter(
    prefix="/api/v1",
    tags=["Backups"],
    responses={
        401: {"description": "Unauthorized - Invalid JWT"},
        403: {"description": "Forbidden - Admin role required"},
        429: {"description": "Too Many Requests"},
        500: {"description": "Internal Server Error"}
    }
)


def _configured(*values) -> str:
    return "configured" if all(values) else "not configured"


# ============================================================================
# HEALTH CHECK ENDPOINTS
# ============================================================================

@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Service Health Check",
    description="Reports which backup collaborators are configured"
)
@limiter.limit(limit_param)
async def check_health(request: Request) -> HealthResponse:
    """
    Configuration health check plus a Redis ping; no backup call is made.

    Checks:
    - Backup destination (bucket, region, credentials)
    - Supabase source (URL, service role key)
    - Email notification (Resend key, admin address)
    - Redis (JTI replay cache; admin endpoints reject every token without it)
    """
    health_status = HealthResponse()

    health_status.destination_status = _configured(
        settings.AWS_BUCKET_NAME,
        settings.AWS_REGION,
        settings.AWS_ACCESS_KEY_ID,
        settings.AWS_SECRET_ACCESS_KEY,
    )
    health_status.source_status = _configured(
        settings.SUPABASE_URL,
        settings.SUPABASE_SERVICE_ROLE_KEY,
    )
    health_status.notification_status = _configured(
        settings.RESEND_API_KEY,
        settings.ADMIN_EMAIL,
    )

    if "not configured" in (health_status.destination_status, health_status.source_status):
        health_status.status = "degraded"
        health_status.message = "Backups will fail until configuration is complete"

    if not settings.JWT_REQUIRE_JTI:
        health_status.redis_status = "disabled"
    elif redis_health_check():
        health_status.redis_status = "connected"
    else:
        health_status.redis_status = "unreachable"
        health_status.status = "degraded"

    return health_status


# ============================================================================
# BACKUP TRIGGER ENDPOINTS
# ============================================================================

@router.post(
    "/backups/database",
    response_model=BackupRunResponse,
    status_code=status.HTTP_200_OK,
    summary="Run Database Backup",
    description="Snapshot every configured table into one JSON document and upload it"
)
@limiter.limit(limit_param)
async def run_database_backup(
    request: Request,
    response: Response,
    body: BackupRunRequest,
    principal: AdminPrincipal = Depends(verify_admin_token),
    service: DatabaseBackupService = Depends(get_database_backup_service)
) -> BackupRunResponse:
    """
    Trigger a database snapshot.

    The run is always recorded in backup history and reported by email.
    A failed run is returned with HTTP 500 and the same body shape.
    """
    response.headers["x-request-id"] = principal.request_id

    record = await run_in_threadpool(
        service.run,
        kind=body.kind or "manual",
        triggered_by=body.triggered_by or principal.user_id,
        simulate_failure=body.simulate_failure,
    )

    if record.status == BackupStatus.FAILED:
        response.status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    logger.info(
        f"Database backup finished: id={record.id}, "
        f"status={record.status.value}, "
        f"tables={len(record.units_backed_up)}"
    )
    return BackupRunResponse.from_record(record, job_label="Database")


@router.post(
    "/backups/media",
    response_model=BackupRunResponse,
    status_code=status.HTTP_200_OK,
    summary="Run Media Backup",
    description="Copy storage buckets to the backup destination and inventory CDN assets"
)
@limiter.limit(limit_param)
async def run_media_backup(
    request: Request,
    response: Response,
    body: BackupRunRequest,
    principal: AdminPrincipal = Depends(verify_admin_token),
    service: MediaBackupService = Depends(get_media_backup_service)
) -> BackupRunResponse:
    """
    Trigger a media copy. Per-file errors give a `partial` run with 200.
    """
    response.headers["x-request-id"] = principal.request_id

    record = await run_in_threadpool(
        service.run,
        kind=body.kind or "media",
        triggered_by=body.triggered_by or principal.user_id,
    )

    if record.status == BackupStatus.FAILED:
        response.status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    logger.info(
        f"Media backup finished: id={record.id}, "
        f"status={record.status.value}, "
        f"files={record.component_counts.get('storage_files', 0)}"
    )
    return BackupRunResponse.from_record(record, job_label="Media")


# ============================================================================
# VERIFICATION ENDPOINTS
# ============================================================================

@router.post(
    "/backups/verify",
    response_model=BackupVerification,
    status_code=status.HTTP_200_OK,
    summary="Verify Backup",
    description="Check a recorded backup run for completeness"
)
@limiter.limit(limit_param)
async def verify_backup(
    request: Request,
    response: Response,
    body: VerifyBackupRequest,
    principal: AdminPrincipal = Depends(verify_admin_token),
    service: BackupVerificationService = Depends(get_verification_service)
) -> BackupVerification:
    response.headers["x-request-id"] = principal.request_id

    try:
        return await run_in_threadpool(service.verify, body.backup_id)
    except BackupNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except BackupConfigurationError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    except Exception as e:
        logger.exception(f"Backup verification failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Verification failed: {str(e)}"
        )
