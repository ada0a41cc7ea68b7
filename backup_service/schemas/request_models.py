# schemas/request_models.py
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List, Dict, Any

from backup_service.schemas.backup_models import BackupHistoryRecord, BackupStatus


class BackupRunRequest(BaseModel):
    """
    Trigger body shared by both backup endpoints.
    Wire names follow the admin dashboard: type, triggered_by, test_failure.
    """
    model_config = ConfigDict(populate_by_name=True)

    kind: Optional[str] = Field(None, alias="type", description="scheduled, manual, media, ...")
    triggered_by: Optional[str] = Field(None, description="Operator user id; defaults to the token subject")
    simulate_failure: bool = Field(
        False,
        alias="test_failure",
        description="Database backup only: fail after collection to exercise the failure email",
    )


class BackupRunResponse(BaseModel):
    success: bool
    status: BackupStatus
    message: str
    backup_id: str
    file_name: Optional[str] = None
    s3_url: Optional[str] = None
    file_size: int = 0
    units_backed_up: List[str] = Field(default_factory=list)
    components: Dict[str, Any] = Field(default_factory=dict)
    execution_time_ms: int = 0
    error: Optional[str] = None

    @classmethod
    def from_record(cls, record: BackupHistoryRecord, job_label: str) -> "BackupRunResponse":
        messages = {
            BackupStatus.SUCCESS: f"{job_label} backup completed successfully",
            BackupStatus.PARTIAL: f"{job_label} backup completed with errors",
            BackupStatus.FAILED: f"{job_label} backup failed",
        }
        return cls(
            success=record.status != BackupStatus.FAILED,
            status=record.status,
            message=messages[record.status],
            backup_id=record.id,
            file_name=record.file_name,
            s3_url=record.destination_url,
            file_size=record.byte_size,
            units_backed_up=record.units_backed_up,
            components=record.component_counts,
            execution_time_ms=record.duration_ms,
            error=record.error_message,
        )


class VerifyBackupRequest(BaseModel):
    backup_id: str = Field(..., min_length=1)


class HealthResponse(BaseModel):
    status: str = "healthy"
    message: str = "Backup service is operational"
    destination_status: Optional[str] = None
    source_status: Optional[str] = None
    notification_status: Optional[str] = None
    redis_status: Optional[str] = None
