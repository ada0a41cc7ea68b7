# services/verification_service.py
from typing import Optional

from backup_service.core.config import settings
from backup_service.core.exceptions import BackupConfigurationError, BackupNotFoundError
from backup_service.core.logger import logger
from backup_service.schemas.backup_models import BackupHistoryRecord, BackupVerification
from backup_service.services.protocols import RecordLookup


class BackupVerificationService:
    """
    Sanity checks over a recorded backup run: did it produce a stored
    object of non-zero size, cover at least one unit and finish cleanly.
    """

    def __init__(self, lookup: Optional[RecordLookup], table: Optional[str] = None):
        self.lookup = lookup
        self.table = table or settings.BACKUP_HISTORY_TABLE

    def verify(self, backup_id: str) -> BackupVerification:
        if self.lookup is None:
            raise BackupConfigurationError("Missing Supabase configuration")

        row = self.lookup.select_one(self.table, backup_id)
        if not row:
            raise BackupNotFoundError(f"Backup not found: {backup_id}")

        record = BackupHistoryRecord.from_row(row)
        checks = {
            "has_destination_url": bool(record.destination_url),
            "has_file_name": bool(record.file_name),
            "has_file_size": record.byte_size > 0,
            "units_backed_up": len(record.units_backed_up),
            "execution_completed": record.duration_ms > 0,
            "no_errors": not record.error_message,
        }
        overall_valid = (
            checks["has_destination_url"]
            and checks["has_file_name"]
            and checks["has_file_size"]
            and checks["units_backed_up"] > 0
            and checks["execution_completed"]
            and checks["no_errors"]
        )

        logger.info(f"Backup {backup_id} verified: overall_valid={overall_valid}")
        return BackupVerification(
            backup_id=record.id,
            file_name=record.file_name,
            status=record.status,
            created_at=record.created_at,
            checks=checks,
            overall_valid=overall_valid,
        )
