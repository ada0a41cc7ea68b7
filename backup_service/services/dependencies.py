# services/dependencies.py
"""
Wiring of the backup services from settings, used as FastAPI dependencies.

Missing configuration does not fail here: the affected collaborator is left
as None so the job can still record and report a `failed` run.
"""

from typing import Optional, Tuple

from backup_service.core.exceptions import BackupConfigurationError
from backup_service.core.logger import logger
from backup_service.integrations.email_client import ResendEmailClient
from backup_service.integrations.object_storage_client import (
    ObjectPutClient,
    backup_credentials,
    backup_destination,
    cdn_destination,
)
from backup_service.integrations.supabase_client import SupabaseRestClient
from backup_service.schemas.backup_models import Destination, StorageCredentials
from backup_service.services.database_backup_service import DatabaseBackupService
from backup_service.services.history_service import BackupHistoryService
from backup_service.services.media_backup_service import MediaBackupService
from backup_service.services.verification_service import BackupVerificationService


def _supabase() -> Optional[SupabaseRestClient]:
    try:
        return SupabaseRestClient()
    except BackupConfigurationError as e:
        logger.warning(f"Supabase client unavailable: {e}")
        return None


def _destination() -> Tuple[Optional[Destination], Optional[StorageCredentials]]:
    try:
        return backup_destination(), backup_credentials()
    except BackupConfigurationError as e:
        logger.warning(f"Backup destination unavailable: {e}")
        return None, None


def _cdn() -> Optional[Destination]:
    try:
        return cdn_destination()
    except BackupConfigurationError as e:
        logger.warning(f"CDN inventory will not name its bucket: {e}")
        return None


def get_history_service(supabase: Optional[SupabaseRestClient] = None) -> BackupHistoryService:
    return BackupHistoryService(sink=supabase or _supabase(), email=ResendEmailClient())


def get_database_backup_service() -> DatabaseBackupService:
    supabase = _supabase()
    destination, credentials = _destination()
    return DatabaseBackupService(
        source=supabase,
        uploader=ObjectPutClient(),
        history=get_history_service(supabase),
        destination=destination,
        credentials=credentials,
    )


def get_media_backup_service() -> MediaBackupService:
    supabase = _supabase()
    destination, credentials = _destination()
    return MediaBackupService(
        storage=supabase,
        records=supabase,
        uploader=ObjectPutClient(),
        history=get_history_service(supabase),
        destination=destination,
        credentials=credentials,
        cdn=_cdn(),
    )


def get_verification_service() -> BackupVerificationService:
    return BackupVerificationService(lookup=_supabase())
