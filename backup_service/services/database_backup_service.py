# services/database_backup_service.py
import time
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple
from datetime import datetime

from backup_service.core.config import settings
from backup_service.core.exceptions import (
    BackupConfigurationError,
    SimulatedBackupFailure,
    UploadError,
)
from backup_service.core.logger import logger
from backup_service.schemas.backup_models import (
    BackupHistoryRecord,
    BackupStatus,
    CollectionSnapshot,
    Destination,
    SchemaDescriptors,
    SnapshotDocument,
    SnapshotMetadata,
    StorageCredentials,
)
from backup_service.services.history_service import BackupHistoryService
from backup_service.services.protocols import ObjectUploader, TableSource
from backup_service.utils.timestamps import iso_utc, key_timestamp, utc_now

SIMULATED_FAILURE_MESSAGE = (
    "TEST FAILURE: This is a simulated backup failure to test email notifications"
)


class DatabaseBackupPhase(str, Enum):
    IDLE = "idle"
    COLLECTING = "collecting"
    SERIALIZING = "serializing"
    UPLOADING = "uploading"
    RECORDING = "recording"
    NOTIFYING = "notifying"
    DONE = "done"


class DatabaseBackupService:
    """
    Database snapshot job.

    Reads every configured table in full, assembles one versioned JSON
    document (rows + static schema descriptors + function inventory),
    uploads it with a signed PUT and writes exactly one history row.

    A table that cannot be read is stored as {error, rows: []} and the run
    goes on. Only a run-level problem (no destination credentials, a
    simulated failure, the upload itself failing) makes the run `failed`.
    """

    def __init__(
        self,
        source: Optional[TableSource],
        uploader: ObjectUploader,
        history: BackupHistoryService,
        destination: Optional[Destination],
        credentials: Optional[StorageCredentials],
        tables: Optional[List[str]] = None,
        schema_enums: Optional[Dict[str, List[str]]] = None,
        schema_functions: Optional[List[str]] = None,
        function_inventory: Optional[Dict[str, str]] = None,
        project_id: Optional[str] = None,
        file_prefix: Optional[str] = None,
        simulate_failure: bool = False,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.source = source
        self.uploader = uploader
        self.history = history
        self.destination = destination
        self.credentials = credentials
        # one snapshot entry per name, first occurrence wins
        self.tables = list(dict.fromkeys(tables if tables is not None else settings.BACKUP_TABLES))
        self.schema_enums = schema_enums if schema_enums is not None else settings.SCHEMA_ENUMS
        self.schema_functions = schema_functions if schema_functions is not None else settings.SCHEMA_FUNCTIONS
        self.function_inventory = (
            function_inventory if function_inventory is not None else settings.FUNCTION_INVENTORY
        )
        self.project_id = project_id or settings.SUPABASE_PROJECT_ID
        self.file_prefix = file_prefix or settings.DB_BACKUP_FILE_PREFIX
        self.simulate_failure = simulate_failure
        self.clock = clock
        self.phase = DatabaseBackupPhase.IDLE

    def _enter(self, phase: DatabaseBackupPhase) -> None:
        logger.debug(f"Database backup phase: {self.phase.value} -> {phase.value}")
        self.phase = phase

    # ------------------------------------------------------------------
    # Collection
    # ------------------------------------------------------------------

    def _require_destination(self) -> Tuple[Destination, StorageCredentials]:
        if self.destination is None or self.credentials is None:
            raise BackupConfigurationError("Missing AWS configuration")
        if self.source is None:
            raise BackupConfigurationError("Missing Supabase configuration")
        return self.destination, self.credentials

    def collect(self, kind: str, started_at: datetime) -> SnapshotDocument:
        """Build the snapshot document. Never raises for a single table."""
        document = SnapshotDocument(
            metadata=SnapshotMetadata(
                version=settings.BACKUP_VERSION,
                created_at=iso_utc(started_at),
                backup_type=kind,
                project_id=self.project_id,
            ),
            schema_descriptors=SchemaDescriptors(
                enums=dict(self.schema_enums),
                functions=list(self.schema_functions),
            ),
            function_inventory=dict(self.function_inventory),
        )

        for table in self.tables:
            logger.info(f"Backing up table: {table}")
            try:
                rows = self.source.select_all(table)
            except Exception as e:
                logger.warning(f"Could not backup {table}: {e}")
                document.collections[table] = CollectionSnapshot.failed(str(e))
                continue
            document.collections[table] = CollectionSnapshot.from_rows(rows or [])

        return document

    @staticmethod
    def component_counts(document: SnapshotDocument) -> Dict[str, int]:
        ok = [entry for entry in document.collections.values() if entry.ok]
        return {
            "tables": len(ok),
            "total_rows": sum(len(entry.rows) for entry in ok),
            "failed_tables": len(document.collections) - len(ok),
            "schema_items": len(SchemaDescriptors.model_fields),
            "edge_functions": len(document.function_inventory),
        }

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def run(
        self,
        kind: str = "scheduled",
        triggered_by: Optional[str] = None,
        simulate_failure: bool = False,
    ) -> BackupHistoryRecord:
        """
        Execute one database snapshot and return its history record.
        Always writes one history row and sends one notification.
        """
        started = time.monotonic()
        started_at = self.clock()
        self.phase = DatabaseBackupPhase.IDLE
        logger.info(f"Starting {kind} backup...")

        document: Optional[SnapshotDocument] = None
        file_name: Optional[str] = None
        byte_size = 0

        try:
            self._enter(DatabaseBackupPhase.COLLECTING)
            destination, credentials = self._require_destination()
            document = self.collect(kind, started_at)

            if simulate_failure or self.simulate_failure:
                logger.info("Test failure mode activated - simulating backup failure")
                raise SimulatedBackupFailure(SIMULATED_FAILURE_MESSAGE)

            self._enter(DatabaseBackupPhase.SERIALIZING)
            body = document.to_json().encode("utf-8")
            byte_size = len(body)
            file_name = f"backups/{self.file_prefix}-{key_timestamp(started_at)}.json"

            self._enter(DatabaseBackupPhase.UPLOADING)
            logger.info(f"Uploading backup to S3: {file_name} ({byte_size} bytes)")
            url = self.uploader.put_object(destination, file_name, "application/json", body, credentials)

            counts = self.component_counts(document)
            record = BackupHistoryRecord(
                backup_type=kind,
                status=BackupStatus.SUCCESS,
                file_name=file_name,
                destination_url=url,
                byte_size=byte_size,
                duration_ms=int((time.monotonic() - started) * 1000),
                units_backed_up=[name for name, entry in document.collections.items() if entry.ok],
                component_counts=counts,
                triggered_by=triggered_by,
            )
            logger.info(
                f"Backup completed successfully in {record.duration_ms}ms: "
                f"tables={counts['tables']}, rows={counts['total_rows']}"
            )

        except UploadError as e:
            logger.error(f"Backup upload failed: {e}")
            record = BackupHistoryRecord(
                backup_type=kind,
                status=BackupStatus.FAILED,
                file_name=file_name,
                byte_size=byte_size,
                duration_ms=int((time.monotonic() - started) * 1000),
                units_backed_up=[name for name, entry in document.collections.items() if entry.ok],
                component_counts=self.component_counts(document),
                error_message=str(e),
                triggered_by=triggered_by,
            )

        except Exception as e:
            # nothing was uploaded: configuration, simulated failure, or a bug
            logger.exception(f"Backup failed: {e}")
            record = BackupHistoryRecord(
                backup_type=kind,
                status=BackupStatus.FAILED,
                duration_ms=int((time.monotonic() - started) * 1000),
                error_message=str(e) or e.__class__.__name__,
                triggered_by=triggered_by,
            )

        self._enter(DatabaseBackupPhase.RECORDING)
        self.history.record(record)

        self._enter(DatabaseBackupPhase.NOTIFYING)
        self.history.notify(record, job_label="Database")

        self._enter(DatabaseBackupPhase.DONE)
        return record
