# services/media_backup_service.py
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from backup_service.core.config import settings
from backup_service.core.exceptions import BackupConfigurationError, SigningError, UploadError
from backup_service.core.logger import logger
from backup_service.schemas.backup_models import (
    BackupHistoryRecord,
    BackupStatus,
    Destination,
    FileEntry,
    MediaManifest,
    RemoteInventory,
    RemoteInventorySection,
    StorageCredentials,
)
from backup_service.services.history_service import BackupHistoryService
from backup_service.services.protocols import ObjectUploader, StorageSource, TableSource
from backup_service.utils.timestamps import iso_utc, key_timestamp, utc_now


class _MediaRun:
    """
    Mutable state of one media run. Worker threads only touch it through
    the lock-guarded methods.
    """

    def __init__(self, buckets: List[str]):
        self._lock = threading.Lock()
        self.entries: Dict[str, List[FileEntry]] = {bucket: [] for bucket in buckets}
        self.errors: List[str] = []
        self.total_files = 0
        self.total_bytes = 0

    def add_entry(self, bucket: str, entry: FileEntry) -> None:
        with self._lock:
            self.entries[bucket].append(entry)
            self.total_files += 1
            self.total_bytes += entry.size_bytes

    def add_error(self, message: str) -> None:
        with self._lock:
            self.errors.append(message)

    def snapshot_errors(self) -> List[str]:
        with self._lock:
            return list(self.errors)


class MediaBackupService:
    """
    Media snapshot job.

    Mirrors every file of the configured storage buckets into the backup
    bucket under media-backups/<timestamp>/<bucket>/<path>, writes an
    inventory of the CDN-hosted media (listed and sized, not copied) and a
    manifest, then records one history row.

    One file failing never stops the others; it becomes an entry in the
    error list and turns the run `partial`.
    """

    def __init__(
        self,
        storage: Optional[StorageSource],
        records: Optional[TableSource],
        uploader: ObjectUploader,
        history: BackupHistoryService,
        destination: Optional[Destination],
        credentials: Optional[StorageCredentials],
        buckets: Optional[List[str]] = None,
        inventory_sources: Optional[List[Dict[str, str]]] = None,
        prefix: Optional[str] = None,
        max_workers: Optional[int] = None,
        cdn: Optional[Destination] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.storage = storage
        self.records = records
        self.uploader = uploader
        self.history = history
        self.destination = destination
        self.credentials = credentials
        self.buckets = list(dict.fromkeys(buckets if buckets is not None else settings.STORAGE_BUCKETS))
        self.inventory_sources = (
            inventory_sources if inventory_sources is not None else settings.REMOTE_INVENTORY_SOURCES
        )
        self.prefix = (prefix or settings.MEDIA_BACKUP_PREFIX).strip("/")
        self.max_workers = max(1, max_workers or settings.MEDIA_BACKUP_MAX_WORKERS)
        self.cdn = cdn
        self.clock = clock

    # ------------------------------------------------------------------
    # Enumeration
    # ------------------------------------------------------------------

    def list_all_files(self, bucket: str, run: _MediaRun) -> List[str]:
        """
        Every file path in `bucket`, walking folders to any depth.
        An entry without an id is a folder.
        """
        files: List[str] = []
        pending = [""]
        while pending:
            prefix = pending.pop()
            try:
                items = self.storage.list_objects(bucket, prefix)
            except Exception as e:
                where = f"{bucket}/{prefix}" if prefix else bucket
                logger.warning(f"Could not list {where}: {e}")
                run.add_error(f"List {where}: {e}")
                continue

            for item in items or []:
                full_path = f"{prefix}/{item['name']}" if prefix else item["name"]
                if item.get("id") is None:
                    pending.append(full_path)
                else:
                    files.append(full_path)
        return sorted(files)

    # ------------------------------------------------------------------
    # Per-file copy
    # ------------------------------------------------------------------

    def _copy_file(
        self,
        run: _MediaRun,
        bucket: str,
        path: str,
        base_key: str,
        destination: Destination,
        credentials: StorageCredentials,
    ) -> None:
        source = f"{bucket}/{path}"
        try:
            try:
                data, content_type = self.storage.download(bucket, path)
            except Exception as e:
                logger.warning(f"Could not download {source}: {e}")
                run.add_error(f"Download {source}: {e}")
                return

            key = f"{base_key}/{bucket}/{path}"
            try:
                self.uploader.put_object(
                    destination, key, content_type or "application/octet-stream", data, credentials
                )
            except UploadError as e:
                run.add_error(f"Upload {source}: {e}")
                return

            run.add_entry(bucket, FileEntry(source_path=path, size_bytes=len(data), destination_key=key))
            logger.debug(f"Backed up {source} ({len(data)} bytes)")
        except SigningError:
            # malformed destination or credentials: fails the whole run
            raise
        except Exception as e:
            run.add_error(f"Process {source}: {e}")

    def copy_buckets(
        self,
        run: _MediaRun,
        base_key: str,
        destination: Destination,
        credentials: StorageCredentials,
    ) -> None:
        work: List[Tuple[str, str]] = []
        for bucket in self.buckets:
            logger.info(f"Processing bucket: {bucket}")
            files = self.list_all_files(bucket, run)
            if not files:
                logger.info(f"Bucket {bucket} is empty, skipping")
                continue
            work.extend((bucket, path) for path in files)

        logger.info(f"Copying {len(work)} files with {self.max_workers} workers")
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = [
                executor.submit(self._copy_file, run, bucket, path, base_key, destination, credentials)
                for bucket, path in work
            ]
            for future in as_completed(futures):
                future.result()

    # ------------------------------------------------------------------
    # Remote (CDN) inventory
    # ------------------------------------------------------------------

    def build_remote_inventory(self, run: _MediaRun) -> RemoteInventory:
        inventory = RemoteInventory(
            generated_at=iso_utc(self.clock()),
            bucket=self.cdn.bucket if self.cdn else "unknown",
            public_url=(self.cdn.public_base_url if self.cdn else None) or "unknown",
        )
        for source in self.inventory_sources:
            name = source["name"]
            section = RemoteInventorySection()
            try:
                rows = self.records.select_all(source["table"], source.get("columns", "*"))
            except Exception as e:
                logger.warning(f"Could not read inventory {name}: {e}")
                run.add_error(f"Inventory {name}: {e}")
                inventory.sections[name] = section
                continue

            required = source.get("require_key")
            if required:
                rows = [row for row in rows if row.get(required)]
            if self.cdn and self.cdn.public_base_url:
                rows = [self._with_public_url(row) for row in rows]
            section.files = rows
            section.count = len(rows)
            section.total_size_bytes = sum(int(row.get("file_size_bytes") or 0) for row in rows)
            inventory.sections[name] = section
        return inventory

    def _with_public_url(self, row: Dict[str, Any]) -> Dict[str, Any]:
        key = row.get("r2_key")
        if not key:
            return row
        return {**row, "public_url": self.cdn.public_url(key)}

    def _upload_json(
        self,
        run: _MediaRun,
        key: str,
        body: str,
        destination: Destination,
        credentials: StorageCredentials,
    ) -> Optional[str]:
        """Object URL, or None when the upload was rejected (recorded as a unit error)."""
        try:
            return self.uploader.put_object(
                destination, key, "application/json", body.encode("utf-8"), credentials
            )
        except UploadError as e:
            logger.error(f"Could not upload {key}: {e}")
            run.add_error(f"Upload {key}: {e}")
            return None

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def run(self, kind: str = "media", triggered_by: Optional[str] = None) -> BackupHistoryRecord:
        """
        Execute one media snapshot and return its history record.
        `failed` when nothing was stored: the run could not start, or neither
        a file nor the manifest reached the destination. Otherwise `success`
        or `partial`.
        """
        started = time.monotonic()
        started_at = self.clock()
        logger.info(f"Starting media backup ({kind})...")
        run = _MediaRun(self.buckets)

        try:
            if self.destination is None or self.credentials is None:
                raise BackupConfigurationError("Missing AWS configuration")
            if self.storage is None or self.records is None:
                raise BackupConfigurationError("Missing Supabase configuration")
            destination, credentials = self.destination, self.credentials

            base_key = f"{self.prefix}/{key_timestamp(started_at)}"
            self.copy_buckets(run, base_key, destination, credentials)

            logger.info("Generating remote inventory...")
            inventory = self.build_remote_inventory(run)
            self._upload_json(run, f"{base_key}/remote-inventory.json", inventory.to_json(), destination, credentials)

            manifest_key = f"{base_key}/manifest.json"
            manifest = MediaManifest(
                generated_at=iso_utc(self.clock()),
                backup_type=kind,
                total_files=run.total_files,
                total_bytes=run.total_bytes,
                buckets={
                    bucket: sorted(entries, key=lambda entry: entry.source_path)
                    for bucket, entries in run.entries.items()
                },
                remote_inventory=inventory.summary(),
                errors=run.snapshot_errors(),
            )
            manifest_url = self._upload_json(run, manifest_key, manifest.to_json(), destination, credentials)

            errors = run.snapshot_errors()
            counts: Dict[str, Any] = {
                "storage_files": run.total_files,
                "storage_bytes": run.total_bytes,
            }
            for name, section in inventory.sections.items():
                counts[f"remote_{name}"] = section.count
            counts["errors"] = len(errors)

            if manifest_url is None and run.total_files == 0:
                status = BackupStatus.FAILED
            elif errors:
                status = BackupStatus.PARTIAL
            else:
                status = BackupStatus.SUCCESS

            record = BackupHistoryRecord(
                backup_type=kind,
                status=status,
                file_name=manifest_key if manifest_url else None,
                destination_url=manifest_url,
                byte_size=run.total_bytes,
                duration_ms=int((time.monotonic() - started) * 1000),
                units_backed_up=list(self.buckets),
                component_counts=counts,
                error_message="; ".join(errors) if errors else None,
                triggered_by=triggered_by,
            )
            logger.info(
                f"Media backup {status.value} in {record.duration_ms}ms: "
                f"{run.total_files} files, {run.total_bytes} bytes, {len(errors)} errors"
            )

        except Exception as e:
            logger.exception(f"Media backup failed: {e}")
            errors = [str(e)]
            record = BackupHistoryRecord(
                backup_type=kind,
                status=BackupStatus.FAILED,
                duration_ms=int((time.monotonic() - started) * 1000),
                error_message=str(e) or e.__class__.__name__,
                triggered_by=triggered_by,
            )

        self.history.record(record)
        self.history.notify(record, job_label="Media", errors=errors)
        return record
