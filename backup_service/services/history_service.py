# services/history_service.py
"""
Backup history and operator notification.

Both operations are best effort: whatever happens here, the status already
decided for the run is what the caller gets back.
"""

from html import escape
from typing import Any, Dict, List, Optional, Protocol

from backup_service.core.config import settings
from backup_service.core.logger import logger
from backup_service.models import email_templates as tpl
from backup_service.schemas.backup_models import BackupHistoryRecord, BackupStatus


class AuditSink(Protocol):
    def insert(self, table: str, row: Dict[str, Any]) -> None: ...


class EmailTransport(Protocol):
    @property
    def configured(self) -> bool: ...

    def send(self, to: str, subject: str, html: str) -> str: ...


# component_counts keys surfaced as headline stats in the email
STAT_LABELS = {
    "total_rows": "Rows",
    "storage_files": "Files",
    "remote_content_library": "CDN Assets",
}


class BackupHistoryService:

    def __init__(
        self,
        sink: Optional[AuditSink],
        email: Optional[EmailTransport],
        admin_email: Optional[str] = None,
        table: Optional[str] = None,
        history_url: Optional[str] = None,
    ):
        self.sink = sink
        self.email = email
        self.admin_email = admin_email if admin_email is not None else settings.ADMIN_EMAIL
        self.table = table or settings.BACKUP_HISTORY_TABLE
        self.history_url = history_url or settings.BACKUP_HISTORY_URL

    def record(self, record: BackupHistoryRecord) -> bool:
        """Append one history row. Returns False (and logs) when it could not be written."""
        if self.sink is None:
            logger.error(f"No history sink available; backup {record.id} ({record.status.value}) not recorded")
            return False
        try:
            self.sink.insert(self.table, record.to_row())
        except Exception as e:
            logger.error(
                f"Failed to record backup history: {e}",
                extra={"backup_id": record.id, "status": record.status.value},
            )
            return False
        logger.info(f"Backup history recorded: id={record.id}, status={record.status.value}")
        return True

    def notify(
        self,
        record: BackupHistoryRecord,
        job_label: str = "Database",
        errors: Optional[List[str]] = None,
    ) -> bool:
        """
        Send exactly one email for the run: the failure template for a
        failed run, the success template otherwise (with a warnings block
        when unit-level errors were collected).
        """
        if self.email is None or not self.email.configured or not self.admin_email:
            logger.info("Email notification skipped: RESEND_API_KEY or ADMIN_EMAIL not configured")
            return False

        try:
            subject, html = self.render(record, job_label, errors or [])
            logger.info(f"Sending backup {record.status.value} notification to {self.admin_email}")
            self.email.send(self.admin_email, subject, html)
        except Exception as e:
            logger.error(f"Failed to send backup {record.status.value} email: {e}")
            return False
        return True

    def render(self, record: BackupHistoryRecord, job_label: str, errors: List[str]):
        """Return (subject, html) for a run."""
        common = {
            "job_label_lower": job_label.lower(),
            "backup_type": escape(record.backup_type),
            "timestamp": record.created_at.isoformat(),
            "duration_secs": f"{record.duration_ms / 1000:.2f}",
            "history_url": self.history_url,
        }

        if record.status == BackupStatus.FAILED:
            subject = tpl.FAILURE_SUBJECT_TEMPLATE.format(job_label=job_label)
            html = tpl.FAILURE_EMAIL_TEMPLATE.format(
                styles=tpl.styles_for(tpl.FAILURE_ACCENT),
                error_message=escape(record.error_message or "Unknown error"),
                **common,
            )
            return subject, html

        if record.status == BackupStatus.PARTIAL:
            subject = tpl.PARTIAL_SUBJECT_TEMPLATE.format(job_label=job_label)
            accent = tpl.PARTIAL_ACCENT
            headline = "⚠️ Backup Completed With Errors"
        else:
            subject = tpl.SUCCESS_SUBJECT_TEMPLATE.format(job_label=job_label)
            accent = tpl.SUCCESS_ACCENT
            headline = "✅ Backup Successful"

        stats = [("Units", len(record.units_backed_up))]
        for key, label in STAT_LABELS.items():
            if key in record.component_counts:
                stats.append((label, f"{record.component_counts[key]:,}"))
        stats.append(("Size", f"{record.byte_size / 1024:.1f}KB"))

        html = tpl.SUCCESS_EMAIL_TEMPLATE.format(
            styles=tpl.styles_for(accent),
            headline=headline,
            stats=tpl.build_stats(stats),
            file_name=escape(record.file_name or ""),
            destination_url=escape(record.destination_url or ""),
            warnings=tpl.build_warnings(errors),
            **common,
        )
        return subject, html
