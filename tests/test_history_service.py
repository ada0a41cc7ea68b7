from __future__ import annotations

from datetime import datetime, timezone

import pytest
from conftest import FakeEmail, FakeSink

from backup_service.core.exceptions import NotificationError
from backup_service.schemas.backup_models import BackupHistoryRecord, BackupStatus
from backup_service.services.history_service import BackupHistoryService


def _record(**overrides) -> BackupHistoryRecord:
    values = {
        "backup_type": "scheduled",
        "status": BackupStatus.SUCCESS,
        "file_name": "backups/collabhunts-backup-2026-10-19T08-30-00-123Z.json",
        "destination_url": "https://collabhunts-backups.s3.eu-west-1.amazonaws.com/backups/x.json",
        "byte_size": 20480,
        "duration_ms": 1530,
        "units_backed_up": ["profiles", "bookings"],
        "component_counts": {"tables": 2, "total_rows": 1234},
    }
    values.update(overrides)
    return BackupHistoryRecord(**values)


def test_record_writes_one_row_with_history_columns(sink, history) -> None:
    record = _record(triggered_by="admin-1")

    assert history.record(record) is True

    table, row = sink.rows[0]
    assert table == "backup_history"
    assert row["id"] == record.id
    assert row["status"] == "success"
    assert row["s3_url"] == record.destination_url
    assert row["file_size"] == 20480
    assert row["execution_time_ms"] == 1530
    assert row["tables_backed_up"] == ["profiles", "bookings"]
    assert row["components_backed_up"] == {"tables": 2, "total_rows": 1234}
    assert row["triggered_by"] == "admin-1"


def test_record_failure_is_logged_not_raised(email) -> None:
    history = BackupHistoryService(sink=FakeSink(error=RuntimeError("db down")), email=email)

    assert history.record(_record()) is False


def test_record_without_sink_returns_false(email) -> None:
    assert BackupHistoryService(sink=None, email=email).record(_record()) is False


def test_row_round_trips_to_record() -> None:
    record = _record(status=BackupStatus.PARTIAL, error_message="Download a/b: 404")

    assert BackupHistoryRecord.from_row(record.to_row()) == record


def test_success_email(email, history) -> None:
    assert history.notify(_record(), job_label="Database") is True

    sent = email.sent[0]
    assert sent["to"] == "ops@collabhunts.test"
    assert sent["subject"] == "✅ CollabHunts Database Backup Successful"
    assert "1,234" in sent["html"]
    assert "20.0KB" in sent["html"]
    assert "https://admin.collabhunts.test/backup-history" in sent["html"]
    assert "could not be backed up" not in sent["html"]


def test_partial_email_lists_errors(email, history) -> None:
    errors = [f"Download profile-images/{i}.png: Object not found" for i in range(25)]
    record = _record(status=BackupStatus.PARTIAL, component_counts={"storage_files": 3})

    history.notify(record, job_label="Media", errors=errors)

    sent = email.sent[0]
    assert sent["subject"] == "⚠️ CollabHunts Media Backup Completed With Errors"
    assert "25 item(s) could not be backed up" in sent["html"]
    assert "profile-images/19.png" in sent["html"]
    assert "profile-images/20.png" not in sent["html"]
    assert "and 5 more" in sent["html"]


def test_failure_email_escapes_error_message(email, history) -> None:
    record = _record(status=BackupStatus.FAILED, error_message="S3 upload failed: 403 - <Error/>")

    history.notify(record, job_label="Database")

    sent = email.sent[0]
    assert sent["subject"] == "⚠️ CollabHunts Database Backup Failed"
    assert "&lt;Error/&gt;" in sent["html"]
    assert "<Error/>" not in sent["html"]


def test_notify_skipped_when_not_configured(sink) -> None:
    unconfigured = FakeEmail(configured=False)
    history = BackupHistoryService(sink=sink, email=unconfigured, admin_email="ops@collabhunts.test")

    assert history.notify(_record()) is False
    assert unconfigured.sent == []


def test_notify_skipped_without_admin_email(sink, email) -> None:
    history = BackupHistoryService(sink=sink, email=email, admin_email="")

    assert history.notify(_record()) is False
    assert email.sent == []


def test_email_failure_is_logged_not_raised(sink) -> None:
    history = BackupHistoryService(
        sink=sink,
        email=FakeEmail(error=NotificationError("Email rejected: 422")),
        admin_email="ops@collabhunts.test",
    )

    assert history.notify(_record()) is False


def test_email_timestamp_is_the_record_creation_time(email, history) -> None:
    created = datetime(2026, 10, 19, 3, 0, 5, tzinfo=timezone.utc)

    history.notify(_record(created_at=created), job_label="Database")

    assert "2026-10-19T03:00:05+00:00" in email.sent[0]["html"]


def test_render_failure_is_logged_not_raised(email, history, monkeypatch: pytest.MonkeyPatch) -> None:
    def broken_render(record, job_label, errors):
        raise KeyError("files_count")

    monkeypatch.setattr(history, "render", broken_render)

    assert history.notify(_record(), job_label="Media") is False
    assert email.sent == []
