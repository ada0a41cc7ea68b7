from __future__ import annotations

import json
from datetime import datetime, timezone

from conftest import FakeStorage, FakeTableSource, FakeUploader

from backup_service.core.exceptions import DataSourceError, SigningError
from backup_service.schemas.backup_models import BackupStatus, Destination
from backup_service.services.media_backup_service import MediaBackupService, _MediaRun

CDN = Destination.cdn("acct123", "collabhunts-media", "https://media.collabhunts.test")
FIXED_NOW = datetime(2026, 10, 19, 3, 0, 0, tzinfo=timezone.utc)
BASE_KEY = "media-backups/2026-10-19T03-00-00-000Z"

INVENTORY_SOURCES = [
    {"name": "content_library", "table": "content_library", "columns": "id,file_size_bytes,r2_key"},
    {
        "name": "portfolio_media",
        "table": "creator_portfolio_media",
        "columns": "id,file_size_bytes,r2_key",
        "require_key": "r2_key",
    },
]


def _service(storage, uploader, history, destination, credentials, records=None, **kwargs) -> MediaBackupService:
    kwargs.setdefault("buckets", ["profile-images", "brand-logos", "career-cvs"])
    kwargs.setdefault("inventory_sources", INVENTORY_SOURCES)
    kwargs.setdefault("cdn", CDN)
    return MediaBackupService(
        storage=storage,
        records=records if records is not None else FakeTableSource(),
        uploader=uploader,
        history=history,
        destination=destination,
        credentials=credentials,
        max_workers=3,
        clock=lambda: FIXED_NOW,
        **kwargs,
    )


def _manifest(uploader: FakeUploader) -> dict:
    return json.loads(uploader.body_for(f"{BASE_KEY}/manifest.json"))


def test_empty_bucket_and_failed_download_give_partial(sink, email, history, destination, credentials) -> None:
    storage = FakeStorage(
        buckets={
            "profile-images": {"u1/avatar.png": b"a" * 10},
            "brand-logos": {},
            "career-cvs": {"cv.pdf": b"pdf"},
        },
        failing_downloads={("career-cvs", "cv.pdf")},
    )
    uploader = FakeUploader()

    record = _service(storage, uploader, history, destination, credentials).run()

    manifest = _manifest(uploader)
    assert manifest["buckets"]["brand-logos"] == []
    assert manifest["buckets"]["career-cvs"] == []
    assert [entry["source_path"] for entry in manifest["buckets"]["profile-images"]] == ["u1/avatar.png"]
    assert any("career-cvs/cv.pdf" in error for error in manifest["errors"])
    assert record.status == BackupStatus.PARTIAL
    assert "Download career-cvs/cv.pdf" in record.error_message
    assert len(sink.rows) == 1
    assert len(email.sent) == 1
    assert "Completed With Errors" in email.sent[0]["subject"]
    assert "career-cvs/cv.pdf" in email.sent[0]["html"]


def test_nested_folders_are_walked_to_any_depth(history, destination, credentials) -> None:
    files = {
        "root.png": b"r",
        "u1/avatar.png": b"aa",
        "u1/2024/05/old/avatar.png": b"bbb",
        "u2/deep/deeper/deepest/x.png": b"cccc",
    }
    storage = FakeStorage(buckets={"profile-images": files})
    uploader = FakeUploader()

    record = _service(
        storage, uploader, history, destination, credentials, buckets=["profile-images"]
    ).run()

    copied = sorted(key for key in uploader.keys() if not key.endswith(".json"))
    assert copied == sorted(f"{BASE_KEY}/profile-images/{path}" for path in files)
    assert record.status == BackupStatus.SUCCESS
    assert record.component_counts["storage_files"] == 4
    assert record.component_counts["storage_bytes"] == 10
    assert record.byte_size == 10


def test_copied_bytes_match_source(history, destination, credentials) -> None:
    storage = FakeStorage(buckets={"brand-logos": {"acme/logo.png": b"\x89PNG-bytes"}})
    uploader = FakeUploader()

    _service(storage, uploader, history, destination, credentials, buckets=["brand-logos"]).run()

    call = next(c for c in uploader.calls if c["key"] == f"{BASE_KEY}/brand-logos/acme/logo.png")
    assert call["body"] == b"\x89PNG-bytes"
    assert call["content_type"] == "image/png"


def test_listing_failure_is_a_unit_error(history, destination, credentials) -> None:
    storage = FakeStorage(
        buckets={"profile-images": {"a.png": b"a"}},
        failing_lists={("career-cvs", "")},
    )
    uploader = FakeUploader()

    record = _service(storage, uploader, history, destination, credentials).run()

    assert record.status == BackupStatus.PARTIAL
    assert "List career-cvs: Bucket not found" in record.error_message
    assert record.component_counts["storage_files"] == 1


def test_failed_file_upload_does_not_stop_other_files(history, destination, credentials) -> None:
    storage = FakeStorage(buckets={"profile-images": {"a.png": b"a", "b.png": b"b", "c.png": b"c"}})
    uploader = FakeUploader(fail_when=lambda key: key.endswith("/b.png"))

    record = _service(storage, uploader, history, destination, credentials, buckets=["profile-images"]).run()

    manifest = _manifest(uploader)
    assert [entry["source_path"] for entry in manifest["buckets"]["profile-images"]] == ["a.png", "c.png"]
    assert record.status == BackupStatus.PARTIAL
    assert record.component_counts["errors"] == 1
    assert "Upload profile-images/b.png: S3 upload failed: 403" in record.error_message


def test_remote_inventory_is_listed_not_copied(history, destination, credentials) -> None:
    records = FakeTableSource({
        "content_library": [
            {"id": "c1", "file_size_bytes": 100, "r2_key": "content/c1.mp4"},
            {"id": "c2", "file_size_bytes": 50, "r2_key": "content/c2.jpg"},
        ],
        "creator_portfolio_media": [
            {"id": "m1", "file_size_bytes": 7, "r2_key": "portfolio/m1.jpg"},
            {"id": "m2", "file_size_bytes": 9, "r2_key": None},
        ],
    })
    uploader = FakeUploader()

    record = _service(
        FakeStorage(), uploader, history, destination, credentials, records=records, buckets=[]
    ).run()

    inventory = json.loads(uploader.body_for(f"{BASE_KEY}/remote-inventory.json"))
    assert inventory["bucket"] == "collabhunts-media"
    assert inventory["public_url"] == "https://media.collabhunts.test"
    assert inventory["sections"]["content_library"]["count"] == 2
    assert inventory["sections"]["content_library"]["total_size_bytes"] == 150
    assert [row["id"] for row in inventory["sections"]["portfolio_media"]["files"]] == ["m1"]
    assert inventory["sections"]["content_library"]["files"][0]["public_url"] == (
        "https://media.collabhunts.test/content/c1.mp4"
    )
    assert _manifest(uploader)["remote_inventory"] == {
        "content_library_count": 2,
        "portfolio_media_count": 1,
        "total_size_bytes": 157,
    }
    assert record.component_counts["remote_content_library"] == 2
    assert uploader.keys() == [f"{BASE_KEY}/remote-inventory.json", f"{BASE_KEY}/manifest.json"]


def test_inventory_read_failure_is_a_unit_error(history, destination, credentials) -> None:
    records = FakeTableSource({"content_library": DataSourceError("content_library", "permission denied", 403)})
    uploader = FakeUploader()

    record = _service(
        FakeStorage(), uploader, history, destination, credentials, records=records, buckets=[]
    ).run()

    assert record.status == BackupStatus.PARTIAL
    assert record.error_message == "Inventory content_library: permission denied"


def test_manifest_location_and_totals(sink, history, destination, credentials) -> None:
    storage = FakeStorage(buckets={"profile-images": {"a.png": b"aaa"}})
    uploader = FakeUploader()

    record = _service(storage, uploader, history, destination, credentials, buckets=["profile-images"]).run()

    manifest = _manifest(uploader)
    assert manifest["total_files"] == 1
    assert manifest["total_bytes"] == 3
    assert manifest["backup_type"] == "media"
    assert manifest["errors"] == []
    assert manifest["buckets"]["profile-images"][0]["destination_key"] == f"{BASE_KEY}/profile-images/a.png"
    assert record.file_name == f"{BASE_KEY}/manifest.json"
    assert record.destination_url.endswith(f"/{BASE_KEY}/manifest.json")
    assert record.units_backed_up == ["profile-images"]
    assert len(sink.rows) == 1
    assert sink.rows[0][1]["components_backed_up"]["storage_files"] == 1


def test_missing_credentials_fail_without_touching_storage(sink, email, history, destination) -> None:
    storage = FakeStorage(buckets={"profile-images": {"a.png": b"a"}})
    uploader = FakeUploader()

    record = _service(storage, uploader, history, destination, None).run()

    assert record.status == BackupStatus.FAILED
    assert record.error_message == "Missing AWS configuration"
    assert storage.listed == []
    assert uploader.calls == []
    assert len(sink.rows) == 1
    assert "Failed" in email.sent[0]["subject"]


def test_list_all_files_returns_sorted_paths(history, destination, credentials) -> None:
    storage = FakeStorage(buckets={"b": {"z.png": b"", "a/y.png": b"", "a/b/x.png": b""}})
    service = _service(storage, FakeUploader(), history, destination, credentials, buckets=["b"])

    assert service.list_all_files("b", _MediaRun(["b"])) == ["a/b/x.png", "a/y.png", "z.png"]


def test_inventory_without_cdn_names_no_bucket(history, destination, credentials) -> None:
    records = FakeTableSource({"content_library": [{"id": "c1", "file_size_bytes": 1, "r2_key": "content/c1.mp4"}]})
    uploader = FakeUploader()

    _service(
        FakeStorage(), uploader, history, destination, credentials, records=records, buckets=[], cdn=None
    ).run()

    inventory = json.loads(uploader.body_for(f"{BASE_KEY}/remote-inventory.json"))
    assert inventory["bucket"] == "unknown"
    assert inventory["public_url"] == "unknown"
    assert "public_url" not in inventory["sections"]["content_library"]["files"][0]


def test_every_upload_rejected_is_failed(sink, email, history, destination, credentials) -> None:
    storage = FakeStorage(buckets={"profile-images": {"a.png": b"a", "b.png": b"b"}})
    uploader = FakeUploader(fail_when=lambda key: True)

    record = _service(
        storage, uploader, history, destination, credentials, buckets=["profile-images"]
    ).run()

    assert record.status == BackupStatus.FAILED
    assert record.file_name is None
    assert record.destination_url is None
    assert record.component_counts["storage_files"] == 0
    assert "Upload profile-images/a.png" in record.error_message
    assert f"Upload {BASE_KEY}/manifest.json" in record.error_message
    assert len(sink.rows) == 1
    assert sink.rows[0][1]["status"] == "failed"
    assert "Failed" in email.sent[0]["subject"]


def test_files_copied_but_manifest_rejected_is_partial(history, destination, credentials) -> None:
    storage = FakeStorage(buckets={"profile-images": {"a.png": b"a"}})
    uploader = FakeUploader(fail_when=lambda key: key.endswith("manifest.json"))

    record = _service(
        storage, uploader, history, destination, credentials, buckets=["profile-images"]
    ).run()

    assert record.status == BackupStatus.PARTIAL
    assert record.file_name is None
    assert record.destination_url is None
    assert record.component_counts["storage_files"] == 1
    assert record.error_message.startswith(f"Upload {BASE_KEY}/manifest.json")


class _UnsignableUploader(FakeUploader):
    def put_object(self, destination, key_path, content_type, body, credentials) -> str:
        with self._lock:
            self.calls.append({"key": key_path, "content_type": content_type, "body": body})
        raise SigningError("access_key_id is required")


def test_signing_error_on_file_copy_fails_the_run(sink, email, history, destination, credentials) -> None:
    storage = FakeStorage(buckets={"profile-images": {"a.png": b"a", "b.png": b"b"}})
    uploader = _UnsignableUploader()

    record = _service(
        storage, uploader, history, destination, credentials, buckets=["profile-images"]
    ).run()

    assert record.status == BackupStatus.FAILED
    assert record.error_message == "access_key_id is required"
    assert not any(key.endswith("manifest.json") for key in uploader.keys())
    assert len(sink.rows) == 1
    assert "Failed" in email.sent[0]["subject"]


def test_signing_error_on_manifest_fails_the_run(history, destination, credentials) -> None:
    uploader = _UnsignableUploader()

    record = _service(FakeStorage(), uploader, history, destination, credentials, buckets=[]).run()

    assert record.status == BackupStatus.FAILED
    assert record.error_message == "access_key_id is required"
    assert uploader.keys() == [f"{BASE_KEY}/remote-inventory.json"]
