# schemas/backup_models.py
import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, SecretStr


class BackupStatus(str, Enum):
    """Outcome of one job run"""
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


class EndpointStyle(str, Enum):
    """How the bucket name is placed in an S3-compatible URL"""
    VIRTUAL_HOSTED = "virtual-hosted"
    PATH = "path"


# ============================================================================
# SIGNING / DESTINATION MODELS
# ============================================================================

class SigningContext(BaseModel):
    """
    Everything needed to sign one request. Never persisted; the secret is a
    SecretStr so it is masked in reprs, logs and dumps.
    """
    model_config = ConfigDict(frozen=True)

    access_key_id: str
    secret_key: SecretStr
    region: str
    service: str
    endpoint_host: str
    http_method: str
    canonical_path: str
    query_string: str = ""
    payload: bytes = b""
    headers: Dict[str, str] = Field(default_factory=dict)


class StorageCredentials(BaseModel):
    model_config = ConfigDict(frozen=True)

    access_key_id: str
    secret_access_key: SecretStr


class Destination(BaseModel):
    """
    An S3-compatible bucket reachable either virtual-hosted style
    (https://<bucket>.<endpoint>/<key>) or path style
    (https://<endpoint>/<bucket>/<key>).
    """
    model_config = ConfigDict(frozen=True)

    bucket: str
    region: str
    endpoint: str
    style: EndpointStyle = EndpointStyle.VIRTUAL_HOSTED
    service: str = "s3"
    public_base_url: Optional[str] = None

    @classmethod
    def s3(cls, bucket: str, region: str, endpoint: Optional[str] = None) -> "Destination":
        return cls(
            bucket=bucket,
            region=region,
            endpoint=endpoint or f"s3.{region}.amazonaws.com",
        )

    @classmethod
    def cdn(cls, account_id: str, bucket: str, public_base_url: Optional[str] = None) -> "Destination":
        """Cloudflare R2 bucket: path style, region 'auto'."""
        return cls(
            bucket=bucket,
            region="auto",
            endpoint=f"{account_id}.r2.cloudflarestorage.com",
            style=EndpointStyle.PATH,
            public_base_url=public_base_url,
        )

    @property
    def host(self) -> str:
        if self.style == EndpointStyle.VIRTUAL_HOSTED:
            return f"{self.bucket}.{self.endpoint}"
        return self.endpoint

    def object_path(self, key: str) -> str:
        """Unencoded request path for an object key."""
        key = key.lstrip("/")
        if self.style == EndpointStyle.VIRTUAL_HOSTED:
            return f"/{key}"
        return f"/{self.bucket}/{key}"

    def public_url(self, key: str) -> Optional[str]:
        if not self.public_base_url:
            return None
        return f"{self.public_base_url.rstrip('/')}/{key.lstrip('/')}"


# ============================================================================
# DATABASE SNAPSHOT
# ============================================================================

class CollectionSnapshot(BaseModel):
    """
    One table inside a snapshot: either its rows, or the read error with an
    empty row list.
    """
    rows: List[Dict[str, Any]] = Field(default_factory=list)
    row_count: Optional[int] = None
    error: Optional[str] = None

    @classmethod
    def from_rows(cls, rows: List[Dict[str, Any]]) -> "CollectionSnapshot":
        return cls(rows=rows, row_count=len(rows))

    @classmethod
    def failed(cls, message: str) -> "CollectionSnapshot":
        return cls(rows=[], error=message)

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        if self.error is not None:
            return {"error": self.error, "rows": []}
        return {"row_count": self.row_count, "rows": self.rows}


class SnapshotMetadata(BaseModel):
    version: str
    created_at: str
    backup_type: str
    project_id: str


class SchemaDescriptors(BaseModel):
    enums: Dict[str, List[str]] = Field(default_factory=dict)
    functions: List[str] = Field(default_factory=list)
    triggers: Dict[str, Any] = Field(default_factory=dict)
    rls_policies: Dict[str, Any] = Field(default_factory=dict)


class SnapshotDocument(BaseModel):
    metadata: SnapshotMetadata
    collections: Dict[str, CollectionSnapshot] = Field(default_factory=dict)
    schema_descriptors: SchemaDescriptors = Field(default_factory=SchemaDescriptors)
    function_inventory: Dict[str, str] = Field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "metadata": self.metadata.model_dump(),
            "collections": {name: entry.to_dict() for name, entry in self.collections.items()},
            "schema": self.schema_descriptors.model_dump(),
            "function_inventory": dict(self.function_inventory),
        }

    def to_json(self) -> str:
        # default=str covers timestamps/decimals that a source may hand back
        return json.dumps(self.to_dict(), indent=2, ensure_ascii=False, default=str)

    @classmethod
    def from_json(cls, text: str) -> "SnapshotDocument":
        data = json.loads(text)
        return cls(
            metadata=SnapshotMetadata(**data["metadata"]),
            collections={
                name: CollectionSnapshot(**entry)
                for name, entry in data.get("collections", {}).items()
            },
            schema_descriptors=SchemaDescriptors(**data.get("schema", {})),
            function_inventory=data.get("function_inventory", {}),
        )

    def row_counts(self) -> Dict[str, int]:
        return {name: len(entry.rows) for name, entry in self.collections.items()}


# ============================================================================
# MEDIA SNAPSHOT
# ============================================================================

class FileEntry(BaseModel):
    source_path: str
    size_bytes: int
    destination_key: str


class RemoteInventorySection(BaseModel):
    count: int = 0
    total_size_bytes: int = 0
    files: List[Dict[str, Any]] = Field(default_factory=list)


class RemoteInventory(BaseModel):
    """Media held on the CDN tier: listed and sized, not copied."""
    generated_at: str
    bucket: str
    public_url: str
    sections: Dict[str, RemoteInventorySection] = Field(default_factory=dict)

    def summary(self) -> Dict[str, int]:
        counts = {f"{name}_count": section.count for name, section in self.sections.items()}
        counts["total_size_bytes"] = sum(s.total_size_bytes for s in self.sections.values())
        return counts

    def to_json(self) -> str:
        return json.dumps(self.model_dump(mode="json"), indent=2, ensure_ascii=False, default=str)


class MediaManifest(BaseModel):
    generated_at: str
    backup_type: str
    total_files: int = 0
    total_bytes: int = 0
    buckets: Dict[str, List[FileEntry]] = Field(default_factory=dict)
    remote_inventory: Dict[str, int] = Field(default_factory=dict)
    errors: List[str] = Field(default_factory=list)

    def to_json(self) -> str:
        return json.dumps(self.model_dump(mode="json"), indent=2, ensure_ascii=False)


# ============================================================================
# HISTORY
# ============================================================================

class BackupHistoryRecord(BaseModel):
    """
    One row per job invocation. Frozen: never mutated after it is built.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    backup_type: str
    status: BackupStatus
    file_name: Optional[str] = None
    destination_url: Optional[str] = None
    byte_size: int = 0
    duration_ms: int = 0
    units_backed_up: List[str] = Field(default_factory=list)
    component_counts: Dict[str, int] = Field(default_factory=dict)
    error_message: Optional[str] = None
    triggered_by: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def to_row(self) -> Dict[str, Any]:
        """Column layout of the backup_history table."""
        return {
            "id": self.id,
            "backup_type": self.backup_type,
            "status": self.status.value,
            "file_name": self.file_name,
            "s3_url": self.destination_url,
            "file_size": self.byte_size,
            "execution_time_ms": self.duration_ms,
            "tables_backed_up": list(self.units_backed_up),
            "components_backed_up": dict(self.component_counts),
            "error_message": self.error_message,
            "triggered_by": self.triggered_by,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "BackupHistoryRecord":
        values: Dict[str, Any] = {
            "id": str(row["id"]),
            "backup_type": row.get("backup_type") or "unknown",
            "status": row.get("status") or BackupStatus.FAILED.value,
            "file_name": row.get("file_name"),
            "destination_url": row.get("s3_url"),
            "byte_size": row.get("file_size") or 0,
            "duration_ms": row.get("execution_time_ms") or 0,
            "units_backed_up": row.get("tables_backed_up") or [],
            "component_counts": row.get("components_backed_up") or {},
            "error_message": row.get("error_message"),
            "triggered_by": row.get("triggered_by"),
        }
        if row.get("created_at"):
            values["created_at"] = row["created_at"]
        return cls(**values)


class BackupVerification(BaseModel):
    backup_id: str
    file_name: Optional[str] = None
    status: BackupStatus
    created_at: datetime
    checks: Dict[str, Any]
    overall_valid: bool = False
