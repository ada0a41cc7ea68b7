# services/protocols.py
"""
Contracts of the external collaborators the backup jobs consume.
Production implementations live in integrations/; tests pass small fakes.
"""

from typing import Any, Dict, List, Optional, Protocol, Tuple

from backup_service.schemas.backup_models import Destination, StorageCredentials


class TableSource(Protocol):
    def select_all(self, table: str, columns: str = "*") -> List[Dict[str, Any]]: ...


class RecordLookup(Protocol):
    def select_one(self, table: str, row_id: str) -> Optional[Dict[str, Any]]: ...


class StorageSource(Protocol):
    def list_objects(self, bucket: str, prefix: str = "") -> List[Dict[str, Any]]: ...

    def download(self, bucket: str, path: str) -> Tuple[bytes, str]: ...


class ObjectUploader(Protocol):
    def put_object(
        self,
        destination: Destination,
        key_path: str,
        content_type: str,
        body: bytes,
        credentials: StorageCredentials,
    ) -> str: ...
