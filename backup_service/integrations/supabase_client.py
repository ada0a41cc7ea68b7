# integrations/supabase_client.py

from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote

import requests

from backup_service.core.config import settings
from backup_service.core.exceptions import BackupConfigurationError, DataSourceError
from backup_service.core.logger import logger


def _error_message(resp: requests.Response) -> str:
    """PostgREST and Storage both answer errors as JSON with a `message`."""
    try:
        payload = resp.json()
    except ValueError:
        return resp.text or f"HTTP {resp.status_code}"
    if isinstance(payload, dict):
        return str(payload.get("message") or payload.get("error") or payload)
    return str(payload)


class SupabaseRestClient:
    """
    Thin wrapper around the Supabase HTTP APIs used by the backup jobs:
    - PostgREST full-table reads and the backup_history insert
    - Storage bucket listing and object download
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        service_key: Optional[str] = None,
        session: Optional[requests.Session] = None,
        page_size: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> None:
        base_url = base_url or settings.SUPABASE_URL
        service_key = service_key or settings.SUPABASE_SERVICE_ROLE_KEY
        if not base_url or not service_key:
            raise BackupConfigurationError("Missing Supabase configuration")

        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.page_size = page_size or settings.SUPABASE_PAGE_SIZE
        self.timeout = timeout if timeout is not None else settings.HTTP_TIMEOUT_SECS
        self._headers = {
            "apikey": service_key,
            "Authorization": f"Bearer {service_key}",
        }

    # ------------------------------------------------------------------
    # PostgREST
    # ------------------------------------------------------------------

    def _get(self, resource: str, url: str, params: Dict[str, Any]) -> requests.Response:
        try:
            resp = self.session.get(url, headers=self._headers, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            raise DataSourceError(resource, str(e)) from e
        if resp.status_code >= 400:
            raise DataSourceError(resource, _error_message(resp), resp.status_code)
        return resp

    def select_all(self, table: str, columns: str = "*") -> List[Dict[str, Any]]:
        """
        Read every row of `table`, paging by `page_size`.

        Raises:
            DataSourceError: the table is missing, access is denied, or the
                request failed.
        """
        url = f"{self.base_url}/rest/v1/{table}"
        rows: List[Dict[str, Any]] = []
        offset = 0
        while True:
            resp = self._get(
                table,
                url,
                {"select": columns, "limit": self.page_size, "offset": offset},
            )
            page = resp.json()
            rows.extend(page)
            if len(page) < self.page_size:
                break
            offset += self.page_size

        logger.debug(f"Read {len(rows)} rows from {table}")
        return rows

    def select_one(self, table: str, row_id: str) -> Optional[Dict[str, Any]]:
        url = f"{self.base_url}/rest/v1/{table}"
        resp = self._get(table, url, {"select": "*", "id": f"eq.{row_id}", "limit": 1})
        rows = resp.json()
        return rows[0] if rows else None

    def insert(self, table: str, row: Dict[str, Any]) -> None:
        url = f"{self.base_url}/rest/v1/{table}"
        headers = {**self._headers, "Prefer": "return=minimal"}
        try:
            resp = self.session.post(url, headers=headers, json=row, timeout=self.timeout)
        except requests.RequestException as e:
            raise DataSourceError(table, str(e)) from e
        if resp.status_code >= 400:
            raise DataSourceError(table, _error_message(resp), resp.status_code)

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    def list_objects(self, bucket: str, prefix: str = "") -> List[Dict[str, Any]]:
        """
        List the direct children of `prefix` in `bucket`, following pages.
        Folders come back with `id` set to None.
        """
        url = f"{self.base_url}/storage/v1/object/list/{bucket}"
        entries: List[Dict[str, Any]] = []
        offset = 0
        while True:
            body = {
                "prefix": prefix,
                "limit": self.page_size,
                "offset": offset,
                "sortBy": {"column": "name", "order": "asc"},
            }
            try:
                resp = self.session.post(url, headers=self._headers, json=body, timeout=self.timeout)
            except requests.RequestException as e:
                raise DataSourceError(bucket, str(e)) from e
            if resp.status_code >= 400:
                raise DataSourceError(bucket, _error_message(resp), resp.status_code)

            page = resp.json() or []
            entries.extend(page)
            if len(page) < self.page_size:
                break
            offset += self.page_size
        return entries

    def download(self, bucket: str, path: str) -> Tuple[bytes, str]:
        """Return (bytes, content type) for one stored object."""
        url = f"{self.base_url}/storage/v1/object/{bucket}/{quote(path, safe='/')}"
        resource = f"{bucket}/{path}"
        try:
            resp = self.session.get(url, headers=self._headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise DataSourceError(resource, str(e)) from e
        if resp.status_code >= 400:
            raise DataSourceError(resource, _error_message(resp), resp.status_code)
        content_type = resp.headers.get("Content-Type") or "application/octet-stream"
        return resp.content, content_type
