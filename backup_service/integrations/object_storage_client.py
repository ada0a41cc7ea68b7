# integrations/object_storage_client.py

from typing import Optional

import requests

from backup_service.core.aws_signer import sign, uri_encode_path
from backup_service.core.config import settings
from backup_service.core.exceptions import BackupConfigurationError, UploadError
from backup_service.core.logger import logger
from backup_service.schemas.backup_models import Destination, SigningContext, StorageCredentials


class ObjectPutClient:
    """
    Signed single-object PUT against any S3-compatible endpoint.

    The same client serves the primary backup bucket (virtual-hosted URLs)
    and the CDN bucket (path-style URLs); only the Destination differs.
    No retries: callers decide what a failed upload means for their run.
    """

    def __init__(self, session: Optional[requests.Session] = None, timeout: Optional[float] = None):
        self.session = session or requests.Session()
        self.timeout = timeout if timeout is not None else settings.HTTP_TIMEOUT_SECS

    def put_object(
        self,
        destination: Destination,
        key_path: str,
        content_type: str,
        body: bytes,
        credentials: StorageCredentials,
    ) -> str:
        """
        Upload `body` under `key_path` and return the object URL.

        Raises:
            UploadError: non-2xx answer (http_status/body set) or a network
                failure/timeout (transport=True).
            SigningError: the request inputs are malformed.
        """
        if isinstance(body, str):
            body = body.encode("utf-8")

        path = destination.object_path(key_path)
        url = f"https://{destination.host}{uri_encode_path(path)}"

        ctx = SigningContext(
            access_key_id=credentials.access_key_id,
            secret_key=credentials.secret_access_key,
            region=destination.region,
            service=destination.service,
            endpoint_host=destination.host,
            http_method="PUT",
            canonical_path=path,
            query_string="",
            payload=body,
            headers={"Content-Type": content_type},
        )
        headers = sign(ctx)

        try:
            resp = self.session.put(url, headers=headers, data=body, timeout=self.timeout)
        except requests.Timeout as e:
            logger.warning(f"Upload timed out: {url}")
            raise UploadError(transport=True, detail=f"timeout after {self.timeout}s: {e}") from e
        except requests.RequestException as e:
            logger.warning(f"Upload transport failure: {url}: {e}")
            raise UploadError(transport=True, detail=str(e)) from e

        if not 200 <= resp.status_code < 300:
            logger.warning(
                "Upload rejected",
                extra={"url": url, "status_code": resp.status_code},
            )
            raise UploadError(http_status=resp.status_code, body=resp.text)

        logger.debug(
            "Upload ok",
            extra={"url": url, "bytes": len(body)},
        )
        return url


def backup_destination() -> Destination:
    """Primary backup bucket from settings."""
    if not settings.AWS_BUCKET_NAME:
        raise BackupConfigurationError("Missing AWS configuration")
    return Destination.s3(settings.AWS_BUCKET_NAME, settings.AWS_REGION, settings.AWS_S3_ENDPOINT)


def backup_credentials() -> StorageCredentials:
    if not settings.AWS_ACCESS_KEY_ID or not settings.AWS_SECRET_ACCESS_KEY:
        raise BackupConfigurationError("Missing AWS configuration")
    return StorageCredentials(
        access_key_id=settings.AWS_ACCESS_KEY_ID,
        secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
    )



def cdn_destination() -> Destination:
    """CDN bucket from settings; its public URL prefixes the inventory links."""
    if not settings.R2_ACCOUNT_ID or not settings.R2_BUCKET_NAME:
        raise BackupConfigurationError("Missing R2 configuration")
    return Destination.cdn(settings.R2_ACCOUNT_ID, settings.R2_BUCKET_NAME, settings.R2_PUBLIC_URL)
