# core/aws_signer.py
"""
AWS Signature Version 4 request signing.

Pure functions only: nothing in this module performs I/O, so it can be
checked against the published AWS examples without any network mocking.
Used for every PUT to the backup bucket and to the CDN bucket.
"""

import hashlib
import hmac
import re
from datetime import datetime, timezone
from typing import Dict, List, Mapping, Optional, Tuple
from urllib.parse import parse_qsl, quote

from backup_service.core.exceptions import SigningError
from backup_service.schemas.backup_models import SigningContext

ALGORITHM = "AWS4-HMAC-SHA256"
TERMINATOR = "aws4_request"

_METHOD_RE = re.compile(r"^[A-Z]+$")
_WHITESPACE_RE = re.compile(r"\s+")


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def _hmac(key: bytes, message: str) -> bytes:
    return hmac.new(key, message.encode("utf-8"), hashlib.sha256).digest()


def uri_encode_path(path: str) -> str:
    """
    Encode a raw object path exactly once, keeping '/' separators.
    S3 does not normalise paths, so no segment collapsing happens here.
    """
    return quote(path, safe="/~")


def canonical_query_string(query_string: str) -> str:
    """
    Decode, then re-encode each key and value once and sort, so an already
    encoded query string is never double-encoded.
    """
    if not query_string:
        return ""
    pairs = parse_qsl(query_string, keep_blank_values=True)
    encoded = sorted((quote(k, safe="~"), quote(v, safe="~")) for k, v in pairs)
    return "&".join(f"{k}={v}" for k, v in encoded)


class CanonicalHeaders:
    """
    Header set in canonical form: lower-cased names, trimmed values with
    inner whitespace collapsed, sorted by name. Built once per request so
    every call site signs the same bytes it sends.
    """

    def __init__(self, headers: Mapping[str, str]):
        normalized: Dict[str, str] = {}
        for name, value in headers.items():
            key = name.strip().lower()
            if not key:
                raise SigningError("Header names must not be empty")
            normalized[key] = _WHITESPACE_RE.sub(" ", str(value).strip())
        self._items: List[Tuple[str, str]] = sorted(normalized.items())

    @property
    def signed_headers(self) -> str:
        return ";".join(name for name, _ in self._items)

    @property
    def block(self) -> str:
        return "".join(f"{name}:{value}\n" for name, value in self._items)

    def items(self) -> List[Tuple[str, str]]:
        return list(self._items)


def amz_timestamp(timestamp: datetime) -> Tuple[str, str]:
    """Return (amz_date 'YYYYMMDDTHHMMSSZ', date_stamp 'YYYYMMDD') in UTC."""
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    timestamp = timestamp.astimezone(timezone.utc)
    return timestamp.strftime("%Y%m%dT%H%M%SZ"), timestamp.strftime("%Y%m%d")


def derive_signing_key(secret_key: str, date_stamp: str, region: str, service: str) -> bytes:
    k_date = _hmac(f"AWS4{secret_key}".encode("utf-8"), date_stamp)
    k_region = _hmac(k_date, region)
    k_service = _hmac(k_region, service)
    return _hmac(k_service, TERMINATOR)


def build_canonical_request(
    method: str,
    path: str,
    query_string: str,
    headers: CanonicalHeaders,
    payload_hash: str,
) -> str:
    return "\n".join([
        method,
        uri_encode_path(path),
        canonical_query_string(query_string),
        headers.block,
        headers.signed_headers,
        payload_hash,
    ])


def build_string_to_sign(amz_date: str, credential_scope: str, canonical_request: str) -> str:
    return "\n".join([
        ALGORITHM,
        amz_date,
        credential_scope,
        sha256_hex(canonical_request.encode("utf-8")),
    ])


def _validate(ctx: SigningContext) -> None:
    if not ctx.access_key_id:
        raise SigningError("access_key_id is required")
    if not ctx.secret_key.get_secret_value():
        raise SigningError("secret_key is required")
    if not ctx.region or "/" in ctx.region:
        raise SigningError(f"Invalid region: {ctx.region!r}")
    if not ctx.service or "/" in ctx.service:
        raise SigningError(f"Invalid service: {ctx.service!r}")
    if not ctx.endpoint_host or "/" in ctx.endpoint_host:
        raise SigningError(f"Invalid endpoint host: {ctx.endpoint_host!r}")
    if not _METHOD_RE.match(ctx.http_method or ""):
        raise SigningError(f"Invalid HTTP method: {ctx.http_method!r}")
    if not ctx.canonical_path.startswith("/"):
        raise SigningError(f"Path must start with '/': {ctx.canonical_path!r}")


def sign(ctx: SigningContext, timestamp: Optional[datetime] = None) -> Dict[str, str]:
    """
    Sign one request and return the headers to send with it.

    The result holds the caller's base headers plus `x-amz-date`,
    `x-amz-content-sha256` and `Authorization`. `host` is signed but left
    to the HTTP client to send. Identical inputs and timestamp always give
    identical output.
    """
    _validate(ctx)

    amz_date, date_stamp = amz_timestamp(timestamp or datetime.now(timezone.utc))
    payload_hash = sha256_hex(ctx.payload)

    base_headers = {k: v for k, v in ctx.headers.items() if k.lower() != "host"}
    headers = CanonicalHeaders({
        **base_headers,
        "host": ctx.endpoint_host,
        "x-amz-content-sha256": payload_hash,
        "x-amz-date": amz_date,
    })

    canonical_request = build_canonical_request(
        ctx.http_method, ctx.canonical_path, ctx.query_string, headers, payload_hash
    )
    credential_scope = f"{date_stamp}/{ctx.region}/{ctx.service}/{TERMINATOR}"
    string_to_sign = build_string_to_sign(amz_date, credential_scope, canonical_request)

    signing_key = derive_signing_key(
        ctx.secret_key.get_secret_value(), date_stamp, ctx.region, ctx.service
    )
    signature = hmac.new(signing_key, string_to_sign.encode("utf-8"), hashlib.sha256).hexdigest()

    authorization = (
        f"{ALGORITHM} Credential={ctx.access_key_id}/{credential_scope}, "
        f"SignedHeaders={headers.signed_headers}, Signature={signature}"
    )

    return {
        **base_headers,
        "x-amz-date": amz_date,
        "x-amz-content-sha256": payload_hash,
        "Authorization": authorization,
    }
