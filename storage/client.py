# storage/client.py
"""S3-compatible object storage gateway.

Requests are signed with AWS Signature V4 by hand so the same code works
against MinIO locally and any S3-compatible provider in production.
"""
import hashlib
import hmac
import logging
import re
import time
from datetime import datetime, timezone
from typing import Dict, Optional, Tuple
from urllib.parse import quote, unquote, urlparse

import requests

from config import Settings
from errors import UpstreamError, ValidationError

logger = logging.getLogger(__name__)

# Signed URL lifetimes in seconds. Policy, not configuration.
VIDEO_URL_TTL = 300
PREVIEW_URL_TTL = 3600
DOWNLOAD_URL_TTL = 60
UPLOAD_URL_TTL = 3600

MAX_PRESIGN_TTL = 7 * 24 * 3600

ALLOWED_EXTENSIONS: Dict[str, Tuple[str, ...]] = {
    "video": ("mp4", "webm", "mov", "avi"),
    "attachment": ("pdf", "ppt", "pptx", "doc", "docx"),
    "thumbnail": ("jpg", "jpeg", "png", "webp"),
    "product-thumbnail": ("jpg", "jpeg", "png", "webp"),
}

ALGORITHM = "AWS4-HMAC-SHA256"
UNSIGNED_PAYLOAD = "UNSIGNED-PAYLOAD"


def _sign(key: bytes, msg: str) -> bytes:
    return hmac.new(key, msg.encode("utf-8"), hashlib.sha256).digest()


def _signing_key(secret_key: str, date_stamp: str, region: str, service: str = "s3") -> bytes:
    k_date = _sign(("AWS4" + secret_key).encode("utf-8"), date_stamp)
    k_region = _sign(k_date, region)
    k_service = _sign(k_region, service)
    return _sign(k_service, "aws4_request")


def _uri_encode(value: str) -> str:
    return quote(value, safe="-_.~")


def file_extension(filename: str) -> str:
    if "." not in filename:
        return ""
    return filename.rsplit(".", 1)[-1].lower()


def generate_storage_key(
    file_type: str,
    filename: str,
    course_id: str,
    resource_id: str,
    timestamp: Optional[int] = None,
) -> str:
    """Build a unique object key.

    course-{course}/lesson-{id}/{name}-{ts}.{ext}       video
    course-{course}/attachment-{id}/{name}-{ts}.{ext}   attachment
    course-{course}/course-{course}/{name}-{ts}.{ext}   thumbnail
    products/product-{id}/{name}-{ts}.{ext}             product-thumbnail
    """
    sanitized = re.sub(r"[^a-zA-Z0-9._-]", "-", filename)
    sanitized = re.sub(r"-+", "-", sanitized)
    sanitized = re.sub(r"^[-.]+|[-.]+$", "", sanitized)
    name_without_ext = re.sub(r"\.[^/.]+$", "", sanitized).strip("-.") or "file"
    ext = file_extension(filename) or "bin"
    ts = timestamp or int(time.time() * 1000)

    if file_type == "video":
        prefix = f"lesson-{resource_id}"
    elif file_type == "attachment":
        prefix = f"attachment-{resource_id}"
    elif file_type == "thumbnail":
        prefix = f"course-{course_id}"
    elif file_type == "product-thumbnail":
        return f"products/product-{resource_id}/{name_without_ext}-{ts}.{ext}"
    else:
        prefix = f"resource-{resource_id}"
    return f"course-{course_id}/{prefix}/{name_without_ext}-{ts}.{ext}"


class StorageClient:
    """Signs object URLs and checks object existence.

    Credentials are read once at construction and never mutated.
    """

    def __init__(
        self,
        endpoint_url: str,
        public_url: str,
        region: str,
        access_key: str,
        secret_key: str,
        buckets: Dict[str, str],
        path_style: bool = True,
    ):
        self._endpoint_url = endpoint_url.rstrip("/")
        self._public_url = public_url.rstrip("/")
        self._region = region
        self._access_key = access_key
        self._secret_key = secret_key
        self._path_style = path_style
        self.buckets = buckets

    def bucket_for(self, file_type: str) -> str:
        """Map an upload file type to its bucket."""
        if file_type in ("thumbnail", "product-thumbnail"):
            return self.buckets["thumbnails"]
        if file_type == "video":
            return self.buckets["videos"]
        if file_type == "attachment":
            return self.buckets["attachments"]
        raise ValidationError("Invalid file type")

    def _location(self, base_url: str, bucket: str, key: str) -> Tuple[str, str, str]:
        parsed = urlparse(base_url)
        encoded_key = quote(key, safe="/-_.~")
        if self._path_style:
            return parsed.scheme, parsed.netloc, f"/{bucket}/{encoded_key}"
        return parsed.scheme, f"{bucket}.{parsed.netloc}", f"/{encoded_key}"

    def presign(self, method: str, bucket: str, key: str, expires_in: int, now: Optional[datetime] = None) -> str:
        """Return a query-string signed URL valid for ``expires_in`` seconds."""
        if not 1 <= expires_in <= MAX_PRESIGN_TTL:
            raise ValueError(f"expires_in must be between 1 and {MAX_PRESIGN_TTL} seconds")
        now = now or datetime.now(timezone.utc)
        amz_date = now.strftime("%Y%m%dT%H%M%SZ")
        date_stamp = now.strftime("%Y%m%d")
        scheme, host, canonical_uri = self._location(self._public_url, bucket, key)
        credential_scope = f"{date_stamp}/{self._region}/s3/aws4_request"

        params = {
            "X-Amz-Algorithm": ALGORITHM,
            "X-Amz-Credential": f"{self._access_key}/{credential_scope}",
            "X-Amz-Date": amz_date,
            "X-Amz-Expires": str(expires_in),
            "X-Amz-SignedHeaders": "host",
        }
        querystring = "&".join(f"{_uri_encode(k)}={_uri_encode(v)}" for k, v in sorted(params.items()))
        canonical_request = f"{method}\n{canonical_uri}\n{querystring}\nhost:{host}\n\nhost\n{UNSIGNED_PAYLOAD}"
        string_to_sign = (
            f"{ALGORITHM}\n{amz_date}\n{credential_scope}\n"
            f"{hashlib.sha256(canonical_request.encode('utf-8')).hexdigest()}"
        )
        signing_key = _signing_key(self._secret_key, date_stamp, self._region)
        signature = hmac.new(signing_key, string_to_sign.encode("utf-8"), hashlib.sha256).hexdigest()
        return f"{scheme}://{host}{canonical_uri}?{querystring}&X-Amz-Signature={signature}"

    def presign_get(self, bucket: str, key: str, expires_in: int) -> str:
        return self.presign("GET", bucket, key, expires_in)

    def presign_put(self, bucket: str, key: str, expires_in: int = UPLOAD_URL_TTL) -> str:
        return self.presign("PUT", bucket, key, expires_in)

    def _auth_headers(self, method: str, host: str, canonical_uri: str, payload_hash: str) -> dict:
        """Create AWS Signature V4 headers for a server-side request."""
        now = datetime.now(timezone.utc)
        amz_date = now.strftime("%Y%m%dT%H%M%SZ")
        date_stamp = now.strftime("%Y%m%d")
        canonical_headers = f"host:{host}\nx-amz-content-sha256:{payload_hash}\nx-amz-date:{amz_date}\n"
        signed_headers = "host;x-amz-content-sha256;x-amz-date"
        canonical_request = f"{method}\n{canonical_uri}\n\n{canonical_headers}\n{signed_headers}\n{payload_hash}"
        credential_scope = f"{date_stamp}/{self._region}/s3/aws4_request"
        string_to_sign = (
            f"{ALGORITHM}\n{amz_date}\n{credential_scope}\n"
            f"{hashlib.sha256(canonical_request.encode('utf-8')).hexdigest()}"
        )
        signing_key = _signing_key(self._secret_key, date_stamp, self._region)
        signature = hmac.new(signing_key, string_to_sign.encode("utf-8"), hashlib.sha256).hexdigest()
        return {
            "Authorization": (
                f"{ALGORITHM} Credential={self._access_key}/{credential_scope}, "
                f"SignedHeaders={signed_headers}, Signature={signature}"
            ),
            "x-amz-content-sha256": payload_hash,
            "x-amz-date": amz_date,
        }

    def object_exists(self, bucket: str, key: str) -> bool:
        """HEAD the object through the internal endpoint."""
        scheme, host, canonical_uri = self._location(self._endpoint_url, bucket, key)
        headers = self._auth_headers("HEAD", host, canonical_uri, hashlib.sha256(b"").hexdigest())
        url = f"{scheme}://{host}{canonical_uri}"
        try:
            response = requests.head(url, headers=headers, timeout=10)
        except requests.RequestException as e:
            raise UpstreamError("storage", e)
        if response.status_code == 404:
            return False
        if response.status_code >= 300:
            raise UpstreamError("storage", f"HEAD {bucket}/{key} returned {response.status_code}")
        return True

    def file_url(self, bucket: str, key: str) -> str:
        """Stable reference stored in the database; not itself a readable URL for private buckets."""
        scheme, host, canonical_uri = self._location(self._public_url, bucket, key)
        return f"{scheme}://{host}{canonical_uri}"

    @staticmethod
    def normalize_key(bucket: str, stored_ref: str) -> str:
        """Reduce a stored reference to the bare object key.

        Accepts ``key``, ``bucket/key`` or a full ``scheme://host/bucket/key`` URL.
        """
        key = stored_ref
        if "://" in key:
            key = unquote(urlparse(key).path)
        key = key.lstrip("/")
        if key.startswith(f"{bucket}/"):
            key = key[len(bucket) + 1:]
        return key


def build_storage_client(settings: Settings) -> StorageClient:
    return StorageClient(
        endpoint_url=settings.STORAGE_ENDPOINT_URL,
        public_url=settings.STORAGE_PUBLIC_URL,
        region=settings.STORAGE_REGION_NAME,
        access_key=settings.STORAGE_ACCESS_KEY,
        secret_key=settings.STORAGE_SECRET_KEY,
        buckets={
            "videos": settings.BUCKET_VIDEOS,
            "attachments": settings.BUCKET_ATTACHMENTS,
            "thumbnails": settings.BUCKET_THUMBNAILS,
        },
        path_style=settings.STORAGE_PATH_STYLE,
    )
