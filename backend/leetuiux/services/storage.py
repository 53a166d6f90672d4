from __future__ import annotations
import io
import json
from datetime import timedelta
from functools import lru_cache
from urllib.parse import urlsplit, quote, unquote
from minio import Minio
from minio.error import S3Error
from urllib3.exceptions import HTTPError as TransportError
import structlog
from leetuiux.config import settings

log = structlog.get_logger()

BUCKET_NOT_FOUND = "NoSuchBucket"


class StorageError(Exception):
    """Object storage failure. `code` is the S3 error code when there is one."""

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        self.code = code

    @property
    def bucket_not_found(self) -> bool:
        return self.code == BUCKET_NOT_FOUND or "bucket not found" in self.message.lower()


def _parse_endpoint(ep: str) -> tuple[str, bool]:
    # Return (host:port, secure)
    secure = ep.startswith("https://")
    host = ep.replace("http://", "").replace("https://", "")
    return host.rstrip("/"), secure


def _wrap(e: Exception) -> StorageError:
    if isinstance(e, S3Error):
        return StorageError(e.message or str(e), code=e.code)
    # store unreachable or the connection dropped
    return StorageError(f"storage unavailable: {e}")


class ObjectStorage:
    """Buckets, uploads, signed and public URLs on an S3-compatible store."""

    def __init__(self, endpoint: str, access_key: str, secret_key: str, public_base_url: str | None = None):
        host, secure = _parse_endpoint(endpoint)
        self._client = Minio(host, access_key=access_key, secret_key=secret_key, secure=secure)
        self.public_base_url = (public_base_url or endpoint).rstrip("/")

    def list_containers(self) -> list[str]:
        try:
            return [b.name for b in self._client.list_buckets()]
        except (S3Error, TransportError, OSError) as e:
            raise _wrap(e)

    def ensure_container(self, bucket: str) -> None:
        try:
            if not self._client.bucket_exists(bucket):
                self._client.make_bucket(bucket)
        except S3Error as e:
            # creation may race with another worker; only fail if it is still missing
            if e.code not in ("BucketAlreadyOwnedByYou", "BucketAlreadyExists"):
                raise _wrap(e)
        except (TransportError, OSError) as e:
            raise _wrap(e)

    def upload(self, bucket: str, path: str, data: bytes, content_type: str | None = None,
               cache_control: str | None = None) -> str:
        metadata = {"Cache-Control": f"max-age={cache_control}"} if cache_control else None
        try:
            self._client.put_object(
                bucket, path, io.BytesIO(data), length=len(data),
                content_type=content_type or "application/octet-stream", metadata=metadata,
            )
        except (S3Error, TransportError, OSError) as e:
            raise _wrap(e)
        return path

    def make_public(self, bucket: str, path: str) -> None:
        """Add an anonymous read statement for one object to the bucket policy."""
        try:
            try:
                policy = json.loads(self._client.get_bucket_policy(bucket))
            except S3Error as e:
                if e.code != "NoSuchBucketPolicy":
                    raise
                policy = {"Version": "2012-10-17", "Statement": []}
            resource = f"arn:aws:s3:::{bucket}/{path}"
            for st in policy.get("Statement", []):
                if resource in (st.get("Resource") or []):
                    return
            policy.setdefault("Statement", []).append({
                "Effect": "Allow",
                "Principal": {"AWS": ["*"]},
                "Action": ["s3:GetObject"],
                "Resource": [resource],
            })
            self._client.set_bucket_policy(bucket, json.dumps(policy))
        except (S3Error, TransportError, OSError) as e:
            raise _wrap(e)

    def sign_url(self, bucket: str, path: str, ttl_seconds: int) -> str:
        try:
            self._client.stat_object(bucket, path)
            return self._client.presigned_get_object(bucket, path, expires=timedelta(seconds=ttl_seconds))
        except (S3Error, TransportError, OSError) as e:
            raise _wrap(e)
        except ValueError as e:
            # expiry outside what the store accepts (max 7 days)
            raise StorageError(str(e))

    def public_url(self, bucket: str, path: str) -> str:
        return f"{self.public_base_url}/{bucket}/{quote(path)}"

    def parse_public_url(self, url: str, bucket: str) -> str | None:
        """Return the object path if `url` is this store's public URL for `bucket`."""
        base = urlsplit(self.public_base_url)
        parts = urlsplit(url)
        if (parts.scheme, parts.netloc) != (base.scheme, base.netloc):
            return None
        prefix = f"{base.path.rstrip('/')}/{bucket}/"
        if not parts.path.startswith(prefix):
            return None
        path = unquote(parts.path[len(prefix):])
        return path or None


@lru_cache
def get_storage() -> ObjectStorage:
    storage = ObjectStorage(
        settings.s3_endpoint, settings.s3_access_key, settings.s3_secret_key,
        public_base_url=settings.storage_public_url,
    )
    if settings.storage_auto_create_buckets:
        try:
            storage.ensure_container(settings.submissions_bucket)
        except StorageError as e:
            log.warning("bucket_autocreate_failed", bucket=settings.submissions_bucket, error=e.message)
    return storage
