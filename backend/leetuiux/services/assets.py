"""
Turn stored image/file references into URLs a client can render directly.

A reference is one of:
  - nothing            -> placeholder image
  - a local preview handle (``blob:...``), only meaningful to the form that made it
  - a public object URL in the submissions bucket -> short-lived signed URL
  - any other absolute URL -> unchanged
"""
from __future__ import annotations
import time
from functools import lru_cache
from typing import TYPE_CHECKING
import structlog
from leetuiux.config import settings
from leetuiux.services.storage import ObjectStorage, StorageError

if TYPE_CHECKING:
    from leetuiux.services.uploads import CancelToken

log = structlog.get_logger()

PLACEHOLDER_IMAGE_URL = "https://placehold.co/600x400/e2e8f0/475569?text=No+Preview"
LOCAL_PREVIEW_PREFIX = "blob:"

DISPLAY_TTL_SECONDS = 60 * 60           # display contexts
UPLOAD_TTL_SECONDS = 60 * 60 * 24 * 7   # freshly uploaded submission assets


class SignedUrlCache:
    """
    Signed URLs keyed by (bucket, path). An entry is reused until it comes
    within `margin` seconds of expiry.
    """

    def __init__(self, margin: float = 60.0, max_entries: int = 4096, clock=time.monotonic):
        self.margin = margin
        self.max_entries = max_entries
        self._clock = clock
        self._entries: dict[tuple[str, str], tuple[str, float]] = {}

    def get(self, bucket: str, path: str) -> str | None:
        hit = self._entries.get((bucket, path))
        if not hit:
            return None
        url, expires_at = hit
        if self._clock() >= expires_at - self.margin:
            self._entries.pop((bucket, path), None)
            return None
        return url

    def put(self, bucket: str, path: str, url: str, ttl_seconds: int) -> None:
        if len(self._entries) >= self.max_entries:
            self._evict_expired()
            if len(self._entries) >= self.max_entries:
                # drop the entry closest to expiry
                oldest = min(self._entries, key=lambda k: self._entries[k][1])
                self._entries.pop(oldest, None)
        self._entries[(bucket, path)] = (url, self._clock() + ttl_seconds)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def _evict_expired(self) -> None:
        now = self._clock()
        for key in [k for k, (_, exp) in self._entries.items() if now >= exp - self.margin]:
            self._entries.pop(key, None)


@lru_cache
def get_signed_url_cache() -> SignedUrlCache:
    return SignedUrlCache()


def is_local_preview(reference: str | None) -> bool:
    return bool(reference) and reference.startswith(LOCAL_PREVIEW_PREFIX)


async def resolve_display_url(
    reference: str | None,
    storage: ObjectStorage,
    ttl: int = DISPLAY_TTL_SECONDS,
    cache: SignedUrlCache | None = None,
    cancel: "CancelToken | None" = None,
) -> str:
    if not reference:
        return PLACEHOLDER_IMAGE_URL
    if is_local_preview(reference):
        return reference

    bucket = settings.submissions_bucket
    path = storage.parse_public_url(reference, bucket)
    if not path:
        return reference

    if cache is not None:
        hit = cache.get(bucket, path)
        if hit:
            return hit
    if cancel is not None and await cancel.is_cancelled():
        return reference
    try:
        signed = storage.sign_url(bucket, path, ttl)
    except StorageError as e:
        log.warning("sign_url_failed", bucket=bucket, path=path, error=e.message, code=e.code)
        return reference
    except Exception:
        log.exception("sign_url_error", bucket=bucket, path=path)
        return reference
    if cache is not None:
        cache.put(bucket, path, signed, ttl)
    return signed


def sign_or_public(storage: ObjectStorage, bucket: str, path: str, ttl: int = UPLOAD_TTL_SECONDS) -> str:
    """URL for a just-uploaded object: signed if possible, public otherwise."""
    try:
        return storage.sign_url(bucket, path, ttl)
    except StorageError as e:
        log.warning("sign_url_failed_using_public", bucket=bucket, path=path, error=e.message)
        return storage.public_url(bucket, path)
