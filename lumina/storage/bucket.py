"""
Filesystem-backed object storage for uploaded videos.

Objects live under `{STORAGE_DIR}/{bucket}/{path}` and are served publicly
through the `/api/storage/{bucket}/{path}` route.
"""
import logging
import re
import time
from pathlib import Path

from lumina.core.config import Settings
from lumina.core.errors import HandlerError

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9.-]")


class StorageError(HandlerError):
    pass


def make_upload_path(original_name: str, now_ms: int | None = None) -> tuple[str, str]:
    """Build (filename, storage_path) for an upload: `uploads/{epoch_ms}-{safe name}`."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    filename = f"{now_ms}-{_UNSAFE_CHARS.sub('_', original_name or 'video')}"
    return filename, f"uploads/{filename}"


class Bucket:
    def __init__(self, settings: Settings):
        self.name = settings.STORAGE_BUCKET
        self.root = Path(settings.STORAGE_DIR) / self.name
        self.max_bytes = settings.MAX_UPLOAD_BYTES
        self.allowed_mime_types = set(settings.ALLOWED_MIME_TYPES)
        self.public_base_url = settings.PUBLIC_BASE_URL

    def _resolve(self, path: str) -> Path:
        root = self.root.resolve()
        target = (root / path).resolve()
        if root != target and root not in target.parents:
            raise StorageError(f"Invalid object path: {path}", 400)
        return target

    def upload(self, path: str, data: bytes, content_type: str, upsert: bool = False) -> str:
        """Store an object and return its path within the bucket."""
        if content_type not in self.allowed_mime_types:
            raise StorageError(f"File type {content_type} is not allowed", 415)
        if len(data) > self.max_bytes:
            raise StorageError(
                f"File exceeds the {self.max_bytes // (1024 * 1024)}MB upload limit", 413
            )

        target = self._resolve(path)
        if target.exists() and not upsert:
            raise StorageError(f"Object already exists: {path}", 409)

        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        logger.info(f"Stored {len(data)} bytes at {self.name}/{path}")
        return path

    def public_url(self, path: str) -> str:
        return f"{self.public_base_url}/api/storage/{self.name}/{path}"

    def open_path(self, path: str) -> Path | None:
        """Filesystem location of a stored object, or None if missing."""
        target = self._resolve(path)
        return target if target.is_file() else None

    def remove(self, paths: list[str]) -> int:
        removed = 0
        for path in paths:
            target = self._resolve(path)
            if target.is_file():
                target.unlink()
                removed += 1
            else:
                logger.warning(f"Storage object not found for removal: {self.name}/{path}")
        return removed
