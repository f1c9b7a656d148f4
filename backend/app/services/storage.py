"""
File storage bucket on the local filesystem.

Objects are addressed by a relative key (``company/category/name.ext``)
inside ``<root>/<bucket>``. Keys are checked before touching the disk so a
crafted key can never escape the bucket directory.
"""

import logging
import secrets
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

from app.core.config import settings
from app.core.exceptions import StorageError
from app.core.security_utils import file_extension, is_safe_storage_path

logger = logging.getLogger("hse.storage")


def build_storage_path(company_id: str, category: str, filename: str) -> str:
    """``{company_id}/{category}/{epoch_ms}-{random}.{ext}``"""
    stamp = int(time.time() * 1000)
    return f"{company_id}/{category}/{stamp}-{secrets.token_hex(4)}.{file_extension(filename)}"


@dataclass(frozen=True)
class StoredObject:
    path: str
    size: int
    content_type: Optional[str]
    cache_control: str


class LocalStorageBackend:
    def __init__(self, root: str, bucket: str, public_base_url: str):
        self.bucket = bucket
        self.base_dir = (Path(root) / bucket).resolve()
        self.public_base_url = public_base_url.rstrip("/")

    def _resolve(self, path: str) -> Path:
        if not is_safe_storage_path(path):
            raise StorageError(f"Invalid storage path '{path}'")
        target = (self.base_dir / path).resolve()
        if self.base_dir not in target.parents:
            raise StorageError(f"Invalid storage path '{path}'")
        return target

    def upload(
        self,
        path: str,
        data: bytes,
        content_type: Optional[str] = None,
        cache_control: Optional[str] = None,
        upsert: bool = False,
    ) -> StoredObject:
        target = self._resolve(path)
        if target.exists() and not upsert:
            raise StorageError(f"Object '{path}' already exists")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as exc:
            logger.error("Upload of %s to bucket %s failed: %s", path, self.bucket, exc)
            raise StorageError("File could not be stored") from exc
        logger.debug("Stored %s (%d bytes) in bucket %s", path, len(data), self.bucket)
        return StoredObject(
            path=path,
            size=len(data),
            content_type=content_type,
            cache_control=cache_control or settings.STORAGE_CACHE_CONTROL,
        )

    def download(self, path: str) -> bytes:
        target = self._resolve(path)
        try:
            return target.read_bytes()
        except FileNotFoundError:
            raise StorageError(f"Object '{path}' not found") from None
        except OSError as exc:
            logger.error("Download of %s from bucket %s failed: %s", path, self.bucket, exc)
            raise StorageError("File could not be read") from exc

    def remove(self, paths: Iterable[str]) -> list[str]:
        """Delete objects; missing ones are ignored. Returns the keys removed."""
        removed: list[str] = []
        for path in paths:
            target = self._resolve(path)
            try:
                target.unlink()
            except FileNotFoundError:
                continue
            except OSError as exc:
                logger.error("Removal of %s from bucket %s failed: %s", path, self.bucket, exc)
                raise StorageError("File could not be removed") from exc
            removed.append(path)
        return removed

    def exists(self, path: str) -> bool:
        return self._resolve(path).is_file()

    def get_public_url(self, path: str) -> str:
        self._resolve(path)
        return f"{self.public_base_url}/{self.bucket}/{path}"


_storage: Optional[LocalStorageBackend] = None


def get_storage() -> LocalStorageBackend:
    global _storage
    if _storage is None:
        _storage = LocalStorageBackend(
            settings.STORAGE_ROOT, settings.STORAGE_BUCKET, settings.STORAGE_PUBLIC_BASE_URL,
        )
    return _storage
