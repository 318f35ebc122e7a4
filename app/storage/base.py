"""
Object storage for uploaded resumes.

Blobs are namespaced per user: ``{user_id}/{ms_timestamp}-{random}-{filename}``.
"""
import re
import time
import uuid
from abc import ABC, abstractmethod
from typing import Optional

from app.core.config import STORAGE_BACKEND

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


class StorageBackend(ABC):
    @abstractmethod
    def put(self, key: str, body: bytes, content_type: Optional[str] = None) -> str:
        """Store file; return its public URL."""
        ...

    @abstractmethod
    def get(self, key: str) -> bytes:
        """Retrieve file bytes."""
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        """Delete file. Missing keys are ignored."""
        ...

    @abstractmethod
    def public_url(self, key: str) -> str:
        ...


def build_storage_key(user_id: int, filename: str) -> str:
    safe_name = _UNSAFE_CHARS.sub("_", filename or "resume").strip("._") or "resume"
    timestamp_ms = int(time.time() * 1000)
    return f"{user_id}/{timestamp_ms}-{uuid.uuid4().hex[:8]}-{safe_name}"


def get_storage() -> StorageBackend:
    if STORAGE_BACKEND == "gcs":
        from app.storage.gcs import GCSStorage
        return GCSStorage()
    from app.storage.local import LocalStorage
    return LocalStorage()
