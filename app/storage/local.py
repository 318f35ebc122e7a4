from pathlib import Path
from typing import Optional

from app.core.config import STORAGE_LOCAL_PATH, STORAGE_PUBLIC_BASE_URL
from app.storage.base import StorageBackend


class LocalStorage(StorageBackend):
    def __init__(self, root: Optional[str] = None, public_base_url: Optional[str] = None) -> None:
        self.root = Path(root or STORAGE_LOCAL_PATH)
        self.root.mkdir(parents=True, exist_ok=True)
        self.public_base_url = (public_base_url or STORAGE_PUBLIC_BASE_URL).rstrip("/")

    def _path(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if self.root.resolve() not in path.parents:
            raise ValueError(f"Storage key escapes root: {key}")
        return path

    def put(self, key: str, body: bytes, content_type: Optional[str] = None) -> str:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(body)
        return self.public_url(key)

    def get(self, key: str) -> bytes:
        path = self._path(key)
        if not path.exists():
            raise FileNotFoundError(key)
        return path.read_bytes()

    def delete(self, key: str) -> None:
        path = self._path(key)
        if path.exists():
            path.unlink()

    def public_url(self, key: str) -> str:
        return f"{self.public_base_url}/{key}"
