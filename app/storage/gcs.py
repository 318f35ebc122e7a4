from typing import Optional

from google.cloud import storage

from app.core.config import GCS_BUCKET_NAME
from app.storage.base import StorageBackend


class GCSStorage(StorageBackend):
    def __init__(self, bucket_name: Optional[str] = None) -> None:
        self.bucket_name = bucket_name or GCS_BUCKET_NAME
        self._client = storage.Client()
        self._bucket = self._client.bucket(self.bucket_name)

    def put(self, key: str, body: bytes, content_type: Optional[str] = None) -> str:
        blob = self._bucket.blob(key)
        blob.upload_from_string(body, content_type=content_type or "application/octet-stream")
        return self.public_url(key)

    def get(self, key: str) -> bytes:
        blob = self._bucket.blob(key)
        if not blob.exists():
            raise FileNotFoundError(key)
        return blob.download_as_bytes()

    def delete(self, key: str) -> None:
        blob = self._bucket.blob(key)
        if blob.exists():
            blob.delete()

    def public_url(self, key: str) -> str:
        return f"https://storage.googleapis.com/{self.bucket_name}/{key}"
