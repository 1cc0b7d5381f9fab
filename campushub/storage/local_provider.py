"""
Local filesystem storage provider for development.
Saves files to a local directory instead of Azure Blob Storage.
"""
from pathlib import Path
from urllib.parse import quote

import structlog

from ..config import settings
from .provider import StorageProvider, object_key


class LocalStorageProvider(StorageProvider):
    """Local filesystem storage provider for development."""

    def __init__(self, base_dir: str = "var/storage"):
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def path_for(self, bucket: str, path: str) -> Path:
        """Get the local filesystem path for a bucket object."""
        return self.base_dir / object_key(bucket, path)

    def _url(self, bucket: str, path: str) -> str:
        return f"{settings.public_base_url}/files/local/{quote(object_key(bucket, path))}"

    def upload(self, bucket: str, path: str, data: bytes, content_type: str) -> str:
        target = self.path_for(bucket, path)
        target.parent.mkdir(parents=True, exist_ok=True)
        with open(target, "wb") as f:
            f.write(data)
        structlog.get_logger().info("file_stored", provider="local", key=object_key(bucket, path), size=len(data))
        return self._url(bucket, path)
