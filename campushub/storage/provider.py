class StorageProvider:
    def upload(self, bucket: str, path: str, data: bytes, content_type: str) -> str:
        """Store data under bucket/path and return its public URL."""
        raise NotImplementedError


def object_key(bucket: str, path: str) -> str:
    clean = path.lstrip("/").replace("..", "").replace("\\", "/")
    return f"{bucket.strip('/')}/{clean}"


def get_storage() -> StorageProvider:
    from ..config import settings

    if settings.storage_provider == "blob":
        from .blob_provider import BlobStorageProvider

        return BlobStorageProvider()
    from .local_provider import LocalStorageProvider

    return LocalStorageProvider(settings.local_storage_dir)
