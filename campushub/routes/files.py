import uuid
from mimetypes import guess_type
from pathlib import Path

import structlog
from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from fastapi.responses import FileResponse
from slugify import slugify

from ..auth.security import get_current_actor
from ..config import settings
from ..errors import ValidationError
from ..schemas.auth import Actor
from ..storage.local_provider import LocalStorageProvider
from ..storage.provider import StorageProvider, get_storage


router = APIRouter(prefix="/files", tags=["files"])


def safe_filename(original: str) -> str:
    """Slugified stem plus lower-cased extension, prefixed to stay unique."""
    p = Path(original or "upload")
    stem = slugify(p.stem, max_length=80) or "file"
    ext = p.suffix.lower() if p.suffix and len(p.suffix) <= 10 else ""
    return f"{uuid.uuid4().hex[:12]}-{stem}{ext}"


@router.post("/{bucket}")
async def upload_file(
    bucket: str,
    file: UploadFile = File(...),
    storage: StorageProvider = Depends(get_storage),
    me: Actor = Depends(get_current_actor),
):
    if bucket not in settings.upload_buckets:
        raise ValidationError(f"Unknown bucket: {bucket}")
    data = await file.read()
    if not data:
        raise ValidationError("Empty file")
    if len(data) > settings.max_upload_bytes:
        raise ValidationError("File too large", max_bytes=settings.max_upload_bytes)
    name = safe_filename(file.filename)
    path = f"{me.id}/{name}"
    content_type = file.content_type or guess_type(name)[0] or "application/octet-stream"
    url = storage.upload(bucket, path, data, content_type)
    structlog.get_logger().info("file_uploaded", bucket=bucket, path=path, size=len(data))
    return {"url": url, "bucket": bucket, "path": path, "size": len(data), "content_type": content_type}


@router.get("/local/{file_path:path}")
def serve_local_file(file_path: str):
    """Serve files from local storage for development."""
    bucket, _, rest = file_path.lstrip("/").partition("/")
    if not rest:
        raise HTTPException(status_code=404, detail="File not found")
    local_storage = LocalStorageProvider(settings.local_storage_dir)
    path = local_storage.path_for(bucket, rest)

    # Ensure the file is within the storage directory
    if not str(path.resolve()).startswith(str(local_storage.base_dir.resolve())):
        raise HTTPException(status_code=403, detail="Access denied")
    if not path.exists():
        raise HTTPException(status_code=404, detail="File not found")
    return FileResponse(path=str(path), media_type=guess_type(str(path))[0] or "application/octet-stream", filename=path.name)
