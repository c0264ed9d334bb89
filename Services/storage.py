# Services/storage.py
"""Image uploads: Supabase Storage when configured, a local directory otherwise."""
import base64
import binascii
import logging
import os
import re
import uuid
from typing import Tuple
from urllib.parse import quote

import httpx
from fastapi import HTTPException, status

from paths import upload_file

logger = logging.getLogger(__name__)

_DATA_URL_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?:;[\w-]+=[\w-]+)*;base64,(?P<data>.*)$", re.DOTALL)

_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
    "image/svg+xml": "svg",
}

MAX_IMAGE_BYTES = int(os.getenv("MAX_IMAGE_BYTES", str(5 * 1024 * 1024)))


def _supabase_url() -> str:
    return (os.getenv("SUPABASE_URL") or "").strip().rstrip("/")


def _service_role_key() -> str:
    return (os.getenv("SUPABASE_SERVICE_ROLE_KEY") or "").strip()


def using_supabase_storage() -> bool:
    return bool(_supabase_url() and _service_role_key())


def bucket() -> str:
    return (os.getenv("SUPABASE_STORAGE_BUCKET") or "public-images").strip()


def _public_base_url() -> str:
    return (os.getenv("PUBLIC_BASE_URL") or "").strip().rstrip("/")


def decode_data_url(value: str) -> Tuple[bytes, str]:
    """Split a base64 data URL (or bare base64) into bytes and a content type."""
    if not value or not value.strip():
        raise ValueError("Empty image payload")
    match = _DATA_URL_RE.match(value.strip())
    if match:
        content_type = match.group("mime") or "application/octet-stream"
        payload = match.group("data")
    else:
        content_type = "image/jpeg"
        payload = value.strip()
    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        raise ValueError("Image payload is not valid base64")
    if not data:
        raise ValueError("Empty image payload")
    return data, content_type


def _supabase_upload(storage_key: str, data: bytes, content_type: str) -> str:
    path = quote(storage_key, safe="/")
    url = f"{_supabase_url()}/storage/v1/object/{bucket()}/{path}"
    headers = {
        "Authorization": f"Bearer {_service_role_key()}",
        "apikey": _service_role_key(),
        "x-upsert": "true",
        "Content-Type": content_type,
    }
    with httpx.Client(timeout=30.0) as client:
        res = client.post(url, headers=headers, content=data)
        if res.status_code >= 400:
            raise RuntimeError(f"supabase_upload_failed:{res.status_code}:{res.text}")
    return f"{_supabase_url()}/storage/v1/object/public/{bucket()}/{path}"


def _local_upload(storage_key: str, data: bytes) -> str:
    target = upload_file(storage_key)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(data)
    return f"{_public_base_url()}/uploads/{quote(storage_key, safe='/')}"


def upload(path: str, data: bytes, content_type: str) -> str:
    """Store `data` under `path` and return its public URL."""
    safe_path = path.replace("..", "_").lstrip("/")
    if using_supabase_storage():
        return _supabase_upload(safe_path, data, content_type)
    return _local_upload(safe_path, data)


def upload_image(folder: str, name: str, data_url: str) -> str:
    """
    Decode a data URL and upload it as `folder/name-<random>.<ext>`.

    Bad payloads raise 400, storage failures 502; either way nothing has been
    written to the database yet.
    """
    try:
        data, content_type = decode_data_url(data_url)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid image data: {e}")
    if not content_type.startswith("image/"):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Only image uploads are supported")
    if len(data) > MAX_IMAGE_BYTES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Image is too large")

    extension = _EXTENSIONS.get(content_type, "bin")
    key = f"{folder.strip('/')}/{name}-{uuid.uuid4().hex[:8]}.{extension}"
    try:
        return upload(key, data, content_type)
    except (RuntimeError, httpx.HTTPError, OSError) as e:
        logger.error(f"Image upload failed for {key}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Failed to upload image")
