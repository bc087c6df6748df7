"""
Binary asset storage (logos, avatars) keyed by opaque file names.

The API only ever stores small thumbnails, so the local-filesystem store reads
and writes whole files in a worker thread.
"""

from __future__ import annotations

import asyncio
import io
from pathlib import Path

from fastapi import Request, UploadFile
from PIL import Image, ImageOps, UnidentifiedImageError

from . import uploads
from .errors import NotFoundError, ValidationError

CONTENT_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
}

# Pillow format names by extension; anything unknown is re-encoded as PNG.
_SAVE_FORMATS = {
    ".jpg": "JPEG",
    ".jpeg": "JPEG",
    ".png": "PNG",
    ".gif": "GIF",
    ".webp": "WEBP",
}


def content_type_for(key: str) -> str:
    return CONTENT_TYPES.get(Path(key).suffix.lower(), "application/octet-stream")


def make_thumbnail(data: bytes, size: int, ext: str) -> bytes:
    """
    Centre-crop and resize an image to a `size` x `size` square.
    """
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            thumb = ImageOps.fit(img, (size, size))
    except (UnidentifiedImageError, OSError) as exc:
        raise ValidationError("Could not read image (file may be corrupted or unsupported).") from exc

    fmt = _SAVE_FORMATS.get(ext.lower(), "PNG")
    if fmt == "JPEG" and thumb.mode not in ("RGB", "L"):
        thumb = thumb.convert("RGB")

    out = io.BytesIO()
    thumb.save(out, format=fmt)
    return out.getvalue()


class LocalObjectStore:
    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def _path(self, key: str) -> Path:
        key = (key or "").strip()
        if not key or "/" in key or "\\" in key or key in (".", ".."):
            raise ValidationError(f"Invalid object key '{key}'.")
        return self.root / key

    async def put(self, key: str, data: bytes) -> str:
        path = self._path(key)

        def _write() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)

        await asyncio.to_thread(_write)
        return key

    async def get(self, key: str) -> bytes:
        path = self._path(key)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError as exc:
            raise NotFoundError(f"Object '{key}' not found.") from exc


def get_object_store(request: Request) -> LocalObjectStore:
    return request.app.state.object_store


async def save_thumbnail(
    store: LocalObjectStore,
    file: UploadFile,
    *,
    key_stem: str,
    size: int,
    max_bytes: int,
) -> str:
    """
    Validate an uploaded image, shrink it and store it under `<key_stem><ext>`.
    """
    ext = uploads.validate_upload(file, uploads.IMAGE_EXTENSIONS)
    data = await uploads.read_upload_bytes(file, max_bytes)
    thumb = await asyncio.to_thread(make_thumbnail, data, size, ext)
    return await store.put(f"{key_stem}{ext}", thumb)


async def get_with_fallback(store: LocalObjectStore, key: str | None, default: str) -> tuple[bytes, str]:
    key = (key or "").strip() or default
    try:
        return await store.get(key), content_type_for(key)
    except NotFoundError:
        if key == default:
            raise
    return await store.get(default), content_type_for(default)
