"""
Upload helpers shared by the bulk-import, company and user endpoints.

- Validate uploads by filename extension
- Read file bytes with a size limit
- Decode CSV text
- Read multipart forms into typed models
"""

from __future__ import annotations

from pathlib import Path
from typing import TypeVar

from fastapi import HTTPException, Request, UploadFile
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".webp"}

ModelT = TypeVar("ModelT", bound=BaseModel)


def file_ext(filename: str) -> str:
    return Path(filename).suffix.lower()


def validate_upload(file: UploadFile, allowed: set[str]) -> str:
    """
    Return the normalized file extension if this upload is acceptable.

    We validate based on filename extension here because `content_type`
    is often missing or incorrect in practice.
    """
    if not file.filename:
        raise HTTPException(status_code=400, detail="Missing filename.")

    ext = file_ext(file.filename)
    if ext not in allowed:
        raise HTTPException(
            status_code=400,
            detail=f"Unsupported file type '{ext}'. Allowed: {sorted(allowed)}",
        )

    return ext


async def read_upload_bytes(file: UploadFile, max_bytes: int) -> bytes:
    """
    Read the upload into memory, enforcing a maximum size.
    """
    chunk_size = 1024 * 1024  # 1 MiB
    buf = bytearray()

    while True:
        chunk = await file.read(chunk_size)
        if not chunk:
            break
        buf.extend(chunk)
        if len(buf) > max_bytes:
            raise HTTPException(
                status_code=413,
                detail=f"File too large. Max is {max_bytes} bytes.",
            )

    return bytes(buf)


def decode_csv(data: bytes) -> str:
    # utf-8-sig drops the BOM spreadsheet exports like to prepend.
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise HTTPException(
            status_code=400,
            detail="File encoding error. Re-save as UTF-8 CSV.",
        ) from exc


async def read_form(request: Request) -> tuple[dict[str, str], dict[str, UploadFile]]:
    """
    Split a multipart form into plain text fields and uploaded files.

    Files sent without a filename (an empty file input) are dropped.
    """
    form = await request.form()
    fields: dict[str, str] = {}
    files: dict[str, UploadFile] = {}
    for name, value in form.multi_items():
        if isinstance(value, str):
            fields[name] = value
        elif value.filename:
            files[name] = value
    return fields, files


def validate_form(model: type[ModelT], fields: dict[str, str]) -> ModelT:
    try:
        return model.model_validate(fields)
    except PydanticValidationError as exc:
        detail = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" if err.get("loc") else str(err["msg"])
            for err in exc.errors()
        )
        raise HTTPException(status_code=400, detail=detail) from exc
