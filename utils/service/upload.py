# ────────────────────────────── utils/service/upload.py ──────────────────────────────
import base64
import mimetypes
import os
from dataclasses import dataclass
from typing import Optional

from fastapi import HTTPException, UploadFile

from ..logger import get_logger

logger = get_logger("UPLOAD", __name__)

GENERIC_MIME = "application/octet-stream"

# Upload limit (can be overridden via env)
MAX_FILE_MB      = float(os.getenv("MAX_FILE_MB", "20"))
MAX_UPLOAD_BYTES = int(MAX_FILE_MB * 1024 * 1024)


@dataclass
class InlineAttachment:
    filename: str
    mime_type: str
    data: str  # base64
    size: int


def resolve_mime_type(content_type: Optional[str], filename: Optional[str]) -> str:
    """Part header first; guess from the filename when the client sent nothing useful."""
    ctype = (content_type or "").split(";")[0].strip().lower()
    if ctype and ctype != GENERIC_MIME:
        return ctype
    guessed, _ = mimetypes.guess_type(filename or "")
    return guessed or GENERIC_MIME


async def read_attachment(upload: Optional[UploadFile], field: str, kind: str) -> InlineAttachment:
    if upload is None or not upload.filename:
        logger.error(f"Missing {kind} file in request (expected form key '{field}')")
        article = "an" if kind[:1] in "aeiou" else "a"
        raise HTTPException(400, detail=f"Please upload {article} {kind} file with key '{field}'.")

    raw = await upload.read()
    if len(raw) > MAX_UPLOAD_BYTES:
        logger.error(f"{upload.filename} is {len(raw)} bytes, over the {MAX_UPLOAD_BYTES} byte limit")
        raise HTTPException(400, detail=f"{upload.filename} exceeds {MAX_FILE_MB:g} MB limit")

    mime_type = resolve_mime_type(upload.content_type, upload.filename)
    logger.info(f"Read {kind} '{upload.filename}' ({len(raw)} bytes, {mime_type})")
    return InlineAttachment(
        filename=upload.filename,
        mime_type=mime_type,
        data=base64.b64encode(raw).decode("ascii"),
        size=len(raw),
    )
